import secrets
from time import time
import typing as t

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from api.utils.logger import logger, myself
from db.crud.events import count_participants, get_onchain_event
from db.crud.participants import registration_open, sync_participant_count, find_participant
from db.crud.profiles import find_profile
from db.models import checkins as models
from db.models.participants import Participant
from db.schemas import checkins as schemas

####################################
### CRUD OPERATIONS FOR CHECKINS ###
####################################


def generate_qr_data(walletAddress: str, event_id: int) -> str:
    return f'{walletAddress}:{event_id}:{secrets.token_hex(8)}'


def get_registration(db: Session, event_id: int, walletAddress: str) -> t.Optional[models.CheckIn]:
    return db.query(models.CheckIn).filter(
        models.CheckIn.event_id == event_id,
        func.lower(models.CheckIn.user_address) == walletAddress.lower(),
    ).first()


def create_checkin(db: Session, checkin: schemas.CreateCheckIn) -> models.CheckIn:
    get_onchain_event(db, checkin.event_id)
    if get_registration(db, checkin.event_id, checkin.user_address):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="already checked in")

    db_checkin = models.CheckIn(
        event_id=checkin.event_id,
        user_address=checkin.user_address,
        qr_data=checkin.qr_data or generate_qr_data(checkin.user_address, checkin.event_id),
        is_validated=False,
    )
    try:
        db.add(db_checkin)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="already checked in")

    db.refresh(db_checkin)
    return db_checkin


def _propagate_attendance(db: Session, checkin: models.CheckIn, now: int) -> None:
    """
    Mirror a validated check-in onto the participant row. Best effort: the
    check-in is already committed and stays valid if this fails.

    A wallet that never registered only gets a participant row while the
    event still takes registrations and has a free seat; the row counts
    towards the event's participants.
    """
    try:
        profile = find_profile(db, checkin.user_address)
        if not profile:
            logger.warning(f'{myself()}: no profile for {checkin.user_address}, attendance not recorded')
            return

        participant = find_participant(db, checkin.event_id, profile.id)
        if participant:
            participant.is_attend = True
            db.commit()
            return

        onchain = get_onchain_event(db, checkin.event_id)
        if not registration_open(db, onchain, now):
            logger.warning(f'{myself()}: {checkin.user_address} not registered for closed event {checkin.event_id}, attendance not recorded')
            return
        if count_participants(db, checkin.event_id) >= onchain.max_participant:
            logger.warning(f'{myself()}: event {checkin.event_id} is full, attendance for {checkin.user_address} not recorded')
            return

        db.add(Participant(event_id=checkin.event_id, user_id=profile.id, is_attend=True, is_claim=False))
        db.flush()
        sync_participant_count(db, onchain)
        db.commit()

    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(f'{myself()}: attendance for check-in {checkin.id} not recorded: {e}')


def validate_checkin(
    db: Session,
    validation: schemas.ValidateCheckIn,
    validatorAddress: str,
    now: int = None,
) -> models.CheckIn:
    now = int(time()) if now is None else now
    checkin = db.query(models.CheckIn).filter(models.CheckIn.id == validation.checkin_id).first()
    if not checkin:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="check-in not found")

    onchain = get_onchain_event(db, checkin.event_id)
    if onchain.organizer.lower() != validatorAddress.lower():
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="only the event organizer can validate check-ins")

    # a rejection is final too, validated_by marks any decision
    if checkin.is_validated:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="check-in already validated")
    if checkin.validated_by:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="check-in already rejected")

    checkin.is_validated = validation.is_valid
    checkin.validated_at = func.now()
    checkin.validated_by = validatorAddress.lower()
    db.commit()
    db.refresh(checkin)

    if validation.is_valid:
        _propagate_attendance(db, checkin, now)
        db.refresh(checkin)

    return checkin


def get_checkins(db: Session, event_id: int) -> t.List[models.CheckIn]:
    get_onchain_event(db, event_id)
    return db.query(models.CheckIn).filter(
        models.CheckIn.event_id == event_id
    ).order_by(models.CheckIn.checked_in_at.desc()).all()
