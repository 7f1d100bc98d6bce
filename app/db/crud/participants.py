from time import time
from uuid import UUID
import typing as t

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from api.utils.logger import logger
from core.lifecycle import EventStatus, effective_status
from db.crud.events import count_participants, get_metadata, get_onchain_event, get_or_create_metadata
from db.crud.profiles import find_profile, get_or_create_profile, get_profile
from db.models import participants as models
from db.models.profiles import Profile
from db.schemas import participants as schemas

########################################
### CRUD OPERATIONS FOR PARTICIPANTS ###
########################################


def sync_participant_count(db: Session, onchain) -> int:
    # rewrite the stored counter from the participant table; caller commits
    metadata = get_or_create_metadata(db, onchain)
    n = count_participants(db, onchain.event_id)
    if metadata.status != EventStatus.SETTLED.value:
        metadata.current_participants = n
    return n


def registration_open(db: Session, onchain, now: int) -> bool:
    metadata = get_metadata(db, onchain.event_id)
    current = effective_status(
        metadata.status if metadata else None,
        now, onchain.registration_deadline, onchain.event_date,
        count_participants(db, onchain.event_id),
    )
    return current == EventStatus.REGISTRATION_OPEN


def find_participant(db: Session, event_id: int, user_id: UUID) -> t.Optional[models.Participant]:
    return db.query(models.Participant).filter(
        models.Participant.event_id == event_id,
        models.Participant.user_id == user_id,
    ).first()


def register_participant(
    db: Session,
    event_id: int,
    registration: schemas.Registration,
    now: int = None,
) -> models.Participant:
    now = int(time()) if now is None else now
    onchain = get_onchain_event(db, event_id)

    if not registration_open(db, onchain, now):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="registration is closed")

    if count_participants(db, event_id) >= onchain.max_participant:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="event is full")

    profile = get_or_create_profile(db, registration.user_address)
    if find_participant(db, event_id, profile.id):
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="already registered for this event")

    participant = models.Participant(event_id=event_id, user_id=profile.id, is_attend=False, is_claim=False)
    try:
        db.add(participant)
        db.flush()
        n = sync_participant_count(db, onchain)
        db.commit()

    except IntegrityError:
        # lost a race with a concurrent registration for the same wallet
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="already registered for this event")

    db.refresh(participant)
    logger.info(f'{registration.user_address} registered for event {event_id} ({n}/{onchain.max_participant}, tx: {registration.transaction_hash})')
    return participant


def withdraw_participant(db: Session, event_id: int, walletAddress: str, now: int = None) -> schemas.Participant:
    now = int(time()) if now is None else now
    onchain = get_onchain_event(db, event_id)

    profile = find_profile(db, walletAddress)
    participant = find_participant(db, event_id, profile.id) if profile else None
    if not participant:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="registration not found")

    if not registration_open(db, onchain, now):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="registration is closed, cannot withdraw")

    withdrawn = schemas.Participant.model_validate(participant)
    db.delete(participant)
    db.flush()
    sync_participant_count(db, onchain)
    db.commit()
    return withdrawn


def _with_profile(participant: models.Participant, profile: Profile) -> schemas.ParticipantWithProfile:
    return schemas.ParticipantWithProfile(
        id=participant.id,
        event_id=participant.event_id,
        user_id=participant.user_id,
        is_attend=participant.is_attend,
        is_claim=participant.is_claim,
        created_at=participant.created_at,
        updated_at=participant.updated_at,
        user_address=profile.wallet_address,
        name=profile.name,
        email=profile.email,
    )


def get_participant_status(db: Session, event_id: int, walletAddress: str) -> t.Optional[schemas.ParticipantWithProfile]:
    profile = find_profile(db, walletAddress)
    if not profile:
        return None
    participant = find_participant(db, event_id, profile.id)
    if not participant:
        return None
    return _with_profile(participant, profile)


def get_participants(db: Session, event_id: int) -> t.List[schemas.ParticipantWithProfile]:
    get_onchain_event(db, event_id)
    rows = db.query(models.Participant, Profile).join(
        Profile, Profile.id == models.Participant.user_id
    ).filter(models.Participant.event_id == event_id).order_by(models.Participant.created_at).all()
    return [_with_profile(participant, profile) for participant, profile in rows]


def check_in_participant(db: Session, checkin: schemas.DirectCheckIn) -> models.Participant:
    participant = find_participant(db, checkin.event_id, checkin.user_id)
    if not participant:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="participant not found for this event")
    if participant.is_attend:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="participant already checked in")

    participant.is_attend = True
    db.commit()
    db.refresh(participant)
    return participant


def claim_reward(db: Session, claim: schemas.ClaimReward) -> models.Participant:
    profile = get_profile(db, claim.wallet_address)
    participant = find_participant(db, claim.event_id, profile.id)
    if not participant:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="participant not found for this event")
    if not participant.is_attend:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="participant did not attend the event")
    if participant.is_claim:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="reward already claimed")

    participant.is_claim = True
    db.commit()
    db.refresh(participant)
    return participant
