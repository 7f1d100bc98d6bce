import typing as t

from fastapi import APIRouter, Depends, HTTPException, status
from starlette.responses import JSONResponse

from api.utils.logger import logger, myself
from core.auth import get_current_wallet
from db.session import get_db
from db.crud.checkins import create_checkin, get_checkins, get_registration, validate_checkin
from db.crud.participants import check_in_participant
from db.schemas.checkins import CheckIn, CreateCheckIn, ValidateCheckIn
from db.schemas.participants import DirectCheckIn, Participant, ParticipantResult

checkins_router = r = APIRouter()


@r.post("/checkin", response_model=ParticipantResult, name="checkins:direct")
def checkin_direct(
    checkin: DirectCheckIn,
    db=Depends(get_db),
):
    """
    Mark a registered participant as attended
    """
    try:
        participant = check_in_participant(db, checkin)
        logger.info(f'checked in participant {checkin.user_id} to event {checkin.event_id}')
        return ParticipantResult(
            message="Successfully checked in to event",
            participant=Participant.model_validate(participant),
        )

    except HTTPException:
        raise

    except Exception as e:
        logger.error(f'ERR:{myself()}: {e}')
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={'detail': 'database error'})


@r.post("/checkin/qr", response_model=CheckIn, status_code=status.HTTP_201_CREATED, name="checkins:qr")
def checkin_qr(
    checkin: CreateCheckIn,
    db=Depends(get_db),
):
    """
    Record a qr check-in, pending validation by the organizer
    """
    try:
        return create_checkin(db, checkin)

    except HTTPException:
        raise

    except Exception as e:
        logger.error(f'ERR:{myself()}: {e}')
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={'detail': 'database error'})


@r.post("/checkin/validate", response_model=CheckIn, name="checkins:validate")
def checkin_validate(
    validation: ValidateCheckIn,
    db=Depends(get_db),
    wallet: str = Depends(get_current_wallet),
):
    """
    Organizer accepts or rejects a qr check-in
    """
    try:
        return validate_checkin(db, validation, wallet)

    except HTTPException:
        raise

    except Exception as e:
        logger.error(f'ERR:{myself()}: {e}')
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={'detail': 'database error'})


@r.get("/events/{event_id}/checkins", response_model=t.List[CheckIn], name="checkins:all-checkins")
def checkins_list(
    event_id: int,
    db=Depends(get_db),
):
    try:
        return get_checkins(db, event_id)

    except HTTPException:
        raise

    except Exception as e:
        logger.error(f'ERR:{myself()}: {e}')
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={'detail': 'database error'})


@r.get("/events/{event_id}/registration", response_model=CheckIn, name="checkins:registration")
def checkin_registration(
    event_id: int,
    user: str,
    db=Depends(get_db),
):
    """
    Check-in record of a wallet for an event
    """
    try:
        checkin = get_registration(db, event_id, user)
        if not checkin:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="no check-in for this wallet")
        return checkin

    except HTTPException:
        raise

    except Exception as e:
        logger.error(f'ERR:{myself()}: {e}')
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={'detail': 'database error'})
