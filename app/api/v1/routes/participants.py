import typing as t

from fastapi import APIRouter, Depends, HTTPException, status
from starlette.responses import JSONResponse

from api.utils.logger import logger, myself
from db.session import get_db
from db.crud.events import get_attended_wallets
from db.crud.participants import (
    claim_reward,
    get_participant_status,
    get_participants,
    register_participant,
    withdraw_participant,
)
from db.schemas.participants import (
    ClaimReward,
    Participant,
    ParticipantList,
    ParticipantResult,
    ParticipantStatus,
    Registration,
)

participants_router = r = APIRouter()


@r.post(
    "/events/{event_id}/register",
    response_model=ParticipantResult,
    status_code=status.HTTP_201_CREATED,
    name="participants:register"
)
def participant_register(
    event_id: int,
    registration: Registration,
    db=Depends(get_db),
):
    """
    Register a wallet for an event after its stake transaction
    """
    try:
        participant = register_participant(db, event_id, registration)
        return ParticipantResult(
            message="Successfully registered for event",
            participant=Participant.model_validate(participant),
        )

    except HTTPException:
        raise

    except Exception as e:
        logger.error(f'ERR:{myself()}: {e}')
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={'detail': 'database error'})


@r.delete("/events/{event_id}/register", response_model=ParticipantResult, name="participants:withdraw")
def participant_withdraw(
    event_id: int,
    user: str,
    db=Depends(get_db),
):
    """
    Withdraw a registration while registration is still open
    """
    try:
        return ParticipantResult(
            message="Registration withdrawn",
            participant=withdraw_participant(db, event_id, user),
        )

    except HTTPException:
        raise

    except Exception as e:
        logger.error(f'ERR:{myself()}: {e}')
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={'detail': 'database error'})


@r.get("/events/{event_id}/participants", response_model=ParticipantList, name="participants:all-participants")
def participants_list(
    event_id: int,
    db=Depends(get_db),
):
    try:
        participants = get_participants(db, event_id)
        return ParticipantList(participants=participants, count=len(participants))

    except HTTPException:
        raise

    except Exception as e:
        logger.error(f'ERR:{myself()}: {e}')
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={'detail': 'database error'})


@r.get("/events/{event_id}/participants/{wallet}", response_model=ParticipantStatus, name="participants:participant-status")
def participant_status(
    event_id: int,
    wallet: str,
    db=Depends(get_db),
):
    """
    Registration, attendance and claim state of one wallet; null when not registered
    """
    try:
        return ParticipantStatus(participant=get_participant_status(db, event_id, wallet))

    except Exception as e:
        logger.error(f'ERR:{myself()}: {e}')
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={'detail': 'database error'})


@r.get("/events/{event_id}/attended", response_model=t.List[str], name="participants:attended")
def participants_attended(
    event_id: int,
    db=Depends(get_db),
):
    """
    Wallets marked as attended, input for settlement
    """
    try:
        return get_attended_wallets(db, event_id)

    except Exception as e:
        logger.error(f'ERR:{myself()}: {e}')
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={'detail': 'database error'})


@r.post("/claim", response_model=ParticipantResult, name="participants:claim")
def participant_claim(
    claim: ClaimReward,
    db=Depends(get_db),
):
    """
    Mark an attended participant's reward as claimed
    """
    try:
        participant = claim_reward(db, claim)
        return ParticipantResult(
            message="Successfully claimed event reward",
            participant=Participant.model_validate(participant),
        )

    except HTTPException:
        raise

    except Exception as e:
        logger.error(f'ERR:{myself()}: {e}')
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={'detail': 'database error'})
