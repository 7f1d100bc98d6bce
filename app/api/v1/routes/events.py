import typing as t

from fastapi import APIRouter, Depends, HTTPException, Query, status
from starlette.responses import JSONResponse

from api.utils.logger import logger, myself
from chain.client import ChainClient, ChainError, get_chain
from chain.contracts import get_participant_count
from config import Config, Network
from core.auth import require_admin_key
from core.lifecycle import EventStatus
from db.session import get_db
from db.crud.events import (
    get_complete_event,
    get_event_stats,
    get_events_ready_for_yield,
    list_events,
    mark_deposited_to_yield,
    refresh_all_statuses,
    refresh_event_status,
    settle_event,
    update_event_status,
    upsert_event_metadata,
)
from db.schemas.events import (
    CreateAndUpdateEventMetadata,
    CreateEvent,
    EventDetail,
    EventList,
    EventMetadata,
    EventStats,
    ReadyForYield,
    Settlement,
    StatusChange,
    StatusUpdate,
)

CFG = Config[Network]

events_router = r = APIRouter()


def _onchain_participants(chain: ChainClient, vaultAddress: str) -> t.Optional[int]:
    if not vaultAddress:
        return None
    try:
        return get_participant_count(chain, vaultAddress)
    except ChainError as e:
        logger.warning(f'{myself()}: vault {vaultAddress} unreadable: {e}')
        return None


def _database_error(e: Exception, caller: str) -> JSONResponse:
    logger.error(f'ERR:{caller}: {e}')
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={'detail': 'database error'})


#region STATIC
@r.get("", response_model=EventList, name="events:all-events")
def events_list(
    status: t.Optional[EventStatus] = None,
    organizer: t.Optional[str] = None,
    deposited_to_yield: t.Optional[bool] = None,
    limit: int = Query(CFG.defaultPageSize, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db=Depends(get_db),
):
    """
    List events, newest first
    """
    try:
        events, total = list_events(db, status, organizer, deposited_to_yield, skip=offset, limit=limit)
        return EventList(events=events, total=total, limit=limit, offset=offset)

    except HTTPException:
        raise

    except Exception as e:
        return _database_error(e, myself())


@r.get("/stats", response_model=EventStats, name="events:stats")
def events_stats(db=Depends(get_db)):
    """
    Totals across all events
    """
    try:
        return get_event_stats(db)

    except Exception as e:
        return _database_error(e, myself())


@r.get("/ready-for-yield", response_model=t.List[ReadyForYield], name="events:ready-for-yield")
def events_ready_for_yield(db=Depends(get_db)):
    """
    Events past registration with stake waiting to be deposited
    """
    try:
        return get_events_ready_for_yield(db)

    except Exception as e:
        return _database_error(e, myself())


@r.post(
    "/refresh-status",
    response_model=t.List[StatusChange],
    name="events:refresh-all",
    dependencies=[Depends(require_admin_key)],
)
def events_refresh_all(db=Depends(get_db)):
    """
    Persist the effective status of every open event; returns what moved
    """
    try:
        return refresh_all_statuses(db)

    except Exception as e:
        return _database_error(e, myself())


@r.post(
    "",
    response_model=EventDetail,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
    name="events:create"
)
def event_create(
    event: CreateEvent,
    db=Depends(get_db),
):
    """
    Describe an event already indexed from chain
    """
    try:
        upsert_event_metadata(db, event.event_id, event, event.organizer_address)
        return get_complete_event(db, event.event_id)

    except HTTPException:
        raise

    except Exception as e:
        return _database_error(e, myself())
#endregion STATIC


@r.get("/{event_id}", response_model=EventDetail, name="events:event-details")
def event_details(
    event_id: int,
    db=Depends(get_db),
    chain=Depends(get_chain),
):
    """
    On-chain facts joined with off-chain metadata
    """
    try:
        event = get_complete_event(db, event_id)
        event.onchain_participants = _onchain_participants(chain, event.vault_address)
        return event

    except HTTPException:
        raise

    except Exception as e:
        return _database_error(e, myself())


@r.post("/{event_id}/metadata", response_model=EventDetail, name="events:edit-metadata")
def event_metadata(
    event_id: int,
    metadata: CreateAndUpdateEventMetadata,
    db=Depends(get_db),
):
    """
    Create or update title, description, image, location, category and tags
    """
    try:
        upsert_event_metadata(db, event_id, metadata)
        return get_complete_event(db, event_id)

    except HTTPException:
        raise

    except Exception as e:
        return _database_error(e, myself())


@r.put(
    "/{event_id}/status",
    response_model=EventMetadata,
    name="events:edit-status",
    dependencies=[Depends(require_admin_key)],
)
def event_status(
    event_id: int,
    update: StatusUpdate,
    db=Depends(get_db),
):
    """
    Administrative status change, checked against the lifecycle
    """
    try:
        return update_event_status(db, event_id, update.status)

    except HTTPException:
        raise

    except Exception as e:
        return _database_error(e, myself())


@r.post("/{event_id}/refresh-status", response_model=StatusChange, name="events:refresh")
def event_refresh(
    event_id: int,
    db=Depends(get_db),
):
    """
    Persist the status the clock says the event is in
    """
    try:
        return refresh_event_status(db, event_id)

    except HTTPException:
        raise

    except Exception as e:
        return _database_error(e, myself())


@r.post(
    "/{event_id}/settle",
    response_model=EventMetadata,
    name="events:settle",
    dependencies=[Depends(require_admin_key)],
)
def event_settle(
    event_id: int,
    settlement: Settlement,
    db=Depends(get_db),
):
    """
    Record settlement of a live event
    """
    try:
        return settle_event(db, event_id, settlement)

    except HTTPException:
        raise

    except Exception as e:
        return _database_error(e, myself())


@r.post(
    "/{event_id}/yield-deposit",
    response_model=EventMetadata,
    name="events:yield-deposit",
    dependencies=[Depends(require_admin_key)],
)
def event_yield_deposit(
    event_id: int,
    db=Depends(get_db),
):
    """
    Flag stake as deposited to the yield vault
    """
    try:
        return mark_deposited_to_yield(db, event_id)

    except HTTPException:
        raise

    except Exception as e:
        return _database_error(e, myself())
