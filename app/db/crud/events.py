from decimal import Decimal
from time import time
import typing as t

from fastapi import HTTPException, status
from pydantic import ValidationError
from sqlalchemy import func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from api.utils.logger import logger, myself
from core.lifecycle import EventStatus, TERMINAL, can_transition, effective_status
from db.crud.profiles import find_profile
from db.models import events as models
from db.models.participants import Participant
from db.models.profiles import Profile
from db.schemas import events as schemas

##################################
### CRUD OPERATIONS FOR EVENTS ###
##################################


def _now(now: t.Optional[int]) -> int:
    return int(time()) if now is None else now


def _insert(db: Session):
    # INSERT .. ON CONFLICT for whichever dialect the session is bound to
    if db.get_bind().dialect.name == 'sqlite':
        return sqlite_insert
    return pg_insert


def count_participants(db: Session, event_id: int) -> int:
    return db.query(func.count(Participant.id)).filter(
        Participant.event_id == event_id
    ).scalar() or 0


def count_participants_by_event(db: Session, eventIds: t.List[int]) -> t.Dict[int, int]:
    if not eventIds:
        return {}
    rows = db.query(Participant.event_id, func.count(Participant.id)).filter(
        Participant.event_id.in_(eventIds)
    ).group_by(Participant.event_id).all()
    return {eventId: n for eventId, n in rows}


def get_attended_wallets(db: Session, event_id: int) -> t.List[str]:
    rows = db.query(Profile.wallet_address).join(
        Participant, Participant.user_id == Profile.id
    ).filter(
        Participant.event_id == event_id,
        Participant.is_attend == True,  # noqa: E712
    ).all()
    return [wallet for (wallet,) in rows]


def default_metadata(onchain: models.EventOnchain) -> models.EventMetadata:
    """
    Placeholder for an event nobody has described yet; transient until a
    caller adds it to the session.
    """
    return models.EventMetadata(
        event_id=onchain.event_id,
        title=f'Event {onchain.event_id}',
        tags=[],
        status=EventStatus.REGISTRATION_OPEN.value,
        current_participants=0,
        deposited_to_yield=False,
        event_settled=False,
        total_yield_earned='0',
        total_net_yield='0',
    )


def build_event_detail(
    onchain: models.EventOnchain,
    metadata: t.Optional[models.EventMetadata],
    counted: int,
    now: int,
) -> schemas.EventDetail:
    hasMetadata = metadata is not None
    if metadata is None:
        metadata = default_metadata(onchain)

    # the counter is frozen at settlement, otherwise it is whatever the participant table says
    if metadata.status == EventStatus.SETTLED.value:
        participants = metadata.current_participants
    else:
        participants = counted

    return schemas.EventDetail(
        event_id=onchain.event_id,
        vault_address=onchain.vault,
        organizer_address=onchain.organizer,
        stake_amount=onchain.stake_amount,
        max_participants=onchain.max_participant,
        registration_deadline=onchain.registration_deadline,
        event_date=onchain.event_date,
        transaction_hash=onchain.transaction_hash,
        block_number=onchain.block_number,
        title=metadata.title,
        description=metadata.description,
        image_url=metadata.image_url,
        location=metadata.location,
        category=metadata.category,
        tags=metadata.tags,
        organizer_profile_id=metadata.organizer_profile_id,
        status=effective_status(metadata.status, now, onchain.registration_deadline, onchain.event_date, participants),
        current_participants=participants,
        deposited_to_yield=bool(metadata.deposited_to_yield),
        event_settled=bool(metadata.event_settled),
        total_yield_earned=metadata.total_yield_earned or '0',
        total_net_yield=metadata.total_net_yield or '0',
        has_metadata=hasMetadata,
    )


def get_onchain_event(db: Session, event_id: int) -> models.EventOnchain:
    onchain = db.query(models.EventOnchain).filter(
        models.EventOnchain.event_id == event_id
    ).first()
    if not onchain:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="event not found")
    return onchain


def get_metadata(db: Session, event_id: int) -> t.Optional[models.EventMetadata]:
    return db.query(models.EventMetadata).filter(
        models.EventMetadata.event_id == event_id
    ).first()


def get_or_create_metadata(db: Session, onchain: models.EventOnchain) -> models.EventMetadata:
    metadata = get_metadata(db, onchain.event_id)
    if metadata is None:
        organizer = find_profile(db, onchain.organizer)
        metadata = default_metadata(onchain)
        metadata.organizer_profile_id = organizer.id if organizer else None
        db.add(metadata)
        db.flush()
    return metadata


def get_complete_event(db: Session, event_id: int, now: int = None) -> schemas.EventDetail:
    row = db.query(models.EventOnchain, models.EventMetadata).outerjoin(
        models.EventMetadata, models.EventMetadata.event_id == models.EventOnchain.event_id
    ).filter(models.EventOnchain.event_id == event_id).first()
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="event not found")

    onchain, metadata = row
    return build_event_detail(onchain, metadata, count_participants(db, event_id), _now(now))


def list_events(
    db: Session,
    status: t.Optional[EventStatus] = None,
    organizer: t.Optional[str] = None,
    deposited_to_yield: t.Optional[bool] = None,
    skip: int = 0,
    limit: t.Optional[int] = 50,
    now: int = None,
) -> t.Tuple[t.List[schemas.EventDetail], int]:
    # events without metadata count as not deposited
    q = db.query(models.EventOnchain, models.EventMetadata).outerjoin(
        models.EventMetadata, models.EventMetadata.event_id == models.EventOnchain.event_id
    )
    if organizer:
        q = q.filter(func.lower(models.EventOnchain.organizer) == organizer.lower())
    if deposited_to_yield is not None:
        q = q.filter(func.coalesce(models.EventMetadata.deposited_to_yield, False) == deposited_to_yield)
    q = q.order_by(
        models.EventOnchain.timestamp.desc().nulls_last(),
        models.EventOnchain.event_id.desc(),
    )
    now = _now(now)

    # status is filtered on the effective status, which only exists after the rows are built
    if status is not None:
        rows = q.all()
        counts = count_participants_by_event(db, [onchain.event_id for onchain, _ in rows])
        details = [build_event_detail(onchain, metadata, counts.get(onchain.event_id, 0), now) for onchain, metadata in rows]
        details = [e for e in details if e.status == EventStatus(status)]
        end = None if limit is None else skip + limit
        return details[skip:end], len(details)

    total = q.count()
    rows = q.offset(skip).limit(limit).all()
    counts = count_participants_by_event(db, [onchain.event_id for onchain, _ in rows])
    return [build_event_detail(onchain, metadata, counts.get(onchain.event_id, 0), now) for onchain, metadata in rows], total


def upsert_event_from_indexer(db: Session, fact: schemas.IndexedEvent) -> models.EventOnchain:
    """
    Write one on-chain fact, keyed by transaction hash, and create default
    metadata the first time an event id is seen. Both writes share one
    transaction.
    """
    insert = _insert(db)
    try:
        db.execute(
            insert(models.EventOnchain).values(
                transaction_hash=fact.transaction_hash,
                event_id=fact.event_id,
                vault=fact.vault,
                organizer=fact.organizer,
                stake_amount=fact.stake_amount,
                max_participant=fact.max_participant,
                registration_deadline=fact.registration_deadline,
                event_date=fact.event_date,
                block_number=fact.block_number,
                timestamp=fact.timestamp,
                contract_id=fact.contract_id,
                chain=fact.chain,
            ).on_conflict_do_update(
                index_elements=[models.EventOnchain.transaction_hash],
                set_={'updated_at': func.now()},
            )
        )

        if get_metadata(db, fact.event_id) is None:
            # organizer link is best effort, unknown wallets stay unlinked
            organizer = find_profile(db, fact.organizer)
            db.execute(
                insert(models.EventMetadata).values(
                    event_id=fact.event_id,
                    title=f'Event {fact.event_id}',
                    organizer_profile_id=organizer.id if organizer else None,
                    status=EventStatus.REGISTRATION_OPEN.value,
                ).on_conflict_do_nothing(index_elements=[models.EventMetadata.event_id])
            )

        db.commit()

    except SQLAlchemyError:
        db.rollback()
        raise

    return db.query(models.EventOnchain).filter(
        models.EventOnchain.transaction_hash == fact.transaction_hash
    ).one()


def process_indexer_batch(db: Session, items: t.List[t.Any]) -> schemas.IndexerBatchResult:
    results = []
    for item in items:
        eventId = item.get('event_id') if isinstance(item, dict) else None
        try:
            fact = schemas.IndexedEvent.model_validate(item)
            saved = upsert_event_from_indexer(db, fact)
            results.append(schemas.IndexerItemResult(event_id=saved.event_id, vault=saved.vault, status='processed'))

        except ValidationError as e:
            logger.warning(f'{myself()}: malformed indexer event {eventId!r} ({e.error_count()} errors)')
            results.append(schemas.IndexerItemResult(event_id=eventId, status='error', error=str(e)))

        except SQLAlchemyError as e:
            logger.error(f'ERR:{myself()}: indexer event {eventId!r}: {e}')
            results.append(schemas.IndexerItemResult(event_id=eventId, status='error', error='database error'))

        except Exception as e:
            db.rollback()
            logger.error(f'ERR:{myself()}: indexer event {eventId!r}: {e}')
            results.append(schemas.IndexerItemResult(event_id=eventId, status='error', error=str(e)))

    processed = len([r for r in results if r.status == 'processed'])
    return schemas.IndexerBatchResult(
        processed_events=results,
        total=len(results),
        processed=processed,
        failed=len(results) - processed,
    )


def upsert_event_metadata(
    db: Session,
    event_id: int,
    data: schemas.CreateAndUpdateEventMetadata,
    organizerAddress: str = None,
) -> models.EventMetadata:
    onchain = db.query(models.EventOnchain).filter(models.EventOnchain.event_id == event_id).first()
    if not onchain:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="on-chain event data not found, make sure the transaction is confirmed and indexed",
        )

    metadata = get_metadata(db, event_id)
    if metadata is None:
        organizer = find_profile(db, organizerAddress or onchain.organizer)
        metadata = default_metadata(onchain)
        metadata.organizer_profile_id = organizer.id if organizer else None
        db.add(metadata)

    update_data = data.model_dump(
        exclude_unset=True,
        include={'title', 'description', 'image_url', 'location', 'category', 'tags'},
    )
    for key, value in update_data.items():
        if value is not None:
            setattr(metadata, key, value)

    db.commit()
    db.refresh(metadata)
    return metadata


def update_event_status(db: Session, event_id: int, target: EventStatus) -> models.EventMetadata:
    target = EventStatus(target)
    if target == EventStatus.SETTLED:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="events are settled through settlement only")

    onchain = get_onchain_event(db, event_id)
    metadata = get_or_create_metadata(db, onchain)
    if not can_transition(metadata.status, target):
        current = metadata.status
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"cannot move event from {current} to {target.value}")

    metadata.status = target.value
    db.commit()
    db.refresh(metadata)
    logger.info(f'event {event_id} status set to {target.value}')
    return metadata


def refresh_event_status(db: Session, event_id: int, now: int = None) -> schemas.StatusChange:
    onchain = get_onchain_event(db, event_id)
    metadata = get_or_create_metadata(db, onchain)
    previous = EventStatus(metadata.status)

    if previous not in TERMINAL:
        participants = count_participants(db, event_id)
        metadata.current_participants = participants
        metadata.status = effective_status(
            previous, _now(now), onchain.registration_deadline, onchain.event_date, participants
        ).value

    db.commit()
    return schemas.StatusChange(event_id=event_id, previous=previous, status=metadata.status)


def reconcile_participant_counts(db: Session) -> int:
    """rewrite the stored counter of every unsettled event from the participant table; no commit"""
    rows = db.query(models.EventMetadata).filter(
        models.EventMetadata.status != EventStatus.SETTLED.value
    ).all()
    counts = count_participants_by_event(db, [m.event_id for m in rows])

    changed = 0
    for metadata in rows:
        n = counts.get(metadata.event_id, 0)
        if metadata.current_participants != n:
            metadata.current_participants = n
            changed += 1
    return changed


def refresh_all_statuses(db: Session, now: int = None) -> t.List[schemas.StatusChange]:
    now = _now(now)
    drift = reconcile_participant_counts(db)
    if drift:
        logger.warning(f'{myself()}: corrected participant counter on {drift} events')

    rows = db.query(models.EventOnchain, models.EventMetadata).join(
        models.EventMetadata, models.EventMetadata.event_id == models.EventOnchain.event_id
    ).filter(models.EventMetadata.status.notin_([s.value for s in TERMINAL])).all()

    changes = []
    for onchain, metadata in rows:
        current = effective_status(
            metadata.status, now, onchain.registration_deadline, onchain.event_date, metadata.current_participants
        )
        if current.value != metadata.status:
            changes.append(schemas.StatusChange(event_id=onchain.event_id, previous=metadata.status, status=current))
            metadata.status = current.value

    db.commit()
    logger.info(f'{myself()}: {len(changes)} of {len(rows)} events moved')
    return changes


def settle_event(db: Session, event_id: int, settlement: schemas.Settlement, now: int = None) -> models.EventMetadata:
    onchain = get_onchain_event(db, event_id)
    metadata = get_metadata(db, event_id)
    participants = count_participants(db, event_id)

    current = effective_status(
        metadata.status if metadata else None,
        _now(now), onchain.registration_deadline, onchain.event_date, participants,
    )
    if current != EventStatus.LIVE:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"event is not live ({current.value})")

    if settlement.attended_participants is not None:
        recorded = set(get_attended_wallets(db, event_id))
        reported = {w.lower() for w in settlement.attended_participants}
        if reported != recorded:
            logger.warning(
                f'{myself()}: event {event_id} settled with {len(reported)} attendees, '
                f'{len(recorded)} recorded ({len(reported - recorded)} unknown, {len(recorded - reported)} missing)'
            )

    if metadata is None:
        metadata = get_or_create_metadata(db, onchain)

    metadata.status = EventStatus.SETTLED.value
    metadata.event_settled = True
    metadata.total_yield_earned = settlement.total_yield_earned
    metadata.total_net_yield = settlement.total_net_yield
    metadata.current_participants = participants

    db.commit()
    db.refresh(metadata)
    logger.info(f'event {event_id} settled with {participants} participants (tx: {settlement.transaction_hash})')
    return metadata


def mark_deposited_to_yield(db: Session, event_id: int) -> models.EventMetadata:
    onchain = get_onchain_event(db, event_id)
    metadata = get_or_create_metadata(db, onchain)
    metadata.deposited_to_yield = True
    db.commit()
    db.refresh(metadata)
    return metadata


def _ready_for_yield(event: schemas.EventDetail, now: int) -> bool:
    return (
        not event.deposited_to_yield
        and not event.event_settled
        and now >= event.registration_deadline
        and event.current_participants > 0
    )


def get_events_ready_for_yield(db: Session, now: int = None) -> t.List[schemas.ReadyForYield]:
    now = _now(now)
    events, _ = list_events(db, deposited_to_yield=False, limit=None, now=now)
    return [
        schemas.ReadyForYield(
            event_id=e.event_id,
            vault_address=e.vault_address,
            title=e.title,
            current_participants=e.current_participants,
            stake_amount=e.stake_amount,
            total_staked=f'{Decimal(e.stake_amount) * e.current_participants:f}',
            registration_deadline=e.registration_deadline,
        )
        for e in events if _ready_for_yield(e, now)
    ]


def get_event_stats(db: Session, now: int = None) -> schemas.EventStats:
    now = _now(now)
    events, total = list_events(db, limit=None, now=now)

    byStatus = {}
    participants = 0
    valueLocked = Decimal(0)
    ready = 0
    for e in events:
        byStatus[e.status.value] = byStatus.get(e.status.value, 0) + 1
        participants += e.current_participants
        valueLocked += Decimal(e.stake_amount) * e.current_participants
        if _ready_for_yield(e, now):
            ready += 1

    return schemas.EventStats(
        total_events=total,
        by_status=byStatus,
        total_participants=participants,
        total_value_locked=f'{valueLocked:f}',
        events_ready_for_yield=ready,
    )
