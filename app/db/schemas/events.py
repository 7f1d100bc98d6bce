from datetime import datetime
from decimal import Decimal, InvalidOperation
from uuid import UUID
from eth_utils import is_address
from pydantic import BaseModel, Field, field_validator, model_validator
import typing as t

from core.lifecycle import EventStatus

### SCHEMAS FOR EVENTS ###


def _decimal_string(v) -> str:
    try:
        d = Decimal(str(v))
    except InvalidOperation:
        raise ValueError(f'not a decimal amount: {v!r}')
    if not d.is_finite() or d < 0:
        raise ValueError(f'amount must be a non-negative number: {v!r}')
    return str(v)


class CreateAndUpdateEventMetadata(BaseModel):
    title: t.Optional[str] = None
    description: t.Optional[str] = None
    image_url: t.Optional[str] = None
    location: t.Optional[str] = None
    category: t.Optional[str] = None
    tags: t.Optional[t.List[str]] = None


class CreateEvent(CreateAndUpdateEventMetadata):
    event_id: int
    title: str
    organizer_address: t.Optional[str] = None


class EventMetadata(BaseModel):
    event_id: int
    title: str
    description: t.Optional[str] = None
    image_url: t.Optional[str] = None
    location: t.Optional[str] = None
    category: t.Optional[str] = None
    tags: t.Optional[t.List[str]] = None
    organizer_profile_id: t.Optional[UUID] = None
    status: EventStatus
    current_participants: int = 0
    deposited_to_yield: bool = False
    event_settled: bool = False
    total_yield_earned: str = '0'
    total_net_yield: str = '0'
    updated_at: t.Optional[datetime] = None

    class Config:
        from_attributes = True


class EventDetail(BaseModel):
    # immutable, on-chain
    event_id: int
    vault_address: str
    organizer_address: str
    stake_amount: str
    max_participants: int
    registration_deadline: int
    event_date: int
    transaction_hash: str
    block_number: t.Optional[int] = None
    # mutable, off-chain
    title: str
    description: t.Optional[str] = None
    image_url: t.Optional[str] = None
    location: t.Optional[str] = None
    category: t.Optional[str] = None
    tags: t.Optional[t.List[str]] = None
    organizer_profile_id: t.Optional[UUID] = None
    status: EventStatus
    current_participants: int
    deposited_to_yield: bool = False
    event_settled: bool = False
    total_yield_earned: str = '0'
    total_net_yield: str = '0'
    has_metadata: bool = True
    onchain_participants: t.Optional[int] = None


class EventList(BaseModel):
    events: t.List[EventDetail]
    total: int
    limit: int
    offset: int


class StatusUpdate(BaseModel):
    status: EventStatus


class StatusChange(BaseModel):
    event_id: int
    previous: EventStatus
    status: EventStatus


class Settlement(BaseModel):
    total_yield_earned: str
    total_net_yield: str
    transaction_hash: t.Optional[str] = None
    attended_participants: t.Optional[t.List[str]] = None

    @field_validator('total_yield_earned', 'total_net_yield', mode='before')
    @classmethod
    def valid_amount(cls, v):
        return _decimal_string(v)


class ReadyForYield(BaseModel):
    event_id: int
    vault_address: str
    title: str
    current_participants: int
    stake_amount: str
    total_staked: str
    registration_deadline: int


class EventStats(BaseModel):
    total_events: int
    by_status: t.Dict[str, int]
    total_participants: int
    total_value_locked: str
    events_ready_for_yield: int


### SCHEMAS FOR INDEXER FEED ###

# column ranges of the integer columns in events_onchain
BIGINT_MAX = 2**63 - 1
INT_MAX = 2**31 - 1


class IndexedEvent(BaseModel):
    event_id: int = Field(ge=0, le=BIGINT_MAX)
    vault: str
    organizer: str
    stake_amount: str
    max_participant: int = Field(gt=0, le=INT_MAX)
    registration_deadline: int = Field(ge=0, le=BIGINT_MAX)
    event_date: int = Field(ge=0, le=BIGINT_MAX)
    transaction_hash: str = Field(min_length=1)
    block_number: t.Optional[int] = Field(default=None, ge=0, le=BIGINT_MAX)
    timestamp: t.Optional[int] = Field(default=None, ge=0, le=BIGINT_MAX)
    contract_id: t.Optional[str] = None
    chain: t.Optional[str] = Field(default=None, alias='_gs_chain')

    class Config:
        populate_by_name = True

    @field_validator('vault', 'organizer')
    @classmethod
    def valid_address(cls, v: str) -> str:
        if not is_address(v):
            raise ValueError(f'invalid address: {v}')
        return v.lower()

    @field_validator('stake_amount', mode='before')
    @classmethod
    def valid_stake(cls, v):
        return _decimal_string(v)

    @model_validator(mode='after')
    def deadline_before_event(self):
        if self.registration_deadline > self.event_date:
            raise ValueError('registration_deadline is after event_date')
        return self


class IndexerBatch(BaseModel):
    # items are validated one by one, a malformed item must not reject the batch
    events: t.List[t.Any]


class IndexerItemResult(BaseModel):
    event_id: t.Optional[t.Any] = None
    vault: t.Optional[str] = None
    status: str
    error: t.Optional[str] = None


class IndexerBatchResult(BaseModel):
    processed_events: t.List[IndexerItemResult]
    total: int
    processed: int
    failed: int
