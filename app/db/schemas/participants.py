from datetime import datetime
from uuid import UUID
from eth_utils import is_address
from pydantic import BaseModel, field_validator
import typing as t

### SCHEMAS FOR PARTICIPANTS ###


def _wallet(v: str) -> str:
    if not is_address(v):
        raise ValueError('invalid wallet address')
    return v.lower()


class Registration(BaseModel):
    user_address: str
    transaction_hash: str
    deposit_amount: str

    @field_validator('user_address')
    @classmethod
    def valid_wallet(cls, v: str) -> str:
        return _wallet(v)


class DirectCheckIn(BaseModel):
    event_id: int
    user_id: UUID


class ClaimReward(BaseModel):
    event_id: int
    wallet_address: str

    @field_validator('wallet_address')
    @classmethod
    def valid_wallet(cls, v: str) -> str:
        return _wallet(v)


class Participant(BaseModel):
    id: UUID
    event_id: int
    user_id: UUID
    is_attend: bool
    is_claim: bool
    created_at: t.Optional[datetime] = None
    updated_at: t.Optional[datetime] = None

    class Config:
        from_attributes = True


class ParticipantWithProfile(Participant):
    user_address: t.Optional[str] = None
    name: t.Optional[str] = None
    email: t.Optional[str] = None


class ParticipantResult(BaseModel):
    success: bool = True
    message: str
    participant: Participant


class ParticipantStatus(BaseModel):
    participant: t.Optional[ParticipantWithProfile] = None


class ParticipantList(BaseModel):
    participants: t.List[ParticipantWithProfile]
    count: int
