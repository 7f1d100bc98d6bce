from datetime import datetime
from uuid import UUID
from eth_utils import is_address
from pydantic import BaseModel, field_validator
import typing as t

### SCHEMAS FOR CHECKINS ###


class CreateCheckIn(BaseModel):
    event_id: int
    user_address: str
    qr_data: t.Optional[str] = None

    @field_validator('user_address')
    @classmethod
    def valid_wallet(cls, v: str) -> str:
        if not is_address(v):
            raise ValueError('invalid wallet address')
        return v.lower()


class ValidateCheckIn(BaseModel):
    checkin_id: UUID
    is_valid: bool = True


class CheckIn(BaseModel):
    id: UUID
    event_id: int
    user_address: str
    qr_data: str
    checked_in_at: t.Optional[datetime] = None
    is_validated: bool
    validated_at: t.Optional[datetime] = None
    validated_by: t.Optional[str] = None

    class Config:
        from_attributes = True
