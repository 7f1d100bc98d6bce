from datetime import datetime
from uuid import UUID
from eth_utils import is_address
from pydantic import BaseModel, field_validator
import typing as t

### SCHEMAS FOR PROFILES ###


class UpdateProfile(BaseModel):
    name: t.Optional[str] = None
    email: t.Optional[str] = None


class CreateProfile(UpdateProfile):
    wallet_address: str
    name: str

    @field_validator('wallet_address')
    @classmethod
    def valid_wallet(cls, v: str) -> str:
        if not is_address(v):
            raise ValueError('invalid wallet address')
        return v.lower()


class Profile(BaseModel):
    id: UUID
    wallet_address: str
    name: t.Optional[str] = None
    email: t.Optional[str] = None
    balance: t.Optional[str] = None
    created_at: t.Optional[datetime] = None

    class Config:
        from_attributes = True
