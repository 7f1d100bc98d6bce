from sqlalchemy import BigInteger, Boolean, Column, DateTime, ForeignKey, Integer, String, JSON, Uuid
from sqlalchemy.sql import func

from db.session import Base

# EVENT MODELS

# written by the indexer, immutable once seen
class EventOnchain(Base):
    __tablename__ = "events_onchain"

    transaction_hash = Column(String, primary_key=True)
    event_id = Column(BigInteger, unique=True, index=True, nullable=False)
    vault = Column(String, nullable=False)
    organizer = Column(String, index=True, nullable=False)
    stake_amount = Column(String, nullable=False)  # decimal string, arbitrary precision
    max_participant = Column(Integer, nullable=False)
    registration_deadline = Column(BigInteger, nullable=False)  # unix seconds
    event_date = Column(BigInteger, nullable=False)  # unix seconds
    block_number = Column(BigInteger)
    timestamp = Column(BigInteger)
    contract_id = Column(String)
    chain = Column(String)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())


class EventMetadata(Base):
    __tablename__ = "events_metadata"

    event_id = Column(BigInteger, ForeignKey("events_onchain.event_id"), primary_key=True)
    title = Column(String, nullable=False)
    description = Column(String)
    image_url = Column(String)
    location = Column(String)
    category = Column(String)
    tags = Column(JSON, default=list)
    organizer_profile_id = Column(Uuid, ForeignKey("profiles.id"), nullable=True)
    status = Column(String, nullable=False, default='REGISTRATION_OPEN')
    current_participants = Column(Integer, nullable=False, default=0)
    deposited_to_yield = Column(Boolean, nullable=False, default=False)
    event_settled = Column(Boolean, nullable=False, default=False)
    total_yield_earned = Column(String, nullable=False, default='0')
    total_net_yield = Column(String, nullable=False, default='0')
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
