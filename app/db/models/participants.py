import uuid

from sqlalchemy import BigInteger, Boolean, Column, DateTime, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.sql import func

from db.session import Base

# PARTICIPANT MODEL


class Participant(Base):
    __tablename__ = "participant"
    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_participant_event_user"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id = Column(BigInteger, ForeignKey("events_onchain.event_id"), index=True, nullable=False)
    user_id = Column(Uuid, ForeignKey("profiles.id"), index=True, nullable=False)
    is_attend = Column(Boolean, nullable=False, default=False)
    is_claim = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
