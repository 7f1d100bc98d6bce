import uuid

from sqlalchemy import BigInteger, Boolean, Column, DateTime, String, UniqueConstraint, Uuid
from sqlalchemy.sql import func

from db.session import Base

# CHECKIN MODEL (qr attendance proof)


class CheckIn(Base):
    __tablename__ = "checkins"
    __table_args__ = (
        UniqueConstraint("event_id", "user_address", name="uq_checkins_event_user"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id = Column(BigInteger, index=True, nullable=False)
    user_address = Column(String, index=True, nullable=False)
    qr_data = Column(String, nullable=False)
    checked_in_at = Column(DateTime(timezone=True), server_default=func.now())
    is_validated = Column(Boolean, nullable=False, default=False)
    validated_at = Column(DateTime(timezone=True))
    validated_by = Column(String)
