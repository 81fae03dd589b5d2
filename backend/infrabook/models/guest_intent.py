"""Unverified guest's request for a slot, parked until the e-mailed confirmation link is used."""
from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text

from infrabook.db.base import Base


class GuestIntent(Base):
    __tablename__ = "guest_intents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    slot_id = Column(Integer, ForeignKey("slots.id"), nullable=False, index=True)
    infrastructure_id = Column(Integer, ForeignKey("infrastructures.id"), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    name = Column(String(255), nullable=True)
    purpose = Column(Text, nullable=True)
    answers = Column(JSON, nullable=True)
    status = Column(String(16), nullable=False, default="pending")  # pending | confirmed
    created_at = Column(DateTime, nullable=False)  # engine clock, used by the rolling-day rate limit
    expires_at = Column(DateTime, nullable=False)
    confirmed_at = Column(DateTime, nullable=True)
