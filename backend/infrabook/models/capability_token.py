"""Single-use, expiring secret that authorizes one transition on one reservation without a session."""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.sql import func

from infrabook.db.base import Base


class CapabilityToken(Base):
    __tablename__ = "capability_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    token = Column(String(128), nullable=False, unique=True, index=True)
    reservation_id = Column(Integer, ForeignKey("slots.id"), nullable=False, index=True)
    action = Column(String(16), nullable=False)  # approve | reject | confirm_guest
    guest_intent_id = Column(Integer, ForeignKey("guest_intents.id"), nullable=True)
    expires_at = Column(DateTime, nullable=False)  # facility wall time, same frame as the engine clock
    used = Column(Boolean, nullable=False, default=False)
    used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
