"""Bookable infrastructure. Owned by the admin CRUD; the engine reads id, is_active and max_booking_minutes."""
from sqlalchemy import Boolean, Column, Integer, String, Text

from infrabook.db.base import Base


class Infrastructure(Base):
    __tablename__ = "infrastructures"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    location = Column(String(100), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    max_booking_minutes = Column(Integer, nullable=True)  # None = no limit on slot duration
