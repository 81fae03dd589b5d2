"""
One row = one physical interval on one infrastructure, for its whole life.

kind says whether the row is open capacity or a claim; status carries the lifecycle.
Rows are never deleted: rejection, cancellation and expiry are status changes, and a
reopened interval gets a fresh available row. The partial unique index keeps at most
one capacity-holding row per (infrastructure, date, start, end).
"""
from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Index, Integer, String, Text, Time, text
from sqlalchemy.sql import func

from infrabook.db.base import Base

_HOLDING = "status IN ('available', 'pending', 'approved')"


class SlotRecord(Base):
    __tablename__ = "slots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    infrastructure_id = Column(Integer, ForeignKey("infrastructures.id"), nullable=False, index=True)
    slot_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    kind = Column(String(16), nullable=False, default="availability")  # availability | reservation
    status = Column(String(16), nullable=False, default="available")
    claimant = Column(String(255), nullable=True, index=True)  # user or guest email; NULL while kind=availability
    purpose = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint(
            "(kind = 'availability' AND claimant IS NULL) OR (kind = 'reservation' AND claimant IS NOT NULL)",
            name="ck_slots_kind_claimant",
        ),
        CheckConstraint("start_time < end_time", name="ck_slots_interval"),
        Index("ix_slots_infra_date_status", "infrastructure_id", "slot_date", "status"),
        Index("ix_slots_status_date", "status", "slot_date"),
        Index(
            "uq_slots_holding_interval",
            "infrastructure_id",
            "slot_date",
            "start_time",
            "end_time",
            unique=True,
            postgresql_where=text(_HOLDING),
            sqlite_where=text(_HOLDING),
        ),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "infrastructure_id": self.infrastructure_id,
            "date": self.slot_date.isoformat() if self.slot_date else None,
            "start_time": self.start_time.strftime("%H:%M") if self.start_time else None,
            "end_time": self.end_time.strftime("%H:%M") if self.end_time else None,
            "kind": self.kind,
            "status": self.status,
            "claimant": self.claimant,
            "purpose": self.purpose,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
