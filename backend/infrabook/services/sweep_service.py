"""
Expiry Sweeper: advance stale rows to terminal states from the passage of time alone.

- approved  past end   -> completed
- pending   past start -> expired (never decided)
- available past end   -> expired

Each step is one conditional UPDATE keyed on the current status, so the pass is
idempotent and safe to run next to claims and decisions: if a human decision
commits first, the row no longer matches and is left alone.
"""
import logging
from dataclasses import asdict, dataclass
from datetime import datetime

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from infrabook.core.constants import (
    KIND_AVAILABILITY,
    KIND_RESERVATION,
    STATUS_APPROVED,
    STATUS_AVAILABLE,
    STATUS_COMPLETED,
    STATUS_EXPIRED,
    STATUS_PENDING,
)
from infrabook.db.session import transaction
from infrabook.models.slot import SlotRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SweepResult:
    completed_count: int
    expired_bookings_count: int
    expired_timeslots_count: int

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def _before(column, now: datetime):
    """slot_date + column < now, split so it works on any backend."""
    return or_(
        SlotRecord.slot_date < now.date(),
        and_(SlotRecord.slot_date == now.date(), column < now.time()),
    )


def _advance(db: Session, kind: str, from_status: str, to_status: str, boundary, now: datetime) -> int:
    return (
        db.query(SlotRecord)
        .filter(
            SlotRecord.kind == kind,
            SlotRecord.status == from_status,
            _before(boundary, now),
        )
        .update({SlotRecord.status: to_status}, synchronize_session=False)
    )


def sweep(db: Session, *, now: datetime) -> SweepResult:
    with transaction(db):
        completed = _advance(db, KIND_RESERVATION, STATUS_APPROVED, STATUS_COMPLETED, SlotRecord.end_time, now)
        expired_bookings = _advance(db, KIND_RESERVATION, STATUS_PENDING, STATUS_EXPIRED, SlotRecord.start_time, now)
        expired_slots = _advance(db, KIND_AVAILABILITY, STATUS_AVAILABLE, STATUS_EXPIRED, SlotRecord.end_time, now)
    result = SweepResult(
        completed_count=completed,
        expired_bookings_count=expired_bookings,
        expired_timeslots_count=expired_slots,
    )
    if completed or expired_bookings or expired_slots:
        logger.info(
            "Status sweep at %s: %s bookings completed, %s bookings expired, %s timeslots expired",
            now, completed, expired_bookings, expired_slots,
        )
    else:
        logger.debug("Status sweep at %s: nothing to advance", now)
    return result
