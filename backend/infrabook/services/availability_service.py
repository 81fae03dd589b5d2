"""
Availability Generator: publish back-to-back open slots over a date range.

Each candidate is checked against every capacity-holding row for that
infrastructure and date; overlapping candidates are skipped, the rest inserted
as available. The whole batch is one transaction.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from sqlalchemy.orm import Session

from infrabook.core.errors import InvalidRequest
from infrabook.db.session import transaction
from infrabook.services.collaborators import AccessControl, Actor
from infrabook.services.slot_store import get_infrastructure, holding_overlaps, insert_available, require_manage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationResult:
    created: int
    skipped: int


def daily_intervals(daily_start: time, duration_minutes: int, count: int) -> list[tuple[time, time]]:
    """
    Consecutive intervals for one day: interval n starts where n-1 ended.
    Raises InvalidRequest if the last interval would run past midnight.
    """
    anchor = datetime.combine(date.min, daily_start)
    step = timedelta(minutes=duration_minutes)
    day_end = anchor.replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(days=1)
    out = []
    cursor = anchor
    for _ in range(count):
        nxt = cursor + step
        if nxt >= day_end:
            raise InvalidRequest("Timeslots must end before midnight")
        out.append((cursor.time(), nxt.time()))
        cursor = nxt
    return out


def generate_availability(
    db: Session,
    infrastructure_id: int,
    start_date: date,
    end_date: date,
    daily_start: time,
    duration_minutes: int,
    count_per_day: int,
    actor: Actor,
    access: AccessControl,
    *,
    now: datetime,
) -> GenerationResult:
    if start_date < now.date():
        raise InvalidRequest("Start date cannot be in the past")
    if end_date < start_date:
        raise InvalidRequest("End date must be after start date")
    if duration_minutes <= 0:
        raise InvalidRequest("Slot duration must be positive")
    if count_per_day <= 0:
        raise InvalidRequest("Number of slots per day must be positive")
    intervals = daily_intervals(daily_start, duration_minutes, count_per_day)

    created = 0
    skipped = 0
    with transaction(db):
        infra = get_infrastructure(db, infrastructure_id)
        require_manage(access, actor, infrastructure_id)
        if not infra.is_active:
            raise InvalidRequest(f"Infrastructure {infrastructure_id} is not active")
        if infra.max_booking_minutes and duration_minutes > infra.max_booking_minutes:
            raise InvalidRequest(
                f"Slot duration exceeds the maximum of {infra.max_booking_minutes} minutes for this infrastructure"
            )

        day = start_date
        while day <= end_date:
            for start, end in intervals:
                if holding_overlaps(db, infrastructure_id, day, start, end):
                    skipped += 1
                    continue
                insert_available(db, infrastructure_id, day, start, end)
                created += 1
            day += timedelta(days=1)

    logger.info(
        "Generated availability for infrastructure %s %s..%s: created=%s skipped=%s",
        infrastructure_id, start_date, end_date, created, skipped,
    )
    return GenerationResult(created=created, skipped=skipped)
