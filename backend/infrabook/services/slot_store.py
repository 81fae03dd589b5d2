"""
Slot Store: the authoritative slots table and the primitives every lifecycle
operation is built from.

Writes that change a slot's status go through compare_and_set(): a single
UPDATE ... WHERE id = :id AND status IN (:expected) whose affected-row count tells
the caller whether it won. Reading a status and updating separately is never safe here.
"""
import logging
from datetime import date, datetime, time
from typing import Any, Iterable

from sqlalchemy.orm import Session

from infrabook.core.constants import (
    CAPACITY_HOLDING_STATUSES,
    KIND_AVAILABILITY,
    KIND_RESERVATION,
    STATUS_AVAILABLE,
    STATUS_CANCELED,
)
from infrabook.core.errors import Forbidden, InvalidRequest, NotFound, SlotConflict
from infrabook.db.session import transaction
from infrabook.models.answer import Answer
from infrabook.models.infrastructure import Infrastructure
from infrabook.models.question import QuestionDefinition
from infrabook.models.slot import SlotRecord
from infrabook.services.collaborators import AccessControl, Actor

logger = logging.getLogger(__name__)


def slot_start(slot: SlotRecord) -> datetime:
    return datetime.combine(slot.slot_date, slot.start_time)


def slot_end(slot: SlotRecord) -> datetime:
    return datetime.combine(slot.slot_date, slot.end_time)


def get_infrastructure(db: Session, infrastructure_id: int) -> Infrastructure:
    infra = db.get(Infrastructure, infrastructure_id)
    if infra is None:
        raise NotFound(f"Infrastructure {infrastructure_id} not found")
    return infra


def get_slot(db: Session, slot_id: int, *, for_update: bool = False) -> SlotRecord:
    """Load a slot, bypassing the identity map so the status is current. Raises NotFound."""
    q = db.query(SlotRecord).filter(SlotRecord.id == slot_id).populate_existing()
    if for_update:
        q = q.with_for_update()
    slot = q.first()
    if slot is None:
        raise NotFound(f"Slot {slot_id} not found")
    return slot


def compare_and_set(
    db: Session,
    slot_id: int,
    expected_statuses: Iterable[str],
    values: dict[str, Any],
) -> bool:
    """
    Conditionally update one slot. Returns True when this caller moved the row,
    False when the row was missing or no longer in one of expected_statuses.
    """
    expected = tuple(expected_statuses)
    updated = (
        db.query(SlotRecord)
        .filter(SlotRecord.id == slot_id, SlotRecord.status.in_(expected))
        .update(values, synchronize_session=False)
    )
    return updated == 1


def holding_overlaps(
    db: Session,
    infrastructure_id: int,
    slot_date: date,
    start: time,
    end: time,
) -> int:
    """
    Count capacity-holding rows (available, pending, approved) on that date whose
    interval overlaps [start, end). Pending and approved rows count too: an open slot
    must never be published on top of someone's reservation.
    """
    return (
        db.query(SlotRecord)
        .filter(
            SlotRecord.infrastructure_id == infrastructure_id,
            SlotRecord.slot_date == slot_date,
            SlotRecord.status.in_(CAPACITY_HOLDING_STATUSES),
            SlotRecord.start_time < end,
            SlotRecord.end_time > start,
        )
        .count()
    )


def insert_available(
    db: Session,
    infrastructure_id: int,
    slot_date: date,
    start: time,
    end: time,
) -> SlotRecord:
    row = SlotRecord(
        infrastructure_id=infrastructure_id,
        slot_date=slot_date,
        start_time=start,
        end_time=end,
        kind=KIND_AVAILABILITY,
        status=STATUS_AVAILABLE,
        claimant=None,
        purpose=None,
    )
    db.add(row)
    db.flush()
    return row


def reopen_interval(db: Session, old: SlotRecord) -> SlotRecord:
    """
    Re-publish the interval of a reservation that just went terminal as a fresh
    available row. The old row stays as the audit record of the reservation.
    Caller must have moved `old` out of its capacity-holding status first.
    """
    row = insert_available(db, old.infrastructure_id, old.slot_date, old.start_time, old.end_time)
    logger.info(
        "Reopened slot %s %s %s-%s as slot %s",
        old.id, old.slot_date, old.start_time, old.end_time, row.id,
    )
    return row


def require_manage(access: AccessControl, actor: Actor, infrastructure_id: int) -> None:
    if not access.can_manage(actor, infrastructure_id):
        raise Forbidden(f"{actor.email} may not manage infrastructure {infrastructure_id}")


def create_slot(
    db: Session,
    infrastructure_id: int,
    slot_date: date,
    start: time,
    end: time,
    actor: Actor,
    access: AccessControl,
    *,
    now: datetime,
) -> SlotRecord:
    """Administrative single slot. Overlap-checked against every capacity-holding row."""
    if end <= start:
        raise InvalidRequest("End time must be after start time")
    with transaction(db):
        get_infrastructure(db, infrastructure_id)
        require_manage(access, actor, infrastructure_id)
        if datetime.combine(slot_date, end) <= now:
            raise InvalidRequest("Timeslot must end in the future")
        if holding_overlaps(db, infrastructure_id, slot_date, start, end):
            raise SlotConflict()
        row = insert_available(db, infrastructure_id, slot_date, start, end)
    logger.info("Created slot %s for infrastructure %s on %s %s-%s", row.id, infrastructure_id, slot_date, start, end)
    return row


def cancel_timeslots(db: Session, slot_ids: list[int], actor: Actor, access: AccessControl) -> int:
    """Withdraw open (available) slots. Claimed slots are untouched; use a decision for those."""
    if not slot_ids:
        raise InvalidRequest("No timeslots specified for cancellation")
    with transaction(db):
        rows = db.query(SlotRecord.id, SlotRecord.infrastructure_id).filter(SlotRecord.id.in_(slot_ids)).all()
        for infra_id in {r.infrastructure_id for r in rows}:
            require_manage(access, actor, infra_id)
        canceled = (
            db.query(SlotRecord)
            .filter(
                SlotRecord.id.in_([r.id for r in rows]),
                SlotRecord.kind == KIND_AVAILABILITY,
                SlotRecord.status == STATUS_AVAILABLE,
            )
            .update({SlotRecord.status: STATUS_CANCELED}, synchronize_session=False)
        )
    logger.info("%s canceled %s of %s requested timeslots", actor.email, canceled, len(slot_ids))
    return canceled


def list_entries(
    db: Session,
    infrastructure_id: int,
    *,
    start_date: date | None = None,
    end_date: date | None = None,
    status: str | None = None,
    limit: int | None = None,
) -> list[SlotRecord]:
    """All rows (open slots and reservations) for an infrastructure, newest date first."""
    q = db.query(SlotRecord).filter(SlotRecord.infrastructure_id == infrastructure_id)
    if start_date:
        q = q.filter(SlotRecord.slot_date >= start_date)
    if end_date:
        q = q.filter(SlotRecord.slot_date <= end_date)
    if status:
        q = q.filter(SlotRecord.status == status)
    q = q.order_by(SlotRecord.slot_date.desc(), SlotRecord.start_time.asc(), SlotRecord.id.asc())
    if limit:
        q = q.limit(limit)
    return q.all()


def list_available(db: Session, infrastructure_id: int, *, now: datetime) -> list[SlotRecord]:
    """Open slots that have not started yet, in chronological order."""
    rows = (
        db.query(SlotRecord)
        .filter(
            SlotRecord.infrastructure_id == infrastructure_id,
            SlotRecord.status == STATUS_AVAILABLE,
            SlotRecord.slot_date >= now.date(),
        )
        .order_by(SlotRecord.slot_date.asc(), SlotRecord.start_time.asc())
        .all()
    )
    return [r for r in rows if slot_start(r) > now]


def list_claimant_reservations(db: Session, claimant: str, limit: int | None = None) -> list[SlotRecord]:
    q = (
        db.query(SlotRecord)
        .filter(SlotRecord.claimant == claimant, SlotRecord.kind == KIND_RESERVATION)
        .order_by(SlotRecord.slot_date.desc(), SlotRecord.start_time.desc())
    )
    if limit:
        q = q.limit(limit)
    return q.all()


def reservation_details(db: Session, reservation_id: int, actor: Actor, access: AccessControl) -> dict:
    """Reservation plus its answers, one entry per question of the infrastructure (in display order)."""
    slot = get_slot(db, reservation_id)
    if slot.claimant != actor.email and not access.can_manage(actor, slot.infrastructure_id):
        raise Forbidden("Forbidden access")
    questions = (
        db.query(QuestionDefinition)
        .filter(QuestionDefinition.infrastructure_id == slot.infrastructure_id)
        .order_by(QuestionDefinition.display_order.asc(), QuestionDefinition.id.asc())
        .all()
    )
    answers = {a.question_id: a for a in db.query(Answer).filter(Answer.reservation_id == slot.id).all()}
    out = []
    for q in questions:
        a = answers.get(q.id)
        out.append({
            "question_id": q.id,
            "question_text": q.question_text,
            "question_type": q.question_type,
            "answer_text": a.answer_text if a else None,
            "document_handle": a.document_handle if a else None,
        })
    return {"booking": slot.to_dict(), "answers": out}
