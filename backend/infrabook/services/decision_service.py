"""
Decision Engine: approve, reject and cancel reservations.

Every transition is a compare-and-set on the status that was read, so a race with
another decision or with the sweeper resolves to whichever commit lands first.
Rejection and cancellation re-publish the interval as a fresh available slot.
Capability-token consumption performs the same transition and burns the token in
the same transaction.
"""
import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from infrabook.config import settings
from infrabook.core.constants import (
    DECISION_ACTIONS,
    DECISION_APPROVE,
    DECISION_REJECT,
    EMAIL_TOKEN_ACTIONS,
    EVENT_BOOKING_STATUS_CHANGED,
    KIND_RESERVATION,
    STATUS_APPROVED,
    STATUS_CANCELED,
    STATUS_PENDING,
    STATUS_REJECTED,
    TOKEN_ACTION_APPROVE,
)
from infrabook.core.errors import (
    Forbidden,
    InvalidRequest,
    InvalidToken,
    InvalidTransition,
    WithinCancellationWindow,
)
from infrabook.db.session import transaction
from infrabook.models.infrastructure import Infrastructure
from infrabook.models.slot import SlotRecord
from infrabook.services import token_service
from infrabook.services.claim_service import booking_payload
from infrabook.services.collaborators import AccessControl, Actor, Notifier
from infrabook.services.slot_store import compare_and_set, get_slot, reopen_interval, slot_start

logger = logging.getLogger(__name__)

# Legal source statuses per target status
_ALLOWED_FROM = {
    STATUS_APPROVED: (STATUS_PENDING,),
    STATUS_REJECTED: (STATUS_PENDING,),
    STATUS_CANCELED: (STATUS_PENDING, STATUS_APPROVED),
}


def _load_reservation(db: Session, reservation_id: int) -> SlotRecord:
    slot = get_slot(db, reservation_id, for_update=True)
    if slot.kind != KIND_RESERVATION:
        raise InvalidTransition(f"Slot {reservation_id} is not a reservation")
    return slot


def _check_source(slot: SlotRecord, to_status: str) -> None:
    if slot.status not in _ALLOWED_FROM[to_status]:
        raise InvalidTransition(f"Cannot move reservation {slot.id} from {slot.status} to {to_status}")


def _transition(db: Session, slot: SlotRecord, to_status: str, *, now: datetime) -> SlotRecord:
    """CAS from the status we just validated; a concurrent writer makes this a stale precondition."""
    if not compare_and_set(db, slot.id, (slot.status,), {SlotRecord.status: to_status}):
        raise InvalidTransition(f"Reservation {slot.id} changed concurrently")
    token_service.invalidate_for_reservation(db, slot.id, now=now)
    if to_status in (STATUS_REJECTED, STATUS_CANCELED):
        reopen_interval(db, slot)
    return get_slot(db, slot.id)


def _check_cancellation_window(slot: SlotRecord, now: datetime) -> None:
    """Claimant cancellations: approved ones close N hours before start, pending ones at start."""
    start = slot_start(slot)
    if slot.status == STATUS_APPROVED:
        if start - now <= timedelta(hours=settings.cancellation_window_hours):
            raise WithinCancellationWindow()
    elif start <= now:
        raise WithinCancellationWindow("Bookings that have started cannot be canceled")


def notify_claimant(db: Session, slot: SlotRecord, notifier: Notifier) -> bool:
    try:
        if not slot.claimant:
            return False
        payload = booking_payload(slot, db.get(Infrastructure, slot.infrastructure_id))
        return notifier.send(EVENT_BOOKING_STATUS_CHANGED, [slot.claimant], payload)
    except Exception as e:
        logger.exception("Failed to notify claimant of reservation %s: %s", slot.id, e)
        return False


def approve(
    db: Session,
    reservation_id: int,
    actor: Actor,
    access: AccessControl,
    *,
    now: datetime,
) -> SlotRecord:
    with transaction(db):
        slot = _load_reservation(db, reservation_id)
        if not access.can_manage(actor, slot.infrastructure_id):
            raise Forbidden(f"{actor.email} may not manage infrastructure {slot.infrastructure_id}")
        _check_source(slot, STATUS_APPROVED)
        slot = _transition(db, slot, STATUS_APPROVED, now=now)
    logger.info("Reservation %s approved by %s", reservation_id, actor.email)
    return slot


def reject_or_cancel(
    db: Session,
    reservation_id: int,
    actor: Actor,
    to_status: str,
    access: AccessControl,
    *,
    now: datetime,
) -> SlotRecord:
    if to_status not in (STATUS_REJECTED, STATUS_CANCELED):
        raise InvalidRequest('Invalid status. Must be "rejected" or "canceled"')
    with transaction(db):
        slot = _load_reservation(db, reservation_id)
        manages = access.can_manage(actor, slot.infrastructure_id)
        if to_status == STATUS_REJECTED:
            if not manages:
                raise Forbidden(f"{actor.email} may not manage infrastructure {slot.infrastructure_id}")
            _check_source(slot, to_status)
        else:
            if not manages and slot.claimant != actor.email:
                raise Forbidden("Only the claimant or a manager may cancel this booking")
            _check_source(slot, to_status)
            if not manages:
                _check_cancellation_window(slot, now)
        slot = _transition(db, slot, to_status, now=now)
    logger.info("Reservation %s %s by %s", reservation_id, to_status, actor.email)
    return slot


def decide(
    db: Session,
    reservation_id: int,
    actor: Actor,
    action: str,
    access: AccessControl,
    notifier: Notifier,
    *,
    now: datetime,
) -> tuple[SlotRecord, bool]:
    """Route approve|reject|cancel, then tell the claimant. Returns (slot, notification_sent)."""
    if action not in DECISION_ACTIONS:
        raise InvalidRequest(f"Unknown action {action!r}")
    if action == DECISION_APPROVE:
        slot = approve(db, reservation_id, actor, access, now=now)
    elif action == DECISION_REJECT:
        slot = reject_or_cancel(db, reservation_id, actor, STATUS_REJECTED, access, now=now)
    else:
        slot = reject_or_cancel(db, reservation_id, actor, STATUS_CANCELED, access, now=now)
    sent = notify_claimant(db, slot, notifier)
    return slot, sent


def consume_token(
    db: Session,
    token: str,
    action: str,
    notifier: Notifier,
    *,
    now: datetime,
) -> tuple[SlotRecord, bool]:
    """
    Perform the e-mail link's transition. The token is the authorization: no actor or
    access check. Mismatched, expired or used tokens fail with InvalidToken and change nothing,
    as do tokens whose reservation is no longer pending (e.g. expired by the sweep).
    """
    if action not in EMAIL_TOKEN_ACTIONS:
        raise InvalidToken("Invalid action")
    with transaction(db):
        row = token_service.consume(db, token, action, now=now)
        to_status = STATUS_APPROVED if action == TOKEN_ACTION_APPROVE else STATUS_REJECTED
        try:
            slot = _load_reservation(db, row.reservation_id)
            _check_source(slot, to_status)
            slot = _transition(db, slot, to_status, now=now)
        except InvalidTransition as e:
            raise InvalidToken("This link is no longer valid for the booking's current status") from e
    logger.info("Reservation %s %s via e-mail token", slot.id, to_status)
    sent = notify_claimant(db, slot, notifier)
    return slot, sent
