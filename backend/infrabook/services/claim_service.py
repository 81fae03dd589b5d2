"""
Claim Engine: turn an available slot into a pending reservation.

The claim itself is a conditional write (available -> pending) so that of two
concurrent claimers exactly one wins. Required-answer validation and answer
persistence run in the same transaction; if validation fails, the claim is rolled
back with them. Approve/reject tokens are minted in a savepoint and manager
notification happens after commit; neither can undo a successful claim.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping

from sqlalchemy.orm import Session

from infrabook.config import settings
from infrabook.core.constants import (
    EMAIL_TOKEN_ACTIONS,
    EVENT_BOOKING_REQUESTED,
    KIND_RESERVATION,
    QUESTION_DOCUMENT,
    QUESTION_NUMBER,
    STATUS_AVAILABLE,
    STATUS_PENDING,
    TOKEN_ACTION_APPROVE,
    TOKEN_ACTION_REJECT,
)
from infrabook.core.errors import InvalidRequest, MissingRequiredAnswers, SlotUnavailable
from infrabook.db.session import transaction
from infrabook.models.answer import Answer
from infrabook.models.infrastructure import Infrastructure
from infrabook.models.question import QuestionDefinition
from infrabook.models.slot import SlotRecord
from infrabook.services.collaborators import AccessControl, Notifier
from infrabook.services.slot_store import compare_and_set, get_slot, slot_start
from infrabook.services.token_service import mint_decision_tokens

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnswerInput:
    """Inline value for text/number/dropdown questions, or a stored-document handle."""

    value: Any = None
    document_handle: str | None = None
    filename: str | None = None


@dataclass
class ClaimResult:
    slot: SlotRecord
    action_token: str | None  # approve token; None when issuance failed
    reject_token: str | None
    notification_sent: bool


def coerce_answers(raw: Mapping[Any, Any] | None) -> dict[int, AnswerInput]:
    """
    Accept {question_id: AnswerInput | dict | scalar}. Dicts may carry
    value / document_handle (or handle) / filename. Keys may be strings of digits.
    """
    out: dict[int, AnswerInput] = {}
    for key, item in (raw or {}).items():
        try:
            qid = int(key)
        except (TypeError, ValueError):
            raise InvalidRequest(f"Invalid question id {key!r}")
        if isinstance(item, AnswerInput):
            out[qid] = item
        elif isinstance(item, dict):
            out[qid] = AnswerInput(
                value=item.get("value"),
                document_handle=item.get("document_handle") or item.get("handle"),
                filename=item.get("filename"),
            )
        else:
            out[qid] = AnswerInput(value=item)
    return out


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    if isinstance(value, str) and value.strip():
        try:
            float(value)
            return True
        except ValueError:
            return False
    return False


def is_answered(question: QuestionDefinition, answer: AnswerInput | None) -> bool:
    if answer is None:
        return False
    if question.question_type == QUESTION_DOCUMENT:
        return bool(answer.document_handle and answer.document_handle.strip())
    if question.question_type == QUESTION_NUMBER:
        return _is_number(answer.value)
    return isinstance(answer.value, str) and bool(answer.value.strip())


def _questions(db: Session, infrastructure_id: int) -> list[QuestionDefinition]:
    return (
        db.query(QuestionDefinition)
        .filter(QuestionDefinition.infrastructure_id == infrastructure_id)
        .order_by(QuestionDefinition.display_order.asc(), QuestionDefinition.id.asc())
        .all()
    )


def _persist_answers(
    db: Session,
    reservation_id: int,
    questions: list[QuestionDefinition],
    answers: dict[int, AnswerInput],
) -> int:
    known = {q.id for q in questions}
    written = 0
    for qid, answer in answers.items():
        if qid not in known:
            logger.debug("Ignoring answer for question %s not asked by this infrastructure", qid)
            continue
        if answer.document_handle:
            text = answer.filename or answer.document_handle
        else:
            text = None if answer.value is None else str(answer.value)
        db.add(Answer(
            reservation_id=reservation_id,
            question_id=qid,
            answer_text=text,
            document_handle=answer.document_handle,
        ))
        written += 1
    db.flush()
    return written


def claim_in_transaction(
    db: Session,
    slot_id: int,
    claimant: str,
    purpose: str | None,
    answers: dict[int, AnswerInput],
    *,
    now: datetime,
) -> SlotRecord:
    """
    The claim steps without commit. Caller owns the transaction; any exception
    raised here must roll the whole thing back.
    """
    claimant = (claimant or "").strip()
    if not claimant:
        raise InvalidRequest("Claimant is required")

    won = compare_and_set(
        db,
        slot_id,
        (STATUS_AVAILABLE,),
        {
            SlotRecord.kind: KIND_RESERVATION,
            SlotRecord.status: STATUS_PENDING,
            SlotRecord.claimant: claimant,
            SlotRecord.purpose: purpose or "",
        },
    )
    if not won:
        raise SlotUnavailable()

    slot = get_slot(db, slot_id)
    infra = db.get(Infrastructure, slot.infrastructure_id)
    if infra is None or not infra.is_active:
        raise SlotUnavailable("Infrastructure is not available for booking")
    if slot_start(slot) <= now:
        raise SlotUnavailable("Timeslot has already started")

    questions = _questions(db, slot.infrastructure_id)
    missing = [q.id for q in questions if q.is_required and not is_answered(q, answers.get(q.id))]
    if missing:
        raise MissingRequiredAnswers(missing)

    _persist_answers(db, slot.id, questions, answers)
    return slot


def booking_payload(slot: SlotRecord, infra: Infrastructure | None) -> dict[str, Any]:
    data = slot.to_dict()
    data["infrastructure_name"] = infra.name if infra else None
    data["infrastructure_location"] = infra.location if infra else None
    return data


def notify_managers(
    db: Session,
    slot: SlotRecord,
    tokens: dict[str, str],
    access: AccessControl,
    notifier: Notifier,
) -> bool:
    """Send the booking_requested mail with approve/reject links. Failure is reported, never raised."""
    try:
        recipients = access.manager_emails(slot.infrastructure_id)
        if not recipients:
            logger.info("No managers to notify for infrastructure %s", slot.infrastructure_id)
            return False
        payload = booking_payload(slot, db.get(Infrastructure, slot.infrastructure_id))
        base = settings.frontend_url.rstrip("/")
        if tokens.get(TOKEN_ACTION_APPROVE):
            payload["approve_url"] = f"{base}/email-action/approve/{tokens[TOKEN_ACTION_APPROVE]}"
        if tokens.get(TOKEN_ACTION_REJECT):
            payload["reject_url"] = f"{base}/email-action/reject/{tokens[TOKEN_ACTION_REJECT]}"
        return notifier.send(EVENT_BOOKING_REQUESTED, recipients, payload)
    except Exception as e:
        logger.exception("Failed to notify managers for reservation %s: %s", slot.id, e)
        return False


def claim(
    db: Session,
    slot_id: int,
    claimant: str,
    purpose: str | None,
    answers: Mapping[Any, Any] | None,
    access: AccessControl,
    notifier: Notifier,
    *,
    now: datetime,
) -> ClaimResult:
    parsed = coerce_answers(answers)
    with transaction(db):
        slot = claim_in_transaction(db, slot_id, claimant, purpose, parsed, now=now)
        tokens = mint_decision_tokens(db, slot.id, EMAIL_TOKEN_ACTIONS, now=now)
    logger.info("Slot %s claimed by %s (pending)", slot_id, claimant)

    sent = notify_managers(db, slot, tokens, access, notifier)
    return ClaimResult(
        slot=slot,
        action_token=tokens.get(TOKEN_ACTION_APPROVE),
        reject_token=tokens.get(TOKEN_ACTION_REJECT),
        notification_sent=sent,
    )
