"""
Guest Confirmation Flow.

An unverified guest never claims directly. initiate_guest_claim() parks the request
as a GuestIntent and e-mails a single-use confirm token; only confirm_guest_claim()
runs the atomic claim. By then the slot may be gone, in which case confirmation
fails with SlotUnavailable instead of booking anything else.
"""
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Mapping

from sqlalchemy.orm import Session

from infrabook.config import settings
from infrabook.core.constants import (
    EMAIL_TOKEN_ACTIONS,
    EVENT_GUEST_CONFIRMATION,
    INTENT_CONFIRMED,
    INTENT_PENDING,
    STATUS_AVAILABLE,
    TOKEN_ACTION_APPROVE,
    TOKEN_ACTION_CONFIRM_GUEST,
    TOKEN_ACTION_REJECT,
)
from infrabook.core.errors import InvalidRequest, InvalidToken, MissingRequiredAnswers, RateLimited, SlotUnavailable
from infrabook.db.session import transaction
from infrabook.models.guest_intent import GuestIntent
from infrabook.models.infrastructure import Infrastructure
from infrabook.models.question import QuestionDefinition
from infrabook.models.slot import SlotRecord
from infrabook.services import token_service
from infrabook.services.claim_service import (
    AnswerInput,
    ClaimResult,
    booking_payload,
    claim_in_transaction,
    coerce_answers,
    is_answered,
    notify_managers,
)
from infrabook.services.collaborators import AccessControl, GuestRateLimitPolicy, Notifier
from infrabook.services.slot_store import slot_start

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass
class GuestInitiation:
    intent_id: int
    email: str
    expires_at: datetime
    token: str
    notification_sent: bool


def _answers_to_json(answers: dict[int, AnswerInput]) -> dict[str, dict[str, Any]]:
    return {
        str(qid): {"value": a.value, "document_handle": a.document_handle, "filename": a.filename}
        for qid, a in answers.items()
    }


def initiate_guest_claim(
    db: Session,
    infrastructure_id: int,
    slot_id: int,
    email: str,
    purpose: str | None,
    answers: Mapping[Any, Any] | None,
    policy: GuestRateLimitPolicy,
    notifier: Notifier,
    *,
    name: str | None = None,
    now: datetime,
) -> GuestInitiation:
    email = (email or "").strip().lower()
    if not EMAIL_RE.match(email):
        raise InvalidRequest("Invalid email format")
    parsed = coerce_answers(answers)

    with transaction(db):
        slot = db.get(SlotRecord, slot_id)
        if (
            slot is None
            or slot.infrastructure_id != infrastructure_id
            or slot.status != STATUS_AVAILABLE
            or slot_start(slot) <= now
        ):
            raise SlotUnavailable()
        infra = db.get(Infrastructure, infrastructure_id)
        if infra is None or not infra.is_active:
            raise SlotUnavailable("Infrastructure is not available for booking")
        if not policy.allows(db, email, infrastructure_id, now):
            raise RateLimited()

        # Fail early on missing answers; the claim re-checks them at confirmation
        questions = (
            db.query(QuestionDefinition)
            .filter(QuestionDefinition.infrastructure_id == infrastructure_id, QuestionDefinition.is_required.is_(True))
            .all()
        )
        missing = [q.id for q in questions if not is_answered(q, parsed.get(q.id))]
        if missing:
            raise MissingRequiredAnswers(missing)

        intent = GuestIntent(
            slot_id=slot_id,
            infrastructure_id=infrastructure_id,
            email=email,
            name=(name or "").strip() or None,
            purpose=purpose or "",
            answers=_answers_to_json(parsed),
            status=INTENT_PENDING,
            created_at=now,
            expires_at=now + timedelta(hours=settings.guest_intent_ttl_hours),
        )
        db.add(intent)
        db.flush()
        token = token_service.mint(
            db,
            slot_id,
            TOKEN_ACTION_CONFIRM_GUEST,
            now=now,
            ttl_hours=settings.guest_intent_ttl_hours,
            guest_intent_id=intent.id,
        )
        payload = booking_payload(slot, infra)
        result = GuestInitiation(
            intent_id=intent.id,
            email=email,
            expires_at=intent.expires_at,
            token=token.token,
            notification_sent=False,
        )
    logger.info("Guest intent %s for slot %s created for %s", result.intent_id, slot_id, email)

    payload.update({
        "name": name,
        "confirm_url": f"{settings.frontend_url.rstrip('/')}/guest-confirm/{result.token}",
        "expires_in_hours": settings.guest_intent_ttl_hours,
    })
    try:
        result.notification_sent = notifier.send(EVENT_GUEST_CONFIRMATION, [email], payload)
    except Exception as e:
        logger.exception("Failed to send guest confirmation to %s: %s", email, e)
    return result


def confirm_guest_claim(
    db: Session,
    token: str,
    access: AccessControl,
    notifier: Notifier,
    policy: GuestRateLimitPolicy,
    *,
    now: datetime,
) -> ClaimResult:
    with transaction(db):
        row = token_service.consume(db, token, TOKEN_ACTION_CONFIRM_GUEST, now=now)
        intent = db.get(GuestIntent, row.guest_intent_id) if row.guest_intent_id else None
        if intent is None or intent.status != INTENT_PENDING or intent.expires_at <= now:
            raise InvalidToken()
        if not policy.allows_confirmation(db, intent.email, intent.infrastructure_id, now, intent.id):
            raise RateLimited()

        slot = claim_in_transaction(
            db, intent.slot_id, intent.email, intent.purpose, coerce_answers(intent.answers), now=now
        )
        intent.status = INTENT_CONFIRMED
        intent.confirmed_at = now
        tokens = token_service.mint_decision_tokens(db, slot.id, EMAIL_TOKEN_ACTIONS, now=now)
    logger.info("Guest intent %s confirmed; slot %s pending for %s", intent.id, slot.id, slot.claimant)

    sent = notify_managers(db, slot, tokens, access, notifier)
    return ClaimResult(
        slot=slot,
        action_token=tokens.get(TOKEN_ACTION_APPROVE),
        reject_token=tokens.get(TOKEN_ACTION_REJECT),
        notification_sent=sent,
    )
