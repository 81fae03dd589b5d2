"""
Capability tokens: single-use, expiring secrets that let an e-mail link perform one
specific transition on one reservation without a login session.

Consumption is a conditional UPDATE (unused, unexpired, matching action) so two
clicks on the same link can never both succeed.
"""
import logging
import secrets
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from infrabook.config import settings
from infrabook.core.constants import EMAIL_TOKEN_ACTIONS
from infrabook.core.errors import InvalidToken
from infrabook.models.capability_token import CapabilityToken

logger = logging.getLogger(__name__)


def generate_token() -> str:
    return secrets.token_hex(32)


def mint(
    db: Session,
    reservation_id: int,
    action: str,
    *,
    now: datetime,
    ttl_hours: int | None = None,
    guest_intent_id: int | None = None,
) -> CapabilityToken:
    """Create a token row inside the caller's transaction."""
    hours = ttl_hours if ttl_hours is not None else settings.action_token_ttl_hours
    row = CapabilityToken(
        token=generate_token(),
        reservation_id=reservation_id,
        action=action,
        guest_intent_id=guest_intent_id,
        expires_at=now + timedelta(hours=hours),
        used=False,
    )
    db.add(row)
    db.flush()
    return row


def mint_decision_tokens(db: Session, reservation_id: int, actions: tuple[str, ...], *, now: datetime) -> dict[str, str]:
    """
    Mint one token per action inside a savepoint. Issuance failure must not undo the
    surrounding claim, so errors are logged and an empty dict is returned instead.
    """
    try:
        with db.begin_nested():
            tokens = {action: mint(db, reservation_id, action, now=now).token for action in actions}
        return tokens
    except Exception as e:
        logger.warning("Failed to issue action tokens for reservation %s: %s", reservation_id, e)
        return {}


def consume(db: Session, token: str, action: str, *, now: datetime) -> CapabilityToken:
    """
    Atomically mark the token used. Raises InvalidToken (and changes nothing) when the
    token does not exist, is expired, was already used, or was minted for another action.
    """
    updated = (
        db.query(CapabilityToken)
        .filter(
            CapabilityToken.token == token,
            CapabilityToken.action == action,
            CapabilityToken.used.is_(False),
            CapabilityToken.expires_at > now,
        )
        .update({CapabilityToken.used: True, CapabilityToken.used_at: now}, synchronize_session=False)
    )
    if updated != 1:
        logger.info("Rejected capability token for action %s", action)
        raise InvalidToken()
    return db.query(CapabilityToken).filter(CapabilityToken.token == token).populate_existing().one()


def invalidate_for_reservation(db: Session, reservation_id: int, *, now: datetime) -> int:
    """Burn the outstanding approve/reject tokens of a reservation once it has been decided."""
    return (
        db.query(CapabilityToken)
        .filter(
            CapabilityToken.reservation_id == reservation_id,
            CapabilityToken.action.in_(EMAIL_TOKEN_ACTIONS),
            CapabilityToken.used.is_(False),
        )
        .update({CapabilityToken.used: True, CapabilityToken.used_at: now}, synchronize_session=False)
    )
