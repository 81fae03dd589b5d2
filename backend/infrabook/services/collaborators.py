"""
Collaborators the engine consumes but does not own: access control, notification
delivery, document storage and the guest rate-limit policy.

Each is a Protocol with a default implementation; routes wire the defaults through
infrabook.api.deps so tests (or another deployment) can swap them.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Protocol

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from infrabook.config import settings
from infrabook.core.constants import (
    GUEST_RATE_WINDOW_HOURS,
    INTENT_CONFIRMED,
    INTENT_PENDING,
    ROLE_ADMIN,
    ROLE_MANAGER,
)
from infrabook.models.guest_intent import GuestIntent
from infrabook.models.infrastructure_manager import InfrastructureManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    """Authenticated caller as reported by the upstream auth layer."""

    email: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


class AccessControl(Protocol):
    def can_manage(self, actor: Actor, infrastructure_id: int) -> bool: ...

    def manager_emails(self, infrastructure_id: int) -> list[str]: ...


class Notifier(Protocol):
    def send(self, event: str, recipients: list[str], payload: dict[str, Any]) -> bool: ...


class DocumentStore(Protocol):
    def store(self, data: bytes, filename: str | None = None) -> str: ...


class GuestRateLimitPolicy(Protocol):
    def allows(self, db: Session, email: str, infrastructure_id: int, now: datetime) -> bool: ...

    def allows_confirmation(
        self, db: Session, email: str, infrastructure_id: int, now: datetime, intent_id: int
    ) -> bool: ...


class ManagerTableAccessControl:
    """Admins manage every infrastructure; managers only those assigned in infrastructure_managers."""

    def __init__(self, db: Session):
        self._db = db

    def can_manage(self, actor: Actor, infrastructure_id: int) -> bool:
        if actor.role == ROLE_ADMIN:
            return True
        if actor.role != ROLE_MANAGER:
            return False
        row = (
            self._db.query(InfrastructureManager.id)
            .filter(
                InfrastructureManager.infrastructure_id == infrastructure_id,
                InfrastructureManager.user_email == actor.email,
            )
            .first()
        )
        return row is not None

    def manager_emails(self, infrastructure_id: int) -> list[str]:
        rows = (
            self._db.query(InfrastructureManager.user_email)
            .filter(
                InfrastructureManager.infrastructure_id == infrastructure_id,
                InfrastructureManager.email_notifications.is_(True),
            )
            .all()
        )
        return [r.user_email for r in rows]


class LocalDocumentStore:
    """Stores uploads under settings.document_dir; the handle is the path relative to that root."""

    def __init__(self, root: str | None = None):
        self._root = Path(root or settings.document_dir)

    def store(self, data: bytes, filename: str | None = None) -> str:
        self._root.mkdir(parents=True, exist_ok=True)
        suffix = Path(filename).suffix if filename else ""
        handle = f"{uuid.uuid4().hex}{suffix}"
        (self._root / handle).write_bytes(data)
        logger.info("Stored document %s (%s bytes)", handle, len(data))
        return handle


class RollingDayGuestPolicy:
    """
    At most `limit` guest intents per email per infrastructure in the last 24 hours,
    counting intents that were confirmed or are still outstanding (unexpired).
    """

    def __init__(self, limit: int | None = None):
        self._limit = limit if limit is not None else settings.guest_max_intents_per_day

    def _recent(self, db: Session, email: str, infrastructure_id: int, now: datetime):
        since = now - timedelta(hours=GUEST_RATE_WINDOW_HOURS)
        return db.query(GuestIntent).filter(
            GuestIntent.email == email,
            GuestIntent.infrastructure_id == infrastructure_id,
            GuestIntent.created_at > since,
        )

    def allows(self, db: Session, email: str, infrastructure_id: int, now: datetime) -> bool:
        count = (
            self._recent(db, email, infrastructure_id, now)
            .filter(
                or_(
                    GuestIntent.status == INTENT_CONFIRMED,
                    and_(GuestIntent.status == INTENT_PENDING, GuestIntent.expires_at > now),
                )
            )
            .count()
        )
        return count < self._limit

    def allows_confirmation(
        self, db: Session, email: str, infrastructure_id: int, now: datetime, intent_id: int
    ) -> bool:
        count = (
            self._recent(db, email, infrastructure_id, now)
            .filter(GuestIntent.status == INTENT_CONFIRMED, GuestIntent.id != intent_id)
            .count()
        )
        return count < self._limit
