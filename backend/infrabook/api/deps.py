"""
Request-scoped collaborators for the routers.

Authentication is done upstream; the gateway forwards the caller as
X-User-Email / X-User-Role. Override these in app.dependency_overrides to swap
notifier, document store or access control.
"""
from fastapi import Depends, Header
from sqlalchemy.orm import Session

from infrabook.core.constants import ROLE_ADMIN, ROLE_GUEST, ROLE_MANAGER, ROLE_USER
from infrabook.core.errors import Forbidden
from infrabook.db.session import get_db
from infrabook.services.collaborators import (
    AccessControl,
    Actor,
    DocumentStore,
    GuestRateLimitPolicy,
    LocalDocumentStore,
    ManagerTableAccessControl,
    Notifier,
    RollingDayGuestPolicy,
)
from infrabook.services.email_notify import SmtpNotifier

_KNOWN_ROLES = (ROLE_ADMIN, ROLE_MANAGER, ROLE_USER, ROLE_GUEST)


def get_actor(
    x_user_email: str | None = Header(None, alias="X-User-Email"),
    x_user_role: str | None = Header(None, alias="X-User-Role"),
) -> Actor:
    email = (x_user_email or "").strip().lower()
    role = (x_user_role or ROLE_USER).strip().lower()
    if not email:
        raise Forbidden("Authentication required")
    if role not in _KNOWN_ROLES:
        raise Forbidden(f"Unknown role {role!r}")
    return Actor(email=email, role=role)


def get_access_control(db: Session = Depends(get_db)) -> AccessControl:
    return ManagerTableAccessControl(db)


def get_notifier() -> Notifier:
    return SmtpNotifier()


def get_document_store() -> DocumentStore:
    return LocalDocumentStore()


def get_guest_policy() -> GuestRateLimitPolicy:
    return RollingDayGuestPolicy()
