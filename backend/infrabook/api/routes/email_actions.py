"""
Approve/reject links from manager e-mails. The token is the only credential.
"""
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from infrabook.api.deps import get_notifier
from infrabook.core import clock
from infrabook.db.session import get_db
from infrabook.services.collaborators import Notifier
from infrabook.services.decision_service import consume_token

router = APIRouter()


@router.post("/{action}/{token}")
def email_action(
    action: str,
    token: str,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> dict[str, Any]:
    slot, sent = consume_token(db, token, action, notifier, now=clock.now())
    return {"message": f"Booking {slot.status} successfully", "booking": slot.to_dict(), "notification_sent": sent}
