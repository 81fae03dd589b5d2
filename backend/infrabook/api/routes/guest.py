"""
Guest bookings: request (sends a confirmation e-mail) and confirm (runs the claim).
"""
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from infrabook.api.deps import get_access_control, get_guest_policy, get_notifier
from infrabook.api.routes.schemas import GuestRequestBody, answers_to_dict
from infrabook.core import clock
from infrabook.db.session import get_db
from infrabook.services.collaborators import AccessControl, GuestRateLimitPolicy, Notifier
from infrabook.services.guest_service import confirm_guest_claim, initiate_guest_claim

router = APIRouter()


@router.post("/request", status_code=202)
def guest_request(
    body: GuestRequestBody,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    policy: GuestRateLimitPolicy = Depends(get_guest_policy),
) -> dict[str, Any]:
    result = initiate_guest_claim(
        db,
        body.infrastructure_id,
        body.slot_id,
        body.email,
        body.purpose,
        answers_to_dict(body.answers),
        policy,
        notifier,
        name=body.name,
        now=clock.now(),
    )
    return {
        "success": True,
        "message": "Booking verification email sent. Please check your inbox to confirm your booking.",
        "email": result.email,
        "notification_sent": result.notification_sent,
    }


@router.post("/confirm/{token}")
def guest_confirm(
    token: str,
    db: Session = Depends(get_db),
    access: AccessControl = Depends(get_access_control),
    notifier: Notifier = Depends(get_notifier),
    policy: GuestRateLimitPolicy = Depends(get_guest_policy),
) -> dict[str, Any]:
    result = confirm_guest_claim(db, token, access, notifier, policy, now=clock.now())
    return {
        "success": True,
        "message": "Booking confirmed successfully",
        "booking": result.slot.to_dict(),
        "notification_sent": result.notification_sent,
    }
