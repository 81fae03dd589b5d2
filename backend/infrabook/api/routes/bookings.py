"""
Bookings: claim a slot, list my bookings, booking details, and manager/claimant decisions.
"""
from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from infrabook.api.deps import get_access_control, get_actor, get_notifier
from infrabook.api.routes.schemas import ClaimBody, DecisionBody, answers_to_dict
from infrabook.core import clock
from infrabook.db.session import get_db
from infrabook.services import slot_store
from infrabook.services.claim_service import claim
from infrabook.services.collaborators import AccessControl, Actor, Notifier
from infrabook.services.decision_service import decide

router = APIRouter()


@router.post("", status_code=201)
def request_booking(
    body: ClaimBody,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    access: AccessControl = Depends(get_access_control),
    notifier: Notifier = Depends(get_notifier),
) -> dict[str, Any]:
    """Claim an available slot for the calling user. The booking starts as pending."""
    result = claim(
        db,
        body.slot_id,
        actor.email,
        body.purpose,
        answers_to_dict(body.answers),
        access,
        notifier,
        now=clock.now(),
    )
    return {
        "message": "Booking request submitted successfully",
        "booking": result.slot.to_dict(),
        "notification_sent": result.notification_sent,
    }


@router.get("/mine")
def my_bookings(
    limit: int | None = Query(None, ge=1, le=500),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> list[dict[str, Any]]:
    return [r.to_dict() for r in slot_store.list_claimant_reservations(db, actor.email, limit=limit)]


@router.get("/{booking_id}")
def booking_details(
    booking_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    access: AccessControl = Depends(get_access_control),
) -> dict[str, Any]:
    return slot_store.reservation_details(db, booking_id, actor, access)


@router.post("/{booking_id}/decision")
def decide_booking(
    booking_id: int,
    body: DecisionBody,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    access: AccessControl = Depends(get_access_control),
    notifier: Notifier = Depends(get_notifier),
) -> dict[str, Any]:
    """approve / reject (managers) or cancel (managers, or the claimant outside the cancellation window)."""
    slot, sent = decide(db, booking_id, actor, body.action, access, notifier, now=clock.now())
    return {"message": f"Booking {slot.status} successfully", "booking": slot.to_dict(), "notification_sent": sent}
