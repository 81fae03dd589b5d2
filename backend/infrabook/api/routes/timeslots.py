"""
Timeslots: generate availability, create a single slot, withdraw open slots, list entries.
"""
from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from infrabook.api.deps import get_access_control, get_actor
from infrabook.api.routes.schemas import CancelTimeslotsBody, GenerateBody, SingleSlotBody
from infrabook.core import clock
from infrabook.core.errors import Forbidden
from infrabook.db.session import get_db
from infrabook.services import slot_store
from infrabook.services.availability_service import generate_availability
from infrabook.services.collaborators import AccessControl, Actor

router = APIRouter()


@router.post("/infrastructures/{infrastructure_id}/timeslots/generate", status_code=201)
def create_timeslots(
    infrastructure_id: int,
    body: GenerateBody,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    access: AccessControl = Depends(get_access_control),
) -> dict[str, Any]:
    """Publish back-to-back slots for each day in the range; overlapping candidates are skipped."""
    result = generate_availability(
        db,
        infrastructure_id,
        body.start_date,
        body.end_date,
        body.daily_start_time,
        body.slot_duration,
        body.slots_per_day,
        actor,
        access,
        now=clock.now(),
    )
    return {"message": "Timeslots created successfully", "created": result.created, "skipped": result.skipped}


@router.post("/infrastructures/{infrastructure_id}/timeslots", status_code=201)
def create_single_timeslot(
    infrastructure_id: int,
    body: SingleSlotBody,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    access: AccessControl = Depends(get_access_control),
) -> dict[str, Any]:
    row = slot_store.create_slot(
        db, infrastructure_id, body.slot_date, body.start_time, body.end_time, actor, access, now=clock.now()
    )
    return {"success": True, "slot": row.to_dict()}


@router.get("/infrastructures/{infrastructure_id}/timeslots/available")
def list_available_timeslots(infrastructure_id: int, db: Session = Depends(get_db)) -> list[dict[str, Any]]:
    """Open slots that have not started yet (public; guests pick from these)."""
    slot_store.get_infrastructure(db, infrastructure_id)
    return [r.to_dict() for r in slot_store.list_available(db, infrastructure_id, now=clock.now())]


@router.get("/infrastructures/{infrastructure_id}/entries")
def list_entries(
    infrastructure_id: int,
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    status: str | None = Query(None),
    limit: int | None = Query(None, ge=1, le=5000),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    access: AccessControl = Depends(get_access_control),
) -> list[dict[str, Any]]:
    """All entries (open slots and bookings) for an infrastructure, for admins and its managers."""
    slot_store.get_infrastructure(db, infrastructure_id)
    if not access.can_manage(actor, infrastructure_id):
        raise Forbidden()
    rows = slot_store.list_entries(
        db, infrastructure_id, start_date=start_date, end_date=end_date, status=status, limit=limit
    )
    return [r.to_dict() for r in rows]


@router.post("/timeslots/cancel")
def cancel_timeslots(
    body: CancelTimeslotsBody,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    access: AccessControl = Depends(get_access_control),
) -> dict[str, Any]:
    canceled = slot_store.cancel_timeslots(db, body.ids, actor, access)
    return {"message": "Timeslots canceled successfully", "canceled": canceled}
