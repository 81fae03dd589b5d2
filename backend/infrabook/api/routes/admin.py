"""
Admin: force a status sweep now, and upload answer documents.
"""
import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from infrabook.api.deps import get_actor, get_document_store
from infrabook.core import clock
from infrabook.core.constants import ROLE_ADMIN, ROLE_MANAGER
from infrabook.core.errors import Forbidden, InvalidRequest
from infrabook.db.session import get_db
from infrabook.services.collaborators import Actor, DocumentStore
from infrabook.services.sweep_service import sweep

router = APIRouter()
logger = logging.getLogger(__name__)

MAX_DOCUMENT_BYTES = 10 * 1024 * 1024


@router.post("/admin/sweep")
def force_status_sweep(db: Session = Depends(get_db), actor: Actor = Depends(get_actor)) -> dict[str, Any]:
    """Run the expiry sweep immediately instead of waiting for the scheduler."""
    if actor.role not in (ROLE_ADMIN, ROLE_MANAGER):
        raise Forbidden()
    result = sweep(db, now=clock.now())
    logger.info("Status sweep forced by %s", actor.email)
    return {"message": "Status update forced successfully", **result.to_dict()}


@router.post("/documents", status_code=201)
async def upload_document(
    request: Request,
    filename: str | None = Query(None),
    store: DocumentStore = Depends(get_document_store),
) -> dict[str, Any]:
    """Store the raw request body; answer a document question with the returned handle."""
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > MAX_DOCUMENT_BYTES:
        raise InvalidRequest("Document too large")
    chunks = []
    size = 0
    async for chunk in request.stream():
        size += len(chunk)
        if size > MAX_DOCUMENT_BYTES:
            raise InvalidRequest("Document too large")
        chunks.append(chunk)
    data = b"".join(chunks)
    if not data:
        raise InvalidRequest("Empty document")
    # File I/O off the event loop
    handle = await run_in_threadpool(store.store, data, filename)
    return {"handle": handle, "filename": filename}
