"""
FastAPI app entrypoint.

Booking engine for shared infrastructures: timeslots, claims, decisions, guest
confirmation and the recurring status sweep.
"""
import logging
import os
import threading
from contextlib import asynccontextmanager
from pathlib import Path

from apscheduler.schedulers.background import BackgroundScheduler
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env from backend/ before any app code
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from infrabook.api.routes import admin, bookings, email_actions, guest, timeslots
from infrabook.config import settings
from infrabook.core.constants import SWEEP_JOB_ID
from infrabook.core.errors import BookingError, booking_error_handler
from infrabook.scheduler.sweep_job import run_sweep_job

logger = logging.getLogger(__name__)

# Scheduler: advance past-due slots every sweep_interval_seconds
_scheduler = BackgroundScheduler()


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.sweep_enabled:
        _scheduler.add_job(
            run_sweep_job,
            "interval",
            seconds=settings.sweep_interval_seconds,
            id=SWEEP_JOB_ID,
            replace_existing=True,
        )
        _scheduler.start()
        app.state.scheduler = _scheduler

        def startup_background():
            # One sweep on startup so rows that went stale while we were down are advanced
            run_sweep_job()
            logger.info("Status sweep on startup done; next in %ss", settings.sweep_interval_seconds)

        threading.Thread(target=startup_background, daemon=True).start()
    else:
        logger.info("Status sweep disabled (SWEEP_ENABLED=false)")
    logger.info("Backend ready")
    yield
    if _scheduler.running:
        _scheduler.shutdown(wait=False)


app = FastAPI(title="Infrastructure Booking", version="0.1.0", lifespan=lifespan)

# CORS: dev origins + optional CORS_ORIGINS env (comma-separated) for the production frontend
_cors_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_cors_extra = os.getenv("CORS_ORIGINS", "")
if _cors_extra:
    _cors_origins.extend(o.strip() for o in _cors_extra.split(",") if o.strip())
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(BookingError, booking_error_handler)

app.include_router(timeslots.router, tags=["timeslots"])
app.include_router(bookings.router, prefix="/bookings", tags=["bookings"])
app.include_router(email_actions.router, prefix="/email-action", tags=["email-action"])
app.include_router(guest.router, prefix="/guest", tags=["guest"])
app.include_router(admin.router, tags=["admin"])


@app.get("/", include_in_schema=False)
def root():
    """Root: point to API docs and health."""
    return {"message": "Infrastructure Booking API", "docs": "/docs", "health": "/health"}


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
