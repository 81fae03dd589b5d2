"""Runs every SWEEP_INTERVAL_SECONDS: advance stale slots and reservations to terminal statuses."""
import logging

from infrabook.core import clock
from infrabook.db.session import SessionLocal
from infrabook.services.sweep_service import SweepResult, sweep

logger = logging.getLogger(__name__)


def run_sweep_job() -> SweepResult | None:
    db = SessionLocal()
    try:
        return sweep(db, now=clock.now())
    except Exception as e:
        logger.exception("Status sweep job failed: %s", e)
        return None
    finally:
        db.close()
