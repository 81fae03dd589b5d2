#!/usr/bin/env python3
"""
Run one status sweep now (same work as the scheduler job): approved bookings past
their end -> completed, pending bookings past their start -> expired, open slots
past their end -> expired.
Run: cd backend && python scripts/run_sweep.py
"""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from infrabook.core import clock
from infrabook.db.session import SessionLocal
from infrabook.services.sweep_service import sweep


def main():
    now = clock.now()
    print(f"Sweeping slot statuses (now={now})...")
    db = SessionLocal()
    try:
        result = sweep(db, now=now)
        print(
            f"Done. completed={result.completed_count}, "
            f"expired_bookings={result.expired_bookings_count}, "
            f"expired_timeslots={result.expired_timeslots_count}"
        )
    finally:
        db.close()


if __name__ == "__main__":
    main()
