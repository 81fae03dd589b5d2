#!/usr/bin/env python3
"""
Create an infrastructure and assign a manager, for local development.
Run: cd backend && python scripts/seed_infrastructure.py "Lab A" manager@example.com [--max-minutes 240]
Idempotent: existing infrastructure / assignment rows are reused.
"""
import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from infrabook.db.session import SessionLocal, transaction
from infrabook.models.infrastructure import Infrastructure
from infrabook.models.infrastructure_manager import InfrastructureManager


def main():
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("name")
    parser.add_argument("manager_email")
    parser.add_argument("--location", default=None)
    parser.add_argument("--max-minutes", type=int, default=None)
    args = parser.parse_args()

    db = SessionLocal()
    try:
        with transaction(db):
            infra = db.query(Infrastructure).filter(Infrastructure.name == args.name).first()
            if infra is None:
                infra = Infrastructure(
                    name=args.name,
                    location=args.location,
                    is_active=True,
                    max_booking_minutes=args.max_minutes,
                )
                db.add(infra)
                db.flush()
                print(f"Created infrastructure {infra.id} ({infra.name})")
            email = args.manager_email.strip().lower()
            exists = (
                db.query(InfrastructureManager)
                .filter(
                    InfrastructureManager.infrastructure_id == infra.id,
                    InfrastructureManager.user_email == email,
                )
                .first()
            )
            if exists is None:
                db.add(InfrastructureManager(infrastructure_id=infra.id, user_email=email, email_notifications=True))
                print(f"Assigned {email} as manager of infrastructure {infra.id}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
