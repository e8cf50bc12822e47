"""
Seed script for the Waste Watch stores (in-memory or Firestore).

Usage:
  - Dry run (default): python scripts/seed_db.py
  - Apply to configured DB: python scripts/seed_db.py --apply
  - Force in-memory stores even if Firebase is configured: python scripts/seed_db.py --apply --force-mock

Behavior:
  - Loads `db_seed.json` from the repo root when present, otherwise uses the built-in demo data.
  - Writes users, facilities and reports through the storage providers.
  - Prints a bearer token for every seeded user.

NOTE: When applying to real Firestore, ensure `FIREBASE_CREDENTIALS_PATH` and `USE_MOCK_DB=false`
are set in `.env`. In-memory seeding only lives as long as this process.
"""

import argparse
import asyncio
import json
import os
from datetime import datetime, timezone

from app.core.exceptions import StorageError
from app.core.settings import settings
from app.services.storage import get_facility_store, get_report_store, get_user_store, reset_stores
from app.utils.security import create_access_token

DEMO_SEED = {
    "users": [
        {"id": "admin-1", "name": "Asha Admin", "email": "admin@example.org", "role": "admin"},
        {"id": "worker-1", "name": "Ravi Kumar", "email": "ravi@example.org", "phone": "9000000001", "role": "waste_worker"},
        {"id": "worker-2", "name": "Meena Das", "email": "meena@example.org", "phone": "9000000002", "role": "waste_worker"},
        {"id": "citizen-1", "name": "Jane Doe", "email": "jane@example.org", "role": "citizen"},
    ],
    "facilities": [
        {
            "id": "facility-1",
            "name": "Marina Recycling Center",
            "type": "recycling_center",
            "location": {"longitude": 80.2825, "latitude": 13.0500, "address": {"city": "Chennai"}},
            "accepted_waste_types": ["plastic", "paper", "glass", "metal"],
            "is_active": True,
        },
        {
            "id": "facility-2",
            "name": "Adyar E-Waste Point",
            "type": "e_waste_center",
            "location": {"longitude": 80.2570, "latitude": 13.0012, "address": {"city": "Chennai"}},
            "accepted_waste_types": ["electronic"],
            "is_active": True,
        },
    ],
    "reports": [
        {
            "reporter": "citizen-1",
            "location": {"longitude": 80.27, "latitude": 13.08, "address": {"city": "Chennai"}, "description": "Bus stop"},
            "waste_type": "plastic",
            "category": "household",
            "severity": "medium",
            "estimated_quantity": "large",
            "description": "Overflowing bags of plastic next to the drain.",
        },
    ],
}


def load_seed(path: str = "./db_seed.json") -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _report_document(data: dict) -> dict:
    now = datetime.now(timezone.utc)
    doc = {
        "images": [],
        "status": "reported",
        "assigned_worker": None,
        "assigned_at": None,
        "actual_collection": None,
        "verification": None,
        "priority": 3,
        "rewards": {"points_awarded": 0, "awarded_at": None, "completion_points": 0, "completion_awarded_at": None},
        "status_history": [],
        "created_at": now,
        "updated_at": now,
    }
    doc.update(data)
    return doc


async def write_to_db(seed: dict, apply: bool = False) -> None:
    users, facilities, reports = get_user_store(), get_facility_store(), get_report_store()

    for user in seed.get("users", []):
        print(f"Preparing: users/{user['id']}")
        if apply:
            await users.insert(user)
    for facility in seed.get("facilities", []):
        print(f"Preparing: facilities/{facility.get('id', '(new)')}")
        if apply:
            await facilities.insert(facility)
    for report in seed.get("reports", []):
        print(f"Preparing: report by {report['reporter']} at {report['location']}")
        if apply:
            stored = await reports.insert(_report_document(report))
            print(f"Wrote: reports/{stored['id']}")


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--apply", action="store_true", help="Write seed to the DB instead of dry-run")
    parser.add_argument("--force-mock", action="store_true", help="Force the in-memory stores even if Firebase is configured")
    args = parser.parse_args()

    seed_path = os.path.join(os.getcwd(), "db_seed.json")
    seed = load_seed(seed_path) if os.path.exists(seed_path) else DEMO_SEED

    if args.force_mock:
        print("Forcing in-memory stores for this run.")
        settings.USE_MOCK_DB = True
        reset_stores()

    try:
        asyncio.run(write_to_db(seed, apply=args.apply))
    except StorageError as e:
        print(f"Seeding failed: {e.detail}")
        return

    if args.apply:
        print("Seeding completed.")
    else:
        print("Dry run complete. Re-run with --apply to write to DB.")

    print("\nBearer tokens:")
    for user in seed.get("users", []):
        print(f"  {user['id']} ({user['role']}): {create_access_token(user['id'], user['role'])}")


if __name__ == "__main__":
    main()
