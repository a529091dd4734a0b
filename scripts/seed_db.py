"""
Seed script for the AlertShip mock DB or Firestore.

Usage:
  - Dry run (default): python scripts/seed_db.py
  - Apply to configured DB: python scripts/seed_db.py --apply
  - Force mock DB even if FIREBASE configured: python scripts/seed_db.py --apply --force-mock
  - Stamp outage reports with the current time: add --fresh

Behavior:
  - Loads `db_seed.json` from repo root ({collection: {doc_id: data}}).
  - Gets DB via `app.config.firebase.get_db()` which returns the mock DB or real Firestore depending on settings.
  - Writes each top-level collection/document to the DB.

NOTE: When applying to real Firestore, ensure `FIREBASE_CREDENTIALS_PATH` and `USE_MOCK_DB=false` are set in `.env`.
"""

import argparse
import json
import os
from datetime import datetime, timedelta, timezone
from typing import Any

from app.config.firebase import get_db
from app.core.settings import settings


def load_seed(path: str = "./db_seed.json") -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def refresh_timestamps(seed: dict) -> dict:
    """Give outage reports recent, distinct timestamps (newest first in file order)."""
    now = datetime.now(timezone.utc)
    reports = seed.get("outageReports", {})
    for offset, data in enumerate(reports.values()):
        data["timestamp"] = (now - timedelta(minutes=15 * offset)).isoformat()
    return seed


def write_to_db(db: Any, seed: dict, apply: bool = False) -> int:
    written = 0
    for collection, docs in seed.items():
        for doc_id, data in docs.items():
            print(f"Preparing: {collection}/{doc_id}")
            if not apply:
                continue
            try:
                db.collection(collection).document(doc_id).set(data)
                written += 1
                print(f"Wrote: {collection}/{doc_id}")
            except Exception as e:
                print(f"Failed to write {collection}/{doc_id}: {e}")
    return written


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--apply", action="store_true", help="Write seed to the DB instead of dry-run")
    parser.add_argument("--force-mock", action="store_true", help="Force use of mock DB even if FIREBASE configured")
    parser.add_argument("--fresh", action="store_true", help="Rewrite report timestamps relative to now")
    args = parser.parse_args()

    seed_path = os.path.join(os.getcwd(), "db_seed.json")
    if not os.path.exists(seed_path):
        print(f"Seed file not found: {seed_path}")
        return

    seed = load_seed(seed_path)
    if args.fresh:
        seed = refresh_timestamps(seed)

    if args.force_mock:
        print("Forcing mock DB usage for this run.")
        # Settings are read once at import; get_db() has not run yet
        settings.USE_MOCK_DB = True

    db = get_db()

    written = write_to_db(db, seed, apply=args.apply)

    if args.apply:
        print(f"Seeding completed ({written} document(s)).")
    else:
        print("Dry run complete. Re-run with --apply to write to DB.")


if __name__ == "__main__":
    main()
