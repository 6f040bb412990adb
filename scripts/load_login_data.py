#!/usr/bin/env python3
"""
Load labelled login history into ``login_data`` and check that the risk model trains.

The CSV needs the columns: login_time_hour, ip_address, location, is_fraudulent

Usage:
  python scripts/load_login_data.py --csv logins.csv [--database-url sqlite:///./cardauth.db] [--dry-run]
"""
from __future__ import annotations

import argparse
import csv
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from cardauth.core.config import get_settings  # noqa: E402
from cardauth.db.session import Database  # noqa: E402
from cardauth.domain.entities import LoginRecord  # noqa: E402
from cardauth.repositories.sql_repository import SQLLoginRecordStore  # noqa: E402
from cardauth.services.risk_service import DecisionTreeRiskClassifier  # noqa: E402

_TRUE = {"1", "true", "yes", "y", "t"}


def read_records(path: Path) -> list[LoginRecord]:
    records: list[LoginRecord] = []
    with path.open(newline="", encoding="utf-8") as fh:
        for lineno, row in enumerate(csv.DictReader(fh), start=2):
            try:
                hour = int(row["login_time_hour"])
            except (KeyError, TypeError, ValueError):
                raise SystemExit(f"line {lineno}: login_time_hour must be an integer")
            records.append(
                LoginRecord(
                    login_time_hour=hour,
                    ip_address=(row.get("ip_address") or "").strip(),
                    location=(row.get("location") or "").strip(),
                    is_fraudulent=(row.get("is_fraudulent") or "").strip().lower() in _TRUE,
                )
            )
    return records


def main() -> None:
    ap = argparse.ArgumentParser(description="Load labelled login history for the risk model")
    ap.add_argument("--csv", required=True, type=Path, help="CSV file with labelled logins")
    ap.add_argument("--database-url", help="Overrides DATABASE_URL")
    ap.add_argument("--dry-run", action="store_true", help="Only train on the file, do not write")
    args = ap.parse_args()

    if not args.csv.exists():
        raise SystemExit(f"File '{args.csv}' not found")
    records = read_records(args.csv)
    if not records:
        raise SystemExit("No records in file")

    classifier = DecisionTreeRiskClassifier()
    trained = classifier.train(records)
    print(f"OK: model trains on {trained} of {len(records)} records")
    if args.dry_run:
        return

    db = Database(args.database_url or get_settings().database_url)
    try:
        db.create_all()
        inserted = SQLLoginRecordStore(db).add_many(records)
    finally:
        db.dispose()
    print(f"OK: {inserted} records written to login_data")


if __name__ == "__main__":
    try:
        main()
    except Exception as exc:  # pragma: no cover - CLI usage
        sys.stderr.write(f"Error: {exc}\n")
        raise SystemExit(1)
