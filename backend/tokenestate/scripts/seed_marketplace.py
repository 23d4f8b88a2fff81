# backend/tokenestate/scripts/seed_marketplace.py

"""
Seed users, properties and investments from a JSON file.

Usage examples:

  # Default seed file
  cd backend
  python -m tokenestate.scripts.seed_marketplace

  # A specific file
  python -m tokenestate.scripts.seed_marketplace --file path/to/marketplace.json

Re-running is safe: users are keyed by username, properties by title and
investments by (user, property).
"""

import argparse
import json
from decimal import Decimal
from pathlib import Path

from sqlalchemy.orm import Session

from tokenestate.database import SessionLocal, init_db
from tokenestate import models

BASE_DIR = Path(__file__).resolve().parent.parent

DEFAULT_FILE = BASE_DIR / "data" / "seed_marketplace.json"

PROPERTY_FIELDS = (
    "description",
    "location",
    "property_type",
    "total_tokens",
    "available_tokens",
    "image_url",
)
PROPERTY_DECIMAL_FIELDS = ("total_value", "expected_roi", "min_investment")


def _load_seed_file(path: Path) -> dict:
    if not path.exists():
        raise FileNotFoundError(f"Seed file not found: {path}")

    print(f"[seed_marketplace] Loading seed data from: {path}")
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError(f"Expected an object with users/properties/investments in {path}, got {type(data)}")

    return data


def _seed_users(db: Session, rows: list[dict]) -> dict[str, int]:
    counts = {"created": 0, "updated": 0, "skipped": 0}
    for u in rows:
        username = (u.get("username") or "").strip()
        email = (u.get("email") or "").strip()
        if not username or not email:
            counts["skipped"] += 1
            continue

        existing = db.query(models.User).filter(models.User.username == username).one_or_none()
        if existing:
            existing.email = email
            existing.wallet_address = u.get("wallet_address")
            existing.kyc_status = u.get("kyc_status") or "pending"
            counts["updated"] += 1
            continue

        db.add(
            models.User(
                username=username,
                email=email,
                wallet_address=u.get("wallet_address"),
                kyc_status=u.get("kyc_status") or "pending",
            )
        )
        counts["created"] += 1
    db.flush()
    return counts


def _seed_properties(db: Session, rows: list[dict]) -> dict[str, int]:
    counts = {"created": 0, "updated": 0, "skipped": 0}
    for p in rows:
        title = (p.get("title") or "").strip()
        if not title:
            counts["skipped"] += 1
            continue

        values = {field: p.get(field) for field in PROPERTY_FIELDS}
        for field in PROPERTY_DECIMAL_FIELDS:
            values[field] = Decimal(str(p.get(field, "0")))
        values["is_active"] = bool(p.get("is_active", True))

        existing = db.query(models.Property).filter(models.Property.title == title).one_or_none()
        if existing:
            for field, value in values.items():
                setattr(existing, field, value)
            counts["updated"] += 1
            continue

        db.add(models.Property(title=title, **values))
        counts["created"] += 1
    db.flush()
    return counts


def _seed_investments(db: Session, rows: list[dict]) -> dict[str, int]:
    counts = {"created": 0, "updated": 0, "skipped": 0}
    for inv in rows:
        user = db.query(models.User).filter(models.User.username == inv.get("username")).one_or_none()
        prop = db.query(models.Property).filter(models.Property.title == inv.get("property_title")).one_or_none()
        if user is None or prop is None:
            # Dangling reference in the seed file
            counts["skipped"] += 1
            continue

        values = {
            "tokens_owned": int(inv.get("tokens_owned", 0)),
            "investment_amount": Decimal(str(inv.get("investment_amount", "0"))),
            "current_value": Decimal(str(inv.get("current_value", "0"))),
        }
        existing = (
            db.query(models.Investment)
            .filter(
                models.Investment.user_id == user.id,
                models.Investment.property_id == prop.id,
            )
            .first()
        )
        if existing:
            for field, value in values.items():
                setattr(existing, field, value)
            counts["updated"] += 1
            continue

        db.add(models.Investment(user_id=user.id, property_id=prop.id, **values))
        counts["created"] += 1
    db.flush()
    return counts


def seed_marketplace(db: Session, data: dict) -> dict[str, dict[str, int]]:
    """Upsert all records from data; the caller commits."""
    return {
        "users": _seed_users(db, data.get("users") or []),
        "properties": _seed_properties(db, data.get("properties") or []),
        "investments": _seed_investments(db, data.get("investments") or []),
    }


def main():
    parser = argparse.ArgumentParser(
        description="Seed the TokenEstate marketplace from a JSON file."
    )
    parser.add_argument(
        "--file",
        "-f",
        dest="file",
        help="Path to a JSON seed file. Defaults to the bundled marketplace seed.",
    )
    args = parser.parse_args()

    path = Path(args.file).resolve() if args.file else DEFAULT_FILE
    data = _load_seed_file(path)

    init_db()
    db: Session = SessionLocal()
    try:
        summary = seed_marketplace(db, data)
        db.commit()
        for table, counts in summary.items():
            print(
                f"[seed_marketplace] {table}: Created={counts['created']}, "
                f"Updated={counts['updated']}, Skipped={counts['skipped']}"
            )
    finally:
        db.close()


if __name__ == "__main__":
    main()
