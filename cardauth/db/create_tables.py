"""Utility script to create the initial database schema."""
from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError

from cardauth.core.config import get_settings
from .session import Database


def create_all(url: str | None = None) -> None:
    db = Database(url or get_settings().database_url)
    try:
        db.create_all()
    finally:
        db.dispose()


if __name__ == "__main__":
    try:
        create_all()
        print("Database tables created successfully.")
    except SQLAlchemyError as exc:
        raise SystemExit(f"Failed to create tables: {exc}") from exc
