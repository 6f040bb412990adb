"""Database helpers (engine/session handle and ORM models)."""

from .session import Base, Database

__all__ = ["Base", "Database"]
