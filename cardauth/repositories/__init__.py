"""
Persistence adapters.

Services depend on these stores rather than touching SQLAlchemy sessions
directly; each store receives the ``Database`` handle it operates on.
"""

from .sql_repository import (
    SQLCardStore,
    SQLLoginRecordStore,
    SQLSessionStore,
    SQLUserStore,
    normalize_email,
)

__all__ = ["SQLCardStore", "SQLLoginRecordStore", "SQLSessionStore", "SQLUserStore", "normalize_email"]
