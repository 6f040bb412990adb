"""Data access stores backed by SQLAlchemy.

Uniqueness (one user per e-mail, one card per user) is enforced by database
constraints; the stores translate the resulting ``IntegrityError`` into typed
domain errors and every other ``SQLAlchemyError`` into ``InfrastructureError``.
"""
from __future__ import annotations

import secrets
from contextlib import contextmanager
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Iterator, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from cardauth.core.logging import get_logger
from cardauth.db.models import CardRow, LoginRecordRow, SessionRow, UserRow
from cardauth.db.session import Database
from cardauth.domain.entities import Card, LoginRecord, Session, User
from cardauth.domain.errors import (
    DuplicateCardError,
    DuplicateEmailError,
    InfrastructureError,
    UserNotFoundError,
)

logger = get_logger(__name__)


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    return value.astimezone(timezone.utc) if value.tzinfo else value.replace(tzinfo=timezone.utc)


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("store_operation_failed", operation=operation, error_type=type(exc).__name__)
        raise InfrastructureError(f"{operation} failed") from exc


def _to_user(row: UserRow) -> User:
    return User(id=row.id, name=row.name, lastname=row.lastname, email=row.email, password_hash=row.password_hash)


def _to_card(row: CardRow) -> Card:
    return Card(
        id=row.id,
        user_id=row.user_id,
        card_number=row.card_number,
        cardholder_name=row.cardholder_name,
        expiry_date=row.expiry_date,
        cvv=row.cvv,
    )


class SQLUserStore:
    """Users keyed by id with a unique, lower-cased e-mail."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def create_user(self, name: str, lastname: str, email: str, password_hash: str) -> User:
        email_norm = normalize_email(email)
        row = UserRow(name=name, lastname=lastname, email=email_norm, password_hash=password_hash)
        with _store_errors("create_user"):
            with self.db.session() as session:
                session.add(row)
                try:
                    session.commit()
                except IntegrityError as exc:
                    session.rollback()
                    raise DuplicateEmailError(email_norm) from exc
                return _to_user(row)

    def find_by_email(self, email: str) -> Optional[User]:
        email_norm = normalize_email(email)
        if not email_norm:
            return None
        with _store_errors("find_user_by_email"):
            with self.db.session() as session:
                row = session.execute(select(UserRow).where(UserRow.email == email_norm)).scalar_one_or_none()
                return _to_user(row) if row else None

    def get(self, user_id: int) -> Optional[User]:
        with _store_errors("get_user"):
            with self.db.session() as session:
                row = session.get(UserRow, user_id)
                return _to_user(row) if row else None


class SQLCardStore:
    """At most one card per user, guaranteed by the unique ``cards.user_id``."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def find_by_user_id(self, user_id: int) -> Optional[Card]:
        with _store_errors("find_card"):
            with self.db.session() as session:
                row = session.execute(select(CardRow).where(CardRow.user_id == user_id)).scalar_one_or_none()
                return _to_card(row) if row else None

    def create(self, user_id: int, card_number: str, cardholder_name: str, expiry_date: date, cvv: str) -> Card:
        row = CardRow(
            user_id=user_id,
            card_number=card_number,
            cardholder_name=cardholder_name,
            expiry_date=expiry_date,
            cvv=cvv,
        )
        with _store_errors("create_card"):
            with self.db.session() as session:
                session.add(row)
                try:
                    session.commit()
                except IntegrityError as exc:
                    session.rollback()
                    # the unique and foreign key constraints both raise IntegrityError
                    if session.get(UserRow, user_id) is None:
                        raise UserNotFoundError(user_id) from exc
                    raise DuplicateCardError(user_id) from exc
                return _to_card(row)


class SQLSessionStore:
    """Opaque session tokens mapped to a user id."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def issue(self, user_id: int, ttl_seconds: int) -> Session:
        token = secrets.token_urlsafe(32)
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=max(60, ttl_seconds))
        with _store_errors("issue_session"):
            with self.db.session() as session:
                session.add(SessionRow(token=token, user_id=user_id, expires_at=expires_at))
                session.commit()
        return Session(token=token, user_id=user_id, expires_at=expires_at)

    def get(self, token: str) -> Optional[Session]:
        """Return the live session for ``token``; expired rows are deleted on sight."""
        if not token:
            return None
        now = datetime.now(timezone.utc)
        with _store_errors("get_session"):
            with self.db.session() as session:
                row = session.get(SessionRow, token)
                if row is None:
                    return None
                expires_at = as_utc(row.expires_at)
                if expires_at < now:
                    session.delete(row)
                    session.commit()
                    return None
                return Session(token=row.token, user_id=row.user_id, expires_at=expires_at)

    def delete(self, token: str) -> None:
        if not token:
            return
        with _store_errors("delete_session"):
            with self.db.session() as session:
                session.execute(delete(SessionRow).where(SessionRow.token == token))
                session.commit()

    def count_for_user(self, user_id: int) -> int:
        with _store_errors("count_sessions"):
            with self.db.session() as session:
                rows = session.execute(select(SessionRow.token).where(SessionRow.user_id == user_id)).all()
                return len(rows)


class SQLLoginRecordStore:
    """Labelled login history (``login_data``) read by risk model training."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def add_many(self, records: Iterable[LoginRecord]) -> int:
        rows = [
            LoginRecordRow(
                login_time_hour=r.login_time_hour,
                ip_address=r.ip_address,
                location=r.location,
                is_fraudulent=bool(r.is_fraudulent),
            )
            for r in records
        ]
        with _store_errors("add_login_records"):
            with self.db.session() as session:
                session.add_all(rows)
                session.commit()
        return len(rows)

    def list_all(self) -> list[LoginRecord]:
        with _store_errors("list_login_records"):
            with self.db.session() as session:
                rows = session.execute(select(LoginRecordRow).order_by(LoginRecordRow.id)).scalars().all()
                return [
                    LoginRecord(
                        login_time_hour=row.login_time_hour,
                        ip_address=row.ip_address,
                        location=row.location or "",
                        is_fraudulent=bool(row.is_fraudulent),
                    )
                    for row in rows
                ]
