from __future__ import annotations

import sys
from pathlib import Path

import pytest
from argon2 import PasswordHasher as Argon2Hasher

# make the cardauth package importable when running tests from a checkout
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from cardauth.core import config as core_config  # noqa: E402
from cardauth.core.security import PasswordHasher  # noqa: E402
from cardauth.db.session import Database  # noqa: E402
from cardauth.repositories.sql_repository import (  # noqa: E402
    SQLCardStore,
    SQLLoginRecordStore,
    SQLSessionStore,
    SQLUserStore,
)


@pytest.fixture()
def settings(monkeypatch):
    """Settings read from a clean test environment."""
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.setenv("RISK_MODEL", "static")
    monkeypatch.setenv("RISK_TIMEOUT_SECONDS", "0.5")
    monkeypatch.delenv("RISK_FAIL_OPEN", raising=False)
    monkeypatch.setenv("LOG_JSON", "false")
    core_config.get_settings.cache_clear()
    yield core_config.get_settings()
    core_config.get_settings.cache_clear()


@pytest.fixture()
def db(tmp_path):
    """Temporary SQLite database with the full schema, disposed after the test."""
    db_file = tmp_path / "test.db"
    database = Database(f"sqlite:///{db_file}")
    database.create_all()
    yield database
    database.drop_all()
    database.dispose()


@pytest.fixture()
def hasher():
    # cheap argon2 parameters keep the suite fast
    return PasswordHasher(Argon2Hasher(time_cost=1, memory_cost=1024, parallelism=1))


@pytest.fixture()
def user_store(db):
    return SQLUserStore(db)


@pytest.fixture()
def card_store(db):
    return SQLCardStore(db)


@pytest.fixture()
def session_store(db):
    return SQLSessionStore(db)


@pytest.fixture()
def login_record_store(db):
    return SQLLoginRecordStore(db)

