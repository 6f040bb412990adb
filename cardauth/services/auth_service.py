"""
Authentication use cases: registration, risk-gated login, sessions.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Optional

from cardauth.core.config import Settings, get_settings
from cardauth.core.logging import get_logger
from cardauth.core.security import PasswordHasher
from cardauth.domain.entities import LoginAttempt, LoginContext, Session, User
from cardauth.domain.errors import (
    DuplicateEmailError,
    FraudDeniedError,
    InvalidCredentialsError,
    RegistrationError,
)
from cardauth.repositories.sql_repository import SQLSessionStore, SQLUserStore, normalize_email
from cardauth.services.risk_service import RiskGate

logger = get_logger(__name__)

OUTCOME_ALLOWED = "allowed"
OUTCOME_DENIED_CREDENTIALS = "denied-credentials"
OUTCOME_DENIED_RISK = "denied-risk"


@dataclass
class AuthService:
    """Handles registration, login and logout.

    A login runs three strictly ordered steps: credential verification, risk
    scoring, session issuance. The risk gate is only consulted once the
    credentials are known to be valid.
    """

    users: SQLUserStore
    sessions: SQLSessionStore
    risk_gate: RiskGate
    hasher: PasswordHasher = field(default_factory=PasswordHasher)
    settings: Settings = field(default_factory=get_settings)

    # -------------------------------------- registration --------------------------------------
    def register(self, name: str, lastname: str, email: str, password: str) -> User:
        name = (name or "").strip()
        lastname = (lastname or "").strip()
        email_norm = normalize_email(email)
        if not name or not lastname:
            raise RegistrationError("Name and lastname are required")
        if not email_norm or "@" not in email_norm:
            raise RegistrationError("A valid email is required")
        if not password:
            raise RegistrationError("Password is required")

        password_hash = self.hasher.hash(password)
        try:
            user = self.users.create_user(name, lastname, email_norm, password_hash)
        except DuplicateEmailError:
            logger.info("registration_duplicate_email")
            raise
        logger.info("user_registered", user_id=user.id)
        return user

    # -------------------------------------- login --------------------------------------
    def login(self, email: str, password: str, context: Optional[LoginContext] = None) -> Session:
        context = context or LoginContext()
        email_norm = normalize_email(email)
        attempt = LoginAttempt.from_context(email_norm, context)

        user = self.users.find_by_email(email_norm) if email_norm else None
        if user is None:
            self.hasher.verify_dummy(password)
            self._audit(attempt, OUTCOME_DENIED_CREDENTIALS)
            raise InvalidCredentialsError()
        if not self.hasher.verify(password, user.password_hash):
            self._audit(attempt, OUTCOME_DENIED_CREDENTIALS, user_id=user.id)
            raise InvalidCredentialsError()

        decision = self.risk_gate.evaluate(attempt.features())
        if decision.fraudulent:
            self._audit(attempt, OUTCOME_DENIED_RISK, user_id=user.id, reason=decision.reason)
            raise FraudDeniedError(decision.reason)

        session = self.sessions.issue(user.id, self.settings.session_ttl_seconds)
        self._audit(attempt, OUTCOME_ALLOWED, user_id=user.id)
        return session

    def _audit(self, attempt: LoginAttempt, outcome: str, **extra) -> None:
        attempt = replace(attempt, outcome=outcome)
        logger.info(
            "login_attempt",
            outcome=attempt.outcome,
            ip_address=attempt.ip_address,
            hour=attempt.timestamp_hour,
            location=attempt.location,
            **extra,
        )

    # -------------------------------------- sessions --------------------------------------
    def resolve_session(self, token: Optional[str]) -> Optional[int]:
        session = self.sessions.get(token or "")
        return session.user_id if session else None

    def logout(self, token: Optional[str]) -> None:
        if not token:
            return
        self.sessions.delete(token)
