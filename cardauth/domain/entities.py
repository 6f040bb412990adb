"""Plain records returned by the stores; detached from any database session."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Optional


@dataclass(frozen=True)
class User:
    id: int
    name: str
    lastname: str
    email: str
    password_hash: str

    @property
    def full_name(self) -> str:
        return f"{self.name} {self.lastname}".strip()


@dataclass(frozen=True)
class Card:
    id: int
    user_id: int
    card_number: str
    cardholder_name: str
    expiry_date: date
    cvv: str = field(repr=False)


@dataclass(frozen=True)
class Session:
    token: str = field(repr=False)
    user_id: int
    expires_at: datetime


@dataclass(frozen=True)
class LoginContext:
    """Request metadata captured by the boundary for the risk gate."""

    ip_address: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    location: str = ""


@dataclass(frozen=True)
class LoginFeatures:
    hour: int
    ip_address: str
    location: str


@dataclass(frozen=True)
class LoginAttempt:
    email: str
    ip_address: str
    timestamp_hour: int
    location: str
    outcome: Optional[str] = None

    @classmethod
    def from_context(cls, email: str, context: LoginContext) -> "LoginAttempt":
        return cls(
            email=email,
            ip_address=(context.ip_address or "").strip(),
            timestamp_hour=context.timestamp.hour,
            location=(context.location or "").strip(),
        )

    def features(self) -> LoginFeatures:
        return LoginFeatures(hour=self.timestamp_hour, ip_address=self.ip_address, location=self.location)


@dataclass(frozen=True)
class LoginRecord:
    """Labelled historical login used to train the risk model."""

    login_time_hour: int
    ip_address: str
    location: str
    is_fraudulent: bool


@dataclass(frozen=True)
class RiskDecision:
    fraudulent: bool
    reason: str = ""
