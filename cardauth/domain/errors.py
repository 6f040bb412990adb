"""Typed outcomes raised by stores and services and translated at the HTTP boundary."""

from __future__ import annotations

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"


class CardAuthError(Exception):
    """Base class for every domain error."""


class RegistrationError(CardAuthError):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DuplicateEmailError(CardAuthError):
    def __init__(self, email: str = ""):
        super().__init__("Email already exists")
        self.email = email


class InvalidCredentialsError(CardAuthError):
    """Unknown e-mail and wrong password are deliberately the same error."""

    def __init__(self) -> None:
        super().__init__(INVALID_CREDENTIALS_MESSAGE)


class FraudDeniedError(CardAuthError):
    def __init__(self, reason: str = "fraudulent") -> None:
        super().__init__("Login denied")
        self.reason = reason


class DuplicateCardError(CardAuthError):
    """A card already exists for the user; resolved inside card provisioning."""

    def __init__(self, user_id: int):
        super().__init__(f"Card already exists for user {user_id}")
        self.user_id = user_id


class UserNotFoundError(CardAuthError):
    def __init__(self, user_id: int):
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


class InfrastructureError(CardAuthError):
    """A store or the risk classifier is unreachable, failing or timed out."""


class RiskClassifierError(InfrastructureError):
    pass
