"""Password hashing and verification."""

from __future__ import annotations

from argon2 import PasswordHasher as _Argon2Hasher, exceptions as argon_exc

_PREFIX = "argon2$"


class PasswordHasher:
    """Argon2 hasher; stored hashes carry a prefix so the scheme is detectable."""

    def __init__(self, hasher: _Argon2Hasher | None = None) -> None:
        self._ph = hasher or _Argon2Hasher()
        # verified when the e-mail is unknown so both login failure paths hash once
        self._dummy_hash = self.hash("cardauth-dummy-password")

    def hash(self, password: str) -> str:
        hashed = self._ph.hash(password)
        return f"{_PREFIX}{hashed}"

    def verify(self, password: str, stored_hash: str | None) -> bool:
        stored = stored_hash or ""
        if not stored.startswith(_PREFIX):
            return False
        try:
            return self._ph.verify(stored[len(_PREFIX) :], password or "")
        except (argon_exc.VerifyMismatchError, argon_exc.VerificationError, argon_exc.InvalidHashError):
            return False

    def verify_dummy(self, password: str) -> bool:
        """Burn one verification against a throwaway hash; always False."""
        self.verify(password, self._dummy_hash)
        return False
