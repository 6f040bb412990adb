"""Session transport helpers (cookie and bearer token extraction)."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import Request, Response

from cardauth.core.config import Settings
from cardauth.domain.entities import Session

SESSION_COOKIE_NAME = "session"


def session_token_from_request(request: Request) -> Optional[str]:
    """Return the opaque session token from the Authorization header or the cookie."""
    auth_header = request.headers.get("authorization") or ""
    scheme, _, value = auth_header.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    token = request.cookies.get(SESSION_COOKIE_NAME)
    return token or None


def set_session_cookie(response: Response, session: Session, settings: Settings) -> None:
    """Set the session cookie; it expires together with the server-side session."""
    secure_cookie = settings.app_env == "prod"
    max_age = max(0, int((session.expires_at - datetime.now(timezone.utc)).total_seconds()))
    response.set_cookie(
        SESSION_COOKIE_NAME,
        session.token,
        httponly=True,
        secure=secure_cookie,
        samesite="strict",
        max_age=max_age,
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")
