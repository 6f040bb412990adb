from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from cardauth.core.config import Settings, get_settings
from cardauth.core.logging import (
    bind_request_context,
    clear_request_context,
    configure_logging,
    generate_request_id,
    get_logger,
)
from cardauth.core.rate_limiter import RateLimiter
from cardauth.core.security import PasswordHasher
from cardauth.db.session import Database
from cardauth.domain.errors import InfrastructureError
from cardauth.repositories.sql_repository import (
    SQLCardStore,
    SQLLoginRecordStore,
    SQLSessionStore,
    SQLUserStore,
)
from cardauth.routers import auth as auth_router
from cardauth.routers import cards as cards_router
from cardauth.routers import health as health_router
from cardauth.services.auth_service import AuthService
from cardauth.services.card_service import CardProvisioningService
from cardauth.services.risk_service import RiskClassifier, RiskGate, build_risk_classifier

logger = get_logger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Inject baseline security headers (anti clickjacking, no sniffing, HSTS in prod)."""

    def __init__(self, app, *, enforce_hsts: bool) -> None:
        super().__init__(app)
        self._enforce_hsts = enforce_hsts

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers.setdefault("Content-Security-Policy", "default-src 'none'; frame-ancestors 'none'")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Cache-Control", "no-store")
        if self._enforce_hsts:
            response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        return response


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a request id to every log line emitted while handling the request."""

    async def dispatch(self, request, call_next):
        request_id = request.headers.get("x-request-id") or generate_request_id()
        bind_request_context(request_id, path=request.url.path, method=request.method)
        try:
            response = await call_next(request)
        finally:
            clear_request_context()
        response.headers["X-Request-ID"] = request_id
        return response


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    risk_classifier: Optional[RiskClassifier] = None,
    hasher: Optional[PasswordHasher] = None,
) -> FastAPI:
    """Build the API.

    ``database`` and ``risk_classifier`` may be injected (tests do); otherwise
    they are created from settings at startup and released at shutdown.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.log_json)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_db = database is None
        db = database or Database(settings.database_url)
        if owns_db and settings.app_env != "prod":
            db.create_all()
        users = SQLUserStore(db)
        classifier = risk_classifier or build_risk_classifier(settings, SQLLoginRecordStore(db))
        gate = RiskGate(
            classifier,
            timeout_seconds=settings.risk_timeout_seconds,
            fail_open=settings.risk_fail_open,
        )
        app.state.db = db
        app.state.auth_service = AuthService(
            users=users,
            sessions=SQLSessionStore(db),
            risk_gate=gate,
            hasher=hasher or PasswordHasher(),
            settings=settings,
        )
        app.state.card_service = CardProvisioningService(users=users, cards=SQLCardStore(db), settings=settings)
        logger.info("app_started", app_env=settings.app_env, risk_model=settings.risk_model)
        try:
            yield
        finally:
            gate.shutdown()
            if owns_db:
                db.dispose()
            logger.info("app_stopped")

    app = FastAPI(title="cardauth API", lifespan=lifespan)
    app.state.rate_limiter = RateLimiter()
    app.add_middleware(SecurityHeadersMiddleware, enforce_hsts=settings.app_env == "prod")
    app.add_middleware(RequestContextMiddleware)

    @app.exception_handler(InfrastructureError)
    async def infrastructure_error_handler(request: Request, exc: InfrastructureError):
        logger.error("infrastructure_error", path=request.url.path, error=str(exc), error_type=type(exc).__name__)
        return JSONResponse(status_code=503, content={"detail": "Service temporarily unavailable"})

    app.include_router(health_router.router)
    app.include_router(auth_router.router)
    app.include_router(cards_router.router)
    return app
