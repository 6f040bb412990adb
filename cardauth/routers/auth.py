from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from cardauth.core.rate_limiter import client_ip, rate_limit_ip
from cardauth.domain.entities import LoginContext
from cardauth.domain.errors import (
    INVALID_CREDENTIALS_MESSAGE,
    DuplicateEmailError,
    FraudDeniedError,
    InvalidCredentialsError,
    RegistrationError,
)
from cardauth.routers.dependencies import get_auth_service
from cardauth.services.auth_service import AuthService
from cardauth.services.session_service import (
    clear_session_cookie,
    session_token_from_request,
    set_session_cookie,
)

router = APIRouter(prefix="/auth", tags=["auth"])


class RegisterRequest(BaseModel):
    name: str
    lastname: str
    email: str
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str
    location: str = ""


@router.post("/register", status_code=201)
def register(payload: RegisterRequest, request: Request, auth_service: AuthService = Depends(get_auth_service)):
    rate_limit_ip(
        request,
        "auth:register",
        limit=5,
        window_seconds=300,
        trust_proxy_headers=auth_service.settings.trust_proxy_headers,
    )
    try:
        auth_service.register(payload.name, payload.lastname, payload.email, payload.password)
    except RegistrationError as exc:
        raise HTTPException(422, exc.message)
    except DuplicateEmailError:
        return JSONResponse(
            status_code=409,
            content={"status": "duplicate-email", "detail": "Email already exists"},
        )
    return {"status": "success", "message": "User registered successfully"}


@router.post("/login")
def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
):
    trust_proxy_headers = auth_service.settings.trust_proxy_headers
    rate_limit_ip(request, "auth:login", limit=10, window_seconds=60, trust_proxy_headers=trust_proxy_headers)
    # the hour feature comes from the server clock, never from the request body
    context = LoginContext(
        ip_address=client_ip(request, trust_proxy_headers=trust_proxy_headers),
        location=payload.location,
    )
    try:
        session = auth_service.login(payload.email, payload.password, context)
    except (InvalidCredentialsError, FraudDeniedError):
        # identical response so callers cannot tell which check failed
        raise HTTPException(401, INVALID_CREDENTIALS_MESSAGE)
    set_session_cookie(response, session, auth_service.settings)
    return {"status": "success", "token": session.token}


@router.post("/logout", status_code=204)
def logout(request: Request, auth_service: AuthService = Depends(get_auth_service)):
    auth_service.logout(session_token_from_request(request))
    response = Response(status_code=204)
    clear_session_cookie(response)
    return response
