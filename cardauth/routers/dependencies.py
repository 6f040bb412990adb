from fastapi import Depends, HTTPException, Request

from cardauth.services.auth_service import AuthService
from cardauth.services.card_service import CardProvisioningService
from cardauth.services.session_service import session_token_from_request


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_card_service(request: Request) -> CardProvisioningService:
    return request.app.state.card_service


def current_user_id(request: Request, auth_service: AuthService = Depends(get_auth_service)) -> int:
    """Resolve the session to a user id, raising 401 when absent or expired."""
    user_id = auth_service.resolve_session(session_token_from_request(request))
    if user_id is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user_id
