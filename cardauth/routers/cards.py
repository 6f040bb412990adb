from fastapi import APIRouter, Depends, HTTPException

from cardauth.domain.errors import UserNotFoundError
from cardauth.routers.dependencies import current_user_id, get_card_service
from cardauth.services.card_service import CardProvisioningService, card_view

router = APIRouter(prefix="/cards", tags=["cards"])


@router.get("/me")
def my_card(
    user_id: int = Depends(current_user_id),
    card_service: CardProvisioningService = Depends(get_card_service),
):
    try:
        card = card_service.get_or_create_card(user_id)
    except UserNotFoundError:
        # session outlived its user
        raise HTTPException(401, "Not authenticated")
    return card_view(card)
