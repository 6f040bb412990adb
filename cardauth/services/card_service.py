"""
Card provisioning: fetch the user's single card or issue it on first request.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Callable

from cardauth.core.config import Settings, get_settings
from cardauth.core.logging import get_logger
from cardauth.domain import cards as card_fixtures
from cardauth.domain.entities import Card
from cardauth.domain.errors import DuplicateCardError, InfrastructureError, UserNotFoundError
from cardauth.repositories.sql_repository import SQLCardStore, SQLUserStore

logger = get_logger(__name__)


def card_view(card: Card) -> dict:
    """Public representation of a card; the cvv is never exposed after creation."""
    return {
        "cardNumber": card.card_number,
        "cardholderName": card.cardholder_name,
        "expiryDate": card.expiry_date.isoformat(),
    }


@dataclass
class CardProvisioningService:
    users: SQLUserStore
    cards: SQLCardStore
    settings: Settings = field(default_factory=get_settings)
    today: Callable[[], date] = date.today

    def get_or_create_card(self, user_id: int) -> Card:
        """Return the user's card, creating it on first call.

        Safe under concurrent callers: the store rejects a second card for the
        same user, and the loser of that race re-reads the winner's card.
        """
        existing = self.cards.find_by_user_id(user_id)
        if existing is not None:
            return existing

        user = self.users.get(user_id)
        if user is None:
            raise UserNotFoundError(user_id)

        try:
            card = self.cards.create(
                user_id=user.id,
                card_number=card_fixtures.generate_card_number(),
                cardholder_name=user.full_name,
                expiry_date=card_fixtures.expiry_from(self.today(), self.settings.card_validity_years),
                cvv=card_fixtures.generate_cvv(),
            )
        except DuplicateCardError:
            winner = self.cards.find_by_user_id(user_id)
            if winner is None:
                raise InfrastructureError(f"card for user {user_id} conflicted but could not be read back")
            logger.info("card_create_race_resolved", user_id=user_id)
            return winner

        logger.info("card_issued", user_id=user_id, card_id=card.id)
        return card
