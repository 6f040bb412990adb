from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date

import pytest
from sqlalchemy import func, select

from cardauth.db.models import CardRow
from cardauth.domain.cards import generate_card_number, is_luhn_valid
from cardauth.domain.errors import DuplicateCardError, UserNotFoundError
from cardauth.services.card_service import CardProvisioningService, card_view


@pytest.fixture()
def alice(user_store):
    return user_store.create_user("Alice", "Smith", "alice.smith@example.com", "hash")


@pytest.fixture()
def service(settings, user_store, card_store):
    return CardProvisioningService(users=user_store, cards=card_store, settings=settings, today=lambda: date(2025, 3, 17))


def _card_rows(db, user_id):
    with db.session() as session:
        stmt = select(func.count()).select_from(CardRow).where(CardRow.user_id == user_id)
        return session.execute(stmt).scalar_one()


def test_first_call_issues_card_second_returns_same(service, alice, db):
    card = service.get_or_create_card(alice.id)

    assert len(card.card_number) == 16
    assert card.card_number.isdigit()
    assert is_luhn_valid(card.card_number)
    assert card.cardholder_name == "Alice Smith"
    assert card.expiry_date == date(2029, 3, 1)
    assert len(card.cvv) == 3 and card.cvv.isdigit()

    again = service.get_or_create_card(alice.id)
    assert again.card_number == card.card_number
    assert again.id == card.id
    assert _card_rows(db, alice.id) == 1


def test_existing_card_is_returned_unchanged(service, alice, card_store):
    stored = card_store.create(alice.id, "1234567890123456", "Alice Smith", date(2029, 12, 1), "123")
    assert service.get_or_create_card(alice.id) == stored


def test_unknown_user(service):
    with pytest.raises(UserNotFoundError):
        service.get_or_create_card(4242)


def test_concurrent_calls_issue_a_single_card(service, alice, db):
    workers = 8
    barrier = threading.Barrier(workers)

    def provision(_):
        barrier.wait()
        return service.get_or_create_card(alice.id).card_number

    with ThreadPoolExecutor(max_workers=workers) as pool:
        numbers = list(pool.map(provision, range(workers)))

    assert len(set(numbers)) == 1
    assert _card_rows(db, alice.id) == 1


class LosingRaceCardStore:
    """Reports no card on the first read, then loses the insert to a concurrent writer."""

    def __init__(self, real_store):
        self.real = real_store
        self.reads = 0
        self.winner = None

    def find_by_user_id(self, user_id):
        self.reads += 1
        if self.reads == 1:
            return None
        return self.real.find_by_user_id(user_id)

    def create(self, user_id, card_number, cardholder_name, expiry_date, cvv):
        self.winner = self.real.create(user_id, "4000000000000002", cardholder_name, expiry_date, "999")
        raise DuplicateCardError(user_id)


def test_duplicate_on_create_returns_winner(settings, user_store, card_store, alice):
    racing = LosingRaceCardStore(card_store)
    service = CardProvisioningService(users=user_store, cards=racing, settings=settings)

    card = service.get_or_create_card(alice.id)

    assert card == racing.winner
    assert card.card_number == "4000000000000002"
    assert racing.reads == 2


def test_card_view_hides_cvv(service, alice):
    view = card_view(service.get_or_create_card(alice.id))
    assert set(view) == {"cardNumber", "cardholderName", "expiryDate"}
    assert view["cardholderName"] == "Alice Smith"
    assert view["expiryDate"] == "2029-03-01"


def test_generated_numbers_are_luhn_valid():
    for _ in range(50):
        number = generate_card_number()
        assert len(number) == 16
        assert number.startswith("400000")
        assert is_luhn_valid(number)
