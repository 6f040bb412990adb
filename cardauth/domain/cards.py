"""Test-fixture card data generation (no real issuer semantics)."""
from __future__ import annotations

import secrets
from datetime import date

CARD_NUMBER_LENGTH = 16
# 400000 is reserved for test cards
ISSUER_PREFIX = "400000"


def luhn_check_digit(partial: str) -> str:
    total = 0
    for idx, char in enumerate(reversed(partial)):
        digit = int(char)
        if idx % 2 == 0:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return str((10 - total % 10) % 10)


def is_luhn_valid(number: str) -> bool:
    if not number or not number.isdigit():
        return False
    return luhn_check_digit(number[:-1]) == number[-1]


def generate_card_number(prefix: str = ISSUER_PREFIX) -> str:
    body_len = CARD_NUMBER_LENGTH - len(prefix) - 1
    body = "".join(str(secrets.randbelow(10)) for _ in range(body_len))
    partial = prefix + body
    return partial + luhn_check_digit(partial)


def generate_cvv() -> str:
    return f"{secrets.randbelow(1000):03d}"


def expiry_from(today: date, years: int) -> date:
    """First day of the same month, ``years`` later."""
    return date(today.year + max(1, years), today.month, 1)
