"""
Field checks for card and mobile-money input.

Each validate_* is a plain predicate; check_card bundles them into a
Result with the message shown to the customer.
"""

from __future__ import annotations

import re
from datetime import datetime

from kungfu import Result, Ok, Error

from storefront.errors import Failure, Failures
from storefront.payments._types import CardDetails

_WHITESPACE = re.compile(r"\s+")
_CARD_NUMBER = re.compile(r"^\d{16}$")
_EXPIRY = re.compile(r"^(\d{2})/(\d{2})$")
_CVC = re.compile(r"^\d{3}$")
# Rwandan mobile numbers
_MOBILE = re.compile(r"^07\d{8}$")


def validate_card_number(number: str) -> bool:
    return bool(_CARD_NUMBER.match(_WHITESPACE.sub("", number)))


def validate_card_expiry(expiry: str, now: datetime) -> bool:
    """MM/YY, valid through the end of the expiry month."""
    match = _EXPIRY.match(expiry.strip())
    if match is None:
        return False
    month, year = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        return False
    current_year = now.year % 100
    return (year, month) >= (current_year, now.month)


def validate_cvc(cvc: str) -> bool:
    return bool(_CVC.match(cvc))


def validate_mobile_number(number: str) -> bool:
    return bool(_MOBILE.match(number))


def check_card(card: CardDetails, now: datetime) -> Result[CardDetails, Failure]:
    if not validate_card_number(card.number):
        return Error(Failures.validation("Invalid card number", field="number"))
    if not validate_card_expiry(card.expiry, now):
        return Error(Failures.validation("Invalid expiry date", field="expiry"))
    if not validate_cvc(card.cvc):
        return Error(Failures.validation("Invalid CVC", field="cvc"))
    return Ok(card)


def check_mobile_number(number: str | None) -> Result[str, Failure]:
    if number is None or not validate_mobile_number(number):
        return Error(Failures.validation("Invalid mobile number format", field="mobile_number"))
    return Ok(number)


__all__ = (
    "validate_card_number",
    "validate_card_expiry",
    "validate_cvc",
    "validate_mobile_number",
    "check_card",
    "check_mobile_number",
)
