"""
Input validation utilities for the EcoProducts checkout.

Small predicates shared by the order validator (client-side rules) and the
order service (server-side re-checks), so both sides agree on the formats.
"""
import re
from typing import Iterable

from domain.constants import PHONE_PATTERN

_PHONE_RE = re.compile(PHONE_PATTERN)


def is_blank(value: str | None) -> bool:
    """True for None, empty, or whitespace-only strings."""
    return value is None or not value.strip()


def is_valid_phone(phone: str | None) -> bool:
    """
    Validate a mobile number.

    Exactly 10 ASCII digits, first digit 6-9. Country codes, spaces and
    dashes are all rejected.
    """
    if not phone:
        return False
    return _PHONE_RE.fullmatch(phone) is not None


def is_valid_pincode(pincode: str | None, allowed: Iterable[str]) -> bool:
    """Membership test against the delivery pincode allow-list."""
    if not pincode:
        return False
    return pincode in set(allowed)

