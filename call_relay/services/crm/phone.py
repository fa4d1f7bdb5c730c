"""
Phone number normalization shared by the CRM connectors

CRMs store phone numbers in whatever format a user typed, so searches go
through digits-only comparison of the last 10 digits (the US/CA national
number).
"""

import re
from typing import Iterable, List, Optional

NATIONAL_LENGTH = 10
SEARCH_SEED_LENGTH = 6


def digits_only(phone: Optional[str]) -> str:
    return re.sub(r"\D", "", phone or "")


def last10(phone: Optional[str]) -> str:
    """The national number: last 10 digits, or all digits when shorter."""
    return digits_only(phone)[-NATIONAL_LENGTH:]


def search_seed(phone: Optional[str]) -> str:
    """A 6-digit substring used to seed free-text CRM searches."""
    return last10(phone)[:SEARCH_SEED_LENGTH]


def candidate_formats(phone: Optional[str]) -> List[str]:
    """Representations a CRM might have stored, most specific first."""
    national = last10(phone)
    if len(national) != NATIONAL_LENGTH:
        digits = digits_only(phone)
        return [digits] if digits else []

    area, exchange, line = national[:3], national[3:6], national[6:]
    formats = [
        f"+1{national}",
        f"1{national}",
        national,
        f"({area}) {exchange}-{line}",
        f"{area}-{exchange}-{line}",
        f"+1 ({area}) {exchange}-{line}",
    ]
    seen = []
    for fmt in formats:
        if fmt not in seen:
            seen.append(fmt)
    return seen


def phones_match(a: Optional[str], b: Optional[str]) -> bool:
    """True when both numbers share the same last-10-digit suffix."""
    left, right = last10(a), last10(b)
    return bool(left) and left == right


def any_phone_matches(target: str, values: Iterable[Optional[str]]) -> bool:
    return any(phones_match(target, value) for value in values if value)
