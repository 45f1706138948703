"""
Currency-like amount parsing for scraped option text.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

# Optional currency mark, a number with optional thousands separators and
# decimals, and an optional trailing unit. Numbers followed by a data or
# time unit ("500MB", "30 Days") are sizes, not prices.
AMOUNT_REGEX = re.compile(
    r"(?<![\w.])"
    r"(?P<currency>₦|NGN|N|#)?\s?"
    r"(?P<number>\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?)"
    r"(?P<unit>\s?(?:[KMGT]B|mins?|minutes?|days?|hrs?|hours?|weeks?|months?|sms|%))?"
    r"(?!\w)",
    flags=re.IGNORECASE,
)
_SEPARATORS = " -–—|:,/"
_CENTS = Decimal("0.01")


def _select_match(text: str) -> re.Match[str] | None:
    currency_marked: re.Match[str] | None = None
    bare: re.Match[str] | None = None
    for match in AMOUNT_REGEX.finditer(text):
        if match.group("unit"):
            continue
        if match.group("currency"):
            currency_marked = match
        else:
            bare = match
    return currency_marked or bare


def _to_decimal(number: str) -> Decimal | None:
    try:
        return Decimal(number.replace(",", "")).quantize(_CENTS)
    except InvalidOperation:
        return None


def parse_amount(text: str | None) -> Decimal | None:
    """
    Return the price in ``text`` or None.

    Currency-marked numbers win over bare ones; among equals the last wins,
    since portals render the price after the plan description.
    """

    if not text:
        return None
    match = _select_match(text)
    if match is None:
        return None
    return _to_decimal(match.group("number"))


def strip_amount(text: str) -> str:
    """
    Remove the price fragment from ``text`` to leave a display label.
    """

    match = _select_match(text)
    if match is None:
        return text.strip()
    remainder = f"{text[: match.start()]} {text[match.end() :]}"
    label = re.sub(r"\s+", " ", remainder).strip(_SEPARATORS)
    return label or text.strip()
