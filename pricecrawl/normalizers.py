"""Utility helpers for normalising scraped text values."""

from __future__ import annotations

import re

_NON_DIGITS = re.compile(r"\D", re.ASCII)

UNAVAILABLE_MARKER = "not available"


def extract_price_number(value: str | None) -> int | None:
    """Return the digits of a price label as an integer, or ``None``.

    Every non-digit character is dropped before parsing, so decimal separators
    vanish as well: ``"€ 129,00"`` becomes ``12900`` and ``"12,99"`` becomes
    ``1299``. Labels mentioning "not available" and labels without digits map
    to ``None``.
    """

    if not value:
        return None

    if UNAVAILABLE_MARKER in value.lower():
        return None

    digits = _NON_DIGITS.sub("", value)
    if not digits:
        return None
    return int(digits)


def clean_option_text(value: str | None) -> str:
    """Collapse whitespace in a select option label."""

    if not value:
        return ""
    return " ".join(value.split())


__all__ = ["clean_option_text", "extract_price_number"]
