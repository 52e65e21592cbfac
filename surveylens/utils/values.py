"""Typed accessors for schema-agnostic respondent rows.

Rows arrive as plain mappings of column name to raw cell value (numbers,
booleans, quoted strings, blanks).  Every matching rule in the engine reads
cells through these helpers so the coercion rules live in one place.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Mapping
from typing import Any

_KEY_RE = re.compile(r"[^a-z0-9]+")
_LEADING_INT_RE = re.compile(r"^(\d+)")

_TRUTHY_STRINGS = frozenset({"1", "true", "yes"})

# Straight double, curly double, single: stripped in this order, one pair each
_QUOTE_PAIRS = (('"', '"'), ("“", "”"), ("'", "'"))


def strip_quotes(text: str) -> str:
    """Remove wrapping quotation marks and unescape doubled quotes.

    >>> strip_quotes('"Blue"')
    'Blue'
    >>> strip_quotes('  “Say ""hi""” ')
    'Say "hi"'
    """
    if not text:
        return text
    result = text.strip()
    for opening, closing in _QUOTE_PAIRS:
        if len(result) >= 2 and result.startswith(opening) and result.endswith(closing):
            result = result[1:-1]
    return result.replace('""', '"').strip()


def normalize_value(value: Any) -> str:
    """Raw cell -> comparable text.  Missing and None read as blank."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return strip_quotes(str(value).strip())


def cell_text(row: Mapping[str, Any], column: str | None) -> str:
    if column is None:
        return ""
    return normalize_value(row.get(column))


def is_truthy_marker(value: Any) -> bool:
    """True for the markers a one-hot multi-select column uses for "chosen".

    Numeric 1, the string ``"1"``, boolean True, and case-insensitive
    ``"true"`` / ``"yes"``.
    """
    if value is True:
        return True
    if value is None or value is False:
        return False
    if isinstance(value, (int, float)):
        return value == 1
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY_STRINGS
    return False


def any_truthy(row: Mapping[str, Any], headers: Iterable[str]) -> bool:
    return any(is_truthy_marker(row.get(h)) for h in headers)


def coerce_number(value: Any) -> float | None:
    """Numeric coercion that never fabricates a zero.

    Blanks, booleans, non-numeric text, NaN and infinities all give None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = strip_quotes(str(value).strip())
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def cell_number(row: Mapping[str, Any], column: str | None) -> float | None:
    if column is None:
        return None
    return coerce_number(row.get(column))


def coerce_rating(value: Any) -> float | None:
    """Rating coercion that also reads labelled scale answers.

    Survey exports often carry the scale label next to the point, so the
    leading integer counts when the whole cell is not a number.

    >>> coerce_rating("5 - Definitely")
    5.0
    >>> coerce_rating("n/a") is None
    True
    """
    number = coerce_number(value)
    if number is not None or value is None or isinstance(value, bool):
        return number
    match = _LEADING_INT_RE.match(strip_quotes(str(value).strip()))
    return float(match.group(1)) if match else None


def cell_rating(row: Mapping[str, Any], column: str | None) -> float | None:
    if column is None:
        return None
    return coerce_rating(row.get(column))


def normalize_product_value(value: Any) -> str:
    """Product cell -> bucket membership token (``"Unspecified"`` when blank)."""
    text = "" if value is None else str(value).strip()
    if text.startswith('"'):
        text = text[1:]
    if text.endswith('"'):
        text = text[:-1]
    return text or "Unspecified"


def derive_key(label: str) -> str:
    """Stable identifier for a cohort or option label.

    Lower-cases the label and collapses every run of characters outside
    ``[a-z0-9]`` into a single underscore.  External label-override maps are
    keyed by this value, so callers must use this function rather than
    re-deriving keys themselves.

    >>> derive_key("18-24 (US)")
    '18_24_us_'
    """
    return _KEY_RE.sub("_", label.lower())


class KeyAllocator:
    """Hands out unique keys within one series.

    Blank-derived keys fall back to ``<prefix>_<index+1>``; collisions get
    ``_1``, ``_2`` ... appended in allocation order.
    """

    def __init__(self, prefix: str = "group") -> None:
        self._prefix = prefix
        self._used: set[str] = set()

    def allocate(self, label: str, index: int) -> str:
        base = derive_key(label) or f"{self._prefix}_{index + 1}"
        key = base
        counter = 1
        while key in self._used:
            key = f"{base}_{counter}"
            counter += 1
        self._used.add(key)
        return key
