"""Representative values, sort orders and the top-N default flag."""

from __future__ import annotations

import re
import sys
from collections.abc import Sequence

from surveylens.analysis.models import SeriesDataPoint
from surveylens.models import QuestionDef, SortOrder

_MONEY_KEYWORDS = (
    "income", "salary", "earn", "wage", "pay", "household income", "annual income",
    "revenue", "$", "£", "€", "price", "cost",
)
_MONEY_AMOUNT_RE = re.compile(r"[$£€]?\s*(\d+(?:,\d{3})*(?:\.\d+)?)")
_DECLINE_RE = re.compile(r"prefer not|rather not|decline|not say", re.IGNORECASE)

_LAST = float(sys.maxsize)


def representative_value(
    values: dict[str, float | None], overall_key: str | None,
) -> float | None:
    """The Overall cohort's value if present, else the mean of cohort values.

    Absent values are left out of the mean; all-absent gives None.
    """
    if overall_key is not None:
        return values.get(overall_key)
    present = [v for v in values.values() if v is not None]
    if not present:
        return None
    return sum(present) / len(present)


def mark_top_n(points: Sequence[SeriesDataPoint], top_n: int, *, select_all: bool) -> None:
    """Flag exactly ``min(top_n, len(points))`` options by descending value.

    Absent representatives rank last; ties keep question-column order.
    *select_all* (ranking questions) flags every option.
    """
    if select_all:
        for point in points:
            point.is_top_n_default = True
        return
    ranked = sorted(
        range(len(points)),
        key=lambda i: (points[i].representative is None, -(points[i].representative or 0.0), i),
    )
    chosen = set(ranked[:top_n])
    for i, point in enumerate(points):
        point.is_top_n_default = i in chosen


def is_money_question(question: QuestionDef) -> bool:
    label = question.label.lower()
    return any(keyword in label for keyword in _MONEY_KEYWORDS)


def money_value(text: str) -> float:
    """Sort value for an income/price band label.

    ``"Under $25,000"`` sorts just before 25000, ``"Over $100,000"`` just
    after 100000, and "prefer not to say" style answers last.
    """
    if _DECLINE_RE.search(text):
        return _LAST
    match = _MONEY_AMOUNT_RE.search(text)
    if not match:
        return 0.0
    base = float(match.group(1).replace(",", ""))
    lowered = text.strip().lower()
    if lowered.startswith("under "):
        return base - 0.5
    if lowered.startswith("over "):
        return base + 0.5
    return base


def order_points(
    points: list[SeriesDataPoint],
    question: QuestionDef,
    sort_order: SortOrder,
) -> list[SeriesDataPoint]:
    """Return *points* in display order.

    Default keeps question-column order.  Money questions always sort by
    amount.  Ascending / descending are stable on the representative value
    with absent values last.
    """
    if is_money_question(question):
        return sorted(points, key=lambda p: money_value(p.option_display))
    if sort_order == SortOrder.DEFAULT:
        return list(points)
    present = [p for p in points if p.representative is not None]
    absent = [p for p in points if p.representative is None]
    present.sort(
        key=lambda p: p.representative or 0.0,
        reverse=sort_order == SortOrder.DESCENDING,
    )
    return present + absent
