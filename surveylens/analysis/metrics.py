"""Low-level statistical functions for cohort comparison.

Pure arithmetic: no I/O, no Pydantic models.  The series builder calls these
once per option per cohort pair.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence

from surveylens.analysis.models import (
    CHI_SQUARE_CRITICAL,
    MatchResult,
    SignificanceResult,
)


def chi_square_2x2(a: int, b: int, c: int, d: int) -> float | None:
    """Pearson's chi-square for a 2x2 table, one degree of freedom.

    Table layout::

                 match   no match
        cohort A   a        b
        cohort B   c        d

    Uses the shortcut ``N (ad - bc)^2 / ((a+b)(c+d)(a+c)(b+d))`` with no
    Yates continuity correction.  Returns None when any marginal is zero
    (an empty row, or every response in one column), where the statistic
    is undefined.
    """
    total = a + b + c + d
    if total == 0:
        return None
    denom = (a + b) * (c + d) * (a + c) * (b + d)
    if denom == 0:
        return None
    return total * (a * d - b * c) ** 2 / denom


def chi_square_p_value(chi_square: float) -> float:
    """Upper-tail p-value for df = 1: P(X > x) = erfc(sqrt(x / 2))."""
    if chi_square <= 0:
        return 1.0
    return math.erfc(math.sqrt(chi_square / 2))


def compare_pair(
    key_a: str,
    result_a: MatchResult,
    key_b: str,
    result_b: MatchResult,
    *,
    threshold: float = CHI_SQUARE_CRITICAL,
) -> SignificanceResult | None:
    """Compare one option between two cohorts.

    Returns None (skip, never flag) when either denominator is zero or the
    contingency table is degenerate.  Swapping the cohorts gives the same
    statistic.
    """
    if not result_a.denominator or not result_b.denominator:
        return None
    a = result_a.numerator
    b = max(result_a.denominator - result_a.numerator, 0)
    c = result_b.numerator
    d = max(result_b.denominator - result_b.numerator, 0)
    chi_square = chi_square_2x2(a, b, c, d)
    if chi_square is None:
        return None
    return SignificanceResult(
        pair=(key_a, key_b),
        chi_square=chi_square,
        p_value=chi_square_p_value(chi_square),
        significant=chi_square > threshold,
    )


def pairwise_significance(
    results: Sequence[tuple[str, MatchResult, bool]],
    *,
    threshold: float = CHI_SQUARE_CRITICAL,
) -> list[SignificanceResult]:
    """Test every unordered pair of ``(key, result, is_overall)`` entries.

    Pairs are only produced when at least two non-Overall cohorts are present;
    a lone Overall cohort (or Overall plus one segment) yields nothing.
    """
    if sum(1 for _key, _result, is_overall in results if not is_overall) < 2:
        return []
    out: list[SignificanceResult] = []
    for i in range(len(results)):
        key_a, result_a, _ = results[i]
        for j in range(i + 1, len(results)):
            key_b, result_b, _ = results[j]
            sig = compare_pair(key_a, result_a, key_b, result_b, threshold=threshold)
            if sig is not None:
                out.append(sig)
    return out


def sentiment_score(ratings: Iterable[float | None]) -> float | None:
    """Net sentiment on a 0-100 scale from 1-5 star ratings.

    ``(advocate% - detractor% + 100) / 2`` where advocates rate 4 or more and
    detractors 2 or less; 3s are neutral.  Non-numeric ratings (None) are
    ignored.  Returns None when no valid rating exists.
    """
    valid = advocates = detractors = 0
    for rating in ratings:
        if rating is None:
            continue
        valid += 1
        if rating >= 4:
            advocates += 1
        elif rating <= 2:
            detractors += 1
    if valid == 0:
        return None
    advocate_pct = advocates / valid * 100
    detractor_pct = detractors / valid * 100
    return (advocate_pct - detractor_pct + 100) / 2
