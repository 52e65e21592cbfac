"""Data structures for series computation.

These are plain dataclasses (not Pydantic): they're ephemeral, recomputed on
every call, and never persisted.  The HTTP layer converts them into response
models at the edge.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

CHI_SQUARE_CRITICAL = 3.841  # p < 0.05, df = 1
DEFAULT_TOP_N = 8


@dataclass(frozen=True)
class EngineOptions:
    """Tunable constants for one engine call."""

    threshold: float = CHI_SQUARE_CRITICAL
    top_n: int = DEFAULT_TOP_N
    positive_band: tuple[float, float] = (4.0, 5.0)
    negative_band: tuple[float, float] = (1.0, 3.0)


DEFAULT_OPTIONS = EngineOptions()


@dataclass
class Cohort:
    """A named subset of respondent rows compared side by side."""

    key: str
    label: str
    rows: list[Mapping[str, Any]] = field(default_factory=list)
    is_overall: bool = False


@dataclass
class MatchResult:
    """Matching and eligible respondents for one option in one cohort."""

    numerator: int = 0
    denominator: int = 0

    @property
    def percent(self) -> float | None:
        if not self.denominator:
            return None
        # 10 d.p. squashes float noise without visible rounding
        return round(self.numerator / self.denominator * 100, 10)


@dataclass
class RankAccumulator:
    """Running mean rank for one ranking option in one cohort."""

    rank_sum: float = 0.0
    count: int = 0  # respondents who ranked the option
    respondents: int = 0  # respondents in the cohort

    def add(self, rank: float) -> None:
        self.rank_sum += rank
        self.count += 1

    @property
    def mean_rank(self) -> float | None:
        if not self.count:
            return None
        return self.rank_sum / self.count

    def as_match(self) -> MatchResult:
        """Share of respondents who ranked the option, for significance tests."""
        return MatchResult(numerator=self.count, denominator=self.respondents)


@dataclass
class SignificanceResult:
    pair: tuple[str, str]  # cohort keys
    chi_square: float
    p_value: float
    significant: bool


@dataclass
class CohortSummary:
    """Per-cohort counts behind one option's value (export and tooltips)."""

    key: str
    label: str
    count: int
    denominator: int
    value: float | None


@dataclass
class GroupSeriesMeta:
    key: str
    label: str


@dataclass
class SeriesDataPoint:
    """One answer option across every cohort of a series."""

    option: str
    option_display: str
    values: dict[str, float | None] = field(default_factory=dict)
    significance: list[SignificanceResult] = field(default_factory=list)
    summaries: list[CohortSummary] = field(default_factory=list)
    is_top_n_default: bool = False
    representative: float | None = None

    @property
    def any_significant(self) -> bool:
        return any(s.significant for s in self.significance)

    def as_record(self) -> dict[str, Any]:
        """Flatten to the browser shape: one field per cohort key."""
        record: dict[str, Any] = {
            "option": self.option,
            "optionDisplay": self.option_display,
        }
        record.update(self.values)
        record["significance"] = [
            {"pair": list(s.pair), "chiSquare": s.chi_square, "significant": s.significant}
            for s in self.significance
        ]
        record["isTopNDefault"] = self.is_top_n_default
        return record


@dataclass
class SeriesResult:
    data: list[SeriesDataPoint] = field(default_factory=list)
    groups: list[GroupSeriesMeta] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.groups
