"""Numerators and denominators per (cohort, question, option).

A ``QuestionTally`` is built once per cohort and question: it groups the
cohort's rows into respondents, applies the sentiment gate for follow-up
questions, and pre-computes whatever the question type shares across options
(single-select answer counts, the multi-select "answered" base).  Per-option
lookups are then a single pass at most.

Denominators by question type:

- single / scale: respondents with a non-blank answer
- multi: respondents who ticked any option (or every respondent when the
  question uses the total base)
- gated follow-up: respondents whose rating falls in the gate band
- ranking: no percentage; a mean rank over respondents who ranked the option
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Hashable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from surveylens.analysis.models import (
    DEFAULT_OPTIONS,
    EngineOptions,
    MatchResult,
    RankAccumulator,
)
from surveylens.models import Dataset, QuestionDef, QuestionOptionColumn, QuestionType
from surveylens.utils.values import (
    any_truthy,
    cell_number,
    cell_rating,
    cell_text,
    normalize_value,
    strip_quotes,
)

logger = logging.getLogger(__name__)

Row = Mapping[str, Any]

TEXT_MULTI_PREFIX = "__TEXT_MULTI__"


def iter_respondents(
    rows: Sequence[Row], id_column: str | None,
) -> Iterator[tuple[Hashable, Row]]:
    """Yield ``(respondent, row)`` pairs.

    With an id column, rows with a blank id are skipped and one respondent may
    own several rows (one per product).  Without one, every row is its own
    respondent.
    """
    if id_column is None:
        yield from enumerate(rows)
        return
    for row in rows:
        respondent = cell_text(row, id_column)
        if respondent:
            yield respondent, row


def _group_by_respondent(
    rows: Sequence[Row], id_column: str | None,
) -> dict[Hashable, list[Row]]:
    grouped: dict[Hashable, list[Row]] = {}
    for respondent, row in iter_respondents(rows, id_column):
        grouped.setdefault(respondent, []).append(row)
    return grouped


# ---------------------------------------------------------------------------
# Sentiment gate
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Gate:
    """Rating band a respondent must fall in to be asked a follow-up."""

    column: str
    low: float
    high: float

    def admits(self, row: Row) -> bool:
        rating = cell_rating(row, self.column)
        return rating is not None and self.low <= rating <= self.high


def gate_polarity(label: str) -> str | None:
    """``"positive"``, ``"negative"`` or None for an ungated question label."""
    lowered = label.strip().lower()
    if "(positive)" in lowered or lowered.startswith("advocates:"):
        return "positive"
    if "(negative)" in lowered or lowered.startswith("detractors:"):
        return "negative"
    return None


def find_sentiment_column(dataset: Dataset, question: QuestionDef) -> str | None:
    if question.sentiment_column:
        return question.sentiment_column
    for column in dataset.columns:
        if "(sentiment)" in column.lower():
            return column
    return None


def gate_for(
    dataset: Dataset, question: QuestionDef, options: EngineOptions = DEFAULT_OPTIONS,
) -> Gate | None:
    polarity = gate_polarity(question.label)
    if polarity is None:
        return None
    column = find_sentiment_column(dataset, question)
    if column is None:
        logger.debug("Question %s looks gated but no sentiment column exists", question.qid)
        return None
    low, high = options.positive_band if polarity == "positive" else options.negative_band
    return Gate(column=column, low=low, high=high)


# ---------------------------------------------------------------------------
# Tally
# ---------------------------------------------------------------------------


def _summary_options(value: Any) -> set[str]:
    """Pipe-separated summary cell -> lower-cased option labels."""
    text = normalize_value(value)
    if not text:
        return set()
    return {strip_quotes(part.strip()).lower() for part in text.split("|")}


def _first_rank(rows: Sequence[Row], headers: Sequence[str]) -> float | None:
    for row in rows:
        for header in headers:
            rank = cell_number(row, header)
            if rank is not None and rank > 0:
                return rank
    return None


class QuestionTally:
    """Counts for one question within one cohort's rows."""

    def __init__(
        self,
        dataset: Dataset,
        question: QuestionDef,
        rows: Sequence[Row],
        options: EngineOptions = DEFAULT_OPTIONS,
    ) -> None:
        self.question = question
        self.gate = gate_for(dataset, question, options)
        if self.gate is not None:
            # malformed or missing ratings drop out of both sides here
            rows = [row for row in rows if self.gate.admits(row)]
        self._respondents = _group_by_respondent(rows, dataset.respondent_id_column)

        self._single_counts: Counter[str] = Counter()
        self._single_answered = 0
        self._multi_answered: set[Hashable] = set()

        if question.type in (QuestionType.SINGLE, QuestionType.SCALE):
            self._tally_single()
        elif question.type == QuestionType.MULTI:
            self._tally_multi_answered()

    @property
    def respondents(self) -> int:
        return len(self._respondents)

    @property
    def is_gated(self) -> bool:
        return self.gate is not None

    def _tally_single(self) -> None:
        source = self.question.single_source_column
        if source is None:
            return
        for rows in self._respondents.values():
            for row in rows:
                answer = cell_text(row, source)
                if answer:
                    self._single_counts[answer.lower()] += 1
                    self._single_answered += 1
                    break

    def _tally_multi_answered(self) -> None:
        headers = [h for h in self.question.all_headers if not h.startswith(TEXT_MULTI_PREFIX)]
        summary = self.question.text_summary_column
        for respondent, rows in self._respondents.items():
            for row in rows:
                if any_truthy(row, headers) or (summary and _summary_options(row.get(summary))):
                    self._multi_answered.add(respondent)
                    break

    def _multi_matches(self, option: QuestionOptionColumn) -> int:
        summary = self.question.text_summary_column
        if summary and option.header.startswith(TEXT_MULTI_PREFIX):
            wanted = normalize_value(option.option_label).lower()
            return sum(
                1
                for rows in self._respondents.values()
                if any(wanted in _summary_options(row.get(summary)) for row in rows)
            )
        headers = option.headers
        return sum(
            1 for rows in self._respondents.values() if any(any_truthy(row, headers) for row in rows)
        )

    def denominator(self) -> int:
        """The base shared by every option of the question in this cohort."""
        if self.is_gated:
            return self.respondents
        if self.question.type in (QuestionType.SINGLE, QuestionType.SCALE):
            return self._single_answered
        if self.question.type == QuestionType.MULTI:
            if self.question.use_total_base:
                return self.respondents
            return len(self._multi_answered)
        return self.respondents

    def match(self, option: QuestionOptionColumn) -> MatchResult:
        qtype = self.question.type
        if qtype in (QuestionType.SINGLE, QuestionType.SCALE):
            numerator = self._single_counts.get(normalize_value(option.option_label).lower(), 0)
        elif qtype == QuestionType.MULTI:
            numerator = self._multi_matches(option)
        elif qtype == QuestionType.RANKING:
            return self.rank(option).as_match()
        else:
            return MatchResult()
        return MatchResult(numerator=numerator, denominator=self.denominator())

    def rank(self, option: QuestionOptionColumn) -> RankAccumulator:
        acc = RankAccumulator(respondents=self.respondents)
        headers = option.headers
        for rows in self._respondents.values():
            rank = _first_rank(rows, headers)
            if rank is not None:
                acc.add(rank)
        return acc


def compute_match(
    dataset: Dataset,
    question: QuestionDef,
    rows: Sequence[Row],
    option: QuestionOptionColumn,
    options: EngineOptions = DEFAULT_OPTIONS,
) -> MatchResult:
    """One-off numerator/denominator for a single option.

    Builders computing every option should reuse a ``QuestionTally`` instead.
    """
    return QuestionTally(dataset, question, rows, options).match(option)
