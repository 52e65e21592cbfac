"""Build option-by-cohort series for one question.

The builder resolves cohorts, tallies each cohort once, then walks the
question's options in column order: one value per cohort (percent, or mean
rank for ranking questions), pairwise chi-square tests, a representative
value and the top-N default flag.  Everything is recomputed on every call;
memoising is the caller's job (see ``surveylens.analysis.cache``).
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from surveylens.analysis.cohorts import resolve_cohorts
from surveylens.analysis.denominators import QuestionTally
from surveylens.analysis.metrics import pairwise_significance
from surveylens.analysis.models import (
    DEFAULT_OPTIONS,
    Cohort,
    CohortSummary,
    EngineOptions,
    GroupSeriesMeta,
    MatchResult,
    SeriesDataPoint,
    SeriesResult,
)
from surveylens.analysis.ordering import mark_top_n, order_points, representative_value
from surveylens.models import (
    Dataset,
    LegacyCohortSpec,
    QuestionDef,
    QuestionType,
    SegmentCohortSpec,
    SortOrder,
)
from surveylens.utils.values import normalize_value

logger = logging.getLogger(__name__)

CohortSpecInput = LegacyCohortSpec | SegmentCohortSpec | Mapping[str, Any]


def parse_cohort_spec(spec: CohortSpecInput) -> LegacyCohortSpec | SegmentCohortSpec:
    """Accept a spec model or its JSON-shaped mapping (``segments`` wins)."""
    if isinstance(spec, (LegacyCohortSpec, SegmentCohortSpec)):
        return spec
    if "segments" in spec:
        return SegmentCohortSpec.model_validate(spec)
    return LegacyCohortSpec.model_validate(spec)


def build_series_for_cohorts(
    dataset: Dataset,
    question: QuestionDef,
    cohorts: Sequence[Cohort],
    sort_order: SortOrder | str = SortOrder.DEFAULT,
    group_label_overrides: Mapping[str, str] | None = None,
    *,
    options: EngineOptions = DEFAULT_OPTIONS,
) -> SeriesResult:
    """Run the series computation over already-resolved cohorts."""
    if not cohorts or all(not c.rows for c in cohorts):
        logger.debug("No rows in any cohort for %s; returning empty series", question.qid)
        return SeriesResult()

    overrides = group_label_overrides or {}
    labels = {c.key: overrides.get(c.key, c.label) for c in cohorts}
    overall_key = next((c.key for c in cohorts if c.is_overall), None)
    is_ranking = question.type == QuestionType.RANKING

    tallies = [QuestionTally(dataset, question, c.rows, options) for c in cohorts]

    points: list[SeriesDataPoint] = []
    for column in question.columns:
        label = normalize_value(column.option_label)
        if not label:
            continue
        point = SeriesDataPoint(option=label, option_display=label)
        entries: list[tuple[str, MatchResult, bool]] = []

        for cohort, tally in zip(cohorts, tallies):
            if is_ranking:
                acc = tally.rank(column)
                value = acc.mean_rank
                match = acc.as_match()
                count, denominator = acc.count, acc.respondents
            else:
                match = tally.match(column)
                value = match.percent
                count, denominator = match.numerator, match.denominator

            point.values[cohort.key] = value
            point.summaries.append(
                CohortSummary(
                    key=cohort.key,
                    label=labels[cohort.key],
                    count=count,
                    denominator=denominator,
                    value=value,
                )
            )
            entries.append((cohort.key, match, cohort.is_overall))

        point.significance = pairwise_significance(entries, threshold=options.threshold)
        point.representative = representative_value(point.values, overall_key)
        points.append(point)

    mark_top_n(points, options.top_n, select_all=is_ranking)
    ordered = order_points(points, question, SortOrder(sort_order))

    logger.debug(
        "Series %s: %d options x %d cohorts", question.qid, len(ordered), len(cohorts),
    )
    return SeriesResult(
        data=ordered,
        groups=[GroupSeriesMeta(key=c.key, label=labels[c.key]) for c in cohorts],
    )


def build_series(
    dataset: Dataset,
    question: QuestionDef,
    cohort_spec: CohortSpecInput,
    sort_order: SortOrder | str = SortOrder.DEFAULT,
    group_label_overrides: Mapping[str, str] | None = None,
    *,
    options: EngineOptions = DEFAULT_OPTIONS,
) -> SeriesResult:
    """Percentages (or mean ranks) per option per cohort, with significance.

    *cohort_spec* is either a legacy ``{segment_column, groups}`` spec or a
    ``{segments, mode}`` spec.  *group_label_overrides* maps cohort keys to
    display labels; keys themselves are always derived from the original
    labels.  Never raises for sparse or malformed cell data.
    """
    spec = parse_cohort_spec(cohort_spec)
    cohorts = resolve_cohorts(dataset, spec)
    return build_series_for_cohorts(
        dataset, question, cohorts, sort_order, group_label_overrides, options=options,
    )
