"""Series over comparison sets and product buckets.

Both are thin wrappers: drop the empty definitions, resolve the rest into one
cohort each, and hand the cohorts to the ordinary series builder.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

from surveylens.analysis.cohorts import resolve_comparison_sets, resolve_product_buckets
from surveylens.analysis.metrics import sentiment_score
from surveylens.analysis.models import DEFAULT_OPTIONS, EngineOptions, SeriesResult
from surveylens.analysis.series import build_series_for_cohorts
from surveylens.models import (
    ComparisonSet,
    Dataset,
    ProductBucket,
    QuestionDef,
    SegmentDef,
    SortOrder,
)
from surveylens.utils.values import cell_rating

logger = logging.getLogger(__name__)


def build_series_from_comparison_sets(
    dataset: Dataset,
    question: QuestionDef,
    comparison_sets: Sequence[ComparisonSet],
    sort_order: SortOrder | str = SortOrder.DEFAULT,
    group_label_overrides: Mapping[str, str] | None = None,
    *,
    options: EngineOptions = DEFAULT_OPTIONS,
) -> SeriesResult:
    """Compare ad-hoc cohorts, each an AND/OR filter over segment columns.

    Sets without filters are left out entirely rather than shown as empty
    cohorts.
    """
    valid = [s for s in comparison_sets if s.filters]
    if len(valid) < len(comparison_sets):
        logger.debug("Skipped %d comparison set(s) with no filters", len(comparison_sets) - len(valid))
    cohorts = resolve_comparison_sets(dataset, valid)
    return build_series_for_cohorts(
        dataset, question, cohorts, sort_order, group_label_overrides, options=options,
    )


def _product_column(dataset: Dataset, product_column: str | None) -> str | None:
    column = product_column or dataset.product_column
    if column is None:
        logger.warning("No product column configured; product buckets cannot be resolved")
    return column


def build_series_from_product_buckets(
    dataset: Dataset,
    question: QuestionDef,
    product_buckets: Sequence[ProductBucket],
    sort_order: SortOrder | str = SortOrder.DEFAULT,
    group_label_overrides: Mapping[str, str] | None = None,
    *,
    product_column: str | None = None,
    segments: Sequence[SegmentDef] | None = None,
    options: EngineOptions = DEFAULT_OPTIONS,
) -> SeriesResult:
    """Compare product groupings side by side.

    *product_column* defaults to ``dataset.product_column``.  *segments*
    (filter semantics) narrow the rows before bucketing.  Buckets without
    products are dropped; a single remaining bucket is one cohort with no
    significance pairs.
    """
    column = _product_column(dataset, product_column)
    if column is None:
        return SeriesResult()
    valid = [b for b in product_buckets if b.products]
    cohorts = resolve_product_buckets(dataset, valid, column, segments)
    return build_series_for_cohorts(
        dataset, question, cohorts, sort_order, group_label_overrides, options=options,
    )


def bucket_sentiment_scores(
    dataset: Dataset,
    product_buckets: Sequence[ProductBucket],
    sentiment_column: str,
    *,
    product_column: str | None = None,
) -> dict[str, float | None]:
    """Net sentiment score per bucket key, for ranking products in a heatmap."""
    column = _product_column(dataset, product_column)
    if column is None:
        return {}
    cohorts = resolve_product_buckets(dataset, [b for b in product_buckets if b.products], column)
    return {
        c.key: sentiment_score(cell_rating(row, sentiment_column) for row in c.rows)
        for c in cohorts
    }
