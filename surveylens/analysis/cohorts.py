"""Resolve cohort specifications into named row subsets.

Four shapes are supported: a legacy segment column with explicit values, a
list of segment predicates (compare or filter semantics), ad-hoc comparison
sets and product buckets.  Filter mode, comparison sets and product buckets
share one AND-across-groups / OR-within-group combinator so the three can
never drift apart.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Hashable, Iterable, Mapping, Sequence
from typing import Any, TypeVar

from surveylens.analysis.denominators import iter_respondents
from surveylens.analysis.models import Cohort
from surveylens.models import (
    OVERALL,
    ComparisonSet,
    Dataset,
    LegacyCohortSpec,
    ProductBucket,
    QuestionType,
    SegmentCohortSpec,
    SegmentDef,
    SegmentMode,
)
from surveylens.utils.values import (
    KeyAllocator,
    any_truthy,
    cell_text,
    normalize_product_value,
    strip_quotes,
)

logger = logging.getLogger(__name__)

Row = Mapping[str, Any]
RowPredicate = Callable[[Row], bool]
T = TypeVar("T")


def _never(row: Row) -> bool:
    return False


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


def column_predicate(dataset: Dataset, column: str, values: Sequence[str]) -> RowPredicate:
    """Row matches ANY of *values* on *column*.

    *column* is either a raw segment column or the id of a consumer question.
    Single-select / scale questions compare their source column; multi-select
    questions look for a truthy marker in the option's header columns.
    """
    targets = {strip_quotes(v) for v in values}
    question = dataset.question(column)

    if question is None:
        return lambda row: cell_text(row, column) in targets

    if question.type in (QuestionType.SINGLE, QuestionType.SCALE):
        source = question.single_source_column
        if source is None:
            logger.debug("Question %s has no source column; segment matches nothing", column)
            return _never
        return lambda row: cell_text(row, source) in targets

    if question.type == QuestionType.MULTI:
        header_groups = []
        for value in values:
            option = question.option_column(value)
            if option is None:
                logger.debug("Option %r not found on question %s", value, column)
                continue
            header_groups.append(option.headers)
        if not header_groups:
            return _never
        return lambda row: any(any_truthy(row, headers) for headers in header_groups)

    logger.debug("Question %s (%s) cannot be used as a segment", column, question.type.value)
    return _never


def combine_groups(
    items: Iterable[T],
    group_key: Callable[[T], Hashable],
    predicate_for: Callable[[Hashable, list[T]], RowPredicate],
) -> RowPredicate | None:
    """AND across groups, OR within a group.

    *items* are bucketed by *group_key* (first-seen order); *predicate_for*
    builds the OR predicate for one bucket.  Returns None when there are no
    items, so callers decide what an empty filter means.
    """
    grouped: dict[Hashable, list[T]] = {}
    for item in items:
        grouped.setdefault(group_key(item), []).append(item)
    if not grouped:
        return None
    predicates = [predicate_for(key, members) for key, members in grouped.items()]
    return lambda row: all(p(row) for p in predicates)


def segment_filter(dataset: Dataset, filters: Iterable[SegmentDef]) -> RowPredicate | None:
    """Filter-mode predicate over segment definitions (Overall entries ignored)."""
    return combine_groups(
        (f for f in filters if not f.is_overall and f.column != OVERALL),
        lambda f: f.column,
        lambda column, members: column_predicate(
            dataset, str(column), [m.value for m in members],
        ),
    )


def _select(rows: Sequence[Row], predicate: RowPredicate | None) -> list[Row]:
    if predicate is None:
        return list(rows)
    return [row for row in rows if predicate(row)]


# ---------------------------------------------------------------------------
# Resolvers
# ---------------------------------------------------------------------------


def resolve_legacy(dataset: Dataset, spec: LegacyCohortSpec) -> list[Cohort]:
    """One cohort per listed value of a single segment column."""
    keys = KeyAllocator()
    cohorts: list[Cohort] = []
    for index, value in enumerate(spec.groups):
        key = keys.allocate(value, index)
        if value == OVERALL:
            cohorts.append(Cohort(key=key, label=value, rows=list(dataset.rows), is_overall=True))
            continue
        predicate = column_predicate(dataset, spec.segment_column, [value])
        cohorts.append(Cohort(key=key, label=value, rows=_select(dataset.rows, predicate)))
    return cohorts


def resolve_segments(dataset: Dataset, spec: SegmentCohortSpec) -> list[Cohort]:
    """Compare mode: one cohort per segment.  Filter mode: one Overall cohort."""
    if not spec.segments:
        return []

    keys = KeyAllocator()
    if spec.mode == SegmentMode.FILTER:
        rows = _select(dataset.rows, segment_filter(dataset, spec.segments))
        logger.debug("Filter mode kept %d of %d rows", len(rows), len(dataset.rows))
        return [Cohort(key=keys.allocate(OVERALL, 0), label=OVERALL, rows=rows, is_overall=True)]

    cohorts: list[Cohort] = []
    for index, segment in enumerate(spec.segments):
        key = keys.allocate(segment.value, index)
        if segment.is_overall:
            cohorts.append(
                Cohort(key=key, label=segment.value, rows=list(dataset.rows), is_overall=True)
            )
            continue
        rows = _select(dataset.rows, column_predicate(dataset, segment.column, [segment.value]))
        if not rows:
            logger.debug("Segment %s=%r matched no rows", segment.column, segment.value)
        cohorts.append(Cohort(key=key, label=segment.value, rows=rows))
    return cohorts


def resolve_comparison_sets(dataset: Dataset, sets: Sequence[ComparisonSet]) -> list[Cohort]:
    """Each set becomes one cohort; a set without filters selects no rows."""
    keys = KeyAllocator()
    cohorts: list[Cohort] = []
    for index, comp_set in enumerate(sets):
        predicate = segment_filter(dataset, comp_set.filters)
        rows = [] if predicate is None else _select(dataset.rows, predicate)
        cohorts.append(
            Cohort(key=keys.allocate(comp_set.label, index), label=comp_set.label, rows=rows)
        )
    return cohorts


def resolve_product_buckets(
    dataset: Dataset,
    buckets: Sequence[ProductBucket],
    product_column: str,
    segments: Sequence[SegmentDef] | None = None,
) -> list[Cohort]:
    """Each bucket becomes the rows whose product value is one of its products.

    *segments* (filter semantics) narrow the rows before bucketing.
    """
    base_rows = _select(dataset.rows, segment_filter(dataset, segments or []))

    def _membership(_column: Hashable, products: list[str]) -> RowPredicate:
        wanted = {normalize_product_value(p) for p in products}
        return lambda row: normalize_product_value(row.get(product_column)) in wanted

    keys = KeyAllocator(prefix="bucket")
    cohorts: list[Cohort] = []
    for index, bucket in enumerate(buckets):
        predicate = combine_groups(bucket.products, lambda _p: product_column, _membership)
        rows = [] if predicate is None else _select(base_rows, predicate)
        cohorts.append(
            Cohort(key=keys.allocate(bucket.label, index), label=bucket.label, rows=rows)
        )
    return cohorts


def resolve_cohorts(dataset: Dataset, spec: LegacyCohortSpec | SegmentCohortSpec) -> list[Cohort]:
    if isinstance(spec, LegacyCohortSpec):
        return resolve_legacy(dataset, spec)
    return resolve_segments(dataset, spec)


def count_respondents(dataset: Dataset, segments: Sequence[SegmentDef] = ()) -> int:
    """Unique respondents matching a filter-mode selection (all when empty)."""
    rows = _select(dataset.rows, segment_filter(dataset, segments))
    return len({unit for unit, _row in iter_respondents(rows, dataset.respondent_id_column)})
