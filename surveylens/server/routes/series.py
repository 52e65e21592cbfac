"""Series API endpoints — the three engine entry points over HTTP.

- ``POST /api/series`` — segment cohorts (legacy column + values, or a
  segment list in compare / filter mode)
- ``POST /api/series/comparison-sets`` — ad-hoc AND/OR cohorts
- ``POST /api/series/product-buckets`` — product groupings

Every request carries the full dataset; the server keeps no state beyond an
LRU memo of results keyed on the canonical request body.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from surveylens.analysis.aggregators import (
    build_series_from_comparison_sets,
    build_series_from_product_buckets,
)
from surveylens.analysis.cache import SeriesCache, series_cache_key
from surveylens.analysis.models import SeriesResult
from surveylens.analysis.series import build_series
from surveylens.config import SurveylensSettings
from surveylens.models import (
    ComparisonSet,
    Dataset,
    LegacyCohortSpec,
    ProductBucket,
    QuestionDef,
    SegmentCohortSpec,
    SegmentDef,
    SegmentMode,
    SortOrder,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class _Request(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    dataset: Dataset
    question_id: str
    sort_order: SortOrder = SortOrder.DEFAULT
    group_label_overrides: dict[str, str] = Field(default_factory=dict)


class SeriesRequest(_Request):
    """Either ``segments`` (current) or ``segment_column`` + ``groups`` (legacy)."""

    segments: list[SegmentDef] | None = None
    mode: SegmentMode = SegmentMode.COMPARE
    segment_column: str | None = None
    groups: list[str] = Field(default_factory=list)

    def cohort_spec(self) -> LegacyCohortSpec | SegmentCohortSpec:
        if self.segments is not None or self.segment_column is None:
            return SegmentCohortSpec(segments=self.segments or [], mode=self.mode)
        return LegacyCohortSpec(segment_column=self.segment_column, groups=self.groups)


class ComparisonSetsRequest(_Request):
    comparison_sets: list[ComparisonSet] = Field(default_factory=list)


class ProductBucketsRequest(_Request):
    product_buckets: list[ProductBucket] = Field(default_factory=list)
    product_column: str | None = None
    segments: list[SegmentDef] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class SignificanceOut(BaseModel):
    pair: list[str]
    chi_square: float
    p_value: float
    significant: bool


class CohortSummaryOut(BaseModel):
    key: str
    label: str
    count: int
    denominator: int
    value: float | None


class SeriesPointOut(BaseModel):
    """One answer option; ``values`` holds one entry per cohort key."""

    option: str
    option_display: str
    values: dict[str, float | None]
    significance: list[SignificanceOut]
    summaries: list[CohortSummaryOut]
    is_top_n_default: bool
    representative: float | None


class GroupOut(BaseModel):
    key: str
    label: str


class SeriesResponse(BaseModel):
    data: list[SeriesPointOut]
    groups: list[GroupOut]
    records: list[dict[str, Any]] = Field(default_factory=list)  # one field per cohort key
    cached: bool = False


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _question(dataset: Dataset, qid: str) -> QuestionDef:
    question = dataset.question(qid)
    if question is None:
        raise HTTPException(status_code=404, detail=f"Question {qid!r} not found")
    return question


def _to_response(result: SeriesResult, *, cached: bool) -> SeriesResponse:
    return SeriesResponse(
        data=[
            SeriesPointOut(
                option=p.option,
                option_display=p.option_display,
                values=dict(p.values),
                significance=[
                    SignificanceOut(
                        pair=list(s.pair),
                        chi_square=s.chi_square,
                        p_value=s.p_value,
                        significant=s.significant,
                    )
                    for s in p.significance
                ],
                summaries=[
                    CohortSummaryOut(
                        key=s.key,
                        label=s.label,
                        count=s.count,
                        denominator=s.denominator,
                        value=s.value,
                    )
                    for s in p.summaries
                ],
                is_top_n_default=p.is_top_n_default,
                representative=p.representative,
            )
            for p in result.data
        ],
        groups=[GroupOut(key=g.key, label=g.label) for g in result.groups],
        records=[p.as_record() for p in result.data],
        cached=cached,
    )


def _cache(request: Request) -> SeriesCache:
    return request.app.state.series_cache


def _settings(request: Request) -> SurveylensSettings:
    return request.app.state.settings


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/series")
def series(body: SeriesRequest, request: Request) -> SeriesResponse:
    """Option-by-cohort series for segment cohorts."""
    question = _question(body.dataset, body.question_id)
    cache = _cache(request)
    key = series_cache_key("segments", body)
    hit = cache.get(key)
    if hit is not None:
        logger.debug("Series cache hit for %s", body.question_id)
        return _to_response(hit, cached=True)

    result = build_series(
        body.dataset,
        question,
        body.cohort_spec(),
        body.sort_order,
        body.group_label_overrides,
        options=_settings(request).engine_options(),
    )
    cache.put(key, result)
    return _to_response(result, cached=False)


@router.post("/series/comparison-sets")
def series_from_comparison_sets(
    body: ComparisonSetsRequest, request: Request,
) -> SeriesResponse:
    """Option-by-cohort series where each comparison set is one cohort."""
    question = _question(body.dataset, body.question_id)
    cache = _cache(request)
    key = series_cache_key("comparison-sets", body)
    hit = cache.get(key)
    if hit is not None:
        logger.debug("Series cache hit for %s", body.question_id)
        return _to_response(hit, cached=True)

    result = build_series_from_comparison_sets(
        body.dataset,
        question,
        body.comparison_sets,
        body.sort_order,
        body.group_label_overrides,
        options=_settings(request).engine_options(),
    )
    cache.put(key, result)
    return _to_response(result, cached=False)


@router.post("/series/product-buckets")
def series_from_product_buckets(
    body: ProductBucketsRequest, request: Request,
) -> SeriesResponse:
    """Option-by-cohort series where each product bucket is one cohort."""
    question = _question(body.dataset, body.question_id)
    cache = _cache(request)
    key = series_cache_key("product-buckets", body)
    hit = cache.get(key)
    if hit is not None:
        logger.debug("Series cache hit for %s", body.question_id)
        return _to_response(hit, cached=True)

    result = build_series_from_product_buckets(
        body.dataset,
        question,
        body.product_buckets,
        body.sort_order,
        body.group_label_overrides,
        product_column=body.product_column,
        segments=body.segments,
        options=_settings(request).engine_options(),
    )
    cache.put(key, result)
    return _to_response(result, cached=False)
