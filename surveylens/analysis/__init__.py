"""Response aggregation and cohort comparison engine."""

from surveylens.analysis.aggregators import (
    bucket_sentiment_scores,
    build_series_from_comparison_sets,
    build_series_from_product_buckets,
)
from surveylens.analysis.cache import SeriesCache, series_cache_key
from surveylens.analysis.cohorts import count_respondents, resolve_cohorts
from surveylens.analysis.models import (
    EngineOptions,
    GroupSeriesMeta,
    SeriesDataPoint,
    SeriesResult,
    SignificanceResult,
)
from surveylens.analysis.series import build_series
from surveylens.utils.values import derive_key

__all__ = [
    "EngineOptions",
    "GroupSeriesMeta",
    "SeriesCache",
    "SeriesDataPoint",
    "SeriesResult",
    "SignificanceResult",
    "bucket_sentiment_scores",
    "build_series",
    "build_series_from_comparison_sets",
    "build_series_from_product_buckets",
    "count_respondents",
    "derive_key",
    "resolve_cohorts",
    "series_cache_key",
]
