"""Tests for surveylens.analysis.cohorts — resolving cohort specs into rows."""

from __future__ import annotations

from typing import Any

from helpers import make_dataset, multi_question, single_question

from surveylens.analysis.cohorts import (
    column_predicate,
    combine_groups,
    count_respondents,
    resolve_comparison_sets,
    resolve_cohorts,
    resolve_product_buckets,
)
from surveylens.models import (
    ComparisonSet,
    Dataset,
    LegacyCohortSpec,
    ProductBucket,
    SegmentCohortSpec,
    SegmentDef,
    SegmentMode,
)


def _people() -> Dataset:
    rows: list[dict[str, Any]] = [
        {"Respondent ID": "1", "Country": "US", "Age": "18-24", "q_pets: Dog": 1, "q_pets: Cat": 0, "Plan": "Pro"},
        {"Respondent ID": "2", "Country": "CA", "Age": "18-24", "q_pets: Dog": 0, "q_pets: Cat": 1, "Plan": "Free"},
        {"Respondent ID": "3", "Country": "US", "Age": "25-34", "q_pets: Dog": 1, "q_pets: Cat": 1, "Plan": "Pro"},
        {"Respondent ID": "4", "Country": "UK", "Age": "18-24", "q_pets: Dog": 0, "q_pets: Cat": 0, "Plan": '"Free"'},
        {"Respondent ID": "5", "Country": "CA", "Age": "35-44", "q_pets: Dog": "yes", "q_pets: Cat": "", "Plan": ""},
    ]
    questions = [
        multi_question("q_pets", "Which pets do you own?", ["Dog", "Cat"]),
        single_question("q_plan", "Which plan?", "Plan", ["Pro", "Free"]),
    ]
    return make_dataset(rows, questions, segment_columns=["Country", "Age"])


def _ids(rows: list[Any]) -> list[str]:
    return [r["Respondent ID"] for r in rows]


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


class TestColumnPredicate:
    def test_raw_column(self) -> None:
        ds = _people()
        pred = column_predicate(ds, "Country", ["US"])
        assert _ids([r for r in ds.rows if pred(r)]) == ["1", "3"]

    def test_any_of_values(self) -> None:
        ds = _people()
        pred = column_predicate(ds, "Country", ["US", "CA"])
        assert _ids([r for r in ds.rows if pred(r)]) == ["1", "2", "3", "5"]

    def test_single_select_question_uses_source_column(self) -> None:
        """Quoted cells compare equal to their unquoted value."""
        ds = _people()
        pred = column_predicate(ds, "q_plan", ["Free"])
        assert _ids([r for r in ds.rows if pred(r)]) == ["2", "4"]

    def test_multi_select_question_uses_truthy_markers(self) -> None:
        ds = _people()
        pred = column_predicate(ds, "q_pets", ["Dog"])
        assert _ids([r for r in ds.rows if pred(r)]) == ["1", "3", "5"]

    def test_multi_select_unknown_option_matches_nothing(self) -> None:
        ds = _people()
        pred = column_predicate(ds, "q_pets", ["Hamster"])
        assert not any(pred(r) for r in ds.rows)

    def test_missing_column_matches_nothing(self) -> None:
        ds = _people()
        pred = column_predicate(ds, "Region", ["North"])
        assert not any(pred(r) for r in ds.rows)


class TestCombineGroups:
    def test_empty_returns_none(self) -> None:
        assert combine_groups([], lambda x: x, lambda k, m: lambda row: True) is None

    def test_and_across_or_within(self) -> None:
        items = [("a", 1), ("a", 2), ("b", 3)]
        pred = combine_groups(
            items,
            lambda item: item[0],
            lambda key, members: lambda row: row[key] in {m[1] for m in members},
        )
        assert pred is not None
        assert pred({"a": 2, "b": 3})
        assert not pred({"a": 2, "b": 4})
        assert not pred({"a": 5, "b": 3})


# ---------------------------------------------------------------------------
# Segment specs
# ---------------------------------------------------------------------------


class TestLegacyCohorts:
    def test_one_cohort_per_value(self) -> None:
        ds = _people()
        cohorts = resolve_cohorts(ds, LegacyCohortSpec(segment_column="Country", groups=["US", "CA"]))
        assert [c.key for c in cohorts] == ["us", "ca"]
        assert _ids(cohorts[0].rows) == ["1", "3"]
        assert _ids(cohorts[1].rows) == ["2", "5"]

    def test_overall_value_takes_every_row(self) -> None:
        ds = _people()
        cohorts = resolve_cohorts(ds, LegacyCohortSpec(segment_column="Country", groups=["Overall", "US"]))
        assert cohorts[0].is_overall
        assert len(cohorts[0].rows) == 5

    def test_no_implicit_overall(self) -> None:
        ds = _people()
        cohorts = resolve_cohorts(ds, LegacyCohortSpec(segment_column="Country", groups=["UK"]))
        assert [c.label for c in cohorts] == ["UK"]

    def test_missing_value_is_empty_cohort(self) -> None:
        ds = _people()
        cohorts = resolve_cohorts(ds, LegacyCohortSpec(segment_column="Country", groups=["FR"]))
        assert cohorts[0].rows == []


class TestSegmentCohorts:
    def test_compare_mode(self) -> None:
        ds = _people()
        spec = SegmentCohortSpec(segments=[
            SegmentDef(column="Overall", value="Overall"),
            SegmentDef(column="Country", value="US"),
            SegmentDef(column="Age", value="18-24"),
        ])
        cohorts = resolve_cohorts(ds, spec)
        assert [c.key for c in cohorts] == ["overall", "us", "18_24"]
        assert [c.is_overall for c in cohorts] == [True, False, False]
        assert _ids(cohorts[2].rows) == ["1", "2", "4"]

    def test_filter_mode_collapses_to_overall(self) -> None:
        ds = _people()
        spec = SegmentCohortSpec(
            segments=[
                SegmentDef(column="Country", value="US"),
                SegmentDef(column="Country", value="CA"),
                SegmentDef(column="Age", value="18-24"),
            ],
            mode=SegmentMode.FILTER,
        )
        cohorts = resolve_cohorts(ds, spec)
        assert len(cohorts) == 1
        assert cohorts[0].label == "Overall"
        assert cohorts[0].is_overall
        assert _ids(cohorts[0].rows) == ["1", "2"]

    def test_filter_mode_ignores_overall_entries(self) -> None:
        ds = _people()
        spec = SegmentCohortSpec(
            segments=[SegmentDef(column="Overall", value="Overall")],
            mode=SegmentMode.FILTER,
        )
        assert len(resolve_cohorts(ds, spec)[0].rows) == 5

    def test_no_segments(self) -> None:
        assert resolve_cohorts(_people(), SegmentCohortSpec(segments=[])) == []

    def test_duplicate_labels_get_unique_keys(self) -> None:
        ds = _people()
        spec = SegmentCohortSpec(segments=[
            SegmentDef(column="Country", value="US"),
            SegmentDef(column="Plan", value="US"),
        ])
        assert [c.key for c in resolve_cohorts(ds, spec)] == ["us", "us_1"]


# ---------------------------------------------------------------------------
# Comparison sets and product buckets
# ---------------------------------------------------------------------------


class TestComparisonSets:
    def test_and_across_columns_or_within(self) -> None:
        """Country in {US, CA} AND Age == 18-24."""
        ds = _people()
        comp = ComparisonSet(
            id="s1",
            label="Young North Americans",
            filters=[
                SegmentDef(column="Country", value="US"),
                SegmentDef(column="Country", value="CA"),
                SegmentDef(column="Age", value="18-24"),
            ],
        )
        (cohort,) = resolve_comparison_sets(ds, [comp])
        assert cohort.key == "young_north_americans"
        assert _ids(cohort.rows) == ["1", "2"]

    def test_set_without_filters_selects_nothing(self) -> None:
        ds = _people()
        (cohort,) = resolve_comparison_sets(ds, [ComparisonSet(id="e", label="Empty")])
        assert cohort.rows == []


class TestProductBuckets:
    def test_membership(self, product_dataset: Dataset) -> None:
        buckets = [
            ProductBucket(id="b1", label="Alpha + Beta", products=["Alpha", "Beta"]),
            ProductBucket(id="b2", label="Gamma", products=['"Gamma"']),
        ]
        cohorts = resolve_product_buckets(product_dataset, buckets, "Product")
        assert [c.key for c in cohorts] == ["alpha_beta", "gamma"]
        assert len(cohorts[0].rows) == 4
        assert len(cohorts[1].rows) == 2

    def test_blank_product_is_unspecified(self, product_dataset: Dataset) -> None:
        buckets = [ProductBucket(id="u", label="Unknown", products=["Unspecified"])]
        (cohort,) = resolve_product_buckets(product_dataset, buckets, "Product")
        assert _ids(cohort.rows) == ["r4"]

    def test_segments_narrow_rows(self, product_dataset: Dataset) -> None:
        buckets = [ProductBucket(id="a", label="Alpha", products=["Alpha"])]
        (cohort,) = resolve_product_buckets(
            product_dataset, buckets, "Product", [SegmentDef(column="Country", value="US")],
        )
        assert _ids(cohort.rows) == ["r1"]

    def test_blank_label_uses_bucket_prefix(self, product_dataset: Dataset) -> None:
        buckets = [ProductBucket(id="a", label="", products=["Alpha"])]
        (cohort,) = resolve_product_buckets(product_dataset, buckets, "Product")
        assert cohort.key == "bucket_1"


# ---------------------------------------------------------------------------
# count_respondents
# ---------------------------------------------------------------------------


class TestCountRespondents:
    def test_all(self) -> None:
        assert count_respondents(_people()) == 5

    def test_filtered(self) -> None:
        segments = [SegmentDef(column="Age", value="18-24")]
        assert count_respondents(_people(), segments) == 3

    def test_product_rows_counted_once(self, product_dataset: Dataset) -> None:
        assert count_respondents(product_dataset) == 4

    def test_without_id_column_rows_are_respondents(self) -> None:
        ds = make_dataset([{"Country": "US"}, {"Country": "US"}], [])
        assert ds.respondent_id_column is None
        assert count_respondents(ds) == 2
