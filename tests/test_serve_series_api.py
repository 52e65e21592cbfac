"""Tests for the series API endpoints."""

from __future__ import annotations

from typing import Any

import pytest
from fastapi.testclient import TestClient

from surveylens import __version__
from surveylens.config import load_settings
from surveylens.models import Dataset
from surveylens.server.app import create_app


@pytest.fixture
def client() -> TestClient:
    return TestClient(create_app(settings=load_settings(cache_size=8)))


def _payload(dataset: Dataset, **extra: Any) -> dict[str, Any]:
    return {"dataset": dataset.model_dump(mode="json", by_alias=True), **extra}


def _point(body: dict[str, Any], option: str) -> dict[str, Any]:
    return next(p for p in body["data"] if p["option"] == option)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class TestHealth:
    def test_ok(self, client: TestClient) -> None:
        resp = client.get("/api/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["version"] == __version__
        assert body["cache"] == {"entries": 0, "hits": 0, "misses": 0}

    def test_cache_counters(self, client: TestClient, gender_dataset: Dataset) -> None:
        payload = _payload(
            gender_dataset, questionId="q_color", segments=[{"column": "Overall", "value": "Overall"}],
        )
        client.post("/api/series", json=payload)
        client.post("/api/series", json=payload)
        assert client.get("/api/health").json()["cache"] == {"entries": 1, "hits": 1, "misses": 1}


# ---------------------------------------------------------------------------
# POST /api/series
# ---------------------------------------------------------------------------


class TestSeriesEndpoint:
    def test_segments(self, client: TestClient, gender_dataset: Dataset) -> None:
        resp = client.post("/api/series", json=_payload(
            gender_dataset,
            questionId="q_color",
            segments=[{"column": "Gender", "value": "Female"}, {"column": "Gender", "value": "Male"}],
        ))
        assert resp.status_code == 200
        body = resp.json()
        assert body["groups"] == [{"key": "female", "label": "Female"}, {"key": "male", "label": "Male"}]
        red = _point(body, "Red")
        assert red["values"] == {"female": pytest.approx(50.0), "male": pytest.approx(25.0)}
        assert red["significance"][0]["significant"] is True
        assert red["significance"][0]["chi_square"] == pytest.approx(6.25)
        assert body["cached"] is False

    def test_legacy_fields(self, client: TestClient, gender_dataset: Dataset) -> None:
        resp = client.post("/api/series", json=_payload(
            gender_dataset, questionId="q_color", segmentColumn="Gender", groups=["Male"],
        ))
        assert resp.status_code == 200
        assert [g["key"] for g in resp.json()["groups"]] == ["male"]

    def test_filter_mode(self, client: TestClient, gender_dataset: Dataset) -> None:
        resp = client.post("/api/series", json=_payload(
            gender_dataset,
            questionId="q_color",
            segments=[{"column": "Gender", "value": "Female"}],
            mode="filter",
        ))
        body = resp.json()
        assert [g["key"] for g in body["groups"]] == ["overall"]
        assert _point(body, "Red")["values"]["overall"] == pytest.approx(50.0)

    def test_repeat_request_is_cached(self, client: TestClient, gender_dataset: Dataset) -> None:
        payload = _payload(
            gender_dataset, questionId="q_color", segments=[{"column": "Overall", "value": "Overall"}],
        )
        first = client.post("/api/series", json=payload).json()
        second = client.post("/api/series", json=payload).json()
        assert first["cached"] is False
        assert second["cached"] is True
        assert first["data"] == second["data"]

    def test_sort_order(self, client: TestClient, gender_dataset: Dataset) -> None:
        resp = client.post("/api/series", json=_payload(
            gender_dataset,
            questionId="q_color",
            segments=[{"column": "Overall", "value": "Overall"}],
            sortOrder="descending",
        ))
        assert [p["option"] for p in resp.json()["data"]] == ["Blue", "Red"]

    def test_unknown_question_404(self, client: TestClient, gender_dataset: Dataset) -> None:
        resp = client.post("/api/series", json=_payload(gender_dataset, questionId="nope"))
        assert resp.status_code == 404

    def test_invalid_body_422(self, client: TestClient) -> None:
        resp = client.post("/api/series", json={"questionId": "q_color"})
        assert resp.status_code == 422

    def test_invalid_sort_order_422(self, client: TestClient, gender_dataset: Dataset) -> None:
        resp = client.post("/api/series", json=_payload(
            gender_dataset, questionId="q_color", sortOrder="sideways",
        ))
        assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Comparison sets and product buckets
# ---------------------------------------------------------------------------


class TestComparisonSetsEndpoint:
    def test_empty_set_dropped(self, client: TestClient, gender_dataset: Dataset) -> None:
        resp = client.post("/api/series/comparison-sets", json=_payload(
            gender_dataset,
            questionId="q_color",
            comparisonSets=[
                {"id": "w", "label": "Women", "filters": [{"column": "Gender", "value": "Female"}]},
                {"id": "e", "label": "Empty", "filters": []},
            ],
        ))
        assert resp.status_code == 200
        assert [g["key"] for g in resp.json()["groups"]] == ["women"]

    def test_label_overrides(self, client: TestClient, gender_dataset: Dataset) -> None:
        resp = client.post("/api/series/comparison-sets", json=_payload(
            gender_dataset,
            questionId="q_color",
            comparisonSets=[
                {"id": "w", "label": "Women", "filters": [{"column": "Gender", "value": "Female"}]},
            ],
            groupLabelOverrides={"women": "Female respondents"},
        ))
        assert resp.json()["groups"] == [{"key": "women", "label": "Female respondents"}]


class TestProductBucketsEndpoint:
    def test_buckets(self, client: TestClient, product_dataset: Dataset) -> None:
        resp = client.post("/api/series/product-buckets", json=_payload(
            product_dataset,
            questionId="q_buy",
            productBuckets=[
                {"id": "1", "label": "Alpha", "products": ["Alpha"]},
                {"id": "2", "label": "Beta", "products": ["Beta"]},
            ],
        ))
        assert resp.status_code == 200
        body = resp.json()
        assert _point(body, "Yes")["values"] == {"alpha": pytest.approx(100.0), "beta": pytest.approx(0.0)}

    def test_no_product_column_is_empty(self, client: TestClient, gender_dataset: Dataset) -> None:
        resp = client.post("/api/series/product-buckets", json=_payload(
            gender_dataset,
            questionId="q_color",
            productBuckets=[{"id": "1", "label": "Alpha", "products": ["Alpha"]}],
        ))
        assert resp.status_code == 200
        assert resp.json()["data"] == []
        assert resp.json()["groups"] == []


class TestRecords:
    def test_flattened_record_per_option(self, client: TestClient, gender_dataset: Dataset) -> None:
        resp = client.post("/api/series", json=_payload(
            gender_dataset,
            questionId="q_color",
            segments=[{"column": "Gender", "value": "Female"}, {"column": "Gender", "value": "Male"}],
        ))
        red = next(r for r in resp.json()["records"] if r["option"] == "Red")
        assert red["female"] == pytest.approx(50.0)
        assert red["isTopNDefault"] is True
        assert red["significance"][0]["chiSquare"] == pytest.approx(6.25)
