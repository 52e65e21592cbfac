"""Shared test fixtures for surveylens tests."""

from __future__ import annotations

from typing import Any

import pytest
from helpers import make_dataset, multi_question, single_question

from surveylens.models import Dataset, QuestionDef


# ---------------------------------------------------------------------------
# Scenario A: 60 Female (30 Red), 40 Male (10 Red)
# ---------------------------------------------------------------------------


@pytest.fixture
def color_question() -> QuestionDef:
    return single_question("q_color", "Favourite color", "Color", ["Red", "Blue"])


@pytest.fixture
def gender_dataset(color_question: QuestionDef) -> Dataset:
    rows: list[dict[str, Any]] = []
    for i in range(60):
        rows.append({
            "Respondent ID": f"f{i}",
            "Gender": "Female",
            "Color": "Red" if i < 30 else "Blue",
        })
    for i in range(40):
        rows.append({
            "Respondent ID": f"m{i}",
            "Gender": "Male",
            "Color": "Red" if i < 10 else "Blue",
        })
    return make_dataset(rows, [color_question], segment_columns=["Gender"])


# ---------------------------------------------------------------------------
# Scenario B: positive follow-up gated on a 1-5 rating
# ---------------------------------------------------------------------------


@pytest.fixture
def gated_question() -> QuestionDef:
    return multi_question("q_why", "What did you like? (positive)", ["Comfort", "Price"])


@pytest.fixture
def gated_dataset(gated_question: QuestionDef) -> Dataset:
    """20 respondents; 8 rate 4-5 and 5 of those pick Comfort.

    Two low raters also tick Comfort and must not count.
    """
    rows: list[dict[str, Any]] = []
    for i in range(20):
        in_band = i < 8
        rating = (4 if i % 2 else 5) if in_band else (1 + i % 3)
        comfort = (in_band and i < 5) or i in (10, 11)
        rows.append({
            "Respondent ID": f"r{i}",
            "Overall rating (sentiment)": rating,
            "q_why: Comfort": 1 if comfort else 0,
            "q_why: Price": 1 if in_band and i >= 5 else 0,
        })
    return make_dataset(rows, [gated_question])


# ---------------------------------------------------------------------------
# Product test: respondents rate several products, one row per product
# ---------------------------------------------------------------------------


@pytest.fixture
def product_dataset() -> Dataset:
    question = single_question("q_buy", "Would you buy it?", "Buy", ["Yes", "No"])
    rows = [
        {"Respondent ID": "r1", "Product": "Alpha", "Buy": "Yes", "Country": "US", "Rating": 5},
        {"Respondent ID": "r1", "Product": "Beta", "Buy": "No", "Country": "US", "Rating": 2},
        {"Respondent ID": "r2", "Product": "Alpha", "Buy": "Yes", "Country": "CA", "Rating": 4},
        {"Respondent ID": "r2", "Product": "Gamma", "Buy": "Yes", "Country": "CA", "Rating": 3},
        {"Respondent ID": "r3", "Product": "Beta", "Buy": "No", "Country": "UK", "Rating": 1},
        {"Respondent ID": "r3", "Product": "Gamma", "Buy": "Yes", "Country": "UK", "Rating": 4},
        {"Respondent ID": "r4", "Product": "", "Buy": "No", "Country": "US", "Rating": "n/a"},
    ]
    return make_dataset(
        rows,
        [question],
        segment_columns=["Country"],
        product_column="Product",
        is_product_test=True,
    )
