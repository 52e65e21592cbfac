"""Input models for the aggregation engine.

These are the structures produced by the (external) CSV ingestion step and by
the UI selection state.  They validate shape only; the engine absorbs sparse
or malformed *cell* data itself.  Every model accepts both snake_case field
names and the camelCase names the browser client sends.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

OVERALL = "Overall"

_RESPONDENT_ID_NAMES = ("respondent id", "respondent_id")


class _InputModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class QuestionType(str, Enum):
    SINGLE = "single"
    MULTI = "multi"
    SCALE = "scale"
    RANKING = "ranking"
    TEXT = "text"


class QuestionLevel(str, Enum):
    RESPONDENT = "respondent"
    ROW = "row"  # question repeats once per product


class SortOrder(str, Enum):
    DEFAULT = "default"
    ASCENDING = "ascending"
    DESCENDING = "descending"


class SegmentMode(str, Enum):
    COMPARE = "compare"  # one cohort per segment, side by side
    FILTER = "filter"  # all segments narrow a single Overall cohort


class QuestionOptionColumn(_InputModel):
    """One answer option and the raw column(s) that record it."""

    header: str
    option_label: str
    alternate_headers: list[str] = Field(default_factory=list)

    @property
    def headers(self) -> list[str]:
        return [self.header, *self.alternate_headers]


class QuestionDef(_InputModel):
    qid: str
    label: str
    type: QuestionType
    is_likert: bool = False
    level: QuestionLevel = QuestionLevel.RESPONDENT
    single_source_column: str | None = None
    columns: list[QuestionOptionColumn] = Field(default_factory=list)
    text_summary_column: str | None = None  # pipe-separated multi-select answers
    use_total_base: bool = False
    sentiment_column: str | None = None  # gate rating column for follow-ups

    @property
    def all_headers(self) -> list[str]:
        return [h for col in self.columns for h in col.headers]

    def option_column(self, option_label: str) -> QuestionOptionColumn | None:
        for col in self.columns:
            if col.option_label == option_label:
                return col
        return None


class Dataset(_InputModel):
    """In-memory table of respondent rows plus per-question metadata."""

    rows: list[dict[str, Any]] = Field(default_factory=list)
    columns: list[str] = Field(default_factory=list)
    questions: list[QuestionDef] = Field(default_factory=list)
    segment_columns: list[str] = Field(default_factory=list)
    respondent_id_column: str | None = None
    product_column: str | None = None
    is_product_test: bool = False

    @model_validator(mode="after")
    def _fill_derived(self) -> Dataset:
        # frozen model: derived defaults go straight into __dict__
        if not self.columns and self.rows:
            seen: dict[str, None] = {}
            for row in self.rows:
                for name in row:
                    seen.setdefault(name, None)
            self.__dict__["columns"] = list(seen)
        if self.respondent_id_column is None:
            for name in self.columns:
                if name.strip().lower() in _RESPONDENT_ID_NAMES:
                    self.__dict__["respondent_id_column"] = name
                    break
        return self

    def question(self, qid: str) -> QuestionDef | None:
        for q in self.questions:
            if q.qid == qid:
                return q
        return None


class SegmentDef(_InputModel):
    """A single cohort-membership predicate."""

    column: str
    value: str

    @property
    def is_overall(self) -> bool:
        return self.value == OVERALL


class ComparisonSet(_InputModel):
    id: str
    label: str
    filters: list[SegmentDef] = Field(default_factory=list)


class ProductBucket(_InputModel):
    id: str
    label: str
    products: list[str] = Field(default_factory=list)


class LegacyCohortSpec(_InputModel):
    """One segment column plus an explicit list of its values."""

    segment_column: str
    groups: list[str] = Field(default_factory=list)


class SegmentCohortSpec(_InputModel):
    segments: list[SegmentDef] = Field(default_factory=list)
    mode: SegmentMode = SegmentMode.COMPARE


CohortSpec = LegacyCohortSpec | SegmentCohortSpec
