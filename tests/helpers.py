"""Dataset and question builders shared by the test modules."""

from __future__ import annotations

from typing import Any

from surveylens.models import Dataset, QuestionDef, QuestionOptionColumn, QuestionType


def make_dataset(rows: list[dict[str, Any]], questions: list[QuestionDef], **kwargs: Any) -> Dataset:
    """Dataset with columns inferred from the rows."""
    return Dataset(rows=rows, questions=questions, **kwargs)


def single_question(qid: str, label: str, source: str, options: list[str], **kwargs: Any) -> QuestionDef:
    return QuestionDef(
        qid=qid,
        label=label,
        type=QuestionType.SINGLE,
        single_source_column=source,
        columns=[QuestionOptionColumn(header=source, option_label=o) for o in options],
        **kwargs,
    )


def multi_question(qid: str, label: str, options: list[str], **kwargs: Any) -> QuestionDef:
    """One-hot multi-select: option "X" lives in column ``"<qid>: X"``."""
    return QuestionDef(
        qid=qid,
        label=label,
        type=QuestionType.MULTI,
        columns=[QuestionOptionColumn(header=f"{qid}: {o}", option_label=o) for o in options],
        **kwargs,
    )
