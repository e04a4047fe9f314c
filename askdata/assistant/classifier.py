"""Column classification for tabular query results."""
from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List

from .tabular import TabularResult


class ColumnKind(str, Enum):
    NUMERIC = "numeric"
    CATEGORICAL = "categorical"


ColumnClassification = Dict[str, ColumnKind]


def is_numeric_value(value: Any) -> bool:
    """Return True for finite numbers and strings that parse fully as a decimal number."""
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, Decimal)):
        return not (isinstance(value, Decimal) and not value.is_finite())
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return False
        try:
            parsed = Decimal(text)
        except InvalidOperation:
            return False
        return parsed.is_finite()
    return False


def classify(data: TabularResult) -> ColumnClassification:
    """Classify each column as numeric or categorical from the first row.

    Only row 0 is inspected. An empty result yields an empty classification,
    which callers treat as "cannot build a chart".
    """
    row = data.first_row
    if row is None:
        return {}
    return {
        column: ColumnKind.NUMERIC if is_numeric_value(row.get(column)) else ColumnKind.CATEGORICAL
        for column in data.columns
    }


def numeric_columns(classification: ColumnClassification, columns: List[str]) -> List[str]:
    """Columns from ``columns`` classified numeric, keeping their order."""
    return [column for column in columns if classification.get(column) is ColumnKind.NUMERIC]


__all__ = [
    "ColumnClassification",
    "ColumnKind",
    "classify",
    "is_numeric_value",
    "numeric_columns",
]
