"""Deterministic chart-type selection used when no usable hint is available."""
from __future__ import annotations

from typing import Tuple

from .chart_spec import ChartHint
from .classifier import classify, numeric_columns
from .tabular import TabularResult

DONUT_MAX_ROWS = 10
SCATTER_MIN_ROWS = 10

# Case-sensitive substrings that make column 0 look like a category label.
CATEGORY_NAME_MARKERS: Tuple[str, ...] = ("category", "type", "name", "segment")

DONUT_TITLE = "Distribution Analysis"
SCATTER_TITLE = "Correlation Analysis"
LINE_TITLE = "Query Results"


def _looks_categorical(column_name: str) -> bool:
    return any(marker in column_name for marker in CATEGORY_NAME_MARKERS)


def select_type(data: TabularResult) -> ChartHint:
    """Synthesize a chart hint from the shape of ``data``.

    Rules, first match wins:

    1. donut: at most 10 rows, exactly one numeric value column and a
       category-looking first column name.
    2. scatter: at least two numeric value columns and at least 10 rows;
       the first two numeric columns in column order (column 0 included)
       become x/y and a third, if any, the bubble size.
    3. line: column 0 on the x-axis with one series per numeric value column.
       The series list may be empty when no value column is numeric.
    """
    columns = list(data.columns)
    if not columns:
        return ChartHint(type="line", title=LINE_TITLE, y_keys=[])

    classification = classify(data)
    label_column = columns[0]
    numeric = numeric_columns(classification, columns[1:])
    row_count = data.row_count

    if row_count <= DONUT_MAX_ROWS and len(numeric) == 1 and _looks_categorical(label_column):
        return ChartHint(
            type="donut",
            title=DONUT_TITLE,
            name_key=label_column,
            value_key=numeric[0],
        )

    if len(numeric) >= 2 and row_count >= SCATTER_MIN_ROWS:
        axes = numeric_columns(classification, columns)
        return ChartHint(
            type="scatter",
            title=SCATTER_TITLE,
            x_key=axes[0],
            y_key=axes[1],
            z_key=axes[2] if len(axes) > 2 else None,
        )

    return ChartHint(type="line", title=LINE_TITLE, x_key=label_column, y_keys=numeric)


__all__ = ["select_type", "CATEGORY_NAME_MARKERS"]
