"""Question-to-chart assistant: chart inference pipeline and model orchestration."""

from .chart_generator import ChartSpecBuilder
from .chart_spec import ChartHint, ChartSpec
from .classifier import ColumnKind, classify
from .fallback import select_type
from .tabular import TabularResult

__all__ = [
    "ChartHint",
    "ChartSpec",
    "ChartSpecBuilder",
    "ColumnKind",
    "TabularResult",
    "classify",
    "select_type",
]
