"""
Chart Specification Builder
Turns a tabular query result and an optional model hint into a render-ready chart
"""
from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set

from askdata.core.logger import get_logger

from .chart_spec import (
    BarChartSpec,
    BarSeries,
    ChartHint,
    ChartSpec,
    DonutChartSpec,
    LineChartSpec,
    LineSeries,
    ScatterChartSpec,
    ScatterSeries,
)
from .classifier import classify, numeric_columns
from .config import chatbot_config
from .fallback import select_type
from .tabular import TabularResult

logger = get_logger(__name__)

DEFAULT_TITLE = "Query Results"
DEFAULT_SCATTER_SERIES_NAME = "Data Points"
DEFAULT_SCATTER_SHAPE = "circle"


def series_display_name(column: str) -> str:
    """Readable series label derived from a column name."""
    return column.replace("_", " ").upper()


class _KeyResolver:
    """Resolves hint key fields against the columns actually present.

    Valid hint keys are reserved up front so positional defaults pick the
    first column that no explicit key already uses.
    """

    def __init__(self, columns: Sequence[str]) -> None:
        self.columns = list(columns)
        self._taken: Set[str] = set()

    def is_valid(self, candidate: Any) -> bool:
        return isinstance(candidate, str) and candidate in self.columns

    def reserve(self, *candidates: Any) -> None:
        for candidate in candidates:
            if self.is_valid(candidate):
                self._taken.add(candidate)

    def resolve(self, candidate: Any, index: int, prefer: Iterable[str] = ()) -> str:
        if self.is_valid(candidate):
            return candidate
        return self.default(index, prefer)

    def default(self, index: int, prefer: Iterable[str] = ()) -> str:
        chosen = None
        for column in prefer:
            if column not in self._taken:
                chosen = column
                break
        if chosen is None and index < len(self.columns) and self.columns[index] not in self._taken:
            chosen = self.columns[index]
        if chosen is None:
            chosen = next((c for c in self.columns if c not in self._taken), None)
        if chosen is None:
            chosen = self.columns[min(index, len(self.columns) - 1)]
        self._taken.add(chosen)
        return chosen


class ChartSpecBuilder:
    """Builds chart specifications from query results"""

    def __init__(self, color_palette: Optional[List[str]] = None):
        """
        Initialize chart specification builder

        Args:
            color_palette: Custom color palette (uses config default if None)
        """
        self.colors = list(color_palette or chatbot_config.chart_color_palette)
        self._builders: Dict[str, Callable[[TabularResult, ChartHint, bool], ChartSpec]] = {
            "line": self._build_line,
            "bar": self._build_bar,
            "scatter": self._build_scatter,
            "donut": self._build_donut,
        }

    def build(self, data: Any, hint: Any = None) -> Optional[ChartSpec]:
        """
        Build a chart specification, falling back to heuristics when the hint is unusable.

        Args:
            data: TabularResult or a list of row mappings
            hint: Raw model suggestion (mapping, chart type string, ChartHint or None)

        Returns:
            A chart specification, or None when there is nothing to visualize
        """
        result = TabularResult.from_rows(data)
        if result.is_empty:
            logger.debug("No rows to visualize")
            return None

        parsed = ChartHint.from_raw(hint) if hint is not None else None
        synthesized = parsed is None or parsed.type is None
        if synthesized:
            parsed = select_type(result)
            logger.debug("No usable chart hint; fallback selected %s", parsed.type)

        return self._builders[parsed.type](result, parsed, synthesized)

    def build_payload(self, data: Any, hint: Any = None) -> Optional[Dict[str, Any]]:
        """Same as :meth:`build` but returns the camelCase JSON payload."""
        spec = self.build(data, hint)
        return spec.to_payload() if spec is not None else None

    def color_for(self, index: int) -> str:
        return self.colors[index % len(self.colors)]

    def _series_keys(
        self,
        resolver: _KeyResolver,
        hint: ChartHint,
        allow_empty: bool,
    ) -> List[str]:
        if hint.y_keys is None:
            if resolver.is_valid(hint.y_key):
                return [hint.y_key]
            return [resolver.default(1)]

        keys: List[str] = []
        for key in hint.y_keys:
            if resolver.is_valid(key) and key not in keys:
                keys.append(key)
        if not keys and not allow_empty:
            keys = [resolver.default(1)]
        return keys

    def _resolve_category_axis(
        self, result: TabularResult, hint: ChartHint, allow_empty: bool
    ) -> tuple[str, List[str]]:
        resolver = _KeyResolver(result.columns)
        resolver.reserve(hint.x_key, hint.y_key, *(hint.y_keys or []))
        x_key = resolver.resolve(hint.x_key, 0)
        return x_key, self._series_keys(resolver, hint, allow_empty)

    def _build_line(self, result: TabularResult, hint: ChartHint, synthesized: bool) -> LineChartSpec:
        x_key, keys = self._resolve_category_axis(result, hint, allow_empty=synthesized)
        return LineChartSpec(
            title=hint.title or DEFAULT_TITLE,
            description=hint.description,
            data=result.to_records(),
            x_key=x_key,
            lines=[
                LineSeries(key=key, color=self.color_for(idx), name=series_display_name(key))
                for idx, key in enumerate(keys)
            ],
        )

    def _build_bar(self, result: TabularResult, hint: ChartHint, synthesized: bool) -> BarChartSpec:
        x_key, keys = self._resolve_category_axis(result, hint, allow_empty=synthesized)
        return BarChartSpec(
            title=hint.title or DEFAULT_TITLE,
            description=hint.description,
            data=result.to_records(),
            x_key=x_key,
            bars=[
                BarSeries(key=key, color=self.color_for(idx), name=series_display_name(key))
                for idx, key in enumerate(keys)
            ],
        )

    def _build_scatter(
        self, result: TabularResult, hint: ChartHint, synthesized: bool
    ) -> ScatterChartSpec:
        resolver = _KeyResolver(result.columns)
        resolver.reserve(hint.x_key, hint.y_key, hint.z_key)
        numeric = numeric_columns(classify(result), list(result.columns))

        x_key = resolver.resolve(hint.x_key, 0, prefer=numeric)
        y_key = resolver.resolve(hint.y_key, 1, prefer=numeric)
        z_key = hint.z_key if resolver.is_valid(hint.z_key) else None

        return ScatterChartSpec(
            title=hint.title or DEFAULT_TITLE,
            description=hint.description,
            data=result.to_records(),
            x_key=x_key,
            y_key=y_key,
            z_key=z_key,
            series=self._scatter_series(hint),
        )

    def _scatter_series(self, hint: ChartHint) -> List[ScatterSeries]:
        if not hint.scatter_series:
            return [
                ScatterSeries(
                    name=DEFAULT_SCATTER_SERIES_NAME,
                    color=self.color_for(0),
                    shape=DEFAULT_SCATTER_SHAPE,
                )
            ]
        return [
            ScatterSeries(
                name=item.name or f"Series {idx + 1}",
                color=item.color or self.color_for(idx),
                shape=item.shape or DEFAULT_SCATTER_SHAPE,
            )
            for idx, item in enumerate(hint.scatter_series)
        ]

    def _build_donut(self, result: TabularResult, hint: ChartHint, synthesized: bool) -> DonutChartSpec:
        resolver = _KeyResolver(result.columns)
        resolver.reserve(hint.name_key, hint.value_key)
        name_key = resolver.resolve(hint.name_key, 0)
        value_key = resolver.resolve(hint.value_key, 1)
        return DonutChartSpec(
            title=hint.title or DEFAULT_TITLE,
            description=hint.description,
            data=result.to_records(),
            name_key=name_key,
            value_key=value_key,
            colors=list(self.colors),
        )


__all__ = ["ChartSpecBuilder", "series_display_name"]
