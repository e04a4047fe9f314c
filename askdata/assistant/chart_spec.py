"""Chart hint and chart specification models."""
from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ChartType = Literal["line", "bar", "scatter", "donut"]
CHART_TYPES: Tuple[str, ...] = ("line", "bar", "scatter", "donut")

# Names a model may use for a known chart type.
CHART_TYPE_ALIASES: Dict[str, str] = {"pie": "donut", "doughnut": "donut"}


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _clean_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def normalize_chart_type(value: Any) -> Optional[str]:
    """Map a raw type string onto one of the four chart types, or None."""
    if not isinstance(value, str):
        return None
    lowered = value.strip().lower()
    lowered = CHART_TYPE_ALIASES.get(lowered, lowered)
    return lowered if lowered in CHART_TYPES else None


class ScatterSeriesHint(_CamelModel):
    name: Optional[str] = None
    color: Optional[str] = None
    shape: Optional[str] = None


class ChartHint(_CamelModel):
    """Partially-trusted chart suggestion.

    Every field is optional and may reference columns that do not exist in
    the result set; the builder resolves or drops such references.
    """

    type: Optional[ChartType] = None
    title: Optional[str] = None
    description: Optional[str] = None
    x_key: Optional[str] = None
    y_key: Optional[str] = None
    y_keys: Optional[List[str]] = None
    z_key: Optional[str] = None
    name_key: Optional[str] = None
    value_key: Optional[str] = None
    scatter_series: Optional[List[ScatterSeriesHint]] = None

    @classmethod
    def from_raw(cls, raw: Any) -> Optional["ChartHint"]:
        """Coerce a model-supplied value into a hint without ever raising.

        A bare string is read as a chart type. Anything that is neither a
        string nor a mapping yields None.
        """
        if isinstance(raw, ChartHint):
            return raw
        if isinstance(raw, str):
            return cls(type=normalize_chart_type(raw))
        if not isinstance(raw, Mapping):
            return None

        return cls(
            type=normalize_chart_type(raw.get("type")),
            title=_clean_str(raw.get("title")),
            description=_clean_str(raw.get("description")),
            x_key=_clean_str(raw.get("xKey")),
            y_key=_clean_str(raw.get("yKey")),
            y_keys=cls._coerce_keys(raw.get("yKeys")),
            z_key=_clean_str(raw.get("zKey")),
            name_key=_clean_str(raw.get("nameKey")),
            value_key=_clean_str(raw.get("valueKey")),
            scatter_series=cls._coerce_series(raw.get("scatterSeries")),
        )

    @staticmethod
    def _coerce_keys(value: Any) -> Optional[List[str]]:
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, (list, tuple)):
            return None
        return [item for item in value if isinstance(item, str)]

    @staticmethod
    def _coerce_series(value: Any) -> Optional[List[ScatterSeriesHint]]:
        if not isinstance(value, (list, tuple)):
            return None
        series = []
        for item in value:
            if not isinstance(item, Mapping):
                continue
            series.append(
                ScatterSeriesHint(
                    name=_clean_str(item.get("name")),
                    color=_clean_str(item.get("color")),
                    shape=_clean_str(item.get("shape")),
                )
            )
        return series

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class LineSeries(_CamelModel):
    key: str
    color: str
    name: str
    stroke_width: int = 2
    dot_radius: int = 4
    active_dot_radius: int = 6


class BarSeries(_CamelModel):
    key: str
    color: str
    name: str


class ScatterSeries(_CamelModel):
    name: str
    color: str
    shape: str = "circle"


class _BaseChartSpec(_CamelModel):
    title: str
    description: Optional[str] = None
    data: List[Dict[str, Any]]

    def referenced_keys(self) -> List[str]:
        """Every column name the specification points at."""
        raise NotImplementedError

    def to_payload(self) -> Dict[str, Any]:
        """Serialize with camelCase keys, omitting unset optional fields."""
        payload = self.model_dump(by_alias=True)
        for key in ("description", "zKey"):
            if key in payload and payload[key] is None:
                payload.pop(key)
        return payload


class LineChartSpec(_BaseChartSpec):
    type: Literal["line"] = "line"
    x_key: str
    lines: List[LineSeries]

    def referenced_keys(self) -> List[str]:
        return [self.x_key, *(line.key for line in self.lines)]


class BarChartSpec(_BaseChartSpec):
    type: Literal["bar"] = "bar"
    x_key: str
    bars: List[BarSeries]

    def referenced_keys(self) -> List[str]:
        return [self.x_key, *(bar.key for bar in self.bars)]


class ScatterChartSpec(_BaseChartSpec):
    type: Literal["scatter"] = "scatter"
    x_key: str
    y_key: str
    z_key: Optional[str] = None
    series: List[ScatterSeries]

    def referenced_keys(self) -> List[str]:
        keys = [self.x_key, self.y_key]
        if self.z_key is not None:
            keys.append(self.z_key)
        return keys


class DonutChartSpec(_BaseChartSpec):
    type: Literal["donut"] = "donut"
    name_key: str
    value_key: str
    colors: List[str]

    def referenced_keys(self) -> List[str]:
        return [self.name_key, self.value_key]


ChartSpec = Annotated[
    Union[LineChartSpec, BarChartSpec, ScatterChartSpec, DonutChartSpec],
    Field(discriminator="type"),
]


__all__ = [
    "BarChartSpec",
    "BarSeries",
    "CHART_TYPES",
    "ChartHint",
    "ChartSpec",
    "ChartType",
    "DonutChartSpec",
    "LineChartSpec",
    "LineSeries",
    "ScatterChartSpec",
    "ScatterSeries",
    "ScatterSeriesHint",
    "normalize_chart_type",
]
