"""
Pydantic models for parsed responses and visualization attachments.

Rationale:
- Define explicit contracts for what the parsers return and what the
  renderer/persistence layers receive.
- Validate attachment payloads against their type at construction time so an
  attachment object is never structurally invalid.
- Serialize with camelCase aliases; the chat frontend reads those keys.
"""

import logging
import math
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

VisualizationType = Literal["chart", "table", "timeline", "comparison"]
ContentType = Literal["plain", "essay", "list", "structured"]
ChartKind = Literal["pie", "bar", "line", "doughnut", "area", "scatter", "radar"]
Cell = Union[str, int, float, bool, None]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def dump(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Chart
# ---------------------------------------------------------------------------

def _coerce_number(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError("boolean is not a numeric value")
    if isinstance(value, str):
        value = value.strip().replace(",", "").rstrip("%").strip()
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"not a numeric value: {value!r}")
    if not math.isfinite(number):
        raise ValueError(f"not a finite value: {value!r}")
    return number


def _number_as_text(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


class ChartPoint(CamelModel):
    name: str
    value: float
    color: Optional[str] = None

    # years and chapter numbers are common labels
    @field_validator("name", mode="before")
    @classmethod
    def _name_as_text(cls, value: Any) -> Any:
        return _number_as_text(value)

    @field_validator("value", mode="before")
    @classmethod
    def _numeric_value(cls, value: Any) -> float:
        return _coerce_number(value)


class ChartDataset(CamelModel):
    label: str = "Series"
    data: List[float]
    background_color: Optional[Union[str, List[str]]] = None
    border_color: Optional[Union[str, List[str]]] = None
    border_width: Optional[float] = None
    fill: Optional[bool] = None
    tension: Optional[float] = None

    @field_validator("data", mode="before")
    @classmethod
    def _numeric_series(cls, value: Any) -> List[float]:
        if not isinstance(value, list):
            raise ValueError("dataset data must be a list")
        return [_coerce_number(v) for v in value]


class ChartData(CamelModel):
    """Pie-style ``values`` or axis-style ``labels`` + ``datasets``."""

    values: Optional[List[ChartPoint]] = None
    labels: Optional[List[str]] = None
    datasets: Optional[List[ChartDataset]] = None

    @field_validator("labels", mode="before")
    @classmethod
    def _labels_as_text(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [_number_as_text(v) for v in value]
        return value

    @field_validator("values", mode="before")
    @classmethod
    def _drop_unusable_points(cls, value: Any) -> Any:
        if value is None:
            return value
        if not isinstance(value, list):
            raise ValueError("values must be a list")
        kept = []
        for point in value:
            try:
                kept.append(ChartPoint.model_validate(point))
            except ValidationError as e:
                logger.warning(f"Dropping chart point {point!r}: {e.error_count()} error(s)")
        if not kept:
            raise ValueError("chart has no numeric data points")
        return kept

    @model_validator(mode="after")
    def _check_series(self) -> "ChartData":
        if self.values:
            return self
        if self.labels and self.datasets:
            for dataset in self.datasets:
                if len(dataset.data) != len(self.labels):
                    raise ValueError(
                        f"dataset '{dataset.label}' has {len(dataset.data)} points for {len(self.labels)} labels"
                    )
            return self
        raise ValueError("chart data needs 'values', or 'labels' with 'datasets'")


class ChartConfig(CamelModel):
    type: ChartKind = "bar"
    title: Optional[str] = None
    x_axis_label: Optional[str] = None
    y_axis_label: Optional[str] = None
    show_legend: bool = True
    show_grid: Optional[bool] = None
    stacked: Optional[bool] = None
    aspect_ratio: Optional[float] = None
    colors: Optional[List[str]] = None


# ---------------------------------------------------------------------------
# Table
# ---------------------------------------------------------------------------

class TableData(CamelModel):
    headers: List[str] = Field(min_length=1)
    rows: List[List[Cell]] = Field(min_length=1)
    footer: Optional[List[Cell]] = None

    @model_validator(mode="after")
    def _rectangular(self) -> "TableData":
        width = len(self.headers)
        for index, row in enumerate(self.rows):
            if len(row) != width:
                raise ValueError(f"row {index} has {len(row)} cells, expected {width}")
        return self


class TableConfig(CamelModel):
    title: Optional[str] = None
    sortable: Optional[bool] = None
    filterable: Optional[bool] = None
    pagination: Optional[bool] = None
    page_size: Optional[int] = None
    striped: Optional[bool] = None
    bordered: Optional[bool] = None
    hoverable: Optional[bool] = None
    dense: Optional[bool] = None


# ---------------------------------------------------------------------------
# Timeline / comparison
# ---------------------------------------------------------------------------

class TimelineEvent(CamelModel):
    date: str
    title: str
    description: Optional[str] = None

    @field_validator("date", mode="before")
    @classmethod
    def _date_as_text(cls, value: Any) -> Any:
        return _number_as_text(value)


class TimelineData(CamelModel):
    events: List[TimelineEvent] = Field(min_length=1)


class TimelineConfig(CamelModel):
    title: Optional[str] = None
    orientation: Literal["vertical", "horizontal"] = "vertical"


class ComparisonItem(CamelModel):
    name: str
    attributes: Dict[str, Cell] = Field(min_length=1)


class ComparisonData(CamelModel):
    items: List[ComparisonItem] = Field(min_length=2)


class ComparisonConfig(CamelModel):
    title: Optional[str] = None
    highlight_differences: Optional[bool] = None


PAYLOAD_SCHEMAS = {
    "chart": (ChartData, ChartConfig),
    "table": (TableData, TableConfig),
    "timeline": (TimelineData, TimelineConfig),
    "comparison": (ComparisonData, ComparisonConfig),
}


class VisualizationAttachment(CamelModel):
    id: str
    type: VisualizationType
    name: str
    data: Dict[str, Any]
    config: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _validate_payload(self) -> "VisualizationAttachment":
        data_model, config_model = PAYLOAD_SCHEMAS[self.type]
        self.data = data_model.model_validate(self.data).dump()
        self.config = config_model.model_validate(self.config).dump()
        return self


# ---------------------------------------------------------------------------
# Parser outputs
# ---------------------------------------------------------------------------

class ResponseMetadata(CamelModel):
    word_count: int = 0
    paragraph_count: int = 0
    has_headers: bool = False
    title: Optional[str] = None
    transition_phrase: Optional[str] = None
    transition_role: Optional[str] = None
    explicit_markers: bool = False


class ParsedResponse(CamelModel):
    conversational: str = ""
    summary: str = ""
    content: str = ""
    content_type: ContentType = "plain"
    metadata: ResponseMetadata = Field(default_factory=ResponseMetadata)


class ProcessedResponse(CamelModel):
    clean_content: str = ""
    attachments: List[VisualizationAttachment] = Field(default_factory=list)


class VisualizationNeed(CamelModel):
    needs_visualization: bool = False
    suggested_type: Optional[VisualizationType] = None
    confidence: float = 0.0


class PipelineResult(CamelModel):
    conversational: str = ""
    summary: str = ""
    # explicit summary when present, otherwise one generated from the content
    executive_summary: str = ""
    clean_content: str = ""
    content_type: ContentType = "plain"
    metadata: ResponseMetadata = Field(default_factory=ResponseMetadata)
    attachments: List[VisualizationAttachment] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# HTTP request bodies
# ---------------------------------------------------------------------------

class TextRequest(CamelModel):
    text: str
    auto_generate: bool = False


class GenerateRequest(CamelModel):
    text: str
    type: Literal["chart", "table", "timeline", "comparison", "auto"] = "auto"


class ExportRequest(CamelModel):
    attachment: VisualizationAttachment
    format: Literal["csv", "json"] = "csv"
