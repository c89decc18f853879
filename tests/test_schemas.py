"""Tests for attachment payload validation and serialization."""

import pytest
from pydantic import ValidationError

from response_pipeline.schemas import (
    ChartData,
    ComparisonData,
    ParsedResponse,
    TableData,
    TimelineData,
    VisualizationAttachment,
)
from response_pipeline.visualization_parser import build_attachment


def test_table_must_be_rectangular():
    with pytest.raises(ValidationError):
        TableData(headers=["Book", "Chapters"], rows=[["Ruth", 4], ["Jonah"]])

    table = TableData(headers=["Book", "Chapters"], rows=[["Ruth", 4]])
    assert table.rows == [["Ruth", 4]]


def test_table_needs_headers_and_rows():
    with pytest.raises(ValidationError):
        TableData(headers=[], rows=[])
    with pytest.raises(ValidationError):
        TableData(headers=["Book"], rows=[])


def test_chart_values_coerced_and_filtered():
    data = ChartData.model_validate({
        "values": [
            {"name": "Law", "value": "1,200"},
            {"name": "Share", "value": "45%"},
            {"name": "Flag", "value": True},
            {"name": "Missing"},
        ]
    })
    assert [(p.name, p.value) for p in data.values] == [("Law", 1200.0), ("Share", 45.0)]


def test_chart_rejects_empty_or_non_numeric_data():
    with pytest.raises(ValidationError):
        ChartData.model_validate({"values": [{"name": "A", "value": "many"}]})
    with pytest.raises(ValidationError):
        ChartData.model_validate({"values": [{"name": "A", "value": "inf"}]})
    with pytest.raises(ValidationError):
        ChartData.model_validate({})


def test_chart_series_lengths_must_match_labels():
    with pytest.raises(ValidationError):
        ChartData.model_validate({"labels": ["a", "b"], "datasets": [{"data": [1]}]})

    data = ChartData.model_validate({"labels": ["a", "b"], "datasets": [{"data": [1, 2]}]})
    assert data.datasets[0].label == "Series"


def test_timeline_and_comparison_minimums():
    with pytest.raises(ValidationError):
        TimelineData(events=[])
    with pytest.raises(ValidationError):
        ComparisonData.model_validate({"items": [{"name": "Peter", "attributes": {"Letters": 2}}]})
    with pytest.raises(ValidationError):
        ComparisonData.model_validate({
            "items": [{"name": "Peter", "attributes": {}}, {"name": "Paul", "attributes": {"Letters": 13}}]
        })


def test_attachment_validates_payload_on_construction():
    with pytest.raises(ValidationError):
        VisualizationAttachment(id="x", type="table", name="T", data={"headers": ["A", "B"], "rows": [["x"]]})
    with pytest.raises(ValidationError):
        VisualizationAttachment(id="x", type="map", name="M", data={})


def test_build_attachment_defaults():
    pie = build_attachment("chart", {"values": [{"name": "A", "value": 1}]})
    bar = build_attachment("chart", {"labels": ["a"], "datasets": [{"data": [1]}]})
    named = build_attachment("table", {"headers": ["A"], "rows": [[1]]}, {"title": "  Counts  "})

    assert pie.config["type"] == "pie"
    assert pie.name == "Chart"
    assert bar.config["type"] == "bar"
    assert named.name == "Counts"
    assert pie.id.startswith("viz-")


def test_camel_case_serialization():
    attachment = build_attachment(
        "chart",
        {"values": [{"name": "A", "value": 1}]},
        {"type": "bar", "xAxisLabel": "Book", "showGrid": True},
    )
    assert attachment.config == {"type": "bar", "xAxisLabel": "Book", "showLegend": True, "showGrid": True}

    dumped = ParsedResponse(content="x").dump()
    assert dumped["contentType"] == "plain"
    assert dumped["metadata"]["wordCount"] == 0
