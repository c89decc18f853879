"""Tests for fenced visualization extraction."""

import json
import logging

import pytest
from pydantic import ValidationError

from response_pipeline.visualization_parser import (
    contains_visualization,
    extract_visualizations,
    generate_sample_chart,
    generate_sample_table,
    iter_fenced_blocks,
    process_response,
)

SCENARIO_A = (
    "Here's a chart:\n```json\n"
    '{"type":"chart","data":{"values":[{"name":"A","value":50}]},"config":{"type":"pie"}}'
    "\n```"
)

TRUNCATED = 'Intro\n```json\n{"type": "chart", "data": {"values": [\n```\nOutro'


def fence(obj, tag="json"):
    return f"```{tag}\n{json.dumps(obj)}\n```"


CHART = {
    "type": "chart",
    "data": {"values": [{"name": "Law", "value": 5}, {"name": "Prophets", "value": 17}]},
    "config": {"type": "bar", "title": "Books by section"},
}
TABLE = {
    "type": "table",
    "data": {"headers": ["Book", "Chapters"], "rows": [["Ruth", 4], ["Jonah", 4]]},
    "config": {"title": "Short books"},
}
RAGGED_TABLE = {
    "type": "table",
    "data": {"headers": ["Book", "Chapters"], "rows": [["Ruth", 4], ["Jonah"]]},
}


def test_scenario_a_single_chart():
    result = process_response(SCENARIO_A)

    assert len(result.attachments) == 1
    attachment = result.attachments[0]
    assert attachment.type == "chart"
    assert attachment.data["values"][0] == {"name": "A", "value": 50}
    assert attachment.config["type"] == "pie"
    assert attachment.name == "Chart"
    assert result.clean_content == "Here's a chart:"
    assert "```" not in result.clean_content


def test_scenario_b_blocks_in_source_order():
    text = f"First:\n{fence(CHART)}\n\nThen:\n{fence(TABLE)}"
    attachments = extract_visualizations(text)

    assert [a.type for a in attachments] == ["chart", "table"]
    assert attachments[0].name == "Books by section"
    assert attachments[1].name == "Short books"
    assert attachments[0].id != attachments[1].id


def test_scenario_b_second_block_failure_does_not_affect_first():
    text = f"{fence(CHART)}\n\n{fence(RAGGED_TABLE)}"
    result = process_response(text)

    assert [a.type for a in result.attachments] == ["chart"]
    assert result.attachments[0].data["values"][1] == {"name": "Prophets", "value": 17.0}
    assert fence(RAGGED_TABLE) in result.clean_content


def test_scenario_e_truncated_block_left_verbatim():
    assert contains_visualization(TRUNCATED) is False

    result = process_response(TRUNCATED)
    assert result.attachments == []
    assert result.clean_content == TRUNCATED


def test_contains_visualization_matches_extraction_for_valid_blocks():
    texts = [SCENARIO_A, fence(TABLE), "no blocks here", f"{fence(CHART)}\nand\n{fence(TABLE)}"]
    for text in texts:
        assert contains_visualization(text) == (len(extract_visualizations(text)) > 0)


def test_process_response_is_idempotent():
    text = f"Intro\n\n{fence(CHART)}\n\n\n{fence(RAGGED_TABLE)}\n\n\n\nOutro {TRUNCATED}"
    first = process_response(text)
    second = process_response(first.clean_content)

    assert len(first.attachments) == 1
    assert second.clean_content == first.clean_content
    assert second.attachments == []


def test_blank_lines_collapsed_after_removal():
    text = f"Intro\n\n{fence(CHART)}\n\n\nOutro"
    assert process_response(text).clean_content == "Intro\n\nOutro"


def test_fence_whitespace_and_case_tolerance():
    payload = json.dumps(CHART)
    text = f"```  JSON\n\n  {payload}  \n\n```"
    attachments = extract_visualizations(text)

    assert len(attachments) == 1
    assert attachments[0].type == "chart"


def test_fence_inside_json_string_does_not_end_block():
    table = {
        "type": "table",
        "data": {"headers": ["Tip"], "rows": [["wrap code in ``` fences"]]},
    }
    result = process_response(f"Tips:\n{fence(table)}\nDone.")

    assert len(result.attachments) == 1
    assert result.attachments[0].data["rows"] == [["wrap code in ``` fences"]]
    assert result.clean_content == "Tips:\n\nDone."


def test_other_code_blocks_are_skipped():
    text = f"```python\nx = 1\n```\n\n{fence(CHART)}"
    result = process_response(text)

    assert len(result.attachments) == 1
    assert result.clean_content == "```python\nx = 1\n```"
    assert [b.tag for b in iter_fenced_blocks(text)] == ["json"]


def test_inline_fence_in_prose_does_not_hide_block():
    text = f"Wrap code in ``` marks.\n\n{fence(CHART)}"
    result = process_response(text)

    assert contains_visualization(text) is True
    assert len(result.attachments) == 1
    assert result.clean_content == "Wrap code in ``` marks."


def test_unclosed_code_fence_does_not_hide_block():
    text = f"```python\nx = 1\n{fence(CHART)}"
    result = process_response(text)

    assert len(result.attachments) == 1
    assert result.clean_content == "```python\nx = 1"

    stray = f"``` is how a code block starts\n\n{fence(TABLE)}\n\n```python\nprint(1)"
    assert [a.type for a in extract_visualizations(stray)] == ["table"]


def test_unterminated_json_block_does_not_hide_next_block():
    text = '```json\n{"type": "chart"\n' + fence(TABLE)
    result = process_response(text)

    assert [a.type for a in result.attachments] == ["table"]
    assert result.clean_content == '```json\n{"type": "chart"'


def test_numeric_labels_become_text():
    years = {
        "type": "chart",
        "data": {"values": [{"name": 2020, "value": 5}, {"name": 2021, "value": 7}]},
    }
    series = {
        "type": "chart",
        "data": {"labels": [1, 2], "datasets": [{"label": "Verses", "data": [31, 25]}]},
    }
    attachments = extract_visualizations(f"{fence(years)}\n\n{fence(series)}")

    assert len(attachments) == 2
    assert [p["name"] for p in attachments[0].data["values"]] == ["2020", "2021"]
    assert attachments[1].data["labels"] == ["1", "2"]


def test_non_numeric_points_dropped():
    chart = {
        "type": "chart",
        "data": {
            "values": [
                {"name": "A", "value": "12.5"},
                {"name": "B", "value": "n/a"},
                {"name": "C", "value": 3},
            ]
        },
    }
    attachment = extract_visualizations(fence(chart))[0]
    assert attachment.data["values"] == [{"name": "A", "value": 12.5}, {"name": "C", "value": 3.0}]


def test_chart_without_numeric_points_rejected():
    chart = {"type": "chart", "data": {"values": [{"name": "A", "value": "lots"}]}}
    result = process_response(fence(chart))

    assert result.attachments == []
    assert result.clean_content == fence(chart)


def test_unknown_type_and_non_object_payloads_rejected():
    text = fence({"type": "map", "data": {}}) + "\n" + "```json\n[1, 2, 3]\n```"
    assert extract_visualizations(text) == []
    assert contains_visualization(text) is False


def test_tagged_chart_and_root_level_table():
    chart_block = fence({"data": {"values": [{"name": "Yes", "value": 3}]}, "config": {"type": "doughnut"}}, tag="chart")
    table_block = fence({"headers": ["Book", "Chapters"], "rows": [["Ruth", 4]]}, tag="table")
    attachments = extract_visualizations(f"{chart_block}\n{table_block}")

    assert [a.type for a in attachments] == ["chart", "table"]
    assert attachments[0].config["type"] == "doughnut"
    assert attachments[1].data == {"headers": ["Book", "Chapters"], "rows": [["Ruth", 4]]}


def test_series_chart_accepted_and_validated():
    series = {
        "type": "chart",
        "data": {"labels": ["Jan", "Feb"], "datasets": [{"label": "Readers", "data": [10, "12"]}]},
        "config": {"type": "line", "title": "Readers"},
    }
    mismatched = {
        "type": "chart",
        "data": {"labels": ["Jan", "Feb"], "datasets": [{"label": "Readers", "data": [10]}]},
    }
    attachments = extract_visualizations(f"{fence(series)}\n{fence(mismatched)}")

    assert len(attachments) == 1
    assert attachments[0].data["datasets"][0]["data"] == [10.0, 12.0]
    assert attachments[0].config["type"] == "line"


def test_timeline_and_comparison_blocks():
    timeline = {
        "type": "timeline",
        "data": {"events": [{"date": 1517, "title": "Ninety-five Theses"}]},
        "config": {"title": "Reformation"},
    }
    comparison = {
        "type": "comparison",
        "data": {
            "items": [
                {"name": "Peter", "attributes": {"Letters": 2}},
                {"name": "Paul", "attributes": {"Letters": 13}},
            ]
        },
    }
    attachments = extract_visualizations(f"{fence(timeline)}\n{fence(comparison)}")

    assert [a.type for a in attachments] == ["timeline", "comparison"]
    assert attachments[0].data["events"][0]["date"] == "1517"
    assert attachments[0].name == "Reformation"
    assert attachments[1].name == "Comparison"


def test_table_rows_always_rectangular():
    text = "\n".join(fence(t) for t in (TABLE, RAGGED_TABLE))
    for attachment in extract_visualizations(text):
        width = len(attachment.data["headers"])
        assert all(len(row) == width for row in attachment.data["rows"])


def test_empty_and_unterminated_input():
    assert process_response("").clean_content == ""
    assert process_response("   \n").clean_content == ""
    assert extract_visualizations("```json\n" + json.dumps(CHART)) == []
    assert contains_visualization("") is False


def test_sample_chart_and_table():
    pie = generate_sample_chart("pie")
    bar = generate_sample_chart()
    table = generate_sample_table()

    assert pie.name == "Sample Pie Chart"
    assert pie.config["type"] == "pie"
    assert [p["value"] for p in pie.data["values"]] == [30, 25, 20, 15, 10]
    assert bar.config["xAxisLabel"] == "Months"
    assert bar.data["datasets"][0]["data"] == [65, 59, 80, 81, 56]
    assert table.name == "Church Staff Directory"
    assert table.config["pageSize"] == 10
    assert len(table.data["rows"]) == 5


def test_sample_chart_rejects_unknown_kind():
    with pytest.raises(ValidationError):
        generate_sample_chart("map")


def test_extraction_count_is_not_logged_at_info(caplog):
    with caplog.at_level(logging.INFO, logger="response_pipeline.visualization_parser"):
        extract_visualizations(SCENARIO_A)
    assert not [r for r in caplog.records if r.levelno >= logging.INFO]

    with caplog.at_level(logging.DEBUG, logger="response_pipeline.visualization_parser"):
        extract_visualizations(SCENARIO_A)
    assert any("Extracted 1 visualization" in r.getMessage() for r in caplog.records)
