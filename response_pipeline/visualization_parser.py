"""
Extraction of fenced visualization descriptors from model output.

Flow:
1. Scan the text for fenced blocks (```json ... ```, ```chart ... ```, ...)
   with a small state machine instead of nested regex alternation.
2. Decode each payload as JSON and resolve its visualization type.
3. Validate data/config against the type's schema (see schemas.py).
4. Return attachments in source order; remove only the accepted blocks from
   the text. Malformed or invalid blocks are logged and left in place.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

from pydantic import ValidationError

from .config import CHART_COLORS, DEFAULT_NAMES, FENCE_TAGS, VISUALIZATION_TYPES
from .schemas import ProcessedResponse, VisualizationAttachment
from .utils import make_attachment_id, new_batch_id

logger = logging.getLogger(__name__)

FENCE = "```"

_TAG = re.compile(r"[A-Za-z0-9_+-]*")
_BLANK_RUN = re.compile(r"\n[ \t]*(?:\n[ \t]*){2,}")


@dataclass(frozen=True)
class FencedBlock:
    """A fenced region of text: ``text[start:end]`` is the whole block."""

    start: int
    end: int
    tag: str
    payload: str


def _skip_whitespace(text: str, i: int) -> int:
    while i < len(text) and text[i].isspace():
        i += 1
    return i


def _match_json_object(text: str, start: int) -> int:
    """
    Return the index just past the '}' closing the object opened at `start`,
    or -1 when the object is not closed before a fence or the end of text.
    Must properly handle escape sequences within strings.
    """
    if start >= len(text) or text[start] != "{":
        return -1

    depth = 0
    in_string = False
    i = start

    while i < len(text):
        char = text[i]

        if in_string:
            if char == "\\" and i + 1 < len(text):
                i += 2
                continue
            elif char == '"':
                in_string = False
            elif char == "\n":
                # JSON strings cannot hold a raw newline: truncated payload
                return -1
        else:
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return i + 1
            elif text.startswith(FENCE, i):
                return -1
        i += 1

    return -1


def _skip_blanks(text: str, i: int) -> int:
    while i < len(text) and text[i] in " \t":
        i += 1
    return i


def _at_line_start(text: str, i: int) -> bool:
    line_start = text.rfind("\n", 0, i) + 1
    return not text[line_start:i].strip(" \t")


def _find_fence_line(text: str, pos: int) -> int:
    """Index of the next fence that opens a line (leading spaces allowed), or -1."""
    i = text.find(FENCE, pos)
    while i != -1 and not _at_line_start(text, i):
        i = text.find(FENCE, i + len(FENCE))
    return i


def _read_tag(text: str, fence: int) -> Tuple[str, int]:
    match = _TAG.match(text, _skip_blanks(text, fence + len(FENCE)))
    return match.group(0).lower(), match.end()


def iter_fenced_blocks(text: str) -> Iterator[FencedBlock]:
    """
    Yield fenced blocks whose tag is a known visualization tag, in order.

    Opening fences must start a line; inline ``` in prose is ignored. Other
    fenced code blocks are skipped whole when they are closed by a bare fence
    line. An unclosed code fence (next fence line opens another block) is
    stepped over so the blocks after it are still found.
    """
    pos = 0
    while True:
        start = _find_fence_line(text, pos)
        if start == -1:
            return

        tag, tag_end = _read_tag(text, start)
        payload_start = _skip_whitespace(text, tag_end)

        if tag not in FENCE_TAGS:
            close = _find_fence_line(text, tag_end)
            if close == -1 or _read_tag(text, close)[0]:
                pos = start + len(FENCE)
            else:
                pos = close + len(FENCE)
            continue

        close = -1
        payload_end = _match_json_object(text, payload_start)
        if payload_end != -1:
            after = _skip_whitespace(text, payload_end)
            if text.startswith(FENCE, after):
                close = after

        if close == -1:
            close = _find_fence_line(text, payload_start)
            if close == -1 or _read_tag(text, close)[0]:
                # unterminated fence is not a block
                pos = start + len(FENCE)
                continue
            payload_end = close

        yield FencedBlock(
            start=start,
            end=close + len(FENCE),
            tag=tag,
            payload=text[payload_start:payload_end].strip(),
        )
        pos = close + len(FENCE)


def _decode(block: FencedBlock) -> Optional[Dict[str, Any]]:
    try:
        payload = json.loads(block.payload)
    except json.JSONDecodeError as e:
        logger.warning(f"Skipping ```{block.tag} block at offset {block.start}: invalid JSON ({e})")
        return None
    if not isinstance(payload, dict):
        logger.warning(f"Skipping ```{block.tag} block at offset {block.start}: payload is not an object")
        return None
    return payload


def _resolve_type(block: FencedBlock, payload: Dict[str, Any]) -> Optional[str]:
    # Tagged fences (```chart) name the type; in those, payload "type" may be the chart kind.
    viz_type = FENCE_TAGS[block.tag] or payload.get("type")
    if viz_type not in VISUALIZATION_TYPES:
        return None
    return viz_type


def build_attachment(
    viz_type: str,
    data: Dict[str, Any],
    config: Optional[Dict[str, Any]] = None,
    attachment_id: Optional[str] = None,
) -> VisualizationAttachment:
    """
    Validate a visualization payload and wrap it as an attachment.
    Raises pydantic.ValidationError when data/config do not match `viz_type`.
    """
    config = dict(config or {})
    if viz_type == "chart" and "type" not in config:
        config["type"] = "pie" if isinstance(data, dict) and data.get("values") else "bar"

    title = config.get("title")
    name = title.strip() if isinstance(title, str) and title.strip() else DEFAULT_NAMES.get(viz_type, "Visualization")

    return VisualizationAttachment(
        id=attachment_id or make_attachment_id(new_batch_id(), 0),
        type=viz_type,
        name=name,
        data=data,
        config=config,
    )


def generate_sample_chart(kind: str = "bar") -> VisualizationAttachment:
    """Fixed demo chart of the given kind, for renderer checks."""
    title = f"Sample {kind.capitalize()} Chart"
    if kind in ("pie", "doughnut"):
        values = [
            {"name": f"Category {letter}", "value": value, "color": color}
            for letter, value, color in zip("ABCDE", (30, 25, 20, 15, 10), CHART_COLORS)
        ]
        return build_attachment("chart", {"values": values}, {"type": kind, "title": title, "showLegend": True})

    data = {
        "labels": ["January", "February", "March", "April", "May"],
        "datasets": [{
            "label": "Sample Data",
            "data": [65, 59, 80, 81, 56],
            "backgroundColor": CHART_COLORS[0],
            "borderColor": "#2563eb",
        }],
    }
    config = {
        "type": kind,
        "title": title,
        "xAxisLabel": "Months",
        "yAxisLabel": "Values",
        "showLegend": True,
        "showGrid": True,
    }
    return build_attachment("chart", data, config)


def generate_sample_table() -> VisualizationAttachment:
    """Fixed demo table, for renderer checks."""
    data = {
        "headers": ["Name", "Role", "Department", "Years"],
        "rows": [
            ["John Smith", "Pastor", "Ministry", 15],
            ["Jane Doe", "Worship Leader", "Music", 8],
            ["Bob Johnson", "Youth Pastor", "Youth", 5],
            ["Mary Williams", "Administrator", "Operations", 12],
            ["David Brown", "Elder", "Leadership", 20],
        ],
    }
    config = {
        "title": "Church Staff Directory",
        "sortable": True,
        "filterable": True,
        "pagination": True,
        "pageSize": 10,
    }
    return build_attachment("table", data, config)


def _attachment_from_block(block: FencedBlock, viz_id: str) -> Optional[VisualizationAttachment]:
    payload = _decode(block)
    if payload is None:
        return None

    viz_type = _resolve_type(block, payload)
    if viz_type is None:
        logger.warning(f"Skipping block at offset {block.start}: unknown visualization type {payload.get('type')!r}")
        return None

    data = payload.get("data")
    if data is None and viz_type == "table" and "headers" in payload and "rows" in payload:
        # table data given at the root: {"headers": [...], "rows": [...]}
        data = {k: payload[k] for k in ("headers", "rows", "footer") if k in payload}
    config = payload.get("config") or {}

    if not isinstance(data, dict) or not isinstance(config, dict):
        logger.warning(f"Skipping {viz_type} block at offset {block.start}: 'data' and 'config' must be objects")
        return None

    try:
        return build_attachment(viz_type, data, config, viz_id)
    except ValidationError as e:
        logger.warning(f"Skipping {viz_type} block at offset {block.start}: {e.error_count()} validation error(s): {e}")
        return None


def _collect(text: str) -> List[Tuple[FencedBlock, VisualizationAttachment]]:
    if not text:
        return []
    batch = new_batch_id()
    accepted = []
    for block in iter_fenced_blocks(text):
        attachment = _attachment_from_block(block, make_attachment_id(batch, len(accepted)))
        if attachment is not None:
            accepted.append((block, attachment))
    return accepted


def contains_visualization(text: str) -> bool:
    """True when some fenced block decodes to a JSON object naming a visualization type."""
    if not text:
        return False
    for block in iter_fenced_blocks(text):
        payload = _decode(block)
        if payload is not None and _resolve_type(block, payload) is not None:
            return True
    return False


def extract_visualizations(text: str) -> List[VisualizationAttachment]:
    attachments = [attachment for _, attachment in _collect(text)]
    logger.debug(f"Extracted {len(attachments)} visualization(s)")
    return attachments


def _tidy(text: str) -> str:
    return _BLANK_RUN.sub("\n\n", text).strip()


def process_response(text: str) -> ProcessedResponse:
    """
    Extract visualizations and return the text without the accepted blocks.
    Blocks that fail to decode or validate stay in the text untouched.
    """
    text = text or ""
    accepted = _collect(text)

    pieces = []
    last = 0
    for block, _ in accepted:
        pieces.append(text[last:block.start])
        last = block.end
    pieces.append(text[last:])

    return ProcessedResponse(
        clean_content=_tidy("".join(pieces)),
        attachments=[attachment for _, attachment in accepted],
    )
