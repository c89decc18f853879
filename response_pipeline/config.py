"""
Fixed vocabularies and runtime settings.

Rationale:
- Keep every phrase list, marker set and keyword pattern in one place so the
  parsers stay free of inline literals and can be tested/localized separately.
- Read environment lazily (after main.py loads .env).
"""

import os
from typing import Dict, List, Optional

from pydantic import BaseModel


# Phrase -> role. "lead_in" phrases introduce content that follows,
# "authored" phrases announce something the assistant produced.
TRANSITION_PHRASES: Dict[str, str] = {
    "here is": "lead_in",
    "here's": "lead_in",
    "here are": "lead_in",
    "below is": "lead_in",
    "below are": "lead_in",
    "following is": "lead_in",
    "following are": "lead_in",
    "this is": "lead_in",
    "i've created": "authored",
    "i've prepared": "authored",
    "i've written": "authored",
    "i've drafted": "authored",
    "i've put together": "authored",
}

# Explicit answer markers some prompts ask the model to emit.
SUMMARY_MARKERS = ("[SUMMARY]", "[/SUMMARY]")
CONTENT_MARKERS = ("[CONTENT]", "[/CONTENT]")

DEFAULT_TOPIC = "the topic"

# Fallback purpose clause per content type for generated executive summaries.
DEFAULT_PURPOSES: Dict[str, str] = {
    "essay": "provide comprehensive understanding",
    "list": "outline key points and practices",
    "structured": "present information visually",
    "plain": "share insights and information",
}

# Checked in order; first keyword found in any list item names the items.
LIST_ITEM_KINDS = (
    ("step", "steps"),
    ("tip", "tips"),
    ("principle", "principles"),
    ("example", "examples"),
    ("way", "ways"),
    ("method", "methods"),
    ("practice", "practices"),
)

SUMMARY_MAX_LENGTH = 200

LIST_MARKER_PATTERN = r"^\s*(?:[-*+•]|\d+[.)])\s+"
HEADER_PATTERN = r"^#{1,6}[ \t]+\S"

VISUALIZATION_TYPES = ("chart", "table", "timeline", "comparison")

# Fence language tag -> visualization type. None means the payload names its type.
FENCE_TAGS: Dict[str, Optional[str]] = {
    "json": None,
    "chart": "chart",
    "table": "table",
    "timeline": "timeline",
    "comparison": "comparison",
}

DEFAULT_NAMES: Dict[str, str] = {
    "chart": "Chart",
    "table": "Table",
    "timeline": "Timeline",
    "comparison": "Comparison",
}

# Checked in order; first match wins.
CHART_TYPE_PATTERNS: Dict[str, str] = {
    "doughnut": r"\b(doughnut\s+chart|doughnut\s+graph|doughnut|donut)\b",
    "pie": r"\b(pie\s+chart|pie\s+graph|piechart|piegraph|pie)\b",
    "line": r"\b(line\s+chart|line\s+graph|line\s+plot|linechart|linegraph|trend|trends|time\s+series|over\s+time)\b",
    "bar": r"\b(bar\s+chart|bar\s+graph|bar\s+plot|barchart|bargraph|bars?)\b",
    "area": r"\b(area\s+chart|area\s+graph)\b",
    "radar": r"\b(radar\s+chart|radar\s+graph|radar)\b",
    "scatter": r"\b(scatter\s+plot|scatter\s+chart|scatterplot|scatter)\b",
}

# Language cues that raise detection confidence for a given type.
VISUALIZATION_KEYWORDS: Dict[str, List[str]] = {
    "chart": [
        "growth", "trend", "increase", "decrease", "over time", "since",
        "progress", "distribution", "share", "percentage", "proportion",
    ],
    "table": [
        "list", "breakdown", "details", "categories", "groups",
        "allocation", "summary", "overview",
    ],
    "timeline": [
        "history", "timeline", "chronology", "sequence", "events",
        "milestones", "phases", "periods", "era", "dates",
    ],
    "comparison": [
        "versus", "vs", "compare", "compared to", "contrast", "difference",
        "between", "comparison", "relative", "against", "than",
    ],
}

CHART_COLORS = ["#3b82f6", "#10b981", "#f59e0b", "#ef4444", "#8b5cf6"]

# Pie/doughnut bias applies up to this many points.
MAX_PIE_POINTS = 6

# Maximum rows carried into a table attachment built from a DataFrame.
ROW_LIMIT = 5000


class ParserSettings(BaseModel):
    essay_min_chars: int = 500
    preview_length: int = 150
    log_level: str = "INFO"


def load_settings() -> ParserSettings:
    """Build settings from the environment, falling back to defaults."""
    return ParserSettings(
        essay_min_chars=int(os.getenv("ESSAY_MIN_CHARS", "500")),
        preview_length=int(os.getenv("PREVIEW_LENGTH", "150")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )
