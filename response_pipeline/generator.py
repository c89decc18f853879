"""
Heuristic visualization detection and generation from prose.

Rationale:
- Use regex patterns to pull "entity -> number/attribute" records and dated
  milestones out of plain text.
- Fast and deterministic: no LLM call needed.
- Best effort only. Anything produced goes through the same schema validation
  as extracted blocks, so a generated attachment is never structurally invalid.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError

from .config import (
    CHART_COLORS,
    CHART_TYPE_PATTERNS,
    MAX_PIE_POINTS,
    VISUALIZATION_KEYWORDS,
    VISUALIZATION_TYPES,
)
from .schemas import VisualizationAttachment, VisualizationNeed
from .utils import make_attachment_id, new_batch_id
from .visualization_parser import build_attachment

logger = logging.getLogger(__name__)

_NUMBER = r"[$£€]?\d[\d,]*(?:\.\d+)?"
_QUALIFIER = r"(?:about|around|approximately|roughly|over|nearly|almost|only|just)\s+"

_HAS_DIGIT = re.compile(r"\d")
_PERCENT = re.compile(r"\d\s*%|\bpercent\b", re.IGNORECASE)
_PERCENT_OR_CURRENCY = re.compile(r"\d\s*%|\bpercent\b|[$£€]\s*\d", re.IGNORECASE)
_LEAD_MARKER = re.compile(r"^\s*(?:[-*+•]|\d+[.)])\s+")
_SENTENCE_SPLIT = re.compile(r"(?<!\bc\.)(?<=[.!?])\s+(?=[A-Z0-9])")

# "Genesis: 50 chapters, 1533 verses"
_RECORD_LINE = re.compile(r"^(?P<name>[^:\n]{1,60}?)\s*:\s+(?P<rest>\S.*)$")
_PART_SPLIT = re.compile(r"\s*(?:;|,\s|\band\b)\s*")
_NUMBER_FIRST = re.compile(
    r"^(?:" + _QUALIFIER + r")?(?P<number>" + _NUMBER + r")\s*(?P<unit>%|percent\b)?\s*(?P<key>[A-Za-z][A-Za-z' -]{0,40})?$",
    re.IGNORECASE,
)
_KEY_FIRST = re.compile(
    r"^(?P<key>[A-Za-z][A-Za-z' -]{0,40}?)\s*(?:[:=]|\bof\b|\bis\b|\bwas\b)?\s*(?P<number>" + _NUMBER + r")\s*(?P<unit>%|percent\b)?$",
    re.IGNORECASE,
)
_KEY_TEXT = re.compile(r"^(?P<key>[A-Za-z][A-Za-z' -]{0,30}?)\s*[:=]\s*(?P<text>\S.{0,80})$")

# "Genesis has 50 chapters"
_SENTENCE_PAIR = re.compile(
    r"\b(?P<name>[A-Z][\w'’-]*(?:\s+(?:of\s+|the\s+)?[A-Z][\w'’-]*){0,3})\s+"
    r"(?:has|had|have|contains|contained|includes|included|with|reached|totaled|totals|"
    r"is|was|are|were|at|scored|received|holds|held|numbers|numbered|spans|spanned)\s+"
    r"(?:" + _QUALIFIER + r")?(?P<number>" + _NUMBER + r")\s*(?P<unit>%|percent\b)?\s*(?P<key>[a-z][a-z'-]*)?"
)

# "1446 BC", "c. 586 B.C.", "AD 70", "In 1517"
_ERA_SUFFIX = re.compile(
    r"(?<![\w$£€.,])(?:(?:c\.|ca\.|circa)\s*)?(?P<year>\d{1,4})\s*(?P<era>B\.?C\.?E?\.?|A\.?D\.?|C\.?E\.?)(?![A-Za-z])"
)
_ERA_PREFIX = re.compile(r"(?<![\w$£€.,])(?P<era>A\.?D\.?)\s*(?P<year>\d{1,4})\b")
_YEAR = re.compile(
    r"(?:^|\b(?:in|by|around|circa|since|from|until|during)\s+)(?P<year>1\d{3}|20\d{2})\b(?!\s*%)",
    re.IGNORECASE,
)
_DANGLING = re.compile(r"\b(?:in|by|around|about|circa|c\.|ca\.)\s*$", re.IGNORECASE)

_NAME_STOPWORDS = {"The", "A", "An", "In", "On", "At", "By", "And", "But", "Of", "This", "That", "These", "Those", "It", "There"}
_KEY_STOPWORDS = {
    "and", "or", "in", "of", "the", "a", "an", "to", "for", "while", "but", "with", "at", "by",
    "from", "on", "than", "compared", "versus", "vs", "each", "respectively", "whereas",
    "when", "as", "that", "which", "who",
}


@dataclass
class EntityRecord:
    name: str
    attributes: Dict[str, Any] = field(default_factory=dict)

    def numeric(self) -> Optional[Tuple[str, float]]:
        for key, value in self.attributes.items():
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                return key, value
        return None


@dataclass
class TextAnalysis:
    events: List[Dict[str, str]] = field(default_factory=list)
    records: List[EntityRecord] = field(default_factory=list)
    suggested_type: Optional[str] = None
    item_count: int = 0


def _parse_number(raw: str) -> Any:
    digits = raw.lstrip("$£€").replace(",", "")
    return float(digits) if "." in digits else int(digits)


def _normalize_key(key: Optional[str]) -> Optional[str]:
    if not key:
        return None
    key = " ".join(key.lower().split())
    key = re.sub(r"^(?:of|the)\s+", "", key)
    if not key or key in _KEY_STOPWORDS:
        return None
    return key


def _label(key: str) -> str:
    return key[:1].upper() + key[1:]


def _parse_attribute(part: str) -> Optional[Tuple[str, Any]]:
    part = part.strip().rstrip(".!?")
    if not part:
        return None

    match = _NUMBER_FIRST.match(part) or _KEY_FIRST.match(part)
    if match:
        return _normalize_key(match.group("key")) or "value", _parse_number(match.group("number"))

    match = _KEY_TEXT.match(part)
    if match:
        key = _normalize_key(match.group("key"))
        if key:
            return key, match.group("text").strip()
    return None


def _clean_name(name: str) -> str:
    name = name.strip().strip("*_`\"' ")
    words = name.split()
    while words and words[0] in _NAME_STOPWORDS:
        words.pop(0)
    return " ".join(words)


def extract_entity_records(text: str) -> List[EntityRecord]:
    """
    Collect named entities with their attributes, in order of first mention.
    Only entities with at least one attribute are returned.
    """
    records: Dict[str, EntityRecord] = {}

    def record_for(name: str) -> EntityRecord:
        if name not in records:
            records[name] = EntityRecord(name=name)
        return records[name]

    for line in text.splitlines():
        line = _LEAD_MARKER.sub("", line).strip()
        match = _RECORD_LINE.match(line)
        if not match:
            continue
        name = _clean_name(match.group("name"))
        if not name or not re.search(r"[A-Za-z]", name) or len(name.split()) > 6:
            continue
        attributes = [_parse_attribute(part) for part in _PART_SPLIT.split(match.group("rest"))]
        attributes = [a for a in attributes if a is not None]
        if not attributes:
            continue
        record = record_for(name)
        for key, value in attributes:
            record.attributes.setdefault(key, value)

    for match in _SENTENCE_PAIR.finditer(text):
        name = _clean_name(match.group("name"))
        if not name:
            continue
        key = _normalize_key(match.group("key")) or "value"
        record_for(name).attributes.setdefault(key, _parse_number(match.group("number")))

    return [record for record in records.values() if record.attributes]


def _segments(text: str) -> List[str]:
    segments = []
    for line in text.splitlines():
        line = _LEAD_MARKER.sub("", line).strip()
        if not line:
            continue
        segments.extend(s.strip() for s in _SENTENCE_SPLIT.split(line) if s.strip())
    return segments


def _find_date(segment: str) -> Optional[Tuple["re.Match[str]", str]]:
    found = []
    match = _ERA_SUFFIX.search(segment)
    if match:
        era = match.group("era").replace(".", "").upper()
        found.append((match, f"{match.group('year')} {era}"))
    match = _ERA_PREFIX.search(segment)
    if match:
        found.append((match, f"AD {match.group('year')}"))
    match = _YEAR.search(segment)
    if match:
        found.append((match, match.group("year")))
    if not found:
        return None
    return min(found, key=lambda item: item[0].start())


def _event_title(segment: str, match: "re.Match[str]") -> str:
    before = _DANGLING.sub("", segment[:match.start()]).strip(" \t,:;-–—")
    after = segment[match.end():].strip(" \t,:;-–—")
    title = " ".join(p for p in (before, after) if p).rstrip(".!?;,").strip()
    return title[:1].upper() + title[1:]


def extract_timeline_events(text: str) -> List[Dict[str, str]]:
    """Dated milestones in source order, one per line or sentence."""
    events = []
    for segment in _segments(text):
        found = _find_date(segment)
        if found is None:
            continue
        match, date = found
        title = _event_title(segment, match)
        if title:
            events.append({"date": date, "title": title})
    return events


def analyze_text(text: str, require_digits: bool = True) -> TextAnalysis:
    """
    Extract events/records and pick a type. With `require_digits`, text
    without any digit is not analyzed at all; forced generation turns it off
    so text-only attributes ("home = Galilee") still make a table.
    """
    if not text or (require_digits and not _HAS_DIGIT.search(text)):
        return TextAnalysis()

    events = extract_timeline_events(text)
    records = extract_entity_records(text)
    wide = [r for r in records if len(r.attributes) >= 2]
    numeric = [r for r in records if r.numeric()]

    analysis = TextAnalysis(events=events, records=records)
    if len(events) >= 2:
        analysis.suggested_type, analysis.item_count = "timeline", len(events)
    elif len(records) == 2 and len(wide) == 2:
        analysis.suggested_type, analysis.item_count = "comparison", 2
    elif len(wide) >= 2:
        analysis.suggested_type, analysis.item_count = "table", len(wide)
    elif len(numeric) >= 2:
        analysis.suggested_type, analysis.item_count = "chart", len(numeric)
    return analysis


def _has_keyword(lower_text: str, keywords: List[str]) -> bool:
    return any(re.search(r"\b" + re.escape(k) + r"\b", lower_text) for k in keywords)


def detect_visualization_need(text: str) -> VisualizationNeed:
    """
    Decide whether prose would benefit from a visualization and which kind.
    No digits, or no entity/number structure, means no visualization.
    """
    analysis = analyze_text(text)
    if analysis.suggested_type is None:
        return VisualizationNeed(needs_visualization=False, confidence=0.0)

    confidence = 0.5 + min(0.1 * (analysis.item_count - 2), 0.2)
    if _has_keyword(text.lower(), VISUALIZATION_KEYWORDS[analysis.suggested_type]):
        confidence += 0.15
    if _PERCENT_OR_CURRENCY.search(text):
        confidence += 0.1

    result = VisualizationNeed(
        needs_visualization=True,
        suggested_type=analysis.suggested_type,
        confidence=round(min(confidence, 1.0), 2),
    )
    logger.info(f"Visualization need: {result.suggested_type} (confidence {result.confidence})")
    return result


def should_add_visualization(text: str) -> bool:
    need = detect_visualization_need(text)
    return need.needs_visualization and need.confidence > 0.5


def suggest_visualization_type(text: str) -> Optional[str]:
    need = detect_visualization_need(text)
    return need.suggested_type if need.needs_visualization else None


def choose_chart_kind(text: str, values: List[float]) -> str:
    lower = text.lower()
    for kind, pattern in CHART_TYPE_PATTERNS.items():
        if re.search(pattern, lower):
            return kind
    if any(v < 0 for v in values):
        return "bar"
    if _PERCENT.search(text) or len(values) <= MAX_PIE_POINTS:
        return "pie"
    return "bar"


Payload = Optional[Tuple[Dict[str, Any], Dict[str, Any]]]


def _chart_payload(text: str, analysis: TextAnalysis) -> Payload:
    pairs = [(r.name, r.numeric()) for r in analysis.records if r.numeric()]
    if not pairs:
        return None

    kind = choose_chart_kind(text, [value for _, (_, value) in pairs])
    points = [
        {"name": name, "value": value, "color": CHART_COLORS[i % len(CHART_COLORS)]}
        for i, (name, (_, value)) in enumerate(pairs)
    ]
    config = {"type": kind, "showLegend": True, "showGrid": kind not in ("pie", "doughnut")}

    keys = {key for _, (key, _) in pairs}
    if len(keys) == 1 and "value" not in keys:
        config["title"] = _label(keys.pop())
    return {"values": points}, config


def _table_payload(text: str, analysis: TextAnalysis) -> Payload:
    if analysis.records:
        keys: List[str] = []
        for record in analysis.records:
            keys.extend(k for k in record.attributes if k not in keys)
        headers = ["Name"] + [_label(k) for k in keys]
        rows = [[r.name] + [r.attributes.get(k, "") for k in keys] for r in analysis.records]
    elif analysis.events:
        headers = ["Date", "Event"]
        rows = [[e["date"], e["title"]] for e in analysis.events]
    else:
        return None
    return {"headers": headers, "rows": rows}, {"sortable": True}


def _timeline_payload(text: str, analysis: TextAnalysis) -> Payload:
    if not analysis.events:
        return None
    return {"events": analysis.events}, {"orientation": "vertical"}


def _comparison_payload(text: str, analysis: TextAnalysis) -> Payload:
    if len(analysis.records) < 2:
        return None
    items = [
        {"name": r.name, "attributes": {_label(k): v for k, v in r.attributes.items()}}
        for r in analysis.records
    ]
    return {"items": items}, {"highlightDifferences": True}


_BUILDERS: Dict[str, Callable[[str, TextAnalysis], Payload]] = {
    "chart": _chart_payload,
    "table": _table_payload,
    "timeline": _timeline_payload,
    "comparison": _comparison_payload,
}


def generate_visualization_from_text(
    text: str, hint_type: Optional[str] = None
) -> Optional[VisualizationAttachment]:
    """
    Synthesize an attachment from prose.

    Args:
        text: Arbitrary text without an explicit visualization block
        hint_type: Force this visualization type; detect one when omitted

    Returns:
        A validated attachment, or None when nothing usable was found
    """
    if hint_type is not None and hint_type not in VISUALIZATION_TYPES:
        raise ValueError(f"Unknown visualization type: {hint_type}")
    if not text or not text.strip():
        return None

    analysis = analyze_text(text, require_digits=hint_type is None)
    viz_type = hint_type or analysis.suggested_type
    if viz_type is None:
        logger.info("No visualization warranted for text")
        return None

    payload = _BUILDERS[viz_type](text, analysis)
    if payload is None:
        logger.info(f"No usable {viz_type} data found in text")
        return None

    data, config = payload
    try:
        return build_attachment(viz_type, data, config, make_attachment_id(new_batch_id(), 0))
    except ValidationError as e:
        logger.warning(f"Generated {viz_type} failed validation: {e}")
        return None
