"""
Split a free-form model answer into preamble, summary and content.

Rationale:
- Explicit [SUMMARY]/[CONTENT] markers win when both are present; no
  heuristics run in that case.
- Otherwise a preamble strategy decides where the conversational lead-in ends.
  The default looks for a transition phrase ("Here is", "Below is", ...) at a
  sentence start, and is swappable for tests or other languages.
- Content is classified with cheap regex checks; no LLM call needed.
- When no explicit summary is given, an executive summary can be composed
  from the content's own cues (topic, themes, purpose, notable elements).
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Iterator, List, Optional, Tuple

from .config import (
    CONTENT_MARKERS,
    DEFAULT_PURPOSES,
    DEFAULT_TOPIC,
    HEADER_PATTERN,
    LIST_ITEM_KINDS,
    LIST_MARKER_PATTERN,
    SUMMARY_MARKERS,
    SUMMARY_MAX_LENGTH,
    TRANSITION_PHRASES,
    ParserSettings,
    load_settings,
)
from .schemas import ContentType, ParsedResponse, ResponseMetadata
from .visualization_parser import contains_visualization

logger = logging.getLogger(__name__)


def _marker_pattern(markers: Tuple[str, str]) -> "re.Pattern[str]":
    opening, closing = markers
    return re.compile(re.escape(opening) + r"([\s\S]*?)" + re.escape(closing), re.IGNORECASE)


_SUMMARY = _marker_pattern(SUMMARY_MARKERS)
_CONTENT = _marker_pattern(CONTENT_MARKERS)

_LIST_LINE = re.compile(LIST_MARKER_PATTERN)
_HEADER = re.compile(HEADER_PATTERN, re.MULTILINE)
_TITLE = re.compile(r"^#{1,3}[ \t]+(.+?)[ \t#]*$", re.MULTILINE)
_PARAGRAPH_BREAK = re.compile(r"\n[ \t]*\n")
_SENTENCE_START = re.compile(r"(?<=[.!?])[ \t]+|\n\s*")

# Executive summary cues
_FENCE_TAG = re.compile(r"^[ \t]*```[ \t]*(\w+)", re.MULTILINE)
_BIBLE_REF = re.compile(r"\b(?:[1-3] )?[A-Z][a-z]+\s+\d+:\d+")
_HAS_STEPS = re.compile(r"\b(?:step|process|method|approach|way)\b", re.IGNORECASE)
_HAS_PRINCIPLES = re.compile(r"\b(?:principle|foundation|basis|fundamental)\b", re.IGNORECASE)
_TOPIC_CUE = re.compile(
    r"\b(?:about|regarding|concerning|explores?|discusses?|covers?)\s+(.+?)(?:[.,;]|$)",
    re.IGNORECASE | re.MULTILINE,
)
_DEFINED_TERM = re.compile(r"^(.+?)\s+(?:is|are)\s+", re.IGNORECASE)
_THEME_PATTERNS = (
    re.compile(
        r"\b(?:includes?|covers?|explores?|examines?|discusses?)\s+(.+?)(?:[.,;]|\band\b|$)",
        re.IGNORECASE | re.MULTILINE,
    ),
    re.compile(
        r"\b(?:key|main|primary|essential|important)\s+(?:aspects?|points?|themes?|topics?|areas?)\s+"
        r"(?:are|include)\s+(.+?)(?:[.;]|$)",
        re.IGNORECASE | re.MULTILINE,
    ),
    re.compile(r"\b(?:focus(?:es)?\s+on|centered\s+on|based\s+on)\s+(.+?)(?:[.,;]|$)", re.IGNORECASE | re.MULTILINE),
)
_PURPOSE = re.compile(
    r"\b(?:to|helps?|guides?|teaches?|shows?|explains?|provides?)\s+(.+?)(?:[.,;]|$)",
    re.IGNORECASE | re.MULTILINE,
)
_ITEM_BREAK = re.compile(r"[,.]")
_MARKDOWN = re.compile(r"[*_`#]")


@dataclass(frozen=True)
class PreambleSplit:
    conversational: str
    content: str
    phrase: Optional[str] = None


class PreambleStrategy(ABC):
    """Decides where a conversational lead-in ends and the content begins."""

    @abstractmethod
    def split(self, text: str) -> PreambleSplit:
        ...

    def role_of(self, phrase: str) -> Optional[str]:
        return None


class TransitionPhraseStrategy(PreambleStrategy):
    """
    The first sentence start where a transition phrase begins is the split.
    Everything before it is conversational; the transition sentence itself is
    dropped so the body does not repeat "Here is a breakdown of ...".
    """

    def __init__(self, phrases: Optional[Dict[str, str]] = None):
        self.phrases = dict(phrases if phrases is not None else TRANSITION_PHRASES)
        alternatives = sorted((self._phrase_regex(p) for p in self.phrases), key=len, reverse=True)
        joined = "|".join(alternatives) or r"(?!)"
        self._transition = re.compile(r"(?:%s)\b" % joined, re.IGNORECASE)
        # A terminator followed by a non-space ("2.0", "3:16") does not end the sentence.
        self._transition_sentence = re.compile(
            r"(?:%s)\b(?:[^\n.!?:]|[.!?:](?=\S))*[.!?:]?" % joined, re.IGNORECASE
        )

    @staticmethod
    def _phrase_regex(phrase: str) -> str:
        return r"\s+".join(re.escape(word).replace("'", "['’]") for word in phrase.split())

    def role_of(self, phrase: str) -> Optional[str]:
        key = " ".join(phrase.lower().replace("’", "'").split())
        return self.phrases.get(key)

    @staticmethod
    def _sentence_starts(text: str) -> Iterator[int]:
        yield 0
        for match in _SENTENCE_START.finditer(text):
            yield match.end()

    def split(self, text: str) -> PreambleSplit:
        for start in self._sentence_starts(text):
            match = self._transition.match(text, start)
            if not match:
                continue
            remainder = text[start:]
            sentence = self._transition_sentence.match(remainder)
            if sentence:
                remainder = remainder[sentence.end():]
            return PreambleSplit(
                conversational=text[:start].strip(),
                content=remainder.strip(),
                phrase=match.group(0),
            )
        return PreambleSplit(conversational="", content=text.strip())


class ResponseParser:
    def __init__(self, strategy: Optional[PreambleStrategy] = None, settings: Optional[ParserSettings] = None):
        self.strategy = strategy or TransitionPhraseStrategy()
        self.settings = settings or load_settings()

    def parse_response(self, text: Optional[str]) -> ParsedResponse:
        if not text or not text.strip():
            return ParsedResponse()

        summary_match = _SUMMARY.search(text)
        content_match = _CONTENT.search(text)

        if summary_match and content_match:
            first_marker = min(summary_match.start(), content_match.start())
            content = content_match.group(1).strip()
            content_type, metadata = self.classify_content(content)
            metadata.explicit_markers = True
            return ParsedResponse(
                conversational=text[:first_marker].strip(),
                summary=summary_match.group(1).strip(),
                content=content,
                content_type=content_type,
                metadata=metadata,
            )

        summary = ""
        body = text
        if summary_match:
            summary = summary_match.group(1).strip()
            body = text[:summary_match.start()] + "\n\n" + text[summary_match.end():]
        if content_match:
            body = _CONTENT.sub(lambda m: m.group(1), body, count=1)

        split = self.strategy.split(body)
        content_type, metadata = self.classify_content(split.content)
        metadata.explicit_markers = bool(summary_match or content_match)
        if split.phrase:
            metadata.transition_phrase = split.phrase
            metadata.transition_role = self.strategy.role_of(split.phrase)

        return ParsedResponse(
            conversational=split.conversational,
            summary=summary,
            content=split.content,
            content_type=content_type,
            metadata=metadata,
        )

    def classify_content(self, content: str) -> Tuple[ContentType, ResponseMetadata]:
        lines = [line for line in content.splitlines() if line.strip()]
        paragraphs = [p for p in _PARAGRAPH_BREAK.split(content) if p.strip()]
        has_headers = bool(_HEADER.search(content))
        title_match = _TITLE.search(content)

        metadata = ResponseMetadata(
            word_count=len(content.split()),
            paragraph_count=len(paragraphs),
            has_headers=has_headers,
            title=title_match.group(1).strip() if title_match else None,
        )

        list_lines = sum(1 for line in lines if _LIST_LINE.match(line))

        content_type: ContentType = "plain"
        if contains_visualization(content):
            content_type = "structured"
        elif len(content) > self.settings.essay_min_chars and (has_headers or len(paragraphs) >= 2):
            content_type = "essay"
        elif lines and list_lines * 2 > len(lines):
            content_type = "list"

        logger.debug(f"Classified content as {content_type} ({metadata.word_count} words)")
        return content_type, metadata

    def has_separable_content(self, text: str) -> bool:
        return self.strategy.split(text or "").phrase is not None

    def extract_content(self, text: str) -> str:
        """Just the content of a response, falling back to the conversational part."""
        parsed = self.parse_response(text)
        return parsed.content or parsed.conversational

    def get_content_preview(self, content: str, max_length: Optional[int] = None) -> str:
        """Plain-text preview that skips headers and list markers, cut at a word boundary."""
        max_length = max_length or self.settings.preview_length
        kept = []
        for line in content.splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            kept.append(_LIST_LINE.sub("", line).strip())
        preview = " ".join(kept).strip()

        if len(preview) <= max_length:
            return preview
        cut = preview.rfind(" ", 0, max_length)
        return preview[:cut if cut > 0 else max_length] + "..."

    # ------------------------------------------------------------------
    # Executive summary
    # ------------------------------------------------------------------

    def generate_executive_summary(self, content: str, content_type: str = "plain") -> str:
        """
        One-sentence summary composed from the content itself.

        Args:
            content: Content body (as returned in ParsedResponse.content)
            content_type: plain | essay | list | structured

        Returns:
            Summary sentence, or "" for empty content
        """
        if not content or not content.strip():
            return ""

        if content_type == "structured":
            return self._clean_summary(self._structured_summary(content))

        lines = [line.strip() for line in content.splitlines() if line.strip()]
        headers = [line.lstrip("#").strip() for line in lines if _HEADER.match(line)]
        topic = self._main_topic(content, headers)
        themes = self._key_themes(content, lines)
        purpose = self._purpose(content, content_type)

        if content_type == "essay":
            summary = self._essay_summary(content, lines, headers, topic, themes, purpose)
        elif content_type == "list":
            items = [line for line in lines if _LIST_LINE.match(line)]
            summary = self._list_summary(items, topic, purpose)
        else:
            summary = self._generic_summary(topic, themes, purpose)
        return self._clean_summary(summary)

    @staticmethod
    def _main_topic(content: str, headers: List[str]) -> str:
        if headers:
            return headers[0]
        first_paragraph = _PARAGRAPH_BREAK.split(content.strip())[0]
        match = _TOPIC_CUE.search(first_paragraph) or _DEFINED_TERM.search(first_paragraph)
        if match:
            return match.group(1).strip()
        return DEFAULT_TOPIC

    @staticmethod
    def _key_themes(content: str, lines: List[str]) -> List[str]:
        themes = []
        for pattern in _THEME_PATTERNS:
            for match in pattern.finditer(content):
                theme = match.group(1).strip()
                if theme and len(theme) < 100:
                    themes.append(theme)
        themes.extend(line.lstrip("#").strip() for line in lines if line.startswith("##"))
        # dedupe, keep order
        return list(dict.fromkeys(themes))[:4]

    @staticmethod
    def _purpose(content: str, content_type: str) -> str:
        match = _PURPOSE.search(content)
        if match:
            return match.group(1).strip()
        return DEFAULT_PURPOSES.get(content_type, DEFAULT_PURPOSES["plain"])

    @staticmethod
    def _essay_summary(
        content: str, lines: List[str], headers: List[str], topic: str, themes: List[str], purpose: str
    ) -> str:
        summary = f"Explores {topic.lower()}"
        if purpose and topic.lower() not in purpose.lower():
            summary += f" to {purpose}"

        if themes:
            summary += f". Covers {', '.join(themes[:2])}"
        elif len(headers) > 1:
            summary += f". Discusses {' and '.join(headers[1:3]).lower()}"

        elements = []
        if _HAS_STEPS.search(content):
            elements.append("practical steps")
        if _HAS_PRINCIPLES.search(content):
            elements.append("key principles")
        if _BIBLE_REF.search(content):
            elements.append("biblical references")
        list_count = sum(1 for line in lines if _LIST_LINE.match(line))
        if list_count > 3:
            elements.append(f"{list_count} key points")
        if elements:
            summary += f" with {', '.join(elements)}"
        return summary

    @staticmethod
    def _list_item_kind(items: List[str]) -> str:
        for keyword, label in LIST_ITEM_KINDS:
            pattern = re.compile(r"\b%s\b" % keyword, re.IGNORECASE)
            if any(pattern.search(item) for item in items):
                return label
        return "key points"

    def _list_summary(self, items: List[str], topic: str, purpose: str) -> str:
        summary = f"Presents {len(items)} {self._list_item_kind(items)}"
        if topic != DEFAULT_TOPIC:
            summary += f" for {topic.lower()}"
        if purpose:
            summary += f" to {purpose}"
        if items:
            previews = [_ITEM_BREAK.split(_LIST_LINE.sub("", item).lower())[0].strip() for item in items[:2]]
            summary += f" including {' and '.join(previews)}"
        return summary

    @staticmethod
    def _structured_summary(content: str) -> str:
        tags = [tag.lower() for tag in _FENCE_TAG.findall(content) if tag.lower() != "json"]
        return f"Provides {tags[0]} data" if tags else "Provides structured data"

    @staticmethod
    def _generic_summary(topic: str, themes: List[str], purpose: str) -> str:
        summary = f"Information about {topic.lower()}"
        if themes:
            summary += f" covering {' and '.join(themes[:2])}"
        if purpose:
            summary += f" to {purpose}"
        return summary

    @staticmethod
    def _clean_summary(text: str) -> str:
        cleaned = _MARKDOWN.sub("", text.strip())
        if not cleaned.endswith((".", "!", "?")):
            cleaned += "."
        if len(cleaned) > SUMMARY_MAX_LENGTH:
            limit = SUMMARY_MAX_LENGTH - 3
            cut = cleaned.rfind(" ", 0, limit)
            cleaned = cleaned[:cut if cut > 0 else limit].rstrip(",;:") + "..."
        return cleaned


@lru_cache(maxsize=1)
def get_default_parser() -> ResponseParser:
    return ResponseParser()


def parse_response(text: Optional[str]) -> ParsedResponse:
    return get_default_parser().parse_response(text)


def generate_executive_summary(content: str, content_type: str = "plain") -> str:
    return get_default_parser().generate_executive_summary(content, content_type)
