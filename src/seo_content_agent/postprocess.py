"""Completion post-processing for free-text generations."""

from __future__ import annotations

import logging
import re
from typing import Callable, List

from .errors import OutputValidationError, TruncatedOutputError
from .repair import CLOSING_MARKS, TERMINAL_PUNCTUATION

logger = logging.getLogger(__name__)

ConclusionBuilder = Callable[[str], str]

CONCLUSION_MARKERS = ("conclusion", "in summary", "to sum up")

_PREAMBLE_RE = re.compile(
    r"^\s*(?:as an ai\b|here(?:'s|’s| is| are)\b|title\s*:|introduction\s*:|this article\b|the article\b)",
    re.IGNORECASE,
)
# Hedges only count as preamble on their own short line or as a lead-in.
_HEDGE_RE = re.compile(r"^\s*(?:sure|certainly|of course|let me|i will|i'll)\b", re.IGNORECASE)
_GLYPH_RE = re.compile(r"^(?:(?:#{1,6}|[*\-•])[ \t]+)+", re.MULTILINE)
_METADATA_RE = re.compile(
    r"^\s*(?:word count|keywords?|keyword density|tone|format|structure|style|target audience)\s*:",
    re.IGNORECASE,
)
_HEADING_RE = re.compile(r"^[A-Z][A-Za-z ]{2,50}:$")
_BLANK_RUN_RE = re.compile(r"\n{3,}")

_META_NUMBERING_RE = re.compile(r"^\s*(?:\d+\s*[.):]|[-*•])\s*")
_META_LABEL_RE = re.compile(r"^(?:meta\s+)?description\s*\d*\s*[:\-]\s*", re.IGNORECASE)
_META_PREAMBLE_RE = re.compile(
    r"^(?:here(?:'s|’s| is| are)\b|sure\b|certainly\b|as an ai\b|i hope\b|let me\b)",
    re.IGNORECASE,
)
_QUOTE_PAIRS = (('"', '"'), ("“", "”"), ("'", "'"))


def topic_conclusion(topic: str) -> str:
    """Default closing paragraph; names the topic instead of generic boilerplate."""
    subject = (topic or "").strip().rstrip(TERMINAL_PUNCTUATION).strip() or "this topic"
    return (
        f"In conclusion, {subject} rewards the time spent understanding it. "
        "Putting the ideas covered here into practice, one step at a time, "
        "is the most reliable way to see lasting results."
    )


def _collapse_blank_runs(text: str) -> str:
    return _BLANK_RUN_RE.sub("\n\n", text)


def _is_preamble(line: str) -> bool:
    if _PREAMBLE_RE.match(line):
        return True
    if _HEDGE_RE.match(line):
        return line.endswith((":", "!")) or len(line.split()) <= 3
    return False


def strip_preamble(text: str) -> str:
    """Drops leading blank and AI self-reference lines."""
    lines = text.strip().splitlines()
    while lines and (not lines[0].strip() or _is_preamble(lines[0].strip())):
        lines.pop(0)
    return "\n".join(lines)


def strip_glyphs(text: str) -> str:
    return _GLYPH_RE.sub("", text)


def drop_metadata_lines(text: str) -> str:
    return "\n".join(line for line in text.splitlines() if not _METADATA_RE.match(line))


def repair_truncation(text: str) -> str:
    """Cuts back to the last complete sentence.

    Raises TruncatedOutputError when nothing sentence-like remains.
    """
    text = text.strip()
    if text and text.rstrip(CLOSING_MARKS)[-1:] in tuple(TERMINAL_PUNCTUATION):
        return text

    cut = max(text.rfind(mark) for mark in TERMINAL_PUNCTUATION)
    if cut < 0:
        raise TruncatedOutputError("output has no complete sentence")
    end = cut + 1
    while end < len(text) and text[end] in CLOSING_MARKS:
        end += 1
    return text[:end].strip()


def has_conclusion(text: str) -> bool:
    lowered = text.lower()
    return any(marker in lowered for marker in CONCLUSION_MARKERS)


def ensure_conclusion(text: str, topic: str, conclusion: ConclusionBuilder = topic_conclusion) -> str:
    if has_conclusion(text):
        return text
    closing = conclusion(topic).strip()
    if not has_conclusion(closing):
        closing = f"In conclusion, {closing[:1].lower()}{closing[1:]}"
    if closing[-1:] not in TERMINAL_PUNCTUATION:
        closing += "."
    return f"{text}\n\n{closing}"


def normalize_headings(text: str) -> str:
    lines: List[str] = []
    for line in text.splitlines():
        if _HEADING_RE.match(line):
            lines.extend(["", line[:-1], ""])
        else:
            lines.append(line)
    return "\n".join(lines)


def finalize_article(text: str, topic: str, conclusion: ConclusionBuilder = topic_conclusion) -> str:
    """Turns raw article output into publishable text.

    The result ends with terminal punctuation, has no leading preamble and
    contains a concluding segment. Running it again on its own output is a
    no-op.
    """
    article = (text or "").replace("\r\n", "\n").strip()
    # Truncation runs before preamble stripping so a shortened first line is judged as it will be output.
    article = strip_glyphs(article)
    article = drop_metadata_lines(article)
    article = repair_truncation(article)
    article = strip_preamble(article)
    if not article:
        raise OutputValidationError("output holds nothing but preamble")
    article = _collapse_blank_runs(article).strip()
    article = ensure_conclusion(article, topic, conclusion)
    article = normalize_headings(article)
    article = _collapse_blank_runs(article).strip()
    logger.debug("finalized article: %d chars", len(article))
    return article


def _strip_wrapping_quotes(line: str) -> str:
    for left, right in _QUOTE_PAIRS:
        if len(line) >= 2 and line.startswith(left) and line.endswith(right):
            return line[len(left) : -len(right)].strip()
    return line


def finalize_meta_descriptions(text: str, fallback: str, count: int = 3) -> List[str]:
    """Exactly ``count`` descriptions, padded with ``fallback``.

    Raises OutputValidationError when the output holds no usable line, so a
    fallback provider gets a chance before padding kicks in.
    """
    descriptions: List[str] = []
    for raw in (text or "").splitlines():
        line = raw.strip()
        if not line:
            continue
        line = _META_NUMBERING_RE.sub("", line)
        line = _META_LABEL_RE.sub("", line)
        line = _strip_wrapping_quotes(line.strip())
        if not line or line.endswith(":") or _META_PREAMBLE_RE.match(line):
            continue
        descriptions.append(line)
        if len(descriptions) == count:
            break

    if not descriptions:
        raise OutputValidationError("no meta descriptions in output")
    while len(descriptions) < count:
        descriptions.append(fallback)
    return descriptions


def clean_optimized_content(text: str) -> str:
    cleaned = text.replace("\\n", "\n")
    cleaned = _collapse_blank_runs(cleaned)
    cleaned = re.sub(r"\s+\.", ".", cleaned)
    return cleaned.strip()
