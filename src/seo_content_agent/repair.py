"""Heals model text that is supposed to encode a JSON object.

Providers wrap JSON in prose, use typographic quotes, leave trailing commas or
stop mid-string. ``repair`` runs an ordered pipeline of fixups over the text;
every step yields a ``RepairAttempt`` and the first candidate that both parses
and satisfies the target schema wins. Nothing here raises for control flow:
callers either inspect the ``RepairOutcome`` or use ``parse_structured``,
which raises ``RepairError`` once every step has failed.
"""

from __future__ import annotations

import json
import logging
import re
import unicodedata
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import RepairError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

_CODE_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_ESCAPE_RE = re.compile(r'\\(u[0-9a-fA-F]{4}|["\\/nrtbf])')
_SENTENCE_END_RE = re.compile(r"[.!?](?=\s)")
_STRUCTURAL_OPEN_QUOTE_RE = re.compile(r"(?<=[{\[,:])(\s*)[“”]")
_STRUCTURAL_CLOSE_QUOTE_RE = re.compile(r"[“”](?=\s*[:,}\]])")

_SIMPLE_ESCAPES = {'"': '"', "\\": "\\", "/": "/", "n": "\n", "r": "\n", "t": "\t", "b": "", "f": ""}

TYPOGRAPHY = {
    "‘": "'",
    "’": "'",
    "‚": "'",
    "“": '"',
    "”": '"',
    "„": '"',
    "–": "-",
    "—": "-",
    "…": "...",
    " ": " ",
}

TERMINAL_PUNCTUATION = ".!?"
CLOSING_MARKS = "\"')]”’"


@dataclass
class RepairAttempt:
    step: str
    candidate: str
    ok: bool
    error: Optional[str] = None
    value: Any = field(default=None, repr=False)


@dataclass
class RepairOutcome(Generic[M]):
    ok: bool
    value: Optional[M]
    attempts: List[RepairAttempt]
    error: Optional[RepairError] = None

    def unwrap(self) -> M:
        if not self.ok or self.value is None:
            raise self.error or RepairError("repair failed", raw_text="", attempts=self.attempts)
        return self.value


def normalize_typography(text: str) -> str:
    for src, dst in TYPOGRAPHY.items():
        text = text.replace(src, dst)
    return text


def strip_non_printable(text: str) -> str:
    return "".join(
        ch for ch in text if ch in "\n\t" or not unicodedata.category(ch).startswith("C")
    )


def ends_sentence(text: str) -> bool:
    stripped = text.rstrip().rstrip(CLOSING_MARKS)
    return bool(stripped) and stripped[-1] in TERMINAL_PUNCTUATION


def truncate_to_last_sentence(text: str) -> str:
    """Cuts after the last ``.``/``!``/``?`` that is followed by whitespace."""
    text = text.rstrip()
    if ends_sentence(text):
        return text
    matches = list(_SENTENCE_END_RE.finditer(text))
    if not matches:
        return text
    return text[: matches[-1].end()].rstrip()


def _decode_loose(raw: str) -> str:
    def _sub(match: re.Match) -> str:
        token = match.group(1)
        if token[0] == "u":
            return chr(int(token[1:], 16))
        return _SIMPLE_ESCAPES[token]

    return _ESCAPE_RE.sub(_sub, raw)


def _parse(candidate: str, strict: bool = True) -> Tuple[Any, Optional[str]]:
    try:
        return json.loads(candidate, strict=strict), None
    except json.JSONDecodeError as exc:
        return None, f"invalid JSON: {exc.msg} at line {exc.lineno} column {exc.colno}"


def _summarize_validation(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors()[:5]:
        loc = ".".join(str(p) for p in err.get("loc", ())) or "<root>"
        parts.append(f"{loc}: {err.get('msg')}")
    return "schema mismatch: " + "; ".join(parts)


def validate_schema(data: Any, schema: Type[M]) -> Tuple[Optional[M], Optional[str]]:
    if not isinstance(data, dict):
        return None, f"expected a JSON object, got {type(data).__name__}"
    try:
        return schema.model_validate(data), None
    except ValidationError as exc:
        return None, _summarize_validation(exc)


def _parse_and_validate(step: str, candidate: str, schema: Type[M], strict: bool = True) -> RepairAttempt:
    data, error = _parse(candidate, strict=strict)
    if error is not None:
        return RepairAttempt(step=step, candidate=candidate, ok=False, error=error)
    value, error = validate_schema(data, schema)
    if error is not None:
        return RepairAttempt(step=step, candidate=candidate, ok=False, error=error)
    return RepairAttempt(step=step, candidate=candidate, ok=True, value=value)


def _last_significant(out: List[str]) -> Optional[str]:
    for ch in reversed(out):
        if not ch.isspace():
            return ch
    return None


def _drop_trailing(out: List[str], chars: str) -> None:
    while out and out[-1].isspace():
        out.pop()
    while out and out[-1] in chars:
        out.pop()
        while out and out[-1].isspace():
            out.pop()


def _balance(text: str, fix_commas: bool = False) -> str:
    """String-aware pass that closes what was left open.

    With ``fix_commas`` it also drops leading, duplicate and trailing commas,
    inserts missing commas between adjacent values, merges top-level object
    fragments and collapses whitespace runs outside strings.
    """
    out: List[str] = []
    stack: List[str] = []
    in_string = False
    escaped = False

    for ch in text:
        if in_string:
            out.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if fix_commas and ch.isspace():
            if out and not out[-1].isspace():
                out.append(" ")
            continue

        if fix_commas and (ch in '{["' or ch.isdigit() or ch == "-"):
            last = _last_significant(out)
            if ch == "{" and not stack and last == "}":
                _drop_trailing(out, "}")
                if _last_significant(out) != "{":
                    out.append(",")
                stack.append("}")
                continue
            separated = bool(out) and out[-1].isspace()
            if stack and last is not None and (
                last in "}]" or (separated and (last == '"' or last.isalnum()))
            ):
                out.append(",")

        if ch == '"':
            in_string = True
            out.append(ch)
        elif ch in "{[":
            stack.append("}" if ch == "{" else "]")
            out.append(ch)
        elif ch in "}]":
            if fix_commas:
                _drop_trailing(out, ",")
            if stack and stack[-1] == ch:
                stack.pop()
                out.append(ch)
            elif ch in stack:
                while stack and stack[-1] != ch:
                    out.append(stack.pop())
                stack.pop()
                out.append(ch)
        elif ch == "," and fix_commas:
            if _last_significant(out) in (None, "{", "[", ",", ":"):
                continue
            out.append(ch)
        else:
            out.append(ch)

    if in_string:
        if escaped:
            out.pop()
        out.append('"')
    if stack:
        _drop_trailing(out, ",:")
        out.extend(reversed(stack))
    return "".join(out).strip()


def _object_end(text: str, start: int) -> int:
    """Index of the ``}`` closing the object opened at ``start``.

    Object fragments that directly follow (only whitespace between) are taken
    in as well so syntax repair can merge them. Returns -1 when the first
    object is never closed outside a string.
    """
    depth = 0
    in_string = False
    escaped = False
    end = -1
    for index in range(start, len(text)):
        ch = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}" and depth:
            depth -= 1
            if depth == 0:
                end = index
                if not text[index + 1 :].lstrip().startswith("{"):
                    break
    return end


def boundary_trim(text: str) -> str:
    """From the first ``{`` to the brace that closes it, fences removed.

    Braces in trailing prose are left out. When the object never balances the
    last ``}`` is used, and without any closing brace the tail is kept so later
    steps can close it.
    """
    text = text or ""
    fenced = _CODE_FENCE_RE.search(text)
    if fenced and "{" in fenced.group(1):
        text = fenced.group(1)
    start = text.find("{")
    if start < 0:
        return ""
    end = _object_end(text, start)
    if end < 0:
        end = text.rfind("}")
    if end < start:
        return text[start:].rstrip()
    return text[start : end + 1]


def direct_parse(candidate: str, schema: Type[M]) -> RepairAttempt:
    return _parse_and_validate("direct_parse", candidate, schema)


def _field_pattern(name: str) -> re.Pattern:
    return re.compile(r'"%s"\s*:\s*"' % re.escape(name))


# Closing quote of a string value: followed by the next key or the end of the object.
_VALUE_END_RE = re.compile(r'(?<!\\)"(?=\s*,\s*"[^"\n]{1,64}"\s*:|\s*\}\s*[\]}]*\s*$)')


def _repair_field(candidate: str, name: str) -> Tuple[str, bool]:
    match = _field_pattern(name).search(candidate)
    if not match:
        return candidate, False

    value_start = match.end()
    closing = _VALUE_END_RE.search(candidate, value_start)
    if closing:
        raw = candidate[value_start : closing.start()]
        rest = candidate[closing.end() :]
    else:
        raw = candidate[value_start:].rstrip()
        rest = ""

    value = _decode_loose(raw)
    value = normalize_typography(value)
    value = strip_non_printable(value)
    value = truncate_to_last_sentence(value)

    repaired = candidate[: match.start()] + f'"{name}": ' + json.dumps(value, ensure_ascii=False) + rest
    return _balance(repaired), True


def field_repair(candidate: str, schema: Type[M]) -> RepairAttempt:
    names = tuple(getattr(schema, "repair_fields", ()) or ())
    if not names:
        return RepairAttempt(step="field_repair", candidate=candidate, ok=False, error="no repairable fields")

    touched = []
    for name in names:
        candidate, found = _repair_field(candidate, name)
        if found:
            touched.append(name)
    if not touched:
        return RepairAttempt(
            step="field_repair",
            candidate=candidate,
            ok=False,
            error="fields not found: " + ", ".join(names),
        )
    return _parse_and_validate("field_repair", candidate, schema)


def syntax_repair(candidate: str, schema: Type[M]) -> RepairAttempt:
    fixed = _STRUCTURAL_OPEN_QUOTE_RE.sub(r'\1"', candidate)
    fixed = _STRUCTURAL_CLOSE_QUOTE_RE.sub('"', fixed)
    fixed = _balance(fixed, fix_commas=True)
    return _parse_and_validate("syntax_repair", fixed, schema, strict=False)


REPAIR_STEPS: Tuple[Callable[[str, Type[BaseModel]], RepairAttempt], ...] = (
    direct_parse,
    field_repair,
    syntax_repair,
)


def repair(text: str, schema: Type[M]) -> RepairOutcome[M]:
    attempts: List[RepairAttempt] = []
    candidate = boundary_trim(text)
    attempts.append(
        RepairAttempt(
            step="boundary_trim",
            candidate=candidate,
            ok=bool(candidate),
            error=None if candidate else "no '{' in output",
        )
    )

    if candidate:
        for step in REPAIR_STEPS:
            attempt = step(candidate, schema)
            attempts.append(attempt)
            if attempt.ok:
                logger.debug("repair into %s succeeded at %s", schema.__name__, attempt.step)
                return RepairOutcome(ok=True, value=attempt.value, attempts=attempts)
            logger.debug("repair step %s failed: %s", attempt.step, attempt.error)
            candidate = attempt.candidate

    last_error = next((a.error for a in reversed(attempts) if a.error), "unknown error")
    error = RepairError(
        f"Could not coerce output into {schema.__name__}: {last_error}",
        raw_text=text,
        attempts=attempts,
    )
    return RepairOutcome(ok=False, value=None, attempts=attempts, error=error)


def parse_structured(text: str, schema: Type[M]) -> M:
    return repair(text, schema).unwrap()


def validator_for(schema: Type[M]) -> Callable[[str], M]:
    def _validate(text: str) -> M:
        return parse_structured(text, schema)

    _validate.__name__ = f"validate_{schema.__name__}"
    return _validate
