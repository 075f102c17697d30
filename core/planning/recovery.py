"""Recovery of structured plans from raw upstream text.

The upstream is non-deterministic: it may wrap the answer in markdown
fences, interleave prose, stop at its token budget, or quote informally.
``recover`` runs cheap checks first and escalates:

  1. strip code fences
  2. extract the candidate object
  3. direct parse
  4. structural repair (close or trim brackets)
  5. textual repair (trailing commas, single quotes, bare values)
  6. required sections
  7. fallback substitution for an empty initiative list

Only structure is ever repaired; numbers are never invented. The result is
a ``RecoverySuccess`` or a classified ``RecoveryFailure``, never an
exception.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, List, Optional, Tuple, Union

from .fallback import fallback_plan

logger = logging.getLogger(__name__)

REQUIRED_SECTIONS = ("executive_summary", "initiatives", "financial_breakdown")
LEGACY_INITIATIVES_KEY = "plan"

_CLOSERS = {"{": "}", "[": "]"}
_FENCE_RE = re.compile(r"```[\w+-]*")
_STRING_RE = re.compile(r'("(?:\\.|[^"\\])*")')
_SINGLE_QUOTED_RE = re.compile(r"'((?:\\.|[^'\\\n])*)'")
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")
_BARE_KEY_RE = re.compile(r"([{,]\s*)([A-Za-z_][\w-]*)(\s*:)")
_BARE_VALUE_RE = re.compile(r"(:\s*)([A-Za-z_][^,{}\[\]\n]*?)(\s*)(?=[,}\]\n]|$)")
_JSON_LITERALS = {"true", "false", "null"}


class RecoveryFailureKind(str, Enum):
    QUOTE_STYLE = "quote-style"
    TRAILING_COMMA = "trailing-comma"
    UNBALANCED_STRUCTURE = "unbalanced-structure"
    UNKNOWN = "unknown"
    MISSING_SECTIONS = "missing-sections"
    EMPTY_RESPONSE = "empty-response"


@dataclass
class RecoverySuccess:
    plan: Dict[str, Any]
    repairs: List[str] = field(default_factory=list)
    substituted: bool = False

    ok: ClassVar[bool] = True


@dataclass
class RecoveryFailure:
    kind: RecoveryFailureKind
    message: str
    preview: str = ""

    ok: ClassVar[bool] = False


RecoveryResult = Union[RecoverySuccess, RecoveryFailure]


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------

def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-finite number {name} is not allowed")


def _parse(text: str) -> Optional[Any]:
    try:
        return json.loads(text, parse_constant=_reject_constant)
    except (ValueError, RecursionError):
        return None


def _scan(text: str) -> Tuple[List[str], int, bool]:
    """Return ``(unclosed_openers, excess_closers, ends_in_string)``.

    Brackets inside double-quoted strings are ignored.
    """
    stack: List[str] = []
    excess = 0
    in_string = False
    escape = False
    for ch in text:
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "{[":
            stack.append(ch)
        elif ch in "}]":
            if stack:
                stack.pop()
            else:
                excess += 1
    return stack, excess, in_string


def _map_outside_strings(text: str, fn: Callable[[str], str]) -> str:
    """Apply ``fn`` to every part of ``text`` outside double-quoted strings."""
    parts = _STRING_RE.split(text)
    # re.split with one group alternates outside / string / outside ...
    return "".join(fn(p) if i % 2 == 0 else p for i, p in enumerate(parts))


def _outside_strings(text: str) -> str:
    return "".join(p for i, p in enumerate(_STRING_RE.split(text)) if i % 2 == 0)


# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------

def strip_markup(text: str) -> str:
    """Remove fenced code-block delimiters (with or without a language tag)."""
    return _FENCE_RE.sub("", text).strip()


def extract_candidate(text: str) -> str:
    """Substring from the first ``{`` to the last ``}``.

    When the object opened at the first ``{`` is still open at the last
    ``}``, the text was cut off, so everything from the first ``{`` is kept
    for structural repair. Without any ``{`` the text itself is returned.
    """
    start = text.find("{")
    if start < 0:
        return text
    end = text.rfind("}")
    if end < start:
        return text[start:].rstrip()
    candidate = text[start:end + 1]
    stack, _, _ = _scan(candidate)
    if stack:
        return text[start:].rstrip()
    return candidate


def repair_structure(text: str) -> str:
    """Balance brackets: append missing closers or trim excess tail closers.

    Balanced input is returned unchanged.
    """
    stack, excess, in_string = _scan(text)
    if not stack and not excess:
        return text

    repaired = text.rstrip()
    while excess and repaired and repaired[-1] in "}]":
        repaired = repaired[:-1].rstrip()
        excess -= 1
    if stack:
        if in_string:
            repaired += '"'
        repaired += "".join(_CLOSERS[o] for o in reversed(stack))
    return repaired


def trim_to_complete(text: str) -> Optional[str]:
    """Cut truncated text back to its last complete value and close it.

    Walks backwards over recent ``,`` / ``}`` / ``]`` positions and returns
    the first prefix that parses once closed, or ``None``.
    """
    stack: List[str] = []
    in_string = False
    escape = False
    trim_points: List[Tuple[int, str, Tuple[str, ...]]] = []

    for i, ch in enumerate(text):
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "{[":
            stack.append(ch)
        elif ch in "}]":
            if stack:
                stack.pop()
            trim_points.append((i, ch, tuple(stack)))
        elif ch == ",":
            trim_points.append((i, ch, tuple(stack)))

    for pos, ch, open_stack in reversed(trim_points[-30:]):
        prefix = text[:pos] if ch == "," else text[:pos + 1]
        closed = prefix + "".join(_CLOSERS[o] for o in reversed(open_stack))
        if _parse(closed) is not None:
            return closed
    return None


def repair_text(text: str) -> str:
    """Textual heuristics: quote style, bare keys/values, trailing commas."""

    def _single_to_double(segment: str) -> str:
        return _SINGLE_QUOTED_RE.sub(
            lambda m: '"' + m.group(1).replace("\\'", "'").replace('"', '\\"') + '"',
            segment,
        )

    def _key(m: "re.Match[str]") -> str:
        return f'{m.group(1)}"{m.group(2)}"{m.group(3)}'

    def _value(m: "re.Match[str]") -> str:
        value = m.group(2).rstrip()
        if value in _JSON_LITERALS:
            return m.group(0)
        return f"{m.group(1)}{json.dumps(value)}{m.group(3)}"

    def _quote_bare(segment: str) -> str:
        return _BARE_VALUE_RE.sub(_value, _BARE_KEY_RE.sub(_key, segment))

    def _drop_trailing_commas(segment: str) -> str:
        return _TRAILING_COMMA_RE.sub(r"\1", segment)

    text = _map_outside_strings(text, _single_to_double)
    text = _map_outside_strings(text, _quote_bare)
    return _map_outside_strings(text, _drop_trailing_commas)


def classify_failure(candidate: str) -> RecoveryFailureKind:
    """Best guess at why ``candidate`` could not be parsed."""
    outside = _outside_strings(candidate)
    if _SINGLE_QUOTED_RE.search(outside) and (
        '"' not in candidate or re.search(r"'[^'\n]*'\s*:", outside)
    ):
        return RecoveryFailureKind.QUOTE_STYLE
    if _TRAILING_COMMA_RE.search(outside):
        return RecoveryFailureKind.TRAILING_COMMA
    stack, excess, in_string = _scan(candidate)
    if stack or excess or in_string:
        return RecoveryFailureKind.UNBALANCED_STRUCTURE
    return RecoveryFailureKind.UNKNOWN


def _preview(text: str, limit: int = 200) -> str:
    return text[:limit]


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def _parse_candidate(candidate: str, repairs: List[str]) -> Optional[Any]:
    doc = _parse(candidate)
    if doc is not None:
        return doc

    structural = repair_structure(candidate)
    if structural != candidate:
        doc = _parse(structural)
        if doc is not None:
            repairs.append("balanced brackets")
            return doc
        trimmed = trim_to_complete(candidate)
        if trimmed is not None:
            repairs.append("trimmed truncated tail")
            return _parse(trimmed)

    textual = repair_text(structural)
    doc = _parse(textual)
    if doc is not None:
        repairs.append("textual repair")
        return doc
    return None


def _validate_sections(doc: Any, repairs: List[str]) -> Optional[str]:
    """Return a description of missing sections, or ``None`` when complete."""
    if not isinstance(doc, dict):
        return f"top-level value is {type(doc).__name__}, expected object"

    if "initiatives" not in doc and isinstance(doc.get(LEGACY_INITIATIVES_KEY), list):
        doc["initiatives"] = doc.pop(LEGACY_INITIATIVES_KEY)
        repairs.append("renamed 'plan' to 'initiatives'")

    missing = []
    summary = doc.get("executive_summary")
    if not isinstance(summary, str) or not summary.strip():
        missing.append("executive_summary")
    if not isinstance(doc.get("initiatives"), list):
        missing.append("initiatives")
    if not isinstance(doc.get("financial_breakdown"), dict):
        missing.append("financial_breakdown")
    if missing:
        return "missing or invalid: " + ", ".join(missing)
    return None


def recover(raw_text: Optional[str]) -> RecoveryResult:
    """Recover a plan dict from raw upstream text."""
    if raw_text is None or not raw_text.strip():
        return RecoveryFailure(RecoveryFailureKind.EMPTY_RESPONSE, "Empty response received")

    cleaned = strip_markup(raw_text)
    if "{" not in cleaned:
        return RecoveryFailure(
            RecoveryFailureKind.UNKNOWN,
            "No structured content found in response",
            preview=_preview(cleaned),
        )

    candidate = extract_candidate(cleaned)
    repairs: List[str] = []
    doc = _parse_candidate(candidate, repairs)
    if doc is None:
        kind = classify_failure(candidate)
        logger.warning("Recovery failed (%s): %d chars", kind.value, len(candidate))
        return RecoveryFailure(
            kind,
            f"Could not parse upstream response ({kind.value})",
            preview=_preview(candidate),
        )

    problem = _validate_sections(doc, repairs)
    if problem:
        return RecoveryFailure(
            RecoveryFailureKind.MISSING_SECTIONS,
            f"Upstream plan is incomplete: {problem}",
            preview=_preview(candidate),
        )

    if not doc["initiatives"]:
        logger.warning("Upstream plan has no initiatives; substituting fallback plan")
        repairs.append("substituted fallback plan")
        return RecoverySuccess(
            plan=fallback_plan("upstream returned no initiatives"),
            repairs=repairs,
            substituted=True,
        )

    if repairs:
        logger.warning("Recovered upstream response with repairs: %s", ", ".join(repairs))
    return RecoverySuccess(plan=doc, repairs=repairs)
