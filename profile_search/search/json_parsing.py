"""
Recover JSON payloads from free-text model output.

Completion models wrap JSON in prose or code fences. extract_json takes the
span from the first opening bracket to the last matching closing bracket and
decodes it, returning a ParseResult instead of raising.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from profile_search.search.exceptions import JSONParseError

_BRACKETS = {"object": ("{", "}"), "array": ("[", "]")}


@dataclass
class ParseResult:
    """Outcome of a JSON extraction: exactly one of value/error is meaningful."""

    ok: bool
    value: Any = None
    error: JSONParseError | None = None


def extract_json(text: str | None, expect: str = "object") -> ParseResult:
    """Extract a JSON object or array embedded in ``text``.

    Args:
        text: Raw model output
        expect: "object" or "array"

    Returns:
        ParseResult with the decoded value, or the parse error
    """
    if expect not in _BRACKETS:
        raise ValueError(f"expect must be 'object' or 'array', got {expect!r}")

    opening, closing = _BRACKETS[expect]
    text = text or ""
    start = text.find(opening)
    end = text.rfind(closing)

    if start == -1 or end == -1 or end < start:
        return ParseResult(ok=False, error=JSONParseError(f"No JSON {expect} found in model output"))

    try:
        value = json.loads(text[start : end + 1])
    except ValueError as e:
        return ParseResult(
            ok=False,
            error=JSONParseError(f"Invalid JSON {expect} in model output: {e}", cause=e),
        )

    expected_type = dict if expect == "object" else list
    if not isinstance(value, expected_type):
        return ParseResult(ok=False, error=JSONParseError(f"Model output is not a JSON {expect}"))

    return ParseResult(ok=True, value=value)
