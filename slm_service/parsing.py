"""Extraction of the JSON array a language model was asked to return.

Model replies are free text: usually the bare array, sometimes wrapped in a
sentence or a markdown fence. The whole reply is tried as JSON first; if that
does not give a list, the first balanced ``[...]`` span is cut out and parsed.
"""

from __future__ import annotations

import json
from typing import Optional

from slm_service.models import ParseOutcome, ParseStatus


def parse_segment_array(text: str | None) -> ParseOutcome:
    if not text or not text.strip():
        return ParseOutcome(ParseStatus.malformed, detail="empty response")

    try:
        whole = json.loads(text)
    except ValueError:
        whole = None
    if isinstance(whole, list):
        return _outcome(whole)

    span = find_array_span(text)
    if span is None:
        return ParseOutcome(ParseStatus.malformed, detail="no JSON array found in response")

    try:
        parsed = json.loads(span)
    except ValueError as exc:
        return ParseOutcome(ParseStatus.malformed, detail=f"invalid JSON array: {exc}")
    return _outcome(parsed)


def find_array_span(text: str) -> Optional[str]:
    """Return the substring from the first ``[`` to its matching ``]``.

    Brackets inside JSON string literals are ignored. ``None`` when there is
    no ``[`` or it is never closed.
    """
    start = text.find("[")
    if start < 0:
        return None

    depth = 0
    in_string = False
    escaped = False
    for pos in range(start, len(text)):
        ch = text[pos]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
            if depth == 0:
                return text[start : pos + 1]
    return None


def _outcome(parsed: object) -> ParseOutcome:
    if not isinstance(parsed, list):
        return ParseOutcome(ParseStatus.malformed, detail="JSON value is not an array")
    if not parsed:
        return ParseOutcome(ParseStatus.empty, detail="JSON array is empty")
    return ParseOutcome(ParseStatus.ok, items=parsed)
