"""Transcript cleanup stage.

Two states: an AI rewrite of the whole batch is attempted first; if that
attempt fails for any reason the local rule-based cleanup runs instead. The
local cleanup is a pure function of the input, so the stage always produces
one cleaned segment per raw segment with the raw timestamps.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Sequence

import httpx

from common.config import SLMSettings
from common.errors import CleanupError
from common.schemas import CleanedSegment, CleanupMethod, RawSegment
from slm_service.gemini_client import generate_content
from slm_service.models import AIAttempt, CleanupOutcome
from slm_service.parsing import parse_segment_array
from slm_service.prompts import build_cleanup_prompt

logger = logging.getLogger(__name__)

FILLER_PHRASES = (
    "um", "uh", "ah", "er", "like", "you know", "so", "well",
    "actually", "basically", "literally", "right", "okay", "alright",
    "kind of", "sort of", "i mean", "you see", "let me see",
)

_FILLER_RES = [re.compile(rf"\b{re.escape(p)}\b", re.IGNORECASE) for p in FILLER_PHRASES]
_WHITESPACE_RE = re.compile(r"\s+")
_SPACE_BEFORE_PUNCT_RE = re.compile(r"\s+([,.!?])")
_ORPHAN_COMMA_RE = re.compile(r",\s*(?=[,.!?])")
_LEADING_COMMA_RE = re.compile(r"^[\s,]+")
_PRONOUN_I_RE = re.compile(r"\bi\b")


async def clean_segments(
    segments: Sequence[RawSegment],
    settings: SLMSettings | None = None,
    client: httpx.AsyncClient | None = None,
) -> CleanupOutcome:
    if not segments:
        return CleanupOutcome(method=CleanupMethod.local, segments=[])

    attempt = await attempt_ai_cleanup(segments, settings, client)
    if attempt.succeeded:
        return CleanupOutcome(method=CleanupMethod.ai, segments=attempt.segments)

    logger.warning("AI cleanup failed (%s), using local cleanup", attempt.reason)
    return CleanupOutcome(
        method=CleanupMethod.local,
        segments=local_cleanup(segments),
        fallback_reason=attempt.reason,
    )


async def attempt_ai_cleanup(
    segments: Sequence[RawSegment],
    settings: SLMSettings | None = None,
    client: httpx.AsyncClient | None = None,
) -> AIAttempt:
    """One batched model call for all segments. Never raises."""
    settings = settings or SLMSettings()
    prompt = build_cleanup_prompt(segments)

    try:
        reply = await generate_content(prompt, settings, client)
        return AIAttempt(segments=accept_ai_output(segments, reply))
    except CleanupError as exc:
        return AIAttempt(reason=str(exc))
    except httpx.HTTPStatusError as exc:
        return AIAttempt(reason=f"HTTP {exc.response.status_code} from language model")
    except httpx.TimeoutException:
        return AIAttempt(reason=f"language model timed out after {settings.timeout_s:g} seconds")
    except httpx.HTTPError as exc:
        return AIAttempt(reason=f"language model request failed: {exc!r}")
    except Exception as exc:
        logger.exception("Unexpected error during AI cleanup")
        return AIAttempt(reason=f"unexpected error: {exc!r}")


def accept_ai_output(segments: Sequence[RawSegment], reply: str) -> list[CleanedSegment]:
    """Validate the model's array against the input batch.

    Raises ``CleanupError`` unless every segment has a usable counterpart.
    """
    outcome = parse_segment_array(reply)
    if not outcome.ok:
        raise CleanupError(f"{outcome.status.value} model output: {outcome.detail}")
    if len(outcome.items) != len(segments):
        raise CleanupError(
            f"model returned {len(outcome.items)} segments for {len(segments)} inputs"
        )

    cleaned = []
    for i, (seg, item) in enumerate(zip(segments, outcome.items)):
        text = _cleaned_text(i, item)
        cleaned.append(
            CleanedSegment(start=seg.start, end=seg.end, cleaned_text=text, original_text=seg.text)
        )
    return cleaned


def _cleaned_text(index: int, item: Any) -> str:
    if not isinstance(item, dict):
        raise CleanupError(f"segment {index + 1} is not an object")
    if "id" in item and item["id"] != index + 1:
        raise CleanupError(f"segment {index + 1} came back with id {item['id']!r}")
    for key in ("start", "end"):
        value = item.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise CleanupError(f"segment {index + 1} has no numeric {key}")
    text = item.get("cleanedText")
    if not isinstance(text, str):
        raise CleanupError(f"segment {index + 1} has no cleanedText")
    return text.strip()


def local_cleanup(segments: Sequence[RawSegment]) -> list[CleanedSegment]:
    return [
        CleanedSegment(
            start=seg.start,
            end=seg.end,
            cleaned_text=clean_text(seg.text),
            original_text=seg.text,
        )
        for seg in segments
    ]


def clean_text(text: str) -> str:
    """Strip filler phrases and tidy spacing and capitalisation.

    Beyond lower-casing, filler removal, spacing fixes and capitalising the
    first character, this also drops commas orphaned by a removed filler and
    capitalises the standalone pronoun "i", which the lower-casing would
    otherwise leave as "i".
    """
    cleaned = text.lower()
    for pattern in _FILLER_RES:
        cleaned = pattern.sub("", cleaned)

    cleaned = _WHITESPACE_RE.sub(" ", cleaned)
    cleaned = _SPACE_BEFORE_PUNCT_RE.sub(r"\1", cleaned)
    # commas left dangling by a removed filler
    cleaned = _ORPHAN_COMMA_RE.sub("", cleaned)
    cleaned = _LEADING_COMMA_RE.sub("", cleaned)
    cleaned = cleaned.strip()
    cleaned = _PRONOUN_I_RE.sub("I", cleaned)

    return cleaned[:1].upper() + cleaned[1:]
