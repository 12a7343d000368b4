from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError as SchemaError

from common.config import ASRSettings
from common.errors import NoUtterancesError, TranscriptionFailedError
from common.schemas import RawSegment

logger = logging.getLogger(__name__)


def build_params(settings: ASRSettings) -> dict[str, Any]:
    """Deepgram query options: keep fillers, split utterances on silence."""
    params: dict[str, Any] = {
        "filler_words": "true",
        "smart_format": "true",
        "punctuate": "true",
        "utterances": "true",
        "utt_split": settings.utt_split,
        "words": "true",
    }
    if settings.model:
        params["model"] = settings.model
    return params


async def transcribe_audio(
    audio: bytes,
    settings: ASRSettings | None = None,
    client: httpx.AsyncClient | None = None,
) -> list[RawSegment]:
    """Send an audio buffer to Deepgram and return its utterances as segments."""
    settings = settings or ASRSettings()
    if len(audio) > settings.max_body_bytes:
        raise TranscriptionFailedError(
            f"Audio is {len(audio)} bytes, above the {settings.max_body_bytes} byte upload limit"
        )

    logger.info("Transcribing %d bytes of audio", len(audio))
    if client is None:
        async with httpx.AsyncClient(timeout=settings.timeout_s) as owned:
            payload = await _post_audio(owned, audio, settings)
    else:
        payload = await _post_audio(client, audio, settings)

    segments = parse_utterances(payload)
    logger.info("Transcription returned %d utterances", len(segments))
    return segments


async def _post_audio(client: httpx.AsyncClient, audio: bytes, settings: ASRSettings) -> dict:
    headers = {
        "Authorization": f"Token {settings.api_key}",
        "Content-Type": settings.content_type,
    }
    try:
        resp = await client.post(
            settings.url,
            content=audio,
            params=build_params(settings),
            headers=headers,
            timeout=settings.timeout_s,
        )
        resp.raise_for_status()
        return resp.json()
    except httpx.HTTPStatusError as exc:
        detail = _upstream_message(exc.response)
        raise TranscriptionFailedError(f"Transcription failed: {detail}") from exc
    except httpx.TimeoutException as exc:
        raise TranscriptionFailedError(
            f"Transcription timed out after {settings.timeout_s:g} seconds"
        ) from exc
    except httpx.HTTPError as exc:
        raise TranscriptionFailedError(f"Transcription failed: {exc}") from exc
    except ValueError as exc:
        raise TranscriptionFailedError("Transcription failed: response was not valid JSON") from exc


def parse_utterances(payload: Any) -> list[RawSegment]:
    """Map ``results.utterances`` to ordered segments."""
    results = payload.get("results") if isinstance(payload, dict) else None
    utterances = results.get("utterances") if isinstance(results, dict) else None
    if not utterances:
        raise NoUtterancesError("No utterances detected in the transcript.")

    try:
        segments = [
            RawSegment(start=u["start"], end=u["end"], text=u.get("transcript", ""))
            for u in utterances
        ]
    except (KeyError, TypeError, AttributeError, SchemaError) as exc:
        raise TranscriptionFailedError(f"Transcription returned malformed utterances: {exc}") from exc

    return sorted(segments, key=lambda s: s.start)


def _upstream_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("err_msg", "message", "error"):
            if body.get(key):
                return f"{body[key]} (HTTP {resp.status_code})"
    text = resp.text.strip()
    return f"HTTP {resp.status_code}: {text[:200]}" if text else f"HTTP {resp.status_code}"
