from __future__ import annotations

import logging

import httpx

from common.config import SLMSettings
from common.errors import CleanupError

logger = logging.getLogger(__name__)


async def generate_content(
    prompt: str,
    settings: SLMSettings | None = None,
    client: httpx.AsyncClient | None = None,
) -> str:
    """Call Gemini generateContent and return the first candidate's text."""
    settings = settings or SLMSettings()
    url = f"{settings.base_url}/models/{settings.model_name}:generateContent"

    payload = {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": {
            "temperature": settings.temperature,
            "topK": settings.top_k,
            "topP": settings.top_p,
            "maxOutputTokens": settings.max_tokens,
        },
    }
    headers = {"x-goog-api-key": settings.api_key}
    logger.debug("Calling %s with a %d character prompt", settings.model_name, len(prompt))

    if client is None:
        async with httpx.AsyncClient(timeout=settings.timeout_s) as owned:
            resp = await owned.post(url, json=payload, headers=headers, timeout=settings.timeout_s)
    else:
        resp = await client.post(url, json=payload, headers=headers, timeout=settings.timeout_s)
    resp.raise_for_status()
    try:
        data = resp.json()
    except ValueError as exc:
        raise CleanupError("Gemini response was not valid JSON") from exc
    return candidate_text(data)


def candidate_text(data: dict) -> str:
    try:
        parts = data["candidates"][0]["content"]["parts"]
        text = "".join(part.get("text", "") for part in parts)
    except (KeyError, IndexError, TypeError, AttributeError) as exc:
        reason = data.get("promptFeedback", {}).get("blockReason") if isinstance(data, dict) else None
        detail = f"blocked: {reason}" if reason else f"unexpected response shape ({exc!r})"
        raise CleanupError(f"Gemini returned no candidate text, {detail}") from exc
    if not text.strip():
        raise CleanupError("Gemini returned an empty candidate")
    return text
