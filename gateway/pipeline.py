from __future__ import annotations

import logging
import traceback
from typing import Optional, Sequence

from asr_service.transcriber import transcribe_audio
from common.config import AppSettings
from common.errors import PipelineError
from common.schemas import CleanedSegment, CleanupMethod, TranscriptData, TranscriptResult
from gateway.audio_utils import fetch_audio
from slm_service.cleaner import clean_segments
from slm_service.prompts import format_transcript

logger = logging.getLogger(__name__)


def assemble_result(
    video_url: str,
    cleaned: Sequence[CleanedSegment],
    cleanup_method: CleanupMethod,
    audio_size: Optional[int] = None,
) -> TranscriptResult:
    return TranscriptResult(
        success=True,
        data=TranscriptData(
            video_url=video_url,
            cleaned_segments=list(cleaned),
            total_duration=cleaned[-1].end if cleaned else 0.0,
            segment_count=len(cleaned),
            cleanup_method=cleanup_method,
            audio_size=audio_size,
        ),
    )


def failure_result(
    exc: BaseException | str,
    request_id: Optional[str] = None,
    debug: bool = False,
) -> TranscriptResult:
    if isinstance(exc, str):
        return TranscriptResult(success=False, error=exc, request_id=request_id)
    return TranscriptResult(
        success=False,
        error=str(exc) or "Internal server error",
        request_id=request_id,
        traceback="".join(traceback.format_exception(exc)) if debug else None,
    )


class TranscriptPipeline:
    """Acquisition -> transcription -> cleanup -> assembly for one URL."""

    def __init__(self, settings: AppSettings) -> None:
        self.settings = settings

    async def run(self, video_url: str, request_id: Optional[str] = None) -> TranscriptResult:
        try:
            return await self._run(video_url, request_id)
        except PipelineError as exc:
            logger.error("[%s] Pipeline failed: %s", request_id, exc)
            return failure_result(exc, request_id, self.settings.gateway.debug)
        except Exception as exc:
            logger.exception("[%s] Unexpected pipeline error", request_id)
            return failure_result(exc, request_id, self.settings.gateway.debug)

    async def _run(self, video_url: str, request_id: Optional[str]) -> TranscriptResult:
        logger.info("[%s] Downloading audio for %s", request_id, video_url)
        audio = await fetch_audio(video_url, self.settings.audio)

        logger.info("[%s] Transcribing with Deepgram", request_id)
        segments = await transcribe_audio(audio, self.settings.asr)
        logger.debug("[%s] Original transcript:\n%s", request_id, format_transcript(segments))

        logger.info("[%s] Cleaning %d segments", request_id, len(segments))
        outcome = await clean_segments(segments, self.settings.slm)
        logger.info("[%s] Cleanup finished using %s method", request_id, outcome.method.value)
        logger.debug("[%s] Cleaned transcript:\n%s", request_id, format_transcript(outcome.segments))

        return assemble_result(video_url, outcome.segments, outcome.method, audio_size=len(audio))
