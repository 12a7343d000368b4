from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel


class _WireModel(BaseModel):
    # snake_case attributes, camelCase on the wire
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# --- Transcription output ---

class RawSegment(_WireModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    start: float
    end: float
    text: str

    @model_validator(mode="after")
    def _check_order(self) -> RawSegment:
        if self.start > self.end:
            raise ValueError(f"segment starts after it ends ({self.start} > {self.end})")
        return self


# --- Cleanup output ---

class CleanupMethod(str, Enum):
    ai = "ai"
    local = "local"


class CleanedSegment(_WireModel):
    start: float
    end: float
    cleaned_text: str
    original_text: Optional[str] = None


# --- /getscript response ---

class TranscriptData(_WireModel):
    video_url: str
    cleaned_segments: list[CleanedSegment]
    total_duration: float
    segment_count: int
    cleanup_method: CleanupMethod
    audio_size: Optional[int] = None


class TranscriptResult(_WireModel):
    success: bool
    data: Optional[TranscriptData] = None
    error: Optional[str] = None
    request_id: Optional[str] = None
    traceback: Optional[str] = None
