"""Internal models for the cleanup stage."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from common.schemas import CleanedSegment, CleanupMethod


class ParseStatus(str, Enum):
    ok = "ok"
    empty = "empty"
    malformed = "malformed"


@dataclass
class ParseOutcome:
    status: ParseStatus
    items: list[Any] = field(default_factory=list)
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status is ParseStatus.ok


@dataclass
class AIAttempt:
    segments: Optional[list[CleanedSegment]] = None
    reason: str = ""

    @property
    def succeeded(self) -> bool:
        return self.segments is not None


@dataclass
class CleanupOutcome:
    method: CleanupMethod
    segments: list[CleanedSegment]
    fallback_reason: str = ""
