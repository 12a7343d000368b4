from __future__ import annotations

import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator

logger = logging.getLogger(__name__)


@dataclass
class RequestRecord:
    request_id: str
    video_url: str
    started_at: float = field(default_factory=time.monotonic)

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started_at


class RequestTracker:
    """Bookkeeping of in-flight /getscript requests. Never rejects a request."""

    def __init__(self) -> None:
        self._requests: dict[str, RequestRecord] = {}
        self._lock = asyncio.Lock()

    async def start(self, video_url: str) -> RequestRecord:
        async with self._lock:
            record = RequestRecord(request_id=uuid.uuid4().hex, video_url=video_url)
            self._requests[record.request_id] = record
            logger.info("Request started: %s (%d active)", record.request_id, len(self._requests))
            return record

    async def finish(self, request_id: str) -> None:
        async with self._lock:
            record = self._requests.pop(request_id, None)
            if record is not None:
                logger.info(
                    "Request finished: %s after %.1fs (%d active)",
                    request_id, record.elapsed, len(self._requests),
                )

    @asynccontextmanager
    async def track(self, video_url: str) -> AsyncIterator[RequestRecord]:
        record = await self.start(video_url)
        try:
            yield record
        finally:
            await self.finish(record.request_id)

    @property
    def active_count(self) -> int:
        return len(self._requests)
