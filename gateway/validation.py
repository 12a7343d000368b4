from __future__ import annotations

import re

from common.errors import ValidationError

YOUTUBE_URL_RE = re.compile(
    r"^(https?://)?(www\.)?(youtube\.com/(watch\?v=|embed/)|youtu\.be/)[\w-]+"
)


def validate_video_url(url: str | None) -> str:
    """Return the trimmed URL or raise ``ValidationError``."""
    if url is None or not url.strip():
        raise ValidationError("YouTube URL is required. Use ?url=<youtube_url>")
    url = url.strip()
    if not YOUTUBE_URL_RE.match(url):
        raise ValidationError("Invalid YouTube URL format")
    return url
