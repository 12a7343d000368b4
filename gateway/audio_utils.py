from __future__ import annotations

import asyncio
import logging
import sys

from common.config import AudioSettings
from common.errors import AudioStreamError, AudioTimeoutError, EmptyAudioError

logger = logging.getLogger(__name__)


async def fetch_audio(video_url: str, settings: AudioSettings | None = None) -> bytes:
    """Download the best audio-only stream of a video into memory.

    yt-dlp writes the stream to stdout, so nothing touches the filesystem.
    The extractor process is killed on timeout and on cancellation.
    """
    settings = settings or AudioSettings()
    cmd = _ytdlp_command(video_url, settings)

    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise AudioStreamError(f"Could not start audio extractor: {exc}") from exc

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=settings.timeout_s)
    except asyncio.TimeoutError:
        _kill(proc)
        await proc.wait()
        raise AudioTimeoutError(
            f"Audio download timed out after {settings.timeout_s:g} seconds"
        ) from None
    except asyncio.CancelledError:
        _kill(proc)
        raise

    if proc.returncode != 0:
        detail = _last_line(stderr) or f"exit code {proc.returncode}"
        raise AudioStreamError(f"Audio download failed: {detail}")

    if not stdout:
        raise EmptyAudioError("Audio download produced no data")

    logger.info("Downloaded %d bytes of audio for %s", len(stdout), video_url)
    return stdout


def _ytdlp_command(video_url: str, settings: AudioSettings) -> list[str]:
    return [
        sys.executable,
        "-m", "yt_dlp",
        "--quiet",
        "--no-warnings",
        "--no-playlist",
        "--no-part",
        "-f", settings.format,
        "-o", "-",
        *settings.ytdlp_args,
        video_url,
    ]


def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass


def _last_line(stderr: bytes | None) -> str:
    lines = (stderr or b"").decode("utf-8", errors="replace").strip().splitlines()
    return lines[-1].strip() if lines else ""
