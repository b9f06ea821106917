from __future__ import annotations

import json
import logging
from typing import Any

from yt_transcriber.errors import ResolutionError
from yt_transcriber.services.process import CommandNotFoundError, CommandTimeoutError, run_command
from yt_transcriber.types import VideoInfo
from yt_transcriber.utils.url import extract_video_id

logger = logging.getLogger(__name__)


class VideoResolver:
    """Looks up video metadata through ``yt-dlp --dump-json``."""

    def __init__(self, yt_dlp_bin: str = "yt-dlp", timeout_seconds: float | None = 60.0) -> None:
        self.yt_dlp_bin = yt_dlp_bin
        self.timeout_seconds = timeout_seconds

    async def resolve(self, url: str) -> VideoInfo:
        if extract_video_id(url) is None:
            raise ResolutionError("Invalid YouTube URL")

        cmd = [
            self.yt_dlp_bin,
            "--dump-json",
            "--no-download",
            "--no-warnings",
            "--no-playlist",
            url,
        ]
        try:
            completed = await run_command(cmd, timeout=self.timeout_seconds)
        except CommandNotFoundError as exc:
            raise ResolutionError(f"yt-dlp not found: {exc}", kind="tool_missing") from exc
        except CommandTimeoutError as exc:
            raise ResolutionError(f"Timed out fetching video info: {exc}") from exc

        if not completed.ok:
            raise ResolutionError(completed.stderr.strip() or "Failed to get video info")

        try:
            info = json.loads(completed.stdout)
        except json.JSONDecodeError as exc:
            raise ResolutionError("Failed to parse video info") from exc
        if not isinstance(info, dict) or not info.get("id"):
            raise ResolutionError("Failed to parse video info")

        video = _to_video_info(info)
        logger.info("Resolved %s: %r (%ss)", video.id, video.title, video.duration)
        return video


def _to_video_info(info: dict[str, Any]) -> VideoInfo:
    return VideoInfo(
        id=str(info["id"]),
        title=str(info.get("title") or ""),
        duration=_as_float(info.get("duration")),
        channel=str(info.get("channel") or info.get("uploader") or ""),
        thumbnail=str(info.get("thumbnail") or ""),
        is_live=bool(info.get("is_live")),
    )


def _as_float(value: object) -> float:
    try:
        return float(value) if value is not None else 0.0  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0
