from __future__ import annotations

import logging
import re
from collections.abc import Callable
from pathlib import Path

from yt_transcriber.errors import FetchError
from yt_transcriber.services.process import CommandNotFoundError, CommandTimeoutError, run_command

logger = logging.getLogger(__name__)

AUDIO_FORMAT = "mp3"
AUDIO_QUALITY = "128K"

_PERCENT = re.compile(r"(\d+(?:\.\d+)?)%")

ProgressCallback = Callable[[float], None]


def candidate_paths(output_path: Path) -> list[Path]:
    """Places yt-dlp may leave the audio, depending on how it applied the extension."""
    return [
        output_path,
        output_path.with_name(output_path.name + f".{AUDIO_FORMAT}"),
        output_path.with_suffix(f".{AUDIO_FORMAT}"),
    ]


def parse_progress(line: str) -> float | None:
    match = _PERCENT.search(line)
    if match is None:
        return None
    return float(match.group(1))


class AudioFetcher:
    def __init__(self, yt_dlp_bin: str = "yt-dlp", timeout_seconds: float | None = 1800.0) -> None:
        self.yt_dlp_bin = yt_dlp_bin
        self.timeout_seconds = timeout_seconds

    async def fetch_audio(
        self,
        url: str,
        output_path: Path,
        on_progress: ProgressCallback | None = None,
    ) -> Path:
        cmd = [
            self.yt_dlp_bin,
            "-x",
            "--audio-format",
            AUDIO_FORMAT,
            "--audio-quality",
            AUDIO_QUALITY,
            "--no-playlist",
            "--no-warnings",
            "--newline",
            "--progress",
            "-o",
            str(output_path),
            url,
        ]

        def handle_line(line: str) -> None:
            if on_progress is None:
                return
            percent = parse_progress(line)
            if percent is None:
                return
            try:
                on_progress(percent)
            except Exception:  # pylint: disable=broad-except
                logger.debug("Progress callback failed", exc_info=True)

        try:
            completed = await run_command(cmd, timeout=self.timeout_seconds, on_stdout_line=handle_line)
        except CommandNotFoundError as exc:
            raise FetchError(
                f"yt-dlp not found. Install it and make sure it is on PATH ({exc})",
                kind="tool_missing",
            ) from exc
        except CommandTimeoutError as exc:
            raise FetchError(f"Audio download timed out: {exc}") from exc

        if not completed.ok:
            raise FetchError(completed.stderr.strip() or "Failed to download audio")

        for path in candidate_paths(output_path):
            if path.is_file():
                logger.info("Audio downloaded to %s", path)
                return path
        raise FetchError("Audio file not found after download")
