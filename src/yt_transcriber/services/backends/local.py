from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from yt_transcriber.errors import TranscriptionError
from yt_transcriber.services.process import CommandNotFoundError, CommandTimeoutError, run_command
from yt_transcriber.types import UNKNOWN_LANGUAGE, TranscriptResult, TranscriptSegment

from .base import TranscriptionBackend, language_param

logger = logging.getLogger(__name__)

# Whisper writes one file per format next to each other; only the JSON is read.
BYPRODUCT_SUFFIXES = (".json", ".srt", ".txt", ".vtt", ".tsv")


class LocalWhisperBackend(TranscriptionBackend):
    name = "local"
    label = "local Whisper"

    def __init__(
        self,
        output_dir: Path,
        model: str = "base",
        whisper_bin: str = "whisper",
        timeout_seconds: float | None = 3600.0,
    ) -> None:
        self.output_dir = output_dir
        self.model = model
        self.whisper_bin = whisper_bin
        self.timeout_seconds = timeout_seconds

    async def transcribe(self, audio_path: Path, *, language: str | None = None) -> TranscriptResult:
        cmd = [
            self.whisper_bin,
            str(audio_path),
            "--model",
            self.model,
            "--output_format",
            "json",
            "--output_dir",
            str(self.output_dir),
        ]
        lang = language_param(language)
        if lang:
            cmd.extend(["--language", lang])

        logger.info("Running %s", " ".join(cmd))
        try:
            completed = await run_command(cmd, timeout=self.timeout_seconds)
        except CommandNotFoundError as exc:
            raise TranscriptionError(
                "Whisper not found. Install with: pip install openai-whisper",
                kind="tool_missing",
            ) from exc
        except CommandTimeoutError as exc:
            raise TranscriptionError(f"Whisper timed out: {exc}") from exc

        try:
            if not completed.ok:
                raise TranscriptionError(completed.stderr.strip() or "Whisper transcription failed")
            json_path = self.output_path(audio_path)
            if not json_path.is_file():
                raise TranscriptionError(f"Whisper output file not found at: {json_path}")
            try:
                payload = json.loads(json_path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as exc:
                raise TranscriptionError(f"Failed to parse Whisper output: {exc}") from exc
        finally:
            self._remove_byproducts(audio_path)

        return _to_result(payload)

    def output_path(self, audio_path: Path) -> Path:
        return self.output_dir / f"{audio_path.stem}.json"

    def _remove_byproducts(self, audio_path: Path) -> None:
        for suffix in BYPRODUCT_SUFFIXES:
            path = self.output_dir / f"{audio_path.stem}{suffix}"
            try:
                path.unlink(missing_ok=True)
            except OSError:
                logger.warning("Could not remove Whisper output %s", path, exc_info=True)


def _to_result(payload: Any) -> TranscriptResult:
    if not isinstance(payload, dict):
        raise TranscriptionError("Failed to parse Whisper output: expected a JSON object")

    segments: list[TranscriptSegment] = []
    for item in payload.get("segments") or []:
        if not isinstance(item, dict):
            continue
        segments.append(
            TranscriptSegment(
                start=float(item.get("start") or 0.0),
                end=float(item.get("end") or 0.0),
                text=str(item.get("text") or "").strip(),
            )
        )

    return TranscriptResult(
        text=str(payload.get("text") or "").strip(),
        segments=segments,
        language=str(payload.get("language") or UNKNOWN_LANGUAGE),
    )
