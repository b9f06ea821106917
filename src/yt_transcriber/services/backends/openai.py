from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import httpx

from yt_transcriber.errors import TranscriptionError
from yt_transcriber.types import UNKNOWN_LANGUAGE, TranscriptResult, TranscriptSegment

from .base import TranscriptionBackend, language_param

logger = logging.getLogger(__name__)

WHISPER_API_MODEL = "whisper-1"


class OpenAIWhisperBackend(TranscriptionBackend):
    """OpenAI transcription API; ``verbose_json`` already carries timed segments."""

    name = "openai"
    label = "OpenAI Whisper"

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        api_url: str = "https://api.openai.com/v1/audio/transcriptions",
        timeout_seconds: float | None = 600.0,
    ) -> None:
        self.client = client
        self.api_key = api_key
        self.api_url = api_url
        self.timeout_seconds = timeout_seconds

    async def transcribe(self, audio_path: Path, *, language: str | None = None) -> TranscriptResult:
        form = {
            "model": WHISPER_API_MODEL,
            "response_format": "verbose_json",
            "temperature": "0",
        }
        lang = language_param(language)
        if lang:
            form["language"] = lang

        try:
            audio = audio_path.read_bytes()
        except OSError as exc:
            raise TranscriptionError(f"Audio file not readable: {exc}") from exc

        try:
            response = await self.client.post(
                self.api_url,
                headers={"Authorization": f"Bearer {self.api_key}"},
                data=form,
                files={"file": (audio_path.name, audio, "audio/mpeg")},
                timeout=self.timeout_seconds,
            )
        except httpx.HTTPError as exc:
            raise TranscriptionError(f"Whisper API request failed: {exc}") from exc

        if not response.is_success:
            raise TranscriptionError(_error_message(response))

        try:
            payload = response.json()
        except ValueError as exc:
            raise TranscriptionError("Whisper API returned invalid JSON") from exc
        return _to_result(payload)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return f"Whisper API error: {response.status_code}"


def _to_result(payload: Any) -> TranscriptResult:
    if not isinstance(payload, dict):
        raise TranscriptionError("Whisper API returned an unexpected response")

    segments = [
        TranscriptSegment(
            start=float(item.get("start") or 0.0),
            end=float(item.get("end") or 0.0),
            text=str(item.get("text") or "").strip(),
        )
        for item in payload.get("segments") or []
        if isinstance(item, dict)
    ]
    return TranscriptResult(
        text=str(payload.get("text") or "").strip(),
        segments=segments,
        language=str(payload.get("language") or UNKNOWN_LANGUAGE),
    )
