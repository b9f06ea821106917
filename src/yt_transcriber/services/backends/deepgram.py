from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import httpx

from yt_transcriber.errors import TranscriptionError
from yt_transcriber.types import UNKNOWN_LANGUAGE, TranscriptResult, TranscriptSegment

from .base import TranscriptionBackend, language_param

logger = logging.getLogger(__name__)

FAST_MODEL = "nova-2"
GENERAL_MODEL = "whisper-large"
SEGMENT_SECONDS = 5.0

# Language codes the fast model handles; anything else goes to the general model.
FAST_MODEL_LANGUAGES = frozenset(
    {
        "en", "en-US", "en-GB", "en-AU", "en-NZ", "en-IN",
        "es", "es-419", "es-ES",
        "fr", "fr-CA",
        "de", "it",
        "pt", "pt-BR", "pt-PT",
        "nl", "hi", "ja",
        "zh", "zh-CN", "zh-TW",
        "ko", "pl", "ru", "tr", "uk", "sv", "da", "no", "fi", "id", "ms",
        "th", "vi", "ta", "te", "cs", "el", "ro", "bg", "hu", "sk", "hr",
        "ca", "taq",
    }
)


def select_model(language: str | None) -> str:
    lang = language_param(language)
    if lang is None or lang in FAST_MODEL_LANGUAGES:
        return FAST_MODEL
    return GENERAL_MODEL


def bucket_words(words: Iterable[dict[str, Any]], width: float = SEGMENT_SECONDS) -> list[TranscriptSegment]:
    """Group word timings into fixed-width segments aligned to multiples of ``width``.

    A word starting exactly on a boundary opens the next segment. Segments that
    collect no words are never emitted.
    """
    ordered = sorted(words, key=lambda word: float(word.get("start") or 0.0))
    segments: list[TranscriptSegment] = []
    start, end = 0.0, width
    texts: list[str] = []

    for word in ordered:
        word_start = float(word.get("start") or 0.0)
        content = str(word.get("punctuated_word") or word.get("word") or "")
        if word_start >= end:
            if texts:
                segments.append(TranscriptSegment(start=start, end=end, text=" ".join(texts)))
            start = math.floor(word_start / width) * width
            end = start + width
            texts = []
        if content:
            texts.append(content)

    if texts:
        segments.append(TranscriptSegment(start=start, end=end, text=" ".join(texts)))
    return segments


class DeepgramBackend(TranscriptionBackend):
    """Deepgram listen API. Returns word timings only, so segments are synthesized."""

    name = "deepgram"
    label = "Deepgram"

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        api_url: str = "https://api.deepgram.com/v1/listen",
        timeout_seconds: float | None = 600.0,
    ) -> None:
        self.client = client
        self.api_key = api_key
        self.api_url = api_url
        self.timeout_seconds = timeout_seconds

    async def transcribe(self, audio_path: Path, *, language: str | None = None) -> TranscriptResult:
        lang = language_param(language)
        model = select_model(lang)
        params = {"model": model, "smart_format": "true", "diarize": "false"}
        if lang:
            params["language"] = lang
        else:
            params["detect_language"] = "true"
        if model == GENERAL_MODEL:
            logger.info("Language %r not supported by %s, using %s", lang, FAST_MODEL, GENERAL_MODEL)

        try:
            audio = audio_path.read_bytes()
        except OSError as exc:
            raise TranscriptionError(f"Audio file not readable: {exc}") from exc

        try:
            response = await self.client.post(
                self.api_url,
                params=params,
                headers={"Authorization": f"Token {self.api_key}", "Content-Type": "audio/mpeg"},
                content=audio,
                timeout=self.timeout_seconds,
            )
        except httpx.HTTPError as exc:
            raise TranscriptionError(f"Deepgram API request failed: {exc}") from exc

        if not response.is_success:
            raise TranscriptionError(_error_message(response))

        try:
            payload = response.json()
        except ValueError as exc:
            raise TranscriptionError("Deepgram API returned invalid JSON") from exc
        return _to_result(payload, lang)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        message = body.get("err_msg") or body.get("reason")
        if message:
            return str(message)
    return f"Deepgram API error: {response.status_code}"


def _to_result(payload: Any, requested_language: str | None) -> TranscriptResult:
    try:
        channel = payload["results"]["channels"][0]
        alternative = channel["alternatives"][0]
    except (KeyError, IndexError, TypeError):
        return TranscriptResult(text="", segments=[], language=UNKNOWN_LANGUAGE)

    text = str(alternative.get("transcript") or "").strip()
    words = [word for word in alternative.get("words") or [] if isinstance(word, dict)]
    if words:
        segments = bucket_words(words)
    elif text:
        segments = [TranscriptSegment(start=0.0, end=0.0, text=text)]
    else:
        segments = []

    language = channel.get("detected_language") or requested_language or UNKNOWN_LANGUAGE
    return TranscriptResult(text=text, segments=segments, language=str(language))
