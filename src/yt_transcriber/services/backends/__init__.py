"""Transcription backends: local Whisper, OpenAI Whisper API and Deepgram.

Every backend turns an audio file into a ``TranscriptResult``; the pipeline
picks one per request through ``BackendFactory``.
"""

from __future__ import annotations

import httpx

from yt_transcriber.config import MODES, Settings
from yt_transcriber.errors import ValidationError

from .base import TranscriptionBackend
from .deepgram import DeepgramBackend
from .local import LocalWhisperBackend
from .openai import OpenAIWhisperBackend

PROVIDERS = ("openai", "deepgram", "local")


def backend_name(mode: str, provider: str) -> str:
    """Map the request's mode and provider onto one of ``local``, ``openai``, ``deepgram``."""
    if mode not in MODES:
        raise ValidationError(f"Unsupported mode: {mode}")
    if provider not in PROVIDERS:
        raise ValidationError(f"Unsupported provider: {provider}")
    if mode == "local" or provider == "local":
        return "local"
    return provider


class BackendFactory:
    def __init__(self, settings: Settings, client: httpx.AsyncClient) -> None:
        self.settings = settings
        self.client = client

    def __call__(self, name: str, api_key: str | None = None) -> TranscriptionBackend:
        if name == "local":
            return LocalWhisperBackend(
                output_dir=self.settings.temp_dir,
                model=self.settings.whisper_model,
                whisper_bin=self.settings.whisper_bin,
                timeout_seconds=self.settings.transcribe_timeout_seconds,
            )
        if not api_key:
            raise ValidationError(f"API key required for {name} mode.")
        if name == "openai":
            return OpenAIWhisperBackend(
                self.client,
                api_key,
                api_url=self.settings.openai_api_url,
                timeout_seconds=self.settings.transcribe_timeout_seconds,
            )
        if name == "deepgram":
            return DeepgramBackend(
                self.client,
                api_key,
                api_url=self.settings.deepgram_api_url,
                timeout_seconds=self.settings.transcribe_timeout_seconds,
            )
        raise ValidationError(f"Unsupported provider: {name}")


__all__ = [
    "BackendFactory",
    "DeepgramBackend",
    "LocalWhisperBackend",
    "OpenAIWhisperBackend",
    "TranscriptionBackend",
    "backend_name",
]
