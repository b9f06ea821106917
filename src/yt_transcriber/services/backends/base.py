from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from yt_transcriber.types import TranscriptResult


def language_param(language: str | None) -> str | None:
    """``auto`` means "let the engine detect", so it is never sent as a value."""
    if not language or language.strip().lower() == "auto":
        return None
    return language.strip()


class TranscriptionBackend(ABC):
    name: str
    label: str

    @abstractmethod
    async def transcribe(self, audio_path: Path, *, language: str | None = None) -> TranscriptResult:
        """Turn an audio file into text, language and timed segments."""
        ...
