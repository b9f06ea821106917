"""Stand-ins for the subprocess and network stages."""

from __future__ import annotations

import asyncio
from pathlib import Path

from yt_transcriber.types import TranscriptResult, TranscriptSegment, VideoInfo

VIDEO_ID = "dQw4w9WgXcQ"
VIDEO_URL = f"https://www.youtube.com/watch?v={VIDEO_ID}"


def video(duration: float = 120.0, is_live: bool = False) -> VideoInfo:
    return VideoInfo(
        id=VIDEO_ID,
        title="Video 1",
        duration=duration,
        channel="Channel A",
        thumbnail="https://i.ytimg.com/vi/dQw4w9WgXcQ/hqdefault.jpg",
        is_live=is_live,
    )


class FakeResolver:
    def __init__(self, info: VideoInfo | None = None, error: Exception | None = None) -> None:
        self.info = info or video()
        self.error = error
        self.calls: list[str] = []

    async def resolve(self, url: str) -> VideoInfo:
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        return self.info


class FakeFetcher:
    """Writes a fake mp3 where yt-dlp would, then optionally fails."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[Path] = []
        self.written: list[Path] = []

    async def fetch_audio(self, url: str, output_path: Path, on_progress=None) -> Path:
        self.calls.append(output_path)
        audio = output_path.with_name(output_path.name + ".mp3")
        audio.write_bytes(b"fake-audio")
        self.written.append(audio)
        if on_progress is not None:
            on_progress(50.0)
        if self.error is not None:
            raise self.error
        return audio


class FakeBackend:
    name = "local"
    label = "fake Whisper"

    def __init__(self, error: Exception | None = None, block: bool = False) -> None:
        self.error = error
        self.block = block
        self.started = asyncio.Event()
        self.calls: list[tuple[Path, str | None]] = []

    async def transcribe(self, audio_path: Path, *, language: str | None = None) -> TranscriptResult:
        self.calls.append((audio_path, language))
        self.started.set()
        if self.block:
            await asyncio.sleep(3600)
        if self.error is not None:
            raise self.error
        return TranscriptResult(
            text="hello world",
            segments=[TranscriptSegment(start=0.0, end=1.0, text="hello world")],
            language="en",
        )


class FakeBackends:
    def __init__(self, backend: FakeBackend | None = None) -> None:
        self.backend = backend or FakeBackend()
        self.requested: list[tuple[str, str | None]] = []

    def __call__(self, name: str, api_key: str | None = None) -> FakeBackend:
        self.requested.append((name, api_key))
        self.backend.name = name
        return self.backend
