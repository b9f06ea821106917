"""Shared test fixtures."""

from pathlib import Path

import pytest

from yt_transcriber.config import Settings
from yt_transcriber.types import TranscriptRecord, TranscriptResult, TranscriptSegment


def build_settings(temp_dir: Path, **overrides: object) -> Settings:
    values: dict[str, object] = {
        "host": "127.0.0.1",
        "port": 3456,
        "mode": "local",
        "whisper_model": "base",
        "temp_dir": temp_dir,
        "max_duration_seconds": 3 * 60 * 60,
        "cache_max_entries": 50,
        "yt_dlp_bin": "yt-dlp",
        "whisper_bin": "whisper",
        "ffmpeg_bin": "ffmpeg",
        "resolve_timeout_seconds": None,
        "download_timeout_seconds": None,
        "transcribe_timeout_seconds": None,
        "openai_api_url": "https://api.openai.com/v1/audio/transcriptions",
        "deepgram_api_url": "https://api.deepgram.com/v1/listen",
    }
    values.update(overrides)
    return Settings(**values)  # type: ignore[arg-type]


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return build_settings(tmp_path)


@pytest.fixture
def sample_record() -> TranscriptRecord:
    return TranscriptRecord(
        video_id="dQw4w9WgXcQ",
        title="Demo video",
        channel="Demo channel",
        duration=65.0,
        transcript=TranscriptResult(
            text="Hello world this is a test",
            segments=[
                TranscriptSegment(start=0.0, end=5.0, text="Hello world"),
                TranscriptSegment(start=5.0, end=10.0, text="this is a test"),
            ],
            language="en",
        ),
        mode="local",
        provider="local",
    )


@pytest.fixture
def make_settings(tmp_path: Path):
    def factory(**overrides: object) -> Settings:
        return build_settings(tmp_path, **overrides)

    return factory
