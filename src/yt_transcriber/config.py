from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

MODES = ("local", "api")
WHISPER_MODELS = ("tiny", "base", "small", "medium", "large")


@dataclass(frozen=True, slots=True)
class Settings:
    host: str
    port: int
    mode: str
    whisper_model: str
    temp_dir: Path
    max_duration_seconds: int
    cache_max_entries: int
    yt_dlp_bin: str
    whisper_bin: str
    ffmpeg_bin: str
    resolve_timeout_seconds: float | None
    download_timeout_seconds: float | None
    transcribe_timeout_seconds: float | None
    openai_api_url: str
    deepgram_api_url: str


def _as_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    return int(raw)


def _as_timeout(name: str, default: float) -> float | None:
    raw = os.getenv(name)
    value = default if raw is None else float(raw)
    return value if value > 0 else None


def _choice(name: str, default: str, allowed: tuple[str, ...]) -> str:
    value = os.getenv(name, default).strip().lower()
    if value not in allowed:
        raise RuntimeError(f"{name} must be one of {', '.join(allowed)} (got {value!r})")
    return value


def load_settings() -> Settings:
    load_dotenv()
    temp_dir = Path(os.getenv("TEMP_DIR", str(Path(tempfile.gettempdir()) / "yt-transcriber"))).resolve()
    temp_dir.mkdir(parents=True, exist_ok=True)

    return Settings(
        host=os.getenv("HOST", "0.0.0.0"),
        port=_as_int("PORT", 3456),
        mode=_choice("WHISPER_MODE", "local", MODES),
        whisper_model=_choice("WHISPER_MODEL", "base", WHISPER_MODELS),
        temp_dir=temp_dir,
        max_duration_seconds=_as_int("MAX_DURATION_SECONDS", 3 * 60 * 60),
        cache_max_entries=_as_int("CACHE_MAX_ENTRIES", 50),
        yt_dlp_bin=os.getenv("YT_DLP_BIN", "yt-dlp"),
        whisper_bin=os.getenv("WHISPER_BIN", "whisper"),
        ffmpeg_bin=os.getenv("FFMPEG_BIN", "ffmpeg"),
        resolve_timeout_seconds=_as_timeout("RESOLVE_TIMEOUT_SECONDS", 60),
        download_timeout_seconds=_as_timeout("DOWNLOAD_TIMEOUT_SECONDS", 1800),
        transcribe_timeout_seconds=_as_timeout("TRANSCRIBE_TIMEOUT_SECONDS", 3600),
        openai_api_url=os.getenv("OPENAI_API_URL", "https://api.openai.com/v1/audio/transcriptions"),
        deepgram_api_url=os.getenv("DEEPGRAM_API_URL", "https://api.deepgram.com/v1/listen"),
    )
