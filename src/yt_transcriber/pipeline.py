from __future__ import annotations

import logging
import re
from collections.abc import Callable
from pathlib import Path
from typing import Protocol
from uuid import uuid4

from yt_transcriber.cache import TranscriptCache
from yt_transcriber.config import Settings
from yt_transcriber.errors import (
    LimitExceededError,
    TranscriberError,
    TranscriptionError,
    ValidationError,
)
from yt_transcriber.services.backends import TranscriptionBackend, backend_name
from yt_transcriber.services.fetcher import AudioFetcher, candidate_paths
from yt_transcriber.services.resolver import VideoResolver
from yt_transcriber.types import ProgressEvent, TranscriptionRequest, TranscriptRecord, VideoInfo
from yt_transcriber.utils.url import extract_video_id

logger = logging.getLogger(__name__)

AUTH_FAILURE_PREFIX = "API Authentication Failed: "
_AUTH_PATTERN = re.compile(r"api[ _]key|quota|unauthorized|authentication|\b40[13]\b", re.IGNORECASE)

BackendProvider = Callable[[str, str | None], TranscriptionBackend]


class EventSink(Protocol):
    async def send(self, event: ProgressEvent) -> None: ...


class ListSink:
    """Collects events in memory."""

    def __init__(self) -> None:
        self.events: list[ProgressEvent] = []

    async def send(self, event: ProgressEvent) -> None:
        self.events.append(event)

    @property
    def terminal(self) -> ProgressEvent | None:
        if self.events and self.events[-1].is_terminal:
            return self.events[-1]
        return None


def error_message(exc: Exception) -> str:
    message = str(exc).strip() or exc.__class__.__name__
    if isinstance(exc, TranscriptionError) and _AUTH_PATTERN.search(message):
        return AUTH_FAILURE_PREFIX + message
    return message


class TranscriptionPipeline:
    """Runs one transcription request from URL to assembled transcript.

    Stages run strictly in order: validate, resolve, check limits, download,
    transcribe, finalize. Progress goes to ``sink`` as ``info`` events and the
    run ends with exactly one ``complete`` or ``error`` event. The temporary
    audio file is removed on every exit path, cancellation included.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        resolver: VideoResolver,
        fetcher: AudioFetcher,
        backends: BackendProvider,
        cache: TranscriptCache,
    ) -> None:
        self.settings = settings
        self.resolver = resolver
        self.fetcher = fetcher
        self.backends = backends
        self.cache = cache

    async def run(self, request: TranscriptionRequest, sink: EventSink) -> TranscriptRecord | None:
        audio_path: Path | None = None
        try:
            video_id, backend_key = self._validate(request)
            url = str(request.url).strip()

            cached = self.cache.get(video_id)
            if cached is not None and cached.answers(request.language, request.mode, backend_key):
                logger.info("Serving %s from cache", video_id)
                await sink.send(ProgressEvent.info("Loaded transcript from cache"))
                await sink.send(ProgressEvent.complete(cached.to_payload()))
                return cached

            await sink.send(ProgressEvent.info("Fetching video info..."))
            logger.info("Starting %s (mode: %s, backend: %s)", video_id, request.mode, backend_key)
            video = await self.resolver.resolve(url)
            self._check_limits(video)

            backend = self.backends(backend_key, request.credential)

            await sink.send(ProgressEvent.info("Downloading audio from YouTube..."))
            audio_path = self.settings.temp_dir / uuid4().hex
            audio_file = await self.fetcher.fetch_audio(
                url,
                audio_path,
                on_progress=lambda percent: logger.debug("Download %s: %.1f%%", video_id, percent),
            )

            await sink.send(ProgressEvent.info(f"Transcribing with {backend.label}..."))
            transcript = await backend.transcribe(audio_file, language=request.language)
            logger.info("Transcription of %s complete (%d segments)", video_id, len(transcript.segments))

            await sink.send(ProgressEvent.info("Finalizing..."))
            record = TranscriptRecord(
                video_id=video_id,
                title=video.title,
                channel=video.channel,
                duration=video.duration,
                transcript=transcript,
                mode=request.mode,
                provider=backend.name,
                requested_language=request.language,
            )
            self.cache.set(video_id, record)
            await sink.send(ProgressEvent.complete(record.to_payload()))
            return record
        except TranscriberError as exc:
            logger.warning("Request for %s failed (%s): %s", request.url, exc.kind, exc)
            await sink.send(ProgressEvent.failure(error_message(exc)))
            return None
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("Unexpected failure for %s", request.url)
            await sink.send(ProgressEvent.failure(error_message(exc)))
            return None
        finally:
            if audio_path is not None:
                _cleanup(audio_path)

    def _validate(self, request: TranscriptionRequest) -> tuple[str, str]:
        if not request.url or not request.url.strip():
            raise ValidationError("URL is required")
        key = backend_name(request.mode, request.provider)
        if key != "local" and not request.credential:
            raise ValidationError(f"API key required for {request.provider} mode.")
        video_id = extract_video_id(request.url)
        if video_id is None:
            raise ValidationError("Invalid YouTube URL")
        return video_id, key

    def _check_limits(self, video: VideoInfo) -> None:
        ceiling = self.settings.max_duration_seconds
        if video.duration > ceiling:
            raise LimitExceededError(f"Video too long. Maximum duration is {ceiling / 3600:g} hours.")
        if video.is_live:
            raise LimitExceededError("Cannot transcribe live streams.")


def _cleanup(audio_path: Path) -> None:
    for path in dict.fromkeys(candidate_paths(audio_path)):
        try:
            path.unlink(missing_ok=True)
        except OSError:
            logger.warning("Failed to clean up %s", path, exc_info=True)
