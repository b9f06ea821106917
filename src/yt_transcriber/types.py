from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

EventStatus = Literal["info", "error", "complete"]

UNKNOWN_LANGUAGE = "unknown"


@dataclass(frozen=True, slots=True)
class VideoInfo:
    id: str
    title: str
    duration: float
    channel: str
    thumbnail: str
    is_live: bool = False

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "duration": self.duration,
            "channel": self.channel,
            "thumbnail": self.thumbnail,
            "isLive": self.is_live,
        }


@dataclass(slots=True)
class TranscriptSegment:
    start: float
    end: float
    text: str

    def to_payload(self) -> dict[str, Any]:
        return {"start": self.start, "end": self.end, "text": self.text}


@dataclass(slots=True)
class TranscriptResult:
    text: str
    segments: list[TranscriptSegment]
    language: str = UNKNOWN_LANGUAGE


@dataclass(frozen=True, slots=True)
class TranscriptRecord:
    """Assembled result of one transcription request, as sent to the caller."""

    video_id: str
    title: str
    channel: str
    duration: float
    transcript: TranscriptResult
    mode: str
    provider: str
    requested_language: str = "auto"

    def answers(self, language: str, mode: str, provider: str) -> bool:
        """True when this record was produced for the same language hint, mode and backend."""
        return self.requested_language == language and self.mode == mode and self.provider == provider

    def to_payload(self) -> dict[str, Any]:
        return {
            "videoId": self.video_id,
            "title": self.title,
            "channel": self.channel,
            "duration": self.duration,
            "text": self.transcript.text,
            "language": self.transcript.language,
            "segments": [segment.to_payload() for segment in self.transcript.segments],
            "mode": self.mode,
            "provider": self.provider,
        }


@dataclass(frozen=True, slots=True)
class TranscriptionRequest:
    url: str | None
    language: str = "auto"
    mode: str = "local"
    provider: str = "openai"
    credential: str | None = None


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    status: EventStatus
    message: str | None = None
    error: str | None = None
    data: dict[str, Any] | None = field(default=None)

    @classmethod
    def info(cls, message: str) -> ProgressEvent:
        return cls(status="info", message=message)

    @classmethod
    def failure(cls, error: str) -> ProgressEvent:
        return cls(status="error", error=error)

    @classmethod
    def complete(cls, data: dict[str, Any]) -> ProgressEvent:
        return cls(status="complete", data=data)

    @property
    def is_terminal(self) -> bool:
        return self.status != "info"

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"status": self.status}
        if self.message is not None:
            payload["message"] = self.message
        if self.error is not None:
            payload["error"] = self.error
        if self.data is not None:
            payload["data"] = self.data
        return payload


@dataclass(frozen=True, slots=True)
class CostEstimate:
    minutes: int
    cost: str
    is_free: bool

    @property
    def formatted_cost(self) -> str:
        if self.is_free:
            return "FREE (local mode)"
        return f"${self.cost}"
