from __future__ import annotations


class TranscriberError(Exception):
    """Base for every failure the pipeline reports to the caller."""

    kind = "internal"

    def __init__(self, message: str, *, kind: str | None = None) -> None:
        super().__init__(message)
        if kind is not None:
            self.kind = kind


class ValidationError(TranscriberError):
    """Bad or missing input: URL, mode, provider or credential. Never retried."""

    kind = "validation"


class ResolutionError(TranscriberError):
    """Video metadata lookup failed or returned something unparsable."""

    kind = "resolution"


class FetchError(TranscriberError):
    """Audio download failed. ``kind`` separates a missing tool from a failed download."""

    kind = "download_failed"


class TranscriptionError(TranscriberError):
    """Any transcription backend failure."""

    kind = "transcription"


class LimitExceededError(TranscriberError):
    """Video too long or live; raised before any download happens."""

    kind = "limit_exceeded"
