"""Async client for the transcription service, as used by the browser side.

Keeps its own transcript cache so repeating a request for a video in the same
language never reaches the server, and retries plain JSON calls on a fixed backoff table.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_chain,
    wait_fixed,
)

from yt_transcriber.cache import TranscriptCache
from yt_transcriber.types import ProgressEvent, TranscriptRecord, TranscriptResult, TranscriptSegment
from yt_transcriber.utils.url import extract_video_id

logger = logging.getLogger(__name__)

BACKOFF_SECONDS = (1.0, 2.0, 4.0)
HEALTH_TIMEOUT_SECONDS = 3.0


class ServiceError(Exception):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TranscriptionFailed(ServiceError):
    pass


class RetryableStatusError(ServiceError):
    """429 or 5xx from the service; ``retry_after`` carries the server's hint, if any."""

    def __init__(self, message: str, status_code: int, retry_after: float | None = None) -> None:
        super().__init__(message, status_code)
        self.retry_after = retry_after


_fixed_backoff = wait_chain(*(wait_fixed(delay) for delay in BACKOFF_SECONDS))


def _backoff(retry_state: RetryCallState) -> float:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    if isinstance(exc, RetryableStatusError) and exc.retry_after is not None:
        return exc.retry_after
    return _fixed_backoff(retry_state)


def parse_sse_line(line: str) -> ProgressEvent | None:
    if not line.startswith("data:"):
        return None
    try:
        payload = json.loads(line[5:].strip())
    except json.JSONDecodeError:
        logger.debug("Skipping malformed event line: %r", line)
        return None
    if not isinstance(payload, dict) or payload.get("status") not in ("info", "error", "complete"):
        return None
    return ProgressEvent(
        status=payload["status"],
        message=payload.get("message"),
        error=payload.get("error"),
        data=payload.get("data"),
    )


def record_from_payload(data: dict[str, Any], requested_language: str = "auto") -> TranscriptRecord:
    segments = [
        TranscriptSegment(start=float(s.get("start") or 0.0), end=float(s.get("end") or 0.0), text=str(s.get("text") or ""))
        for s in data.get("segments") or []
    ]
    return TranscriptRecord(
        video_id=str(data.get("videoId") or ""),
        title=str(data.get("title") or ""),
        channel=str(data.get("channel") or ""),
        duration=float(data.get("duration") or 0.0),
        transcript=TranscriptResult(
            text=str(data.get("text") or ""),
            segments=segments,
            language=str(data.get("language") or "unknown"),
        ),
        mode=str(data.get("mode") or ""),
        provider=str(data.get("provider") or ""),
        requested_language=requested_language,
    )


class TranscriberClient:
    def __init__(
        self,
        base_url: str = "http://localhost:3456",
        *,
        api_key: str | None = None,
        provider: str = "openai",
        mode: str | None = None,
        cache: TranscriptCache | None = None,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.provider = provider
        self.mode = mode
        self.cache = cache if cache is not None else TranscriptCache()
        self._client = http_client or httpx.AsyncClient(base_url=self.base_url, timeout=None)
        self._sleep = sleep

    def _headers(self) -> dict[str, str]:
        headers = {"X-Provider": self.provider}
        if self.api_key:
            headers["X-API-Key"] = self.api_key
        if self.mode:
            headers["X-Mode"] = self.mode
        return headers

    async def is_healthy(self) -> bool:
        try:
            response = await self._client.get(f"{self.base_url}/health", timeout=HEALTH_TIMEOUT_SECONDS)
        except httpx.HTTPError:
            return False
        return response.is_success

    async def video_info(self, url: str) -> dict[str, Any]:
        payload = await self._post_json("/video-info", {"url": url})
        return dict(payload["data"])

    async def estimate_cost(self, url: str) -> dict[str, Any]:
        payload = await self._post_json("/estimate-cost", {"url": url})
        return dict(payload["data"])

    async def transcribe(
        self,
        url: str,
        language: str = "auto",
        on_event: Callable[[ProgressEvent], None] | None = None,
    ) -> TranscriptRecord:
        video_id = extract_video_id(url)
        if video_id is not None:
            cached = self.cache.get(video_id)
            if cached is not None and cached.requested_language == language:
                return cached

        async with self._client.stream(
            "POST",
            f"{self.base_url}/transcribe",
            json={"url": url, "language": language},
            headers=self._headers(),
        ) as response:
            if not response.is_success:
                await response.aread()
                raise ServiceError(f"Server returned {response.status_code}", response.status_code)
            async for line in response.aiter_lines():
                event = parse_sse_line(line)
                if event is None:
                    continue
                if on_event is not None:
                    on_event(event)
                if event.status == "error":
                    raise TranscriptionFailed(event.error or "Transcription failed")
                if event.status == "complete":
                    record = record_from_payload(event.data or {}, requested_language=language)
                    self.cache.set(record.video_id or video_id or url, record)
                    return record

        raise TranscriptionFailed("Connection closed before the transcription finished")

    async def _post_json(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type((httpx.TransportError, RetryableStatusError)),
                wait=_backoff,
                stop=stop_after_attempt(len(BACKOFF_SECONDS) + 1),
                sleep=self._sleep,
                reraise=True,
                before_sleep=before_sleep_log(logger, logging.INFO),
            ):
                with attempt:
                    response = await self._client.post(f"{self.base_url}{path}", json=body, headers=self._headers())
                    if response.status_code == 429 or response.status_code >= 500:
                        raise RetryableStatusError(_error_text(response), response.status_code, _retry_after(response))
                    if not response.is_success:
                        raise ServiceError(_error_text(response), response.status_code)
                    return dict(response.json())
        except httpx.TransportError as exc:
            raise ServiceError(f"Network error: {exc}") from exc

        raise ServiceError(f"Request to {path} failed")

    async def close(self) -> None:
        await self._client.aclose()


def _retry_after(response: httpx.Response) -> float | None:
    if response.status_code != 429:
        return None
    try:
        return float(response.headers.get("Retry-After", ""))
    except ValueError:
        return None


def _error_text(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"Request failed with status {response.status_code}"
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"Request failed with status {response.status_code}"
