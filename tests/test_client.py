import json

import httpx
import pytest
import pytest_asyncio
import respx

from yt_transcriber.client import (
    BACKOFF_SECONDS,
    ServiceError,
    TranscriberClient,
    TranscriptionFailed,
    parse_sse_line,
)

BASE = "http://transcriber.test"
VIDEO_URL = "https://youtu.be/dQw4w9WgXcQ"

COMPLETE = {
    "videoId": "dQw4w9WgXcQ",
    "title": "Video 1",
    "channel": "Channel A",
    "duration": 12.0,
    "text": "hello world",
    "language": "en",
    "segments": [{"start": 0.0, "end": 5.0, "text": "hello world"}],
    "mode": "api",
    "provider": "deepgram",
}


def sse(*events: dict) -> bytes:
    return "".join(f"data: {json.dumps(event)}\n\n" for event in events).encode()


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(float(delay))


@pytest.fixture
def sleeper() -> RecordingSleep:
    return RecordingSleep()


@pytest_asyncio.fixture
async def client(sleeper: RecordingSleep):
    transcriber = TranscriberClient(BASE, api_key="dg-key", provider="deepgram", mode="api", sleep=sleeper)
    yield transcriber
    await transcriber.close()


def test_parse_sse_line() -> None:
    event = parse_sse_line('data: {"status": "info", "message": "Downloading"}')
    assert event is not None and event.message == "Downloading"
    assert parse_sse_line("") is None
    assert parse_sse_line(": keep-alive") is None
    assert parse_sse_line("data: {broken") is None


@respx.mock
@pytest.mark.asyncio
async def test_transcribe_collects_events_and_caches(client: TranscriberClient) -> None:
    route = respx.post(f"{BASE}/transcribe").mock(
        return_value=httpx.Response(
            200,
            content=sse({"status": "info", "message": "Fetching video info..."}, {"status": "complete", "data": COMPLETE}),
            headers={"Content-Type": "text/event-stream"},
        )
    )
    seen = []

    record = await client.transcribe(VIDEO_URL, language="en", on_event=seen.append)

    assert record.video_id == "dQw4w9WgXcQ"
    assert record.transcript.segments[0].text == "hello world"
    assert [event.status for event in seen] == ["info", "complete"]
    request = route.calls.last.request
    assert request.headers["X-API-Key"] == "dg-key"
    assert request.headers["X-Provider"] == "deepgram"
    assert request.headers["X-Mode"] == "api"
    assert json.loads(request.content) == {"url": VIDEO_URL, "language": "en"}

    again = await client.transcribe("https://www.youtube.com/watch?v=dQw4w9WgXcQ", language="en")
    assert again == record
    assert route.call_count == 1


@respx.mock
@pytest.mark.asyncio
async def test_transcribe_error_event(client: TranscriberClient) -> None:
    respx.post(f"{BASE}/transcribe").mock(
        return_value=httpx.Response(200, content=sse({"status": "error", "error": "Cannot transcribe live streams."}))
    )
    with pytest.raises(TranscriptionFailed, match="live streams"):
        await client.transcribe(VIDEO_URL)
    assert len(client.cache) == 0


@respx.mock
@pytest.mark.asyncio
async def test_transcribe_stream_ends_without_result(client: TranscriberClient) -> None:
    respx.post(f"{BASE}/transcribe").mock(
        return_value=httpx.Response(200, content=sse({"status": "info", "message": "Downloading"}))
    )
    with pytest.raises(TranscriptionFailed, match="Connection closed"):
        await client.transcribe(VIDEO_URL)


@respx.mock
@pytest.mark.asyncio
async def test_json_calls_retry_with_fixed_backoff(client: TranscriberClient, sleeper: RecordingSleep) -> None:
    route = respx.post(f"{BASE}/video-info").mock(
        side_effect=[
            httpx.ConnectError("refused"),
            httpx.Response(503, json={"error": "busy"}),
            httpx.Response(200, json={"success": True, "data": {"id": "dQw4w9WgXcQ"}}),
        ]
    )

    data = await client.video_info(VIDEO_URL)

    assert data == {"id": "dQw4w9WgXcQ"}
    assert route.call_count == 3
    assert sleeper.delays == [BACKOFF_SECONDS[0], BACKOFF_SECONDS[1]]


@respx.mock
@pytest.mark.asyncio
async def test_retries_are_bounded(client: TranscriberClient, sleeper: RecordingSleep) -> None:
    route = respx.post(f"{BASE}/estimate-cost").mock(return_value=httpx.Response(500, json={"error": "boom"}))

    with pytest.raises(ServiceError, match="boom") as excinfo:
        await client.estimate_cost(VIDEO_URL)

    assert excinfo.value.status_code == 500
    assert route.call_count == len(BACKOFF_SECONDS) + 1
    assert sleeper.delays == list(BACKOFF_SECONDS)


@respx.mock
@pytest.mark.asyncio
async def test_rate_limit_honours_retry_after(client: TranscriberClient, sleeper: RecordingSleep) -> None:
    respx.post(f"{BASE}/video-info").mock(
        side_effect=[
            httpx.Response(429, headers={"Retry-After": "7"}),
            httpx.Response(200, json={"success": True, "data": {}}),
        ]
    )
    await client.video_info(VIDEO_URL)
    assert sleeper.delays == [7.0]


@respx.mock
@pytest.mark.asyncio
async def test_client_errors_are_not_retried(client: TranscriberClient, sleeper: RecordingSleep) -> None:
    route = respx.post(f"{BASE}/video-info").mock(return_value=httpx.Response(400, json={"error": "Invalid YouTube URL"}))
    with pytest.raises(ServiceError, match="Invalid YouTube URL"):
        await client.video_info("https://vimeo.com/1")
    assert route.call_count == 1
    assert sleeper.delays == []


@respx.mock
@pytest.mark.asyncio
async def test_health_probe(client: TranscriberClient) -> None:
    respx.get(f"{BASE}/health").mock(
        side_effect=[httpx.Response(200, json={"status": "ok"}), httpx.ConnectTimeout("timed out")]
    )
    assert await client.is_healthy() is True
    assert await client.is_healthy() is False


@respx.mock
@pytest.mark.asyncio
async def test_network_errors_exhaust_into_service_error(client: TranscriberClient, sleeper: RecordingSleep) -> None:
    route = respx.post(f"{BASE}/video-info").mock(side_effect=httpx.ConnectError("refused"))

    with pytest.raises(ServiceError, match="Network error") as excinfo:
        await client.video_info(VIDEO_URL)

    assert excinfo.value.status_code is None
    assert route.call_count == len(BACKOFF_SECONDS) + 1
    assert sleeper.delays == list(BACKOFF_SECONDS)


@respx.mock
@pytest.mark.asyncio
async def test_cached_transcript_is_reused_only_for_the_same_language(client: TranscriberClient) -> None:
    route = respx.post(f"{BASE}/transcribe").mock(
        return_value=httpx.Response(200, content=sse({"status": "complete", "data": COMPLETE}))
    )

    first = await client.transcribe(VIDEO_URL, language="en")
    await client.transcribe(VIDEO_URL, language="de")
    assert route.call_count == 2
    assert json.loads(route.calls.last.request.content)["language"] == "de"

    await client.transcribe(VIDEO_URL, language="de")
    assert route.call_count == 2
    assert first.requested_language == "en"
