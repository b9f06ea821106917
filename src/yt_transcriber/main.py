from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx
import uvicorn
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response, StreamingResponse
from starlette.routing import Route

from yt_transcriber import __version__
from yt_transcriber.cache import TranscriptCache
from yt_transcriber.config import Settings, load_settings
from yt_transcriber.errors import LimitExceededError, TranscriberError, ValidationError
from yt_transcriber.pipeline import TranscriptionPipeline
from yt_transcriber.services.backends import BackendFactory
from yt_transcriber.services.backends.openai import WHISPER_API_MODEL
from yt_transcriber.services.cost import estimate_cost
from yt_transcriber.services.fetcher import AudioFetcher
from yt_transcriber.services.formats import FORMATS, MEDIA_TYPES, render
from yt_transcriber.services.process import is_available
from yt_transcriber.services.resolver import VideoResolver
from yt_transcriber.types import ProgressEvent, TranscriptionRequest
from yt_transcriber.utils.url import extract_video_id

logger = logging.getLogger(__name__)

SERVICE_NAME = "yt-transcription-server"


class AppRuntime:
    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None) -> None:
        self.settings = settings
        self.http_client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(60.0, connect=10.0))
        self.cache = TranscriptCache(max_entries=settings.cache_max_entries)
        self.resolver = VideoResolver(settings.yt_dlp_bin, timeout_seconds=settings.resolve_timeout_seconds)
        self.fetcher = AudioFetcher(settings.yt_dlp_bin, timeout_seconds=settings.download_timeout_seconds)
        self.backends = BackendFactory(settings, self.http_client)
        self.pipeline = TranscriptionPipeline(
            settings=settings,
            resolver=self.resolver,
            fetcher=self.fetcher,
            backends=self.backends,
            cache=self.cache,
        )

    async def close(self) -> None:
        await self.http_client.aclose()


class QueueSink:
    """Hands pipeline events to the HTTP response generator."""

    def __init__(self) -> None:
        self.queue: asyncio.Queue[ProgressEvent | None] = asyncio.Queue()

    async def send(self, event: ProgressEvent) -> None:
        await self.queue.put(event)


def format_sse(event: ProgressEvent) -> str:
    return f"data: {json.dumps(event.to_payload(), ensure_ascii=False)}\n\n"


async def stream_events(pipeline: TranscriptionPipeline, request: TranscriptionRequest) -> AsyncIterator[str]:
    """Run the pipeline in its own task and relay its events as SSE blocks.

    If the response stops being consumed (client disconnect) the pipeline task
    is cancelled, which kills any running child process; its own cleanup still runs.
    """
    sink = QueueSink()
    task = asyncio.create_task(pipeline.run(request, sink))
    task.add_done_callback(lambda _: sink.queue.put_nowait(None))
    try:
        while True:
            event = await sink.queue.get()
            if event is None:
                break
            yield format_sse(event)
    finally:
        if not task.done():
            logger.info("Stream for %s closed early, cancelling pipeline", request.url)
            task.cancel()


def _credential(request: Request) -> str | None:
    api_key = request.headers.get("x-api-key")
    if api_key:
        return api_key.strip()
    auth = request.headers.get("authorization", "")
    if auth.lower().startswith("bearer "):
        return auth[7:].strip() or None
    return None


async def _json_body(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except (ValueError, UnicodeDecodeError):
        return {}
    return body if isinstance(body, dict) else {}


def _error_response(exc: TranscriberError) -> JSONResponse:
    if isinstance(exc, ValidationError):
        status = 400
    elif isinstance(exc, LimitExceededError):
        status = 422
    else:
        status = 502
    return JSONResponse({"error": str(exc)}, status_code=status)


def _require_url(body: dict[str, Any]) -> str:
    url = str(body.get("url") or "").strip()
    if not url:
        raise ValidationError("URL is required")
    if extract_video_id(url) is None:
        raise ValidationError("Invalid YouTube URL")
    return url


def create_app(runtime: AppRuntime) -> Starlette:
    settings = runtime.settings

    async def health(_: Request) -> JSONResponse:
        return JSONResponse(
            {
                "status": "ok",
                "service": SERVICE_NAME,
                "version": __version__,
                "mode": settings.mode,
                "model": settings.whisper_model if settings.mode == "local" else WHISPER_API_MODEL,
            }
        )

    async def check_deps(_: Request) -> JSONResponse:
        ytdlp = is_available(settings.yt_dlp_bin)
        ffmpeg = is_available(settings.ffmpeg_bin)
        whisper = is_available(settings.whisper_bin)
        local = settings.mode == "local"
        return JSONResponse(
            {
                "ytdlp": ytdlp,
                "ffmpeg": ffmpeg,
                "whisper": whisper,
                "whisperRequired": local,
                "mode": settings.mode,
                "model": settings.whisper_model,
                "ready": ytdlp and ffmpeg and (not local or whisper),
            }
        )

    async def video_info(request: Request) -> JSONResponse:
        try:
            url = _require_url(await _json_body(request))
            info = await runtime.resolver.resolve(url)
        except TranscriberError as exc:
            logger.warning("Video info failed: %s", exc)
            return _error_response(exc)
        return JSONResponse({"success": True, "data": info.to_payload()})

    async def estimate(request: Request) -> JSONResponse:
        mode = (request.headers.get("x-mode") or settings.mode).lower()
        provider = (request.headers.get("x-provider") or "openai").lower()
        try:
            url = _require_url(await _json_body(request))
            info = await runtime.resolver.resolve(url)
        except TranscriberError as exc:
            logger.warning("Cost estimate failed: %s", exc)
            return _error_response(exc)

        result = estimate_cost(info.duration, mode, provider)
        return JSONResponse(
            {
                "success": True,
                "data": {
                    "duration": info.duration,
                    "minutes": result.minutes,
                    "cost": result.cost,
                    "formattedCost": result.formatted_cost,
                    "mode": "local" if result.is_free else "api",
                },
            }
        )

    async def transcribe(request: Request) -> StreamingResponse:
        body = await _json_body(request)
        job = TranscriptionRequest(
            url=str(body.get("url") or "") or None,
            language=str(body.get("language") or "auto"),
            mode=(request.headers.get("x-mode") or settings.mode).lower(),
            provider=(request.headers.get("x-provider") or "openai").lower(),
            credential=_credential(request),
        )
        return StreamingResponse(
            stream_events(runtime.pipeline, job),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    async def transcript(request: Request) -> Response:
        video_id = request.path_params["video_id"]
        fmt = request.query_params.get("format", "json").lower()
        if fmt not in FORMATS:
            return JSONResponse({"error": f"Unsupported format: {fmt}"}, status_code=400)
        record = runtime.cache.get(video_id)
        if record is None:
            return JSONResponse({"error": "Transcript not found"}, status_code=404)
        return Response(render(record, fmt), media_type=MEDIA_TYPES[fmt])

    async def cache_stats(_: Request) -> JSONResponse:
        return JSONResponse(runtime.cache.stats())

    async def clear_cache(_: Request) -> JSONResponse:
        runtime.cache.clear()
        logger.info("Transcript cache cleared")
        return JSONResponse({"success": True})

    @contextlib.asynccontextmanager
    async def lifespan(_: Starlette) -> AsyncIterator[None]:
        try:
            yield
        finally:
            await runtime.close()

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/check-deps", check_deps, methods=["GET"]),
        Route("/video-info", video_info, methods=["POST"]),
        Route("/estimate-cost", estimate, methods=["POST"]),
        Route("/transcribe", transcribe, methods=["POST"]),
        Route("/transcripts/{video_id}", transcript, methods=["GET"]),
        Route("/cache", cache_stats, methods=["GET"]),
        Route("/cache", clear_cache, methods=["DELETE"]),
    ]
    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
            allow_headers=["Content-Type", "Authorization", "X-API-Key", "X-Provider", "X-Mode"],
        )
    ]
    return Starlette(routes=routes, middleware=middleware, lifespan=lifespan)


def cli() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    settings = load_settings()
    runtime = AppRuntime(settings)
    app = create_app(runtime)

    logger.info("Starting %s on %s:%s (mode: %s)", SERVICE_NAME, settings.host, settings.port, settings.mode)
    if settings.mode == "local":
        logger.info("Local Whisper model: %s", settings.whisper_model)
        if not is_available(settings.whisper_bin):
            logger.warning("Local Whisper not found. Install with: pip install openai-whisper, or set WHISPER_MODE=api")
    logger.info("Temp dir: %s", settings.temp_dir)

    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    cli()
