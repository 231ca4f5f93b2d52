from __future__ import annotations

import logging

import uvicorn
from fastmcp import FastMCP
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from yt_transcriber.config import Settings, load_settings
from yt_transcriber.http_routes import RouteRegistry
from yt_transcriber.mcp_tools import ToolRegistry
from yt_transcriber.orchestrator import JobOrchestrator
from yt_transcriber.services.downloader import Downloader
from yt_transcriber.services.storage import StorageService
from yt_transcriber.services.transcriber import WhisperTranscriber

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
logger = logging.getLogger(__name__)


class AppRuntime:
    def __init__(
        self,
        settings: Settings,
        *,
        downloader: Downloader | None = None,
        transcriber: WhisperTranscriber | None = None,
    ) -> None:
        self.settings = settings
        self.downloader = downloader or Downloader(
            settings.work_dir,
            sample_rate=settings.sample_rate,
            channels=settings.channels,
            ytdlp_binary=settings.ytdlp_binary,
            ffmpeg_binary=settings.ffmpeg_binary,
            timeout_seconds=settings.tool_timeout_seconds,
        )
        self.storage = StorageService(settings.output_dir)
        self.transcriber = transcriber or WhisperTranscriber(
            settings.model_name,
            sample_rate=settings.sample_rate,
            chunk_seconds=settings.chunk_seconds,
            device=settings.model_device,
        )

        self.orchestrator = JobOrchestrator(
            downloader=self.downloader,
            transcriber=self.transcriber,
            storage=self.storage,
            work_root=settings.work_dir,
            sample_rate=settings.sample_rate,
            channels=settings.channels,
            long_audio_threshold_seconds=settings.long_audio_threshold_seconds,
            segment_seconds=settings.segment_seconds,
            chunk_seconds=settings.chunk_seconds,
        )


def create_app(runtime: AppRuntime) -> FastMCP:
    mcp = FastMCP(name="yt-transcriber")

    ToolRegistry(runtime.orchestrator, runtime.storage).register(mcp)
    RouteRegistry(
        runtime.orchestrator,
        runtime.downloader,
        keepalive_seconds=runtime.settings.keepalive_seconds,
    ).register(mcp)

    @mcp.custom_route(runtime.settings.health_path, methods=["GET"])
    async def health(_: Request) -> JSONResponse:
        return JSONResponse(
            {
                "ok": True,
                "model_loaded": runtime.transcriber.is_loaded,
                "model": runtime.transcriber.model_name,
            }
        )

    return mcp


def create_http_app(runtime: AppRuntime) -> Starlette:
    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origins=runtime.settings.cors_origins,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    ]
    return create_app(runtime).http_app(path=runtime.settings.mcp_path, middleware=middleware)


def cli() -> None:
    settings = load_settings()
    runtime = AppRuntime(settings)

    app = create_http_app(runtime)
    logger.info("Starting server on http://%s:%s (MCP at %s)", settings.host, settings.port, settings.mcp_path)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    cli()
