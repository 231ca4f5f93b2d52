from __future__ import annotations

import json
import logging
from threading import Thread

from fastmcp import FastMCP
from starlette.background import BackgroundTask
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import FileResponse, JSONResponse, Response, StreamingResponse

from yt_transcriber.job import next_job_id
from yt_transcriber.orchestrator import MISSING_URL_ERROR, PROCESSING_ERROR, JobOrchestrator
from yt_transcriber.progress import ProgressChannel
from yt_transcriber.scratch import ScratchFiles
from yt_transcriber.services.downloader import Downloader
from yt_transcriber.types import ProgressEvent

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


async def _read_url(request: Request) -> tuple[str, str | None]:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return "", "Invalid JSON body"
    if not isinstance(body, dict):
        return "", "Invalid JSON body"
    url = str(body.get("url") or "").strip()
    if not url:
        return "", MISSING_URL_ERROR
    return url, None


class RouteRegistry:
    def __init__(
        self,
        orchestrator: JobOrchestrator,
        downloader: Downloader,
        *,
        keepalive_seconds: float = 15.0,
    ) -> None:
        self.orchestrator = orchestrator
        self.downloader = downloader
        self.keepalive_seconds = keepalive_seconds

    def register(self, mcp: FastMCP) -> None:
        @mcp.custom_route("/api/transcribe-stream", methods=["GET"])
        async def transcribe_stream(request: Request) -> Response:
            url = request.query_params.get("url", "")
            channel = ProgressChannel(keepalive_seconds=self.keepalive_seconds)
            worker = Thread(
                target=self._run_job,
                args=(url, channel),
                name="transcription-job",
                daemon=True,
            )
            worker.start()
            return StreamingResponse(
                channel.stream(),
                media_type="text/event-stream",
                headers=SSE_HEADERS,
            )

        @mcp.custom_route("/api/transcribe", methods=["POST"])
        async def transcribe(request: Request) -> Response:
            url, error = await _read_url(request)
            if error is not None:
                return JSONResponse({"error": error}, status_code=400)

            event = await run_in_threadpool(self.orchestrator.transcribe, url)
            if not event.succeeded:
                return JSONResponse({"error": event.error or PROCESSING_ERROR}, status_code=500)
            return JSONResponse({"text": event.text, "success": True, "files": event.files})

        @mcp.custom_route("/api/download", methods=["POST"])
        async def download(request: Request) -> Response:
            url, error = await _read_url(request)
            if error is not None:
                return JSONResponse({"error": error}, status_code=400)

            download_id = next_job_id()
            work_root = self.downloader.work_root
            scratch = ScratchFiles()
            dest = scratch.register(work_root / f"download-{download_id}.mp3")
            scratch.track_pattern(work_root, f"download-{download_id}.*")

            logger.info("Downloading audio from %s", url)
            try:
                await run_in_threadpool(self.downloader.download_audio, url=url, dest=dest)
            except Exception as exc:  # pylint: disable=broad-except
                logger.exception("Audio download for %s failed: %s", url, exc)
                scratch.close()
                return JSONResponse({"error": PROCESSING_ERROR}, status_code=500)

            return FileResponse(
                dest,
                media_type="audio/mpeg",
                filename="audio.mp3",
                background=BackgroundTask(scratch.close),
            )

    def _run_job(self, url: str, channel: ProgressChannel) -> None:
        try:
            self.orchestrator.run(url, channel.publish)
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("Streaming job for %s crashed: %s", url, exc)
            channel.publish(ProgressEvent.failure(PROCESSING_ERROR))
