from __future__ import annotations

from typing import Any

from fastmcp import FastMCP
from mcp.types import ToolAnnotations
from starlette.concurrency import run_in_threadpool

from yt_transcriber.orchestrator import JobOrchestrator
from yt_transcriber.services.storage import StorageService


class ToolRegistry:
    def __init__(self, orchestrator: JobOrchestrator, storage: StorageService) -> None:
        self.orchestrator = orchestrator
        self.storage = storage

    def register(self, mcp: FastMCP) -> None:
        _ro = ToolAnnotations(readOnlyHint=True)

        @mcp.tool(annotations=ToolAnnotations(readOnlyHint=False, idempotentHint=False))
        async def transcribe(url: str) -> dict[str, Any]:
            """Download a video's audio and transcribe it.

            Waits until the transcription finishes, which can take a long
            time for long videos.

            Args:
                url: The video URL to transcribe (YouTube, etc.)

            Returns:
                The transcript text and the paths of the saved files, or an error.
            """
            event = await run_in_threadpool(self.orchestrator.transcribe, url)
            if not event.succeeded:
                return {"success": False, "error": event.error}
            return {"success": True, "text": event.text, "files": event.files}

        @mcp.tool(annotations=_ro)
        def list_transcriptions(limit: int = 20) -> dict[str, Any]:
            items = self.storage.list_records(limit=limit)
            return {
                "count": len(items),
                "items": items,
            }

        @mcp.tool(annotations=_ro)
        def read_transcription(
            job_id: str,
            format: str = "text",
            offset: int = 0,
            limit: int | None = None,
        ) -> dict[str, Any]:
            """Read a saved transcription by job ID.

            Args:
                job_id: The job ID embedded in the transcription file names
                format: "text" for the plain transcript or "json" for the metadata record
                offset: Number of lines to skip in text format (default: 0)
                limit: Max lines to return in text format. None returns all remaining.
            """
            try:
                record = self.storage.read_record(job_id)
            except ValueError:
                return {"error": "invalid_job_id", "job_id": job_id}
            if record is None:
                return {"error": "transcription_not_found", "job_id": job_id}

            if format == "json":
                return {"job_id": job_id, "format": "json", "content": record}

            if format == "text":
                full = self.storage.read_text(job_id) or ""
                lines = full.splitlines(keepends=True)
                total = len(lines)
                page = lines[offset:] if limit is None else lines[offset:offset + limit]
                return {
                    "job_id": job_id,
                    "format": "text",
                    "content": "".join(page),
                    "total_lines": total,
                    "offset": offset,
                    "lines_returned": len(page),
                }

            return {
                "error": "unsupported_format",
                "supported_formats": ["json", "text"],
            }
