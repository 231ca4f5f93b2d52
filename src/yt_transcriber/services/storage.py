from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

_JOB_ID_PATTERN = re.compile(r"^[0-9]+$")


def _completion_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class StorageService:
    def __init__(self, output_dir: Path) -> None:
        self.output_dir = output_dir
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def paths_for(self, job_id: str) -> tuple[Path, Path]:
        if not _JOB_ID_PATTERN.match(job_id):
            raise ValueError(f"Invalid job id: {job_id!r}")
        stem = f"transcription-{job_id}"
        return self.output_dir / f"{stem}.txt", self.output_dir / f"{stem}.json"

    def persist(self, *, job_id: str, url: str, text: str) -> dict[str, str]:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        text_path, json_path = self.paths_for(job_id)

        record = {
            "url": url,
            "timestamp": _completion_timestamp(),
            "text": text,
            "length": len(text),
        }

        text_path.write_text(text, encoding="utf-8")
        try:
            json_path.write_text(json.dumps(record, indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError:
            text_path.unlink(missing_ok=True)
            raise

        logger.info("Saved transcription %s (%s chars) to %s", job_id, len(text), self.output_dir)
        return {"txt": str(text_path), "json": str(json_path)}

    def read_record(self, job_id: str) -> dict[str, Any] | None:
        _, json_path = self.paths_for(job_id)
        if not json_path.exists():
            return None
        payload = json.loads(json_path.read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            return None
        return payload

    def read_text(self, job_id: str) -> str | None:
        text_path, _ = self.paths_for(job_id)
        if not text_path.exists():
            return None
        return text_path.read_text(encoding="utf-8")

    def list_records(self, limit: int = 20) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        paths = [
            path
            for path in self.output_dir.glob("transcription-*.json")
            if _JOB_ID_PATTERN.match(path.stem.removeprefix("transcription-"))
        ]
        # job ids are creation timestamps, so this is newest first
        paths.sort(key=lambda path: int(path.stem.removeprefix("transcription-")), reverse=True)
        for path in paths[: max(limit, 0)]:
            try:
                payload = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError):
                logger.warning("Skipping unreadable transcription record %s", path)
                continue
            if not isinstance(payload, dict):
                continue
            items.append(
                {
                    "job_id": path.stem.removeprefix("transcription-"),
                    "url": payload.get("url"),
                    "timestamp": payload.get("timestamp"),
                    "length": payload.get("length"),
                }
            )
        return items
