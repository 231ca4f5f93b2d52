from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from threading import Lock

from yt_transcriber.types import ProgressEvent, ProgressStep

EventSink = Callable[[ProgressEvent], None]

_id_lock = Lock()
_last_id = 0


def next_job_id() -> str:
    """Millisecond creation timestamp, bumped when two jobs start in the same ms."""
    global _last_id
    with _id_lock:
        candidate = int(time.time() * 1000)
        if candidate <= _last_id:
            candidate = _last_id + 1
        _last_id = candidate
    return str(candidate)


@dataclass(slots=True)
class Job:
    url: str
    work_dir: Path
    emit: EventSink
    id: str = field(default_factory=next_job_id)
    step: ProgressStep = "connecting"
    progress: int = 0
    text: str = ""
    outcome: ProgressEvent | None = None

    @property
    def created_at_ms(self) -> int:
        return int(self.id)

    @property
    def finished(self) -> bool:
        return self.outcome is not None

    def scratch_path(self, suffix: str) -> Path:
        return self.work_dir / f"audio-{self.id}{suffix}"

    def report(self, step: ProgressStep, progress: float, message: str) -> ProgressEvent:
        self._ensure_open()
        self.step = step
        self.progress = max(self.progress, min(int(progress), 100))
        event = ProgressEvent(step=step, progress=self.progress, message=message)
        self.emit(event)
        return event

    def append_transcript(self, text: str) -> None:
        self.text = f"{self.text}{text} "

    def succeed(self, files: dict[str, str]) -> ProgressEvent:
        self._ensure_open()
        self.step = "complete"
        self.progress = 100
        self.text = self.text.strip()
        event = ProgressEvent(
            step="complete",
            progress=100,
            message="Transcription complete",
            text=self.text,
            files=files,
        )
        self.outcome = event
        self.emit(event)
        return event

    def fail(self, error: str) -> ProgressEvent:
        self._ensure_open()
        self.step = "error"
        self.text = ""
        event = ProgressEvent.failure(error, progress=self.progress)
        self.outcome = event
        self.emit(event)
        return event

    def _ensure_open(self) -> None:
        if self.outcome is not None:
            raise RuntimeError(f"Job {self.id} already finished with {self.outcome.step}")
