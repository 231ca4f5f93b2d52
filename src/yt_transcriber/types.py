from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

ProgressStep = Literal[
    "connecting",
    "downloading",
    "processing",
    "loading-model",
    "transcribing",
    "saving",
    "complete",
    "error",
]

TERMINAL_STEPS: frozenset[str] = frozenset({"complete", "error"})


@dataclass(slots=True, frozen=True)
class ProgressEvent:
    step: ProgressStep
    progress: int
    message: str
    text: str | None = None
    files: dict[str, str] | None = None
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.step in TERMINAL_STEPS

    @property
    def succeeded(self) -> bool:
        return self.step == "complete"

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "step": self.step,
            "progress": self.progress,
            "message": self.message,
        }
        if self.step == "complete":
            payload["text"] = self.text or ""
            payload["files"] = dict(self.files or {})
        elif self.step == "error":
            payload["error"] = self.error or self.message
        return payload

    @classmethod
    def failure(cls, error: str, progress: int = 0) -> ProgressEvent:
        return cls(step="error", progress=progress, message=error, error=error)


@dataclass(slots=True, frozen=True)
class Segment:
    index: int
    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start
