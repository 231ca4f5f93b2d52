from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from queue import Empty, Queue
from threading import Lock

from yt_transcriber.types import ProgressEvent

logger = logging.getLogger(__name__)

KEEPALIVE_FRAME = ": keep-alive\n\n"


def encode_event(event: ProgressEvent) -> str:
    return f"data: {json.dumps(event.to_payload(), ensure_ascii=False)}\n\n"


class ProgressChannel:
    """Ordered one-way event stream for a single job.

    The producer publishes from the job thread; the consumer iterates
    ``stream()`` from the response. Everything after the first terminal event
    is dropped, and iteration ends right after yielding it.
    """

    def __init__(self, keepalive_seconds: float = 15.0) -> None:
        self.keepalive_seconds = keepalive_seconds
        self._queue: Queue[ProgressEvent] = Queue()
        self._lock = Lock()
        self._terminated = False

    @property
    def terminated(self) -> bool:
        return self._terminated

    def publish(self, event: ProgressEvent) -> None:
        with self._lock:
            if self._terminated:
                logger.debug("Dropping %s event published after terminal event", event.step)
                return
            if event.is_terminal:
                self._terminated = True
            self._queue.put(event)

    def events(self) -> Iterator[ProgressEvent | None]:
        """Yield events in order; ``None`` marks a keep-alive interval with no event."""
        while True:
            try:
                event = self._queue.get(timeout=self.keepalive_seconds)
            except Empty:
                yield None
                continue
            yield event
            if event.is_terminal:
                return

    def stream(self) -> Iterator[str]:
        for event in self.events():
            if event is None:
                yield KEEPALIVE_FRAME
            else:
                yield encode_event(event)
