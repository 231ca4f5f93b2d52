import threading
import time
from typing import Any

import numpy as np
import pytest

from yt_transcriber.services.transcriber import WhisperTranscriber


class RecordingPipeline:
    def __init__(self) -> None:
        self.inputs: list[dict[str, Any]] = []

    def __call__(self, inputs: dict[str, Any]) -> dict[str, str]:
        self.inputs.append(inputs)
        return {"text": f" chunk{len(self.inputs)} "}


def test_model_loads_once_under_concurrent_first_use() -> None:
    calls: list[tuple[str, str | None]] = []
    handle = RecordingPipeline()

    def slow_loader(model_name: str, device: str | None) -> RecordingPipeline:
        calls.append((model_name, device))
        time.sleep(0.05)
        return handle

    transcriber = WhisperTranscriber("tiny", device="cpu", loader=slow_loader)
    barrier = threading.Barrier(8)
    results: list[object] = []

    def worker() -> None:
        barrier.wait()
        results.append(transcriber.ensure_loaded())

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert calls == [("tiny", "cpu")]
    assert all(result is handle for result in results)
    assert transcriber.is_loaded


def test_failed_load_can_be_retried() -> None:
    attempts = {"count": 0}

    def flaky_loader(model_name: str, device: str | None) -> RecordingPipeline:
        attempts["count"] += 1
        if attempts["count"] == 1:
            raise OSError("weights unavailable")
        return RecordingPipeline()

    transcriber = WhisperTranscriber("tiny", loader=flaky_loader)

    with pytest.raises(OSError):
        transcriber.ensure_loaded()
    assert not transcriber.is_loaded

    transcriber.ensure_loaded()
    assert transcriber.is_loaded
    assert attempts["count"] == 2


def test_transcribe_reports_each_chunk() -> None:
    pipeline = RecordingPipeline()
    transcriber = WhisperTranscriber(
        "tiny", sample_rate=10, chunk_seconds=2.0, loader=lambda *_: pipeline
    )
    done: list[int] = []

    text = transcriber.transcribe(np.ones(45, dtype=np.float32), on_chunk=done.append)

    assert done == [1, 2, 3]
    assert text == "chunk1 chunk2 chunk3"
    assert [item["raw"].size for item in pipeline.inputs] == [20, 20, 5]
    assert all(item["sampling_rate"] == 10 for item in pipeline.inputs)
    assert all(item["raw"].dtype == np.float32 for item in pipeline.inputs)


def test_transcribe_without_callback() -> None:
    transcriber = WhisperTranscriber(
        "tiny", sample_rate=10, chunk_seconds=20.0, loader=lambda *_: RecordingPipeline()
    )

    assert transcriber.transcribe(np.zeros(10, dtype=np.float32)) == "chunk1"


def test_empty_audio_skips_the_model() -> None:
    def loader(*_: Any) -> RecordingPipeline:
        raise AssertionError("model should not load")

    transcriber = WhisperTranscriber("tiny", loader=loader)

    assert transcriber.transcribe(np.zeros(0, dtype=np.float32), on_chunk=lambda _: None) == ""
    assert not transcriber.is_loaded


def test_list_results_are_joined() -> None:
    def loader(*_: Any):
        return lambda _inputs: [{"text": "a"}, {"text": "b"}]

    transcriber = WhisperTranscriber("tiny", sample_rate=10, loader=loader)

    assert transcriber.transcribe(np.zeros(5, dtype=np.float32)) == "a b"
