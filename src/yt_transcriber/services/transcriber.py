from __future__ import annotations

import logging
from collections.abc import Callable
from threading import Lock
from typing import Any

import numpy as np

logger = logging.getLogger(__name__)

AsrPipeline = Callable[[dict[str, Any]], Any]
PipelineLoader = Callable[[str, str | None], AsrPipeline]
ChunkCallback = Callable[[int], None]


def load_hf_pipeline(model_name: str, device: str | None) -> AsrPipeline:
    from transformers import pipeline

    kwargs: dict[str, Any] = {"model": model_name}
    if device:
        kwargs["device"] = device
    return pipeline("automatic-speech-recognition", **kwargs)


class WhisperTranscriber:
    """Speech-to-text over a pretrained ASR pipeline, loaded once per process.

    The pipeline is created on first use. Concurrent first callers block on
    the same lock, so the loader runs at most once; a failed load leaves the
    transcriber unloaded and the next caller tries again.
    """

    def __init__(
        self,
        model_name: str,
        *,
        sample_rate: int = 16000,
        chunk_seconds: float = 20.0,
        device: str | None = None,
        loader: PipelineLoader | None = None,
    ) -> None:
        self.model_name = model_name
        self.sample_rate = sample_rate
        self.chunk_seconds = chunk_seconds
        self.device = device
        self._loader = loader or load_hf_pipeline
        self._lock = Lock()
        self._pipeline: AsrPipeline | None = None

    @property
    def is_loaded(self) -> bool:
        return self._pipeline is not None

    def ensure_loaded(self) -> AsrPipeline:
        pipeline = self._pipeline
        if pipeline is not None:
            return pipeline

        with self._lock:
            if self._pipeline is None:
                logger.info("Loading ASR model %s", self.model_name)
                self._pipeline = self._loader(self.model_name, self.device)
                logger.info("ASR model %s ready", self.model_name)
            return self._pipeline

    def transcribe(self, samples: np.ndarray, on_chunk: ChunkCallback | None = None) -> str:
        if samples.size == 0:
            return ""

        pipeline = self.ensure_loaded()
        window = self._window_size()
        texts: list[str] = []
        for done, start in enumerate(range(0, samples.size, window), start=1):
            chunk = np.ascontiguousarray(samples[start:start + window], dtype=np.float32)
            result = pipeline({"raw": chunk, "sampling_rate": self.sample_rate})
            text = self._extract_text(result)
            if text:
                texts.append(text)
            if on_chunk is not None:
                on_chunk(done)
        return " ".join(texts).strip()

    def _window_size(self) -> int:
        return max(1, int(self.chunk_seconds * self.sample_rate))

    @staticmethod
    def _extract_text(result: object) -> str:
        if isinstance(result, dict):
            return str(result.get("text") or "").strip()
        if isinstance(result, list):
            return " ".join(WhisperTranscriber._extract_text(item) for item in result).strip()
        return str(result or "").strip()
