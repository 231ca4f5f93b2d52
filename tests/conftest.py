from __future__ import annotations

import math
from pathlib import Path

import numpy as np
import pytest

from yt_transcriber.orchestrator import JobOrchestrator
from yt_transcriber.services.downloader import AcquisitionError
from yt_transcriber.services.storage import StorageService
from yt_transcriber.types import ProgressEvent

SAMPLE_RATE = 10


class FakeDownloader:
    def __init__(
        self,
        work_root: Path,
        *,
        duration: float = 200.0,
        sample_rate: int = SAMPLE_RATE,
        fail_on: str | None = None,
    ) -> None:
        self.work_root = work_root
        self.work_root.mkdir(parents=True, exist_ok=True)
        self.duration = duration
        self.sample_rate = sample_rate
        self.fail_on = fail_on
        self.calls: list[str] = []

    def download_audio(self, *, url: str, dest: Path) -> Path:
        self.calls.append(url)
        dest.write_bytes(b"fake-mp3")
        if self.fail_on == "download":
            dest.with_suffix(".webm.part").write_bytes(b"partial")
            raise AcquisitionError("network unreachable")
        return dest

    def transcode_to_pcm(self, source: Path, dest: Path) -> Path:
        if self.fail_on == "transcode":
            dest.write_bytes(b"\x00" * 8)
            raise AcquisitionError("ffmpeg failed")
        frames = int(round(self.duration * self.sample_rate))
        np.arange(frames, dtype="<f4").tofile(str(dest))
        return dest


class FakeTranscriber:
    model_name = "fake-whisper"

    def __init__(
        self,
        *,
        texts: list[str] | None = None,
        chunk_samples: int | None = None,
        fail_on_call: int | None = None,
        watch_dir: Path | None = None,
    ) -> None:
        self.texts = texts
        self.chunk_samples = chunk_samples
        self.fail_on_call = fail_on_call
        self.watch_dir = watch_dir
        self.load_calls = 0
        self.sizes: list[int] = []
        self.first_samples: list[float | None] = []
        self.segment_files_seen: list[list[str]] = []

    @property
    def is_loaded(self) -> bool:
        return self.load_calls > 0

    def ensure_loaded(self) -> object:
        self.load_calls += 1
        return self

    def transcribe(self, samples: np.ndarray, on_chunk=None) -> str:
        index = len(self.sizes)
        self.sizes.append(int(samples.size))
        self.first_samples.append(float(samples[0]) if samples.size else None)
        if self.watch_dir is not None:
            self.segment_files_seen.append(sorted(p.name for p in self.watch_dir.glob("*-segment-*")))
        if self.fail_on_call == index:
            raise RuntimeError("model exploded")
        if on_chunk is not None and self.chunk_samples:
            for done in range(1, math.ceil(samples.size / self.chunk_samples) + 1):
                on_chunk(done)
        if self.texts is not None:
            return self.texts[index]
        return f"part{index}"


def build_orchestrator(
    tmp_path: Path,
    downloader: FakeDownloader,
    transcriber: FakeTranscriber,
) -> JobOrchestrator:
    return JobOrchestrator(
        downloader=downloader,  # type: ignore[arg-type]
        transcriber=transcriber,  # type: ignore[arg-type]
        storage=StorageService(tmp_path / "out"),
        work_root=downloader.work_root,
        sample_rate=downloader.sample_rate,
        long_audio_threshold_seconds=3600.0,
        segment_seconds=1800.0,
        chunk_seconds=20.0,
    )


def assert_well_formed(events: list[ProgressEvent]) -> None:
    progresses = [event.progress for event in events]
    assert progresses == sorted(progresses)
    assert events[-1].is_terminal
    assert sum(1 for event in events if event.is_terminal) == 1


@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    path = tmp_path / "work"
    path.mkdir()
    return path
