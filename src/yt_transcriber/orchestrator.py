from __future__ import annotations

import logging
import math
from pathlib import Path

from yt_transcriber.job import EventSink, Job
from yt_transcriber.scratch import ScratchFiles
from yt_transcriber.services.audio import (
    extract_segment,
    iter_segments,
    load_samples,
    probe_duration,
    segment_count,
)
from yt_transcriber.services.downloader import Downloader
from yt_transcriber.services.storage import StorageService
from yt_transcriber.services.transcriber import WhisperTranscriber
from yt_transcriber.types import ProgressEvent

logger = logging.getLogger(__name__)

MISSING_URL_ERROR = "URL is required"
PROCESSING_ERROR = "Error processing the request"

TRANSCRIBE_START = 50
TRANSCRIBE_SPAN = 40


class JobOrchestrator:
    """Runs one transcription job end to end, reporting progress as it goes.

    Percentages are allocated per stage: acquisition 0-30, probing 30-40,
    model readiness 40-50, transcription 50-90, persistence 90-100.
    """

    def __init__(
        self,
        *,
        downloader: Downloader,
        transcriber: WhisperTranscriber,
        storage: StorageService,
        work_root: Path,
        sample_rate: int = 16000,
        channels: int = 1,
        long_audio_threshold_seconds: float = 3600.0,
        segment_seconds: float = 1800.0,
        chunk_seconds: float = 20.0,
    ) -> None:
        self.downloader = downloader
        self.transcriber = transcriber
        self.storage = storage
        self.work_root = work_root
        self.sample_rate = sample_rate
        self.channels = channels
        self.long_audio_threshold_seconds = long_audio_threshold_seconds
        self.segment_seconds = segment_seconds
        self.chunk_seconds = chunk_seconds

    def transcribe(self, url: str | None) -> ProgressEvent:
        """Run a job without streaming and return its terminal event."""
        return self.run(url, lambda _event: None)

    def run(self, url: str | None, emit: EventSink) -> ProgressEvent:
        source_url = (url or "").strip()
        if not source_url:
            event = ProgressEvent.failure(MISSING_URL_ERROR)
            emit(event)
            return event

        self.work_root.mkdir(parents=True, exist_ok=True)
        job = Job(url=source_url, work_dir=self.work_root, emit=emit)
        logger.info("Starting job %s for %s", job.id, source_url)
        try:
            with ScratchFiles() as scratch:
                scratch.track_pattern(self.work_root, f"audio-{job.id}.*")
                scratch.track_pattern(self.work_root, f"audio-{job.id}-*")
                files = self._process(job, scratch)
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("Job %s failed: %s", job.id, str(exc).strip() or type(exc).__name__)
            return job.fail(PROCESSING_ERROR)

        logger.info("Completed job %s (%s chars)", job.id, len(job.text.strip()))
        return job.succeed(files)

    def _process(self, job: Job, scratch: ScratchFiles) -> dict[str, str]:
        job.report("connecting", 0, "Connecting to the video source")

        download_path = scratch.register(job.scratch_path(".mp3"))
        job.report("downloading", 5, "Downloading audio")
        self.downloader.download_audio(url=job.url, dest=download_path)

        pcm_path = scratch.register(job.scratch_path(".pcm"))
        job.report("downloading", 20, f"Converting audio to {self.sample_rate // 1000} kHz mono")
        self.downloader.transcode_to_pcm(download_path, pcm_path)
        scratch.release(download_path)
        job.report("downloading", 30, "Audio downloaded")

        job.report("processing", 35, "Measuring audio duration")
        duration = probe_duration(pcm_path, self.sample_rate, self.channels)
        logger.info("Job %s audio duration: %.1fs", job.id, duration)
        job.report("processing", 40, f"Audio duration: {duration:.0f}s")

        job.report("loading-model", 45, "Loading transcription model")
        self.transcriber.ensure_loaded()
        job.report("loading-model", 50, "Model ready")

        if duration <= self.long_audio_threshold_seconds:
            self._transcribe_direct(job, pcm_path, duration)
        else:
            self._transcribe_segmented(job, scratch, pcm_path, duration)

        job.report("saving", 90, "Saving transcription")
        files = self.storage.persist(job_id=job.id, url=job.url, text=job.text.strip())
        scratch.release(pcm_path)
        return files

    def _transcribe_direct(self, job: Job, pcm_path: Path, duration: float) -> None:
        expected = max(1, math.ceil(duration / self.chunk_seconds))

        def on_chunk(done: int) -> None:
            done = min(done, expected)
            job.report(
                "transcribing",
                TRANSCRIBE_START + TRANSCRIBE_SPAN * done / expected,
                f"Transcribing chunk {done}/{expected}",
            )

        job.report("transcribing", TRANSCRIBE_START, "Transcribing audio")
        samples = load_samples(pcm_path, self.channels)
        text = self.transcriber.transcribe(samples, on_chunk=on_chunk)
        del samples
        job.append_transcript(text)

    def _transcribe_segmented(
        self,
        job: Job,
        scratch: ScratchFiles,
        pcm_path: Path,
        duration: float,
    ) -> None:
        total = segment_count(duration, self.segment_seconds)
        logger.info("Job %s split into %s segments of %ss", job.id, total, self.segment_seconds)

        for segment in iter_segments(duration, self.segment_seconds):
            ordinal = segment.index + 1
            job.report(
                "transcribing",
                TRANSCRIBE_START + TRANSCRIBE_SPAN * segment.index / total,
                f"Transcribing segment {ordinal}/{total}",
            )

            segment_path = scratch.register(job.scratch_path(f"-segment-{segment.index}.pcm"))
            extract_segment(pcm_path, segment_path, segment, self.sample_rate, self.channels)
            samples = load_samples(segment_path, self.channels)
            text = self.transcriber.transcribe(samples)
            del samples
            scratch.release(segment_path)

            job.append_transcript(text)
            job.report(
                "transcribing",
                TRANSCRIBE_START + TRANSCRIBE_SPAN * ordinal / total,
                f"Segment {ordinal}/{total} transcribed",
            )
