"""Raw PCM helpers: duration probing and time-bounded segment extraction.

Assets are headerless 32-bit little-endian float PCM, so every offset is a
plain multiplication and nothing has to be decoded to learn the length.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterator
from pathlib import Path

import numpy as np

from yt_transcriber.types import Segment

logger = logging.getLogger(__name__)

BYTES_PER_SAMPLE = 4
SAMPLE_DTYPE = "<f4"
_COPY_BLOCK_BYTES = 1 << 20


def frame_size(channels: int = 1) -> int:
    return BYTES_PER_SAMPLE * channels


def probe_duration(path: Path, sample_rate: int, channels: int = 1) -> float:
    """Return the duration of a raw PCM asset in seconds, from its size alone."""
    size = path.stat().st_size
    frames = size // frame_size(channels)
    return frames / float(sample_rate)


def segment_count(duration: float, segment_seconds: float) -> int:
    if duration <= 0:
        return 0
    return math.ceil(duration / segment_seconds)


def iter_segments(duration: float, segment_seconds: float) -> Iterator[Segment]:
    """Yield segments covering ``[0, duration]`` in order.

    The last segment ends exactly at ``duration``.
    """
    total = segment_count(duration, segment_seconds)
    for index in range(total):
        start = index * segment_seconds
        end = duration if index == total - 1 else min(start + segment_seconds, duration)
        yield Segment(index=index, start=start, end=end)


def extract_segment(
    source: Path,
    dest: Path,
    segment: Segment,
    sample_rate: int,
    channels: int = 1,
) -> Path:
    """Copy the bytes of ``segment`` from ``source`` into ``dest``.

    When the asset is shorter than the segment claims, the copy stops at the
    end of the asset instead of failing.
    """
    frame = frame_size(channels)
    offset = int(round(segment.start * sample_rate)) * frame
    length = int(round(segment.end * sample_rate)) * frame - offset
    available = max(source.stat().st_size - offset, 0)
    if available < length:
        logger.warning(
            "Segment %s of %s is short: %s of %s bytes available",
            segment.index,
            source.name,
            available,
            length,
        )
        length = available - (available % frame)

    remaining = length
    with source.open("rb") as reader, dest.open("wb") as writer:
        reader.seek(offset)
        while remaining > 0:
            block = reader.read(min(_COPY_BLOCK_BYTES, remaining))
            if not block:
                break
            writer.write(block)
            remaining -= len(block)
    return dest


def load_samples(path: Path, channels: int = 1) -> np.ndarray:
    samples = np.fromfile(str(path), dtype=SAMPLE_DTYPE).astype(np.float32, copy=False)
    if channels > 1:
        usable = samples.size - (samples.size % channels)
        samples = samples[:usable].reshape(-1, channels).mean(axis=1).astype(np.float32)
    return samples
