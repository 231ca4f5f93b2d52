import math
from pathlib import Path

import numpy as np
import pytest

from yt_transcriber.services.audio import (
    extract_segment,
    iter_segments,
    load_samples,
    probe_duration,
    segment_count,
)
from yt_transcriber.types import Segment


def _write_pcm(path: Path, frames: int, channels: int = 1) -> Path:
    np.arange(frames * channels, dtype="<f4").tofile(str(path))
    return path


def test_probe_duration_uses_file_size(tmp_path: Path) -> None:
    asset = _write_pcm(tmp_path / "a.pcm", frames=16000 * 3)

    assert probe_duration(asset, 16000) == 3.0
    assert probe_duration(asset, 16000) == probe_duration(asset, 16000)


def test_probe_duration_accounts_for_channels(tmp_path: Path) -> None:
    asset = _write_pcm(tmp_path / "stereo.pcm", frames=8, channels=2)

    assert probe_duration(asset, 4, channels=2) == 2.0


@pytest.mark.parametrize(
    ("duration", "expected"),
    [(0.0, 0), (1.0, 1), (1800.0, 1), (1800.1, 2), (5400.0, 3), (5400.5, 4)],
)
def test_segment_count_rounds_up(duration: float, expected: int) -> None:
    assert segment_count(duration, 1800.0) == expected


def test_segments_tile_the_whole_duration() -> None:
    duration = 4000.37
    segments = list(iter_segments(duration, 1800.0))

    assert len(segments) == math.ceil(duration / 1800.0)
    assert [s.index for s in segments] == [0, 1, 2]
    assert segments[0].start == 0.0
    for previous, current in zip(segments, segments[1:]):
        assert current.start == previous.end
    assert segments[-1].end == duration
    assert segments[0].duration == 1800.0


def test_even_split_gives_equal_segments() -> None:
    segments = list(iter_segments(5400.0, 1800.0))

    assert [(s.start, s.end) for s in segments] == [(0.0, 1800.0), (1800.0, 3600.0), (3600.0, 5400.0)]


def test_zero_duration_has_no_segments() -> None:
    assert list(iter_segments(0.0, 1800.0)) == []


def test_extract_segment_copies_the_window(tmp_path: Path) -> None:
    source = _write_pcm(tmp_path / "full.pcm", frames=40)
    dest = tmp_path / "seg.pcm"

    extract_segment(source, dest, Segment(index=1, start=2.0, end=4.0), sample_rate=4)

    assert load_samples(dest).tolist() == [8.0, 9.0, 10.0, 11.0, 12.0, 13.0, 14.0, 15.0]


def test_extract_segment_clamps_to_available_audio(tmp_path: Path) -> None:
    source = _write_pcm(tmp_path / "short.pcm", frames=10)
    dest = tmp_path / "seg.pcm"

    extract_segment(source, dest, Segment(index=0, start=2.0, end=4.0), sample_rate=4)

    assert load_samples(dest).tolist() == [8.0, 9.0]


def test_extract_segment_past_the_end_is_empty(tmp_path: Path) -> None:
    source = _write_pcm(tmp_path / "short.pcm", frames=4)
    dest = tmp_path / "seg.pcm"

    extract_segment(source, dest, Segment(index=3, start=5.0, end=6.0), sample_rate=4)

    assert dest.exists()
    assert load_samples(dest).size == 0


def test_load_samples_downmixes_interleaved_channels(tmp_path: Path) -> None:
    path = tmp_path / "stereo.pcm"
    np.array([1.0, 3.0, 2.0, 4.0], dtype="<f4").tofile(str(path))

    samples = load_samples(path, channels=2)

    assert samples.dtype == np.float32
    assert samples.tolist() == [2.0, 3.0]
