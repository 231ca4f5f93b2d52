from __future__ import annotations

import logging
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)


class AcquisitionError(RuntimeError):
    pass


class Downloader:
    def __init__(
        self,
        work_root: Path,
        *,
        sample_rate: int = 16000,
        channels: int = 1,
        ytdlp_binary: str = "yt-dlp",
        ffmpeg_binary: str = "ffmpeg",
        timeout_seconds: float | None = None,
    ) -> None:
        self.work_root = work_root
        self.work_root.mkdir(parents=True, exist_ok=True)
        self.sample_rate = sample_rate
        self.channels = channels
        self.ytdlp_binary = ytdlp_binary
        self.ffmpeg_binary = ffmpeg_binary
        self.timeout_seconds = timeout_seconds

    def download_audio(self, *, url: str, dest: Path) -> Path:
        """Extract the audio track of ``url`` to ``dest`` as mp3."""
        output_template = str(dest.with_suffix(".%(ext)s"))
        cmd = [
            self.ytdlp_binary,
            "--no-playlist",
            "--no-warnings",
            "--no-check-certificates",
            "--prefer-free-formats",
            "--add-header",
            "referer:youtube.com",
            "--add-header",
            "user-agent:Mozilla/5.0",
            "-x",
            "--audio-format",
            "mp3",
            "--audio-quality",
            "5",
            "-o",
            output_template,
            url,
        ]
        self._run(cmd, tool="yt-dlp")

        if not dest.exists():
            raise AcquisitionError("Audio file was not produced by yt-dlp")
        logger.info("Downloaded audio for %s to %s", url, dest)
        return dest

    def transcode_to_pcm(self, source: Path, dest: Path) -> Path:
        """Convert ``source`` to headerless float32 PCM at the configured rate."""
        cmd = [
            self.ffmpeg_binary,
            "-y",
            "-nostdin",
            "-loglevel",
            "error",
            "-i",
            str(source),
            "-f",
            "f32le",
            "-acodec",
            "pcm_f32le",
            "-ar",
            str(self.sample_rate),
            "-ac",
            str(self.channels),
            str(dest),
        ]
        self._run(cmd, tool="ffmpeg")

        if not dest.exists():
            raise AcquisitionError("PCM file was not produced by ffmpeg")
        return dest

    def _run(self, cmd: list[str], *, tool: str) -> subprocess.CompletedProcess[str]:
        try:
            completed = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=False,
                timeout=self.timeout_seconds,
            )
        except FileNotFoundError as exc:
            raise AcquisitionError(f"{tool} is not installed or not on PATH") from exc
        except subprocess.TimeoutExpired as exc:
            raise AcquisitionError(f"{tool} timed out after {exc.timeout}s") from exc

        if completed.returncode != 0:
            stderr = completed.stderr.strip() or f"{tool} failed"
            raise AcquisitionError(stderr)
        return completed
