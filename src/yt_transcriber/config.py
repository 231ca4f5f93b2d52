from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


@dataclass(slots=True)
class Settings:
    host: str
    port: int
    mcp_path: str
    health_path: str
    data_dir: Path
    work_dir: Path
    output_dir: Path
    model_name: str
    model_device: str | None
    sample_rate: int
    channels: int
    long_audio_threshold_seconds: float
    segment_seconds: float
    chunk_seconds: float
    ytdlp_binary: str
    ffmpeg_binary: str
    tool_timeout_seconds: float | None
    keepalive_seconds: float
    cors_origins: list[str]


def _as_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    return int(raw)


def _as_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


def _as_optional_float(name: str) -> float | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return float(raw)


def _as_list(name: str, default: str) -> list[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def _normalized_path(path: str) -> str:
    if not path.startswith("/"):
        path = f"/{path}"
    return path


def load_settings() -> Settings:
    load_dotenv()
    data_dir = Path(os.getenv("DATA_DIR", "./data")).resolve()
    work_dir = Path(os.getenv("WORK_DIR", str(data_dir / "_work"))).resolve()
    output_dir = Path(os.getenv("OUTPUT_DIR", str(data_dir / "transcriptions"))).resolve()

    segment_seconds = _as_float("SEGMENT_SECONDS", 1800.0)
    chunk_seconds = _as_float("CHUNK_SECONDS", 20.0)
    if segment_seconds <= 0 or chunk_seconds <= 0:
        raise RuntimeError("SEGMENT_SECONDS and CHUNK_SECONDS must be positive")

    return Settings(
        host=os.getenv("HOST", "0.0.0.0"),
        port=_as_int("PORT", 3001),
        mcp_path=_normalized_path(os.getenv("MCP_PATH", "/mcp")),
        health_path=_normalized_path(os.getenv("HEALTH_PATH", "/api/health")),
        data_dir=data_dir,
        work_dir=work_dir,
        output_dir=output_dir,
        model_name=os.getenv("ASR_MODEL", "openai/whisper-small"),
        model_device=os.getenv("ASR_DEVICE") or None,
        sample_rate=_as_int("SAMPLE_RATE", 16000),
        channels=_as_int("AUDIO_CHANNELS", 1),
        long_audio_threshold_seconds=_as_float("LONG_AUDIO_THRESHOLD_SECONDS", 3600.0),
        segment_seconds=segment_seconds,
        chunk_seconds=chunk_seconds,
        ytdlp_binary=os.getenv("YTDLP_BINARY", "yt-dlp"),
        ffmpeg_binary=os.getenv("FFMPEG_BINARY", "ffmpeg"),
        tool_timeout_seconds=_as_optional_float("TOOL_TIMEOUT_SECONDS"),
        keepalive_seconds=_as_float("SSE_KEEPALIVE_SECONDS", 15.0),
        cors_origins=_as_list("CORS_ORIGINS", "*"),
    )
