"""
Configuration for the Video Relay backend.
Contains the fixed encoding policy and the runtime Settings object.
"""

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel

# --- Encoding policy (fixed, not user-configurable) ---
VIDEO_CODEC = "libx264"
VIDEO_PROFILE = "main"
VIDEO_LEVEL = "4.0"
PIXEL_FORMAT = "yuv420p"
MAX_FRAME_RATE = 30
VIDEO_CRF = 28
VIDEO_PRESET = "veryfast"
AUDIO_CODEC = "aac"
AUDIO_BITRATE = "128k"
MOVFLAGS = "+faststart"
OUTPUT_EXTENSION = ".mp4"
OUTPUT_CONTENT_TYPE = "video/mp4"

# --- Defaults ---
PROJECT_ROOT = os.getcwd()
DEFAULT_STAGING_DIR = os.path.join(PROJECT_ROOT, "staging")
DEFAULT_OUTPUT_DIR = os.path.join(PROJECT_ROOT, "compressed")
UPLOAD_CHUNK_SIZE = 1024 * 1024


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


def _env_str(name: str) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    return raw.strip()


class Settings(BaseModel):
    """Process-wide settings, read once at startup and passed by reference."""

    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    staging_dir: Path = Path(DEFAULT_STAGING_DIR)
    local_output_dir: Path = Path(DEFAULT_OUTPUT_DIR)
    public_base_url: str = "http://localhost:3000"

    ffmpeg_binary: str = "ffmpeg"
    ffprobe_binary: str = "ffprobe"
    transcode_timeout_seconds: float = 600.0
    assumed_duration_seconds: float = 60.0

    max_upload_bytes: int = 500 * 1024 * 1024
    sse_heartbeat_seconds: float = 15.0
    cors_allow_origins: List[str] = ["*"]

    s3_bucket: Optional[str] = None
    s3_endpoint_url: Optional[str] = None
    s3_public_endpoint: Optional[str] = None
    s3_region: str = "us-east-1"
    s3_access_key: Optional[str] = None
    s3_secret_key: Optional[str] = None
    s3_key_prefix: str = "compressed"
    s3_presign_expire_seconds: int = 900

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "Settings":
        load_dotenv(env_file or os.path.join(PROJECT_ROOT, ".env"))
        origins = os.getenv("CORS_ALLOW_ORIGINS", "*")
        endpoint = _env_str("S3_ENDPOINT_URL")
        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=_env_int("PORT", 3000),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            staging_dir=Path(os.getenv("STAGING_DIR", DEFAULT_STAGING_DIR)),
            local_output_dir=Path(os.getenv("LOCAL_OUTPUT_DIR", DEFAULT_OUTPUT_DIR)),
            public_base_url=os.getenv("PUBLIC_BASE_URL", "http://localhost:3000").rstrip("/"),
            ffmpeg_binary=os.getenv("FFMPEG_BINARY", "ffmpeg"),
            ffprobe_binary=os.getenv("FFPROBE_BINARY", "ffprobe"),
            transcode_timeout_seconds=_env_float("TRANSCODE_TIMEOUT_SECONDS", 600.0),
            assumed_duration_seconds=_env_float("ASSUMED_DURATION_SECONDS", 60.0),
            max_upload_bytes=_env_int("MAX_UPLOAD_BYTES", 500 * 1024 * 1024),
            sse_heartbeat_seconds=_env_float("SSE_HEARTBEAT_SECONDS", 15.0),
            cors_allow_origins=[o.strip() for o in origins.split(",") if o.strip()],
            s3_bucket=_env_str("S3_BUCKET"),
            s3_endpoint_url=endpoint,
            # Presigned URLs must use the host the client can reach.
            s3_public_endpoint=_env_str("S3_PUBLIC_ENDPOINT") or endpoint,
            s3_region=os.getenv("S3_REGION", "us-east-1"),
            s3_access_key=_env_str("S3_ACCESS_KEY"),
            s3_secret_key=_env_str("S3_SECRET_KEY"),
            s3_key_prefix=os.getenv("S3_KEY_PREFIX", "compressed").strip("/"),
            s3_presign_expire_seconds=_env_int("S3_PRESIGN_EXPIRE_SECONDS", 900),
        )

    def ensure_directories(self) -> None:
        os.makedirs(self.staging_dir, exist_ok=True)
        os.makedirs(self.local_output_dir, exist_ok=True)
