# tubely/config.py
from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


def _env_flag(name: str, default: str = "0") -> bool:
    return (os.getenv(name, default) or "").strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    jwt_secret: str
    s3_bucket: str
    db_url: str = "sqlite:///./tubely.db"
    assets_root: Path = Path("assets")
    scratch_dir: Path = Path(tempfile.gettempdir())
    public_base_url: str = "http://localhost:8091"
    s3_region: str = "us-east-1"
    s3_endpoint: Optional[str] = None
    ffmpeg: str = "ffmpeg"
    ffprobe: str = "ffprobe"
    media_timeout_sec: float = 600.0
    port: int = 8091
    # Presigned GET URLs handed to clients
    presign_expiry_sec: int = 5 * 60
    enable_docs: bool = False

    @classmethod
    def from_env(cls) -> "Config":
        load_dotenv()
        jwt_secret = os.getenv("JWT_SECRET", "")
        if not jwt_secret:
            raise RuntimeError("JWT_SECRET environment variable is not set")
        s3_bucket = os.getenv("S3_BUCKET", "")
        if not s3_bucket:
            raise RuntimeError("S3_BUCKET environment variable is not set")
        port = int(os.getenv("PORT", "8091") or "8091")
        return cls(
            jwt_secret=jwt_secret,
            s3_bucket=s3_bucket,
            db_url=os.getenv("DB_URL", "sqlite:///./tubely.db"),
            assets_root=Path(os.getenv("ASSETS_ROOT", "assets")),
            scratch_dir=Path(os.getenv("SCRATCH_DIR") or tempfile.gettempdir()),
            public_base_url=os.getenv("PUBLIC_BASE_URL", f"http://localhost:{port}").rstrip("/"),
            s3_region=os.getenv("S3_REGION", "us-east-1"),
            s3_endpoint=os.getenv("S3_ENDPOINT") or None,
            ffmpeg=os.getenv("FFMPEG", "ffmpeg"),
            ffprobe=os.getenv("FFPROBE", "ffprobe"),
            media_timeout_sec=float(os.getenv("MEDIA_TIMEOUT_SEC", "600")),
            port=port,
            enable_docs=_env_flag("ENABLE_DOCS"),
        )
