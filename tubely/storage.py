# tubely/storage.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import boto3
from botocore.client import Config as BotoConfig

logger = logging.getLogger(__name__)


class S3Storage:
    def __init__(
        self,
        bucket: str,
        region: str = "us-east-1",
        endpoint_url: Optional[str] = None,
        client: Any = None,
    ) -> None:
        self.bucket = bucket
        self.client = client or boto3.client(
            "s3",
            region_name=region,
            endpoint_url=endpoint_url,
            config=BotoConfig(signature_version="s3v4"),
        )

    def upload_file(self, path: Path, key: str, content_type: str) -> None:
        logger.info(f"Uploading {path.name} to s3://{self.bucket}/{key}")
        with path.open("rb") as f:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=f, ContentType=content_type)

    def presign(self, key: str, expires_in: int) -> str:
        return self.client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=expires_in,
        )


def sign_video(video: Dict[str, Any], storage: S3Storage, expires_in: int) -> Dict[str, Any]:
    """Return a copy of a serialized video with ``video_url`` presigned."""
    key = video.get("video_url")
    if not key:
        return video
    signed = dict(video)
    signed["video_url"] = storage.presign(key, expires_in)
    return signed
