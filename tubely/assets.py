# tubely/assets.py
from __future__ import annotations

import base64
import secrets
from pathlib import Path

MEDIA_TYPE_EXT = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "video/mp4": "mp4",
}


def media_type_to_ext(media_type: str) -> str:
    if media_type in MEDIA_TYPE_EXT:
        return MEDIA_TYPE_EXT[media_type]
    _, _, subtype = media_type.partition("/")
    return subtype or "bin"


def new_asset_name(media_type: str) -> str:
    token = base64.urlsafe_b64encode(secrets.token_bytes(32)).decode().rstrip("=")
    return f"{token}.{media_type_to_ext(media_type)}"


def asset_disk_path(assets_root: Path, name: str) -> Path:
    return assets_root / name


def asset_url(public_base_url: str, name: str) -> str:
    return f"{public_base_url.rstrip('/')}/assets/{name}"
