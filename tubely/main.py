# tubely/main.py
from __future__ import annotations

import asyncio
import logging
import uuid
from pathlib import Path
from typing import Optional, Tuple

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.datastructures import UploadFile

from tubely.assets import asset_disk_path, asset_url, new_asset_name
from tubely.auth import AuthError, get_bearer_token, validate_jwt
from tubely.config import Config
from tubely.db import Database, Video
from tubely.media import MediaError, MediaTools, scratch_files
from tubely.storage import S3Storage, sign_video

logger = logging.getLogger(__name__)

# ------------ Upload limits ------------
MAX_VIDEO_BYTES = 1 << 30  # 1 GiB
MAX_THUMBNAIL_BYTES = 10 << 20  # 10 MiB
VIDEO_MEDIA_TYPE = "video/mp4"
THUMBNAIL_MEDIA_TYPES = ("image/jpeg", "image/png")
CHUNK_SIZE = 1024 * 1024


# ------------ Helpers ------------
def _size_label(n_bytes: int) -> str:
    if n_bytes >= 1 << 30:
        return f"{n_bytes / (1 << 30):g}GB"
    if n_bytes >= 1 << 20:
        return f"{n_bytes / (1 << 20):g}MB"
    return f"{n_bytes} byte"


def _parse_video_id(video_id: Optional[str]) -> str:
    if not video_id:
        raise HTTPException(400, "Invalid video ID")
    try:
        return str(uuid.UUID(video_id))
    except ValueError:
        raise HTTPException(400, "Invalid video ID")


def _current_user(request: Request) -> str:
    cfg: Config = request.app.state.config
    try:
        token = get_bearer_token(request.headers)
        return validate_jwt(token, cfg.jwt_secret)
    except AuthError as e:
        raise HTTPException(401, f"Couldn't validate JWT: {e}", headers={"WWW-Authenticate": "Bearer"})


async def _owned_video(request: Request, video_id: Optional[str]) -> Tuple[Video, str]:
    vid = _parse_video_id(video_id)
    user_id = _current_user(request)
    db: Database = request.app.state.db
    video = await asyncio.to_thread(db.get_video, vid)
    if video is None:
        raise HTTPException(404, "Couldn't find video")
    if video.user_id != user_id:
        raise HTTPException(403, "User is not the owner of this video")
    return video, user_id


async def _form_file(request: Request, field: str) -> UploadFile:
    form = await request.form()
    upload = form.get(field)
    if not isinstance(upload, UploadFile):
        raise HTTPException(400, f"Missing '{field}' file field")
    return upload


def _check_upload(upload: UploadFile, max_bytes: int, allowed: Tuple[str, ...], label: str) -> str:
    if upload.size is not None and upload.size > max_bytes:
        raise HTTPException(400, f"{label} exceeds the {_size_label(max_bytes)} limit")
    media_type = upload.content_type or ""
    if media_type not in allowed:
        raise HTTPException(400, f"Unsupported {label.lower()} type: {media_type or 'unknown'}")
    return media_type


async def _save_upload(upload: UploadFile, dest: Path, max_bytes: int, label: str) -> int:
    written = 0
    try:
        with dest.open("wb") as f:
            while True:
                chunk = await upload.read(CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if written > max_bytes:
                    raise HTTPException(400, f"{label} exceeds the {_size_label(max_bytes)} limit")
                f.write(chunk)
    except BaseException:
        # no partial files, including on client disconnect
        dest.unlink(missing_ok=True)
        raise
    return written


def _signed(request: Request, video: Video) -> dict:
    cfg: Config = request.app.state.config
    return sign_video(video.to_dict(), request.app.state.storage, cfg.presign_expiry_sec)


# ------------ App ------------
def create_app(
    config: Optional[Config] = None,
    db: Optional[Database] = None,
    storage: Optional[S3Storage] = None,
    media: Optional[MediaTools] = None,
) -> FastAPI:
    cfg = config or Config.from_env()
    if db is None:
        db = Database(cfg.db_url)
    db.create_tables()

    app = FastAPI(
        title="tubely",
        docs_url="/docs" if cfg.enable_docs else None,
        redoc_url=None,
    )
    app.state.config = cfg
    app.state.db = db
    app.state.storage = storage or S3Storage(cfg.s3_bucket, cfg.s3_region, cfg.s3_endpoint)
    app.state.media = media or MediaTools(cfg.ffmpeg, cfg.ffprobe, cfg.media_timeout_sec)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    cfg.assets_root.mkdir(parents=True, exist_ok=True)
    app.mount("/assets", StaticFiles(directory=str(cfg.assets_root)), name="assets")

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        resp = await call_next(request)
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["Referrer-Policy"] = "no-referrer"
        return resp

    @app.exception_handler(MediaError)
    async def media_error_handler(request: Request, exc: MediaError):
        logger.error(f"Media processing failed for {request.url.path}: {exc}")
        return JSONResponse({"detail": f"Media processing failed: {exc}"}, status_code=500)

    @app.exception_handler(ClientError)
    @app.exception_handler(BotoCoreError)
    async def storage_error_handler(request: Request, exc: Exception):
        logger.error(f"Object storage failed for {request.url.path}: {exc}")
        return JSONResponse({"detail": "Object storage request failed"}, status_code=500)

    @app.exception_handler(OSError)
    async def io_error_handler(request: Request, exc: OSError):
        logger.error(f"I/O failure for {request.url.path}: {exc}")
        return JSONResponse({"detail": "Internal server error"}, status_code=500)

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error for {request.url.path}: {exc}")
        return JSONResponse({"detail": "Internal server error"}, status_code=500)

    # ------------ Videos ------------
    @app.post("/api/videos", status_code=201)
    async def create_video(request: Request):
        user_id = _current_user(request)
        try:
            body = await request.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        title = (body.get("title") or "").strip()
        if not title:
            raise HTTPException(400, "Title is required")
        description = (body.get("description") or "").strip()
        video = await asyncio.to_thread(request.app.state.db.create_video, user_id, title, description)
        logger.info(f"Created video {video.id} for user {user_id}")
        return _signed(request, video)

    @app.get("/api/videos")
    async def list_videos(request: Request):
        user_id = _current_user(request)
        videos = await asyncio.to_thread(request.app.state.db.get_videos_by_user, user_id)
        return [_signed(request, v) for v in videos]

    @app.get("/api/videos/{video_id}")
    async def get_video(video_id: str, request: Request):
        vid = _parse_video_id(video_id)
        video = await asyncio.to_thread(request.app.state.db.get_video, vid)
        if video is None:
            raise HTTPException(404, "Couldn't find video")
        return _signed(request, video)

    @app.delete("/api/videos/{video_id}", status_code=204)
    async def delete_video(video_id: str, request: Request):
        video, _ = await _owned_video(request, video_id)
        await asyncio.to_thread(request.app.state.db.delete_video, video.id)
        logger.info(f"Deleted video {video.id}")
        return Response(status_code=204)

    # ------------ Uploads ------------
    @app.api_route("/api/video_upload/{video_id}", methods=["PUT", "POST"])
    async def upload_video(video_id: str, request: Request):
        video, _ = await _owned_video(request, video_id)
        upload = await _form_file(request, "video")
        _check_upload(upload, MAX_VIDEO_BYTES, (VIDEO_MEDIA_TYPE,), "Video")

        cfg: Config = request.app.state.config
        media: MediaTools = request.app.state.media
        storage: S3Storage = request.app.state.storage
        db: Database = request.app.state.db

        with scratch_files(cfg.scratch_dir, f"{video.id}.mp4") as (src, _):
            await _save_upload(upload, src, MAX_VIDEO_BYTES, "Video")
            processed = await media.remux(src)
            orientation = await media.get_video_aspect_ratio(src)
            key = f"{orientation}/{video.id}.mp4"
            await asyncio.to_thread(storage.upload_file, processed, key, VIDEO_MEDIA_TYPE)

            video.video_url = key
            video = await asyncio.to_thread(db.update_video, video)

        logger.info(f"Stored video {video.id} as {key}")
        return _signed(request, video)

    @app.api_route("/api/thumbnail_upload/{video_id}", methods=["PUT", "POST"])
    async def upload_thumbnail(video_id: str, request: Request):
        video, _ = await _owned_video(request, video_id)
        upload = await _form_file(request, "thumbnail")
        media_type = _check_upload(upload, MAX_THUMBNAIL_BYTES, THUMBNAIL_MEDIA_TYPES, "Thumbnail")

        cfg: Config = request.app.state.config
        name = new_asset_name(media_type)
        await _save_upload(upload, asset_disk_path(cfg.assets_root, name), MAX_THUMBNAIL_BYTES, "Thumbnail")

        video.thumbnail_url = asset_url(cfg.public_base_url, name)
        video = await asyncio.to_thread(request.app.state.db.update_video, video)
        logger.info(f"Stored thumbnail for video {video.id} as {name}")
        return _signed(request, video)

    # ------------ Health ------------
    @app.get("/healthz")
    def healthz():
        return {"ok": True}

    return app
