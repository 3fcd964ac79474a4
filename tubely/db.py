# tubely/db.py
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import DateTime, String, Text, create_engine, desc, select
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    # SQLite hands back naive datetimes; everything is stored as UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


class Base(DeclarativeBase):
    pass


class Video(Base):
    __tablename__ = "videos"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    title: Mapped[str] = mapped_column(Text)
    description: Mapped[str] = mapped_column(Text, default="")
    thumbnail_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # S3 key, e.g. "landscape/<id>.mp4"; signed on the way out
    video_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "description": self.description,
            "thumbnail_url": self.thumbnail_url,
            "video_url": self.video_url,
            "created_at": _isoformat(self.created_at),
            "updated_at": _isoformat(self.updated_at),
        }


class Database:
    def __init__(self, db_url: str) -> None:
        connect_args = {"check_same_thread": False} if db_url.startswith("sqlite") else {}
        self.engine = create_engine(db_url, connect_args=connect_args)
        self.session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    def create_tables(self) -> None:
        Base.metadata.create_all(self.engine)

    def create_video(self, user_id: str, title: str, description: str = "") -> Video:
        with self.session_factory() as session:
            video = Video(id=str(uuid.uuid4()), user_id=user_id, title=title, description=description)
            session.add(video)
            session.commit()
            return video

    def get_video(self, video_id: str) -> Optional[Video]:
        with self.session_factory() as session:
            return session.get(Video, video_id)

    def get_videos_by_user(self, user_id: str) -> List[Video]:
        with self.session_factory() as session:
            result = session.execute(
                select(Video).filter(Video.user_id == user_id).order_by(desc(Video.created_at))
            )
            return list(result.scalars().all())

    def update_video(self, video: Video) -> Video:
        video.updated_at = _utcnow()
        with self.session_factory() as session:
            merged = session.merge(video)
            session.commit()
            return merged

    def delete_video(self, video_id: str) -> None:
        with self.session_factory() as session:
            video = session.get(Video, video_id)
            if video is not None:
                session.delete(video)
                session.commit()
