# snapcast/models/video.py

import uuid
import enum
from datetime import datetime, timezone
from sqlalchemy import (
    Boolean, Column, DateTime, Enum as SqlEnum, Float, ForeignKey, Integer, JSON, String, Text, Uuid,
)
from sqlalchemy.orm import relationship
from snapcast.shared.db.database import Base


def utcnow():
    return datetime.now(timezone.utc)


class VideoStatus(str, enum.Enum):
    """Lifecycle of a video record: uploading -> processing -> ready, or error."""
    UPLOADING = "uploading"
    PROCESSING = "processing"
    READY = "ready"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (VideoStatus.READY, VideoStatus.ERROR)


NON_TERMINAL_STATUSES = (VideoStatus.UPLOADING, VideoStatus.PROCESSING)


class Video(Base):
    """
    Represents the Video model in our database.
    One row per uploaded screen recording; the bytes live on the CDN under video_id.
    """
    __tablename__ = "videos"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    video_id = Column(String, unique=True, nullable=False)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)

    title = Column(String, nullable=False, default="Untitled Video")
    description = Column(Text, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    thumbnail_url = Column(String, nullable=True)
    is_public = Column(Boolean, nullable=False, default=False, index=True)

    status = Column(
        SqlEnum(VideoStatus, name="video_status_enum", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=VideoStatus.UPLOADING,
    )
    duration = Column(Float, nullable=True)

    views = Column(Integer, nullable=False, default=0)
    likes = Column(Integer, nullable=False, default=0)

    # Set by the first phase of a delete; the worker removes the row after the CDN purge.
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    user = relationship("User", lazy="joined")
    transcript = relationship(
        "Transcript", back_populates="video", uselist=False, cascade="all, delete-orphan",
    )


class Transcript(Base):
    """Speech-to-text output attached to a video."""
    __tablename__ = "transcripts"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    video_id = Column(Uuid(as_uuid=True), ForeignKey("videos.id", ondelete="CASCADE"), unique=True, nullable=False)
    language = Column(String, nullable=True)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    video = relationship("Video", back_populates="transcript")
