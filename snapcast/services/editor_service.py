# snapcast/services/editor_service.py

import logging
import uuid
from dataclasses import dataclass, field

from sqlalchemy import case, literal
from sqlalchemy.orm import Session

from ..core.exceptions import VideoAccessDenied, VideoValidationError
from ..models.auth import SessionUser
from ..models.video import Video, VideoStatus
from .queue_service import QueueService
from .video_store import VideoStore

logger = logging.getLogger(__name__)

VISIBILITY_VALUES = ("public", "private")


@dataclass
class VideoDetails:
    title: str
    description: str | None = None
    tags: list[str] = field(default_factory=list)
    visibility: str = "private"
    thumbnail_url: str | None = None


@dataclass
class EditResult:
    video: Video | None
    invalidated: list[str] = field(default_factory=list)


def invalidated_views(video_pk: uuid.UUID, user_id: uuid.UUID) -> list[str]:
    """Views that may render the video: its page, the public listing and the owner's profile."""
    return [f"/video/{video_pk}", "/", f"/profile/{user_id}"]


def _clean_tags(tags: list[str] | None) -> list[str]:
    seen = []
    for tag in tags or []:
        tag = tag.strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


def _validate(details: VideoDetails) -> None:
    if not details.title or not details.title.strip():
        raise VideoValidationError("title", "Title is required.")
    if details.visibility not in VISIBILITY_VALUES:
        raise VideoValidationError("visibility", "Visibility must be 'public' or 'private'.")


def update_visibility(db: Session, user: SessionUser, video_pk: uuid.UUID, is_public: bool) -> EditResult:
    video = VideoStore(db).update_owned(video_pk, user.user_id, {"is_public": is_public})
    if video is None:
        raise VideoAccessDenied()
    logger.info("Video %s visibility set to %s", video_pk, "public" if is_public else "private")
    return EditResult(video, invalidated_views(video.id, video.user_id))


def save_details(db: Session, user: SessionUser, video_pk: uuid.UUID, details: VideoDetails) -> EditResult:
    """
    Writes the presentation fields in one owner-filtered statement and
    publishes the video (status ``ready``). A video in ``error`` stays there.
    """
    _validate(details)
    values = {
        "title": details.title.strip(),
        "description": details.description or None,
        "tags": _clean_tags(details.tags),
        "is_public": details.visibility == "public",
        "status": case(
            (Video.status == VideoStatus.ERROR, Video.status),
            else_=literal(VideoStatus.READY, Video.__table__.c.status.type),
        ),
    }
    if details.thumbnail_url:
        values["thumbnail_url"] = details.thumbnail_url

    video = VideoStore(db).update_owned(video_pk, user.user_id, values)
    if video is None:
        raise VideoAccessDenied()
    logger.info("Details saved for video %s", video_pk)
    return EditResult(video, invalidated_views(video.id, video.user_id))


def delete_video(db: Session, user: SessionUser, video_pk: uuid.UUID, queue: QueueService) -> EditResult:
    """
    First phase of a delete: hide the record and queue the CDN purge.
    The worker removes the row once the CDN asset is gone.
    """
    if not VideoStore(db).mark_deleted(video_pk, user.user_id):
        raise VideoAccessDenied()
    queue.enqueue_purge(str(video_pk))
    logger.info("Video %s marked for deletion", video_pk)
    return EditResult(None, invalidated_views(video_pk, user.user_id))
