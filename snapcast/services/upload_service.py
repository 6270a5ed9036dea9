# snapcast/services/upload_service.py

import logging
import time
import uuid
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import UploadInitError, VideoAccessDenied
from ..models.auth import SessionUser
from ..models.video import Video, VideoStatus
from .bunny_service import BunnyStreamService
from .queue_service import QueueService
from .r2_service import R2Service
from .video_store import VideoStore

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled Video"


@dataclass(frozen=True)
class UploadTarget:
    """Where and how the client PUTs the raw video bytes."""
    id: uuid.UUID
    video_id: str
    upload_url: str
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ThumbnailTarget:
    upload_url: str
    file_path: str
    public_url: str


def begin_upload(db: Session, user: SessionUser, cdn: BunnyStreamService) -> UploadTarget:
    """
    Allocates a video identity, composes the CDN upload target and stores
    an ``uploading`` record. Either the record exists and the target is
    returned, or UploadInitError is raised and nothing is left behind.
    """
    video_id = str(uuid.uuid4())
    # Raises ConfigurationError before anything is written
    upload_url = cdn.video_url(video_id)
    headers = cdn.upload_headers()

    store = VideoStore(db)
    try:
        store.ensure_owner(user.user_id, user.email)
        record = store.create(
            Video(
                id=uuid.UUID(video_id),
                video_id=video_id,
                user_id=user.user_id,
                title=DEFAULT_TITLE,
                is_public=False,
                status=VideoStatus.UPLOADING,
            )
        )
    except SQLAlchemyError as e:
        logger.error("Database error on creating video record %s: %s", video_id, e, exc_info=True)
        raise UploadInitError() from e

    logger.info("Upload target issued for video_id %s (user %s)", video_id, user.user_id)
    return UploadTarget(id=record.id, video_id=record.video_id, upload_url=upload_url, headers=headers)


def confirm_upload_complete(db: Session, user: SessionUser, video_pk: uuid.UUID, queue: QueueService) -> Video:
    """
    Called by the client once its PUT to the CDN finished: moves the record
    to ``processing`` and hands it to the worker for status reconciliation.
    """
    store = VideoStore(db)
    store.transition_status(
        video_pk, VideoStatus.PROCESSING, [VideoStatus.UPLOADING], user_id=user.user_id,
    )
    record = store.get_owned(video_pk, user.user_id)
    if record is None:
        raise VideoAccessDenied()
    # Also queues on a retry that finds the record already processing
    if record.status == VideoStatus.PROCESSING:
        queue.enqueue_status_reconcile(str(record.id))
    else:
        logger.info("Video %s already %s; nothing to queue.", video_pk, record.status.value)
    return record


def get_thumbnail_upload_url(
    db: Session, user: SessionUser, video_pk: uuid.UUID, storage: R2Service,
) -> ThumbnailTarget:
    if VideoStore(db).get_owned(video_pk, user.user_id) is None:
        raise VideoAccessDenied()

    timestamp = int(time.time() * 1000)
    file_path = f"thumbnails/{timestamp}-{video_pk}-thumbnail.jpg"
    return ThumbnailTarget(
        upload_url=storage.generate_presigned_upload_url(file_path),
        file_path=file_path,
        public_url=storage.public_url(file_path),
    )
