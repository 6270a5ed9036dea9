# snapcast/services/status_service.py
"""
Reconciles the CDN's encoding state with the stored video lifecycle.

Bunny Stream reports a numeric status per video; 4 means encoding has
finished, 5 and 6 mean it failed. Everything else is still in flight.
"""

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Callable

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import CdnError, VideoAccessDenied, VideoNotFound
from ..models.auth import SessionUser
from ..models.video import NON_TERMINAL_STATUSES, VideoStatus
from .bunny_service import BUNNY_STATUS_FAILED, BUNNY_STATUS_FINISHED, BunnyStreamService
from .video_store import VideoStore

logger = logging.getLogger(__name__)

# Returned in place of a CDN code when the CDN could not be asked.
STATUS_UNAVAILABLE = "error"


@dataclass(frozen=True)
class StatusCheck:
    is_processed: bool
    status: int | str
    lifecycle: VideoStatus | None = None


@dataclass(frozen=True)
class BackoffPolicy:
    initial_delay: float = 2.0
    factor: float = 2.0
    max_delay: float = 60.0
    max_attempts: int = 20

    @classmethod
    def from_settings(cls) -> "BackoffPolicy":
        return cls(
            initial_delay=settings.STATUS_POLL_INITIAL_DELAY,
            factor=settings.STATUS_POLL_FACTOR,
            max_delay=settings.STATUS_POLL_MAX_DELAY,
            max_attempts=settings.STATUS_POLL_MAX_ATTEMPTS,
        )

    def delay(self, attempt: int) -> float:
        return min(self.initial_delay * (self.factor ** attempt), self.max_delay)


def map_cdn_status(code: int) -> VideoStatus:
    if code == BUNNY_STATUS_FINISHED:
        return VideoStatus.READY
    if code in BUNNY_STATUS_FAILED:
        return VideoStatus.ERROR
    return VideoStatus.PROCESSING


def check_status(
    db: Session, video_pk: uuid.UUID, cdn: BunnyStreamService, user: SessionUser | None = None,
) -> StatusCheck:
    """
    Asks the CDN for the encoding state and folds it into the record.
    CDN failures come back as ``StatusCheck(False, "error")``; the caller polls again.
    ``status`` is the live CDN code, or the stored lifecycle value (``"ready"`` or
    ``"error"``) for a record that had already settled.
    """
    store = VideoStore(db)
    record = store.get_owned(video_pk, user.user_id) if user else store.get(video_pk)
    if record is None:
        raise VideoAccessDenied() if user else VideoNotFound()

    # Terminal records never go back to the CDN, so there is no CDN code to report
    if record.status.is_terminal:
        return StatusCheck(record.status == VideoStatus.READY, record.status.value, record.status)

    try:
        cdn_status = cdn.get_video_status(record.video_id)
    except CdnError:
        return StatusCheck(False, STATUS_UNAVAILABLE, record.status)

    target = map_cdn_status(cdn_status.status)
    if target == VideoStatus.READY:
        store.transition_status(
            record.id, VideoStatus.READY, NON_TERMINAL_STATUSES, duration=cdn_status.duration,
        )
    elif target == VideoStatus.ERROR:
        store.transition_status(record.id, VideoStatus.ERROR, NON_TERMINAL_STATUSES)
    else:
        store.transition_status(record.id, VideoStatus.PROCESSING, [VideoStatus.UPLOADING])

    # Re-read: a concurrent check may have won the transition
    current = store.get(record.id)
    lifecycle = current.status if current else None
    if lifecycle != target:
        logger.info("Video %s: CDN says %s, record is %s", record.id, target.value, lifecycle)
    return StatusCheck(lifecycle == VideoStatus.READY, cdn_status.status, lifecycle)


def wait_until_processed(
    session_factory: Callable[[], Session],
    video_pk: uuid.UUID,
    cdn: BunnyStreamService,
    policy: BackoffPolicy | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> StatusCheck:
    """
    Polls ``check_status`` with capped exponential backoff until the record
    is terminal or the attempts run out. The record is left as it is on give-up.
    """
    policy = policy or BackoffPolicy.from_settings()
    result = StatusCheck(False, STATUS_UNAVAILABLE)
    for attempt in range(policy.max_attempts):
        with session_factory() as db:
            try:
                result = check_status(db, video_pk, cdn)
            except VideoNotFound:
                logger.info("Video %s is gone; stopping status checks", video_pk)
                return StatusCheck(False, STATUS_UNAVAILABLE)
        if result.lifecycle is not None and result.lifecycle.is_terminal:
            logger.info("Video %s reached %s after %d check(s)", video_pk, result.lifecycle.value, attempt + 1)
            return result
        if attempt + 1 < policy.max_attempts:
            sleep(policy.delay(attempt))

    logger.warning("Video %s still not processed after %d checks", video_pk, policy.max_attempts)
    return result
