# snapcast/worker/main.py
# Background worker: follows CDN encoding until each upload settles, and
# finishes two-phase deletes by purging the CDN asset before the row.
# Jobs never sleep: a job that has to be retried later goes onto the
# delayed set with its not-before time, so one slow video never holds
# the worker.

import logging
import time
import uuid
from typing import Callable

from dotenv import load_dotenv
from sqlalchemy.orm import Session

from snapcast.core.config import settings
from snapcast.core.exceptions import CdnError, VideoNotFound
from snapcast.models.video import VideoStatus
from snapcast.services.bunny_service import BunnyStreamService, get_bunny_service
from snapcast.services.queue_service import JOB_PURGE, JOB_RECONCILE, QueueService, get_queue_service
from snapcast.services.status_service import STATUS_UNAVAILABLE, BackoffPolicy, StatusCheck, check_status
from snapcast.services.video_store import VideoStore
from snapcast.shared.db.database import Session_Local

load_dotenv()

logger = logging.getLogger(__name__)

# How long one brpop waits before the delayed set is checked again
POLL_INTERVAL_SECONDS = 1


def reconcile_video(
    session_factory: Callable[[], Session],
    video_pk: uuid.UUID,
    cdn: BunnyStreamService,
    queue: QueueService,
    attempt: int = 0,
    policy: BackoffPolicy | None = None,
) -> StatusCheck:
    """
    Runs a single status check. A video still in flight is rescheduled
    with the backoff delay for this attempt until the attempts run out.
    """
    policy = policy or BackoffPolicy.from_settings()
    with session_factory() as db:
        try:
            result = check_status(db, video_pk, cdn)
        except VideoNotFound:
            logger.info("Video %s is gone; dropping reconcile job", video_pk)
            return StatusCheck(False, STATUS_UNAVAILABLE)

    if result.lifecycle is not None and result.lifecycle.is_terminal:
        logger.info("Video %s reached %s after %d check(s)", video_pk, result.lifecycle.value, attempt + 1)
    elif attempt + 1 < policy.max_attempts:
        queue.enqueue_status_reconcile(str(video_pk), attempt + 1, delay=policy.delay(attempt))
    else:
        logger.warning("Video %s still not processed after %d checks", video_pk, attempt + 1)
    return result


def purge_video(
    session_factory: Callable[[], Session],
    video_pk: uuid.UUID,
    cdn: BunnyStreamService,
    queue: QueueService,
    attempt: int = 0,
    max_attempts: int | None = None,
    policy: BackoffPolicy | None = None,
) -> bool:
    """
    Second phase of a delete. Returns True once the row is gone. A CDN
    failure leaves the row marked and reschedules the job until attempts run out.
    """
    max_attempts = max_attempts or settings.PURGE_MAX_ATTEMPTS
    with session_factory() as db:
        store = VideoStore(db)
        record = store.get(video_pk, include_deleted=True)
        if record is None or record.deleted_at is None:
            logger.info("Nothing to purge for video %s", video_pk)
            return False
        cdn_video_id = record.video_id

        try:
            cdn.delete_video(cdn_video_id)
        except CdnError:
            if attempt + 1 < max_attempts:
                delay = (policy or BackoffPolicy.from_settings()).delay(attempt)
                queue.enqueue_purge(str(video_pk), attempt + 1, delay=delay)
            else:
                logger.error("Giving up on purging video %s after %d attempts; row stays marked", video_pk, attempt + 1)
            return False

        store.purge(video_pk)
    logger.info("Purged video %s (CDN asset %s)", video_pk, cdn_video_id)
    return True


def requeue_pending_purges(session_factory: Callable[[], Session], queue: QueueService) -> int:
    """Queues a purge for every row still marked, e.g. after a crash between the phases."""
    with session_factory() as db:
        pending = [str(v.id) for v in VideoStore(db).marked_for_deletion()]
    for video_pk in pending:
        queue.enqueue_purge(video_pk)
    if pending:
        logger.info("Requeued %d pending purge(s)", len(pending))
    return len(pending)


def requeue_unsettled_videos(session_factory: Callable[[], Session], queue: QueueService) -> int:
    """Queues a reconcile for every video left in ``processing``, e.g. after a lost job."""
    with session_factory() as db:
        pending = [str(v.id) for v in VideoStore(db).in_status([VideoStatus.PROCESSING])]
    for video_pk in pending:
        queue.enqueue_status_reconcile(video_pk)
    if pending:
        logger.info("Requeued %d unsettled video(s)", len(pending))
    return len(pending)


def process_job(
    job_data: dict,
    session_factory: Callable[[], Session],
    cdn: BunnyStreamService,
    queue: QueueService,
    policy: BackoffPolicy | None = None,
):
    """Runs one job pulled from the queue."""
    job_type = job_data.get("type")
    video_pk = uuid.UUID(job_data["video_id"])
    attempt = int(job_data.get("attempt", 0))
    logger.info("Processing %s job for video %s (attempt %d)", job_type, video_pk, attempt)

    if job_type == JOB_RECONCILE:
        return reconcile_video(session_factory, video_pk, cdn, queue, attempt, policy)
    if job_type == JOB_PURGE:
        return purge_video(session_factory, video_pk, cdn, queue, attempt, policy=policy)
    logger.warning("Dropping job with unknown type: %r", job_type)
    return None


def main_loop():
    """
    Waits for jobs on the Redis queue and processes them one at a time.
    """
    logging.basicConfig(level=settings.LOG_LEVEL)
    queue = get_queue_service()
    cdn = get_bunny_service()
    requeue_pending_purges(Session_Local, queue)
    requeue_unsettled_videos(Session_Local, queue)

    logger.info("Worker started, waiting for jobs on queue '%s'...", queue.queue_name)
    while True:
        try:
            queue.promote_due_jobs()
            job_data = queue.next_job(timeout=POLL_INTERVAL_SECONDS)
            if job_data:
                process_job(job_data, Session_Local, cdn, queue)
        except Exception as e:
            logger.error("A critical error occurred in the main loop: %s", e, exc_info=True)
            time.sleep(5)


if __name__ == "__main__":
    main_loop()
