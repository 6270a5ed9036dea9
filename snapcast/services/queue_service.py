# snapcast/services/queue_service.py

import json
import logging
import time
from functools import lru_cache

import redis

from ..core.config import settings
from ..core.exceptions import QueueError

logger = logging.getLogger(__name__)

JOB_RECONCILE = "reconcile"
JOB_PURGE = "purge"


class QueueService:
    """
    Redis-backed job queue for the worker, plus the pub/sub channel that
    carries invalidated view keys to whatever renders or caches those views.
    """
    def __init__(self, redis_client: redis.Redis, queue_name: str, invalidation_channel: str):
        self.redis_client = redis_client
        self.queue_name = queue_name
        self.invalidation_channel = invalidation_channel

    @classmethod
    def from_settings(cls) -> "QueueService":
        client = redis.from_url(settings.REDIS_URL, decode_responses=True)
        return cls(client, settings.JOB_QUEUE_NAME, settings.INVALIDATION_CHANNEL)

    @property
    def delayed_name(self) -> str:
        """Sorted set of jobs waiting for their not-before time, scored by epoch seconds."""
        return f"{self.queue_name}:delayed"

    def enqueue_job(self, job_type: str, video_id: str, attempt: int = 0, delay: float = 0) -> None:
        job_data = {
            "type": job_type,
            "video_id": str(video_id),
            "attempt": attempt,
        }
        payload = json.dumps(job_data)
        try:
            if delay > 0:
                self.redis_client.zadd(self.delayed_name, {payload: time.time() + delay})
            else:
                self.redis_client.lpush(self.queue_name, payload)
        except redis.RedisError as e:
            logger.error("Error enqueuing %s job for video_id %s: %s", job_type, video_id, e)
            raise QueueError() from e
        logger.info("Enqueued %s job for video_id: %s (attempt %d, delay %.1fs)", job_type, video_id, attempt, delay)

    def enqueue_status_reconcile(self, video_id: str, attempt: int = 0, delay: float = 0) -> None:
        self.enqueue_job(JOB_RECONCILE, video_id, attempt, delay)

    def enqueue_purge(self, video_id: str, attempt: int = 0, delay: float = 0) -> None:
        self.enqueue_job(JOB_PURGE, video_id, attempt, delay)

    def promote_due_jobs(self, now: float | None = None) -> int:
        """Moves delayed jobs whose time has come onto the work queue."""
        now = time.time() if now is None else now
        moved = 0
        for payload in self.redis_client.zrangebyscore(self.delayed_name, "-inf", now):
            # Only the worker whose zrem succeeds pushes the job
            if self.redis_client.zrem(self.delayed_name, payload):
                self.redis_client.lpush(self.queue_name, payload)
                moved += 1
        return moved

    def next_job(self, timeout: int = 0) -> dict | None:
        """Blocks until a job arrives (or ``timeout`` seconds pass) and decodes it."""
        job_tuple = self.redis_client.brpop(self.queue_name, timeout=timeout)
        if not job_tuple:
            return None
        return json.loads(job_tuple[1])

    def publish_invalidations(self, keys: list[str]) -> bool:
        """Best effort: a lost invalidation only delays a cache refresh."""
        if not keys:
            return True
        try:
            self.redis_client.publish(self.invalidation_channel, json.dumps({"keys": keys}))
            return True
        except redis.RedisError as e:
            logger.warning("Could not publish invalidations %s: %s", keys, e)
            return False


@lru_cache()
def get_queue_service() -> QueueService:
    return QueueService.from_settings()
