import time
import uuid

from snapcast.models.video import Transcript, Video, VideoStatus
from snapcast.services.editor_service import delete_video
from snapcast.services.status_service import BackoffPolicy
from snapcast.worker.main import process_job, purge_video, requeue_pending_purges, requeue_unsettled_videos

from conftest import FakeResponse


def test_purge_removes_cdn_asset_then_row(db, session_factory, owner, cdn, http_session, queue, make_video):
    video_pk = make_video(owner)
    db.add(Transcript(video_id=video_pk, content="hello"))
    db.commit()
    delete_video(db, owner, video_pk, queue)
    http_session.queue(FakeResponse(200, {}))

    assert purge_video(session_factory, video_pk, cdn, queue) is True

    method, url, _ = http_session.calls[0]
    assert method == "DELETE"
    assert url.endswith(f"/videos/{video_pk}")
    with session_factory() as session:
        assert session.get(Video, video_pk) is None
        assert session.query(Transcript).count() == 0


def test_purge_treats_missing_cdn_asset_as_done(session_factory, db, owner, cdn, http_session, queue, make_video):
    video_pk = make_video(owner)
    delete_video(db, owner, video_pk, queue)
    http_session.queue(FakeResponse(404, {}))

    assert purge_video(session_factory, video_pk, cdn, queue) is True


def test_purge_failure_keeps_row_and_requeues(db, session_factory, owner, cdn, http_session, queue, fake_redis, make_video):
    video_pk = make_video(owner)
    delete_video(db, owner, video_pk, queue)
    fake_redis.lists["jobs"].clear()
    http_session.queue(FakeResponse(503, {}))

    assert purge_video(session_factory, video_pk, cdn, queue, attempt=0, max_attempts=3) is False

    assert fake_redis.jobs("jobs") == []
    assert fake_redis.scheduled("jobs:delayed") == [{"type": "purge", "video_id": str(video_pk), "attempt": 1}]
    with session_factory() as session:
        assert session.get(Video, video_pk).deleted_at is not None


def test_purge_gives_up_after_max_attempts(db, session_factory, owner, cdn, http_session, queue, fake_redis, make_video):
    video_pk = make_video(owner)
    delete_video(db, owner, video_pk, queue)
    fake_redis.lists["jobs"].clear()
    http_session.queue(FakeResponse(503, {}))

    assert purge_video(session_factory, video_pk, cdn, queue, attempt=2, max_attempts=3) is False
    assert fake_redis.jobs("jobs") == []
    assert fake_redis.scheduled("jobs:delayed") == []


def test_purge_ignores_unmarked_rows(session_factory, owner, cdn, http_session, queue, make_video):
    video_pk = make_video(owner)

    assert purge_video(session_factory, video_pk, cdn, queue) is False
    assert http_session.calls == []
    with session_factory() as session:
        assert session.get(Video, video_pk) is not None


def test_requeue_pending_purges(db, session_factory, owner, queue, fake_redis, make_video):
    marked = make_video(owner)
    make_video(owner)
    delete_video(db, owner, marked, queue)
    fake_redis.lists["jobs"].clear()

    assert requeue_pending_purges(session_factory, queue) == 1
    assert fake_redis.jobs("jobs") == [{"type": "purge", "video_id": str(marked), "attempt": 0}]


def test_reconcile_job_runs_one_check_and_reschedules(session_factory, owner, cdn, http_session, queue, fake_redis, make_video):
    video_pk = make_video(owner, status=VideoStatus.PROCESSING)
    http_session.queue(FakeResponse(200, {"status": 3}))
    policy = BackoffPolicy(2, 2, 60, 5)

    before = time.time()
    result = process_job(
        {"type": "reconcile", "video_id": str(video_pk), "attempt": 1}, session_factory, cdn, queue, policy,
    )

    assert result.is_processed is False
    assert len(http_session.calls) == 1
    assert fake_redis.jobs("jobs") == []
    assert fake_redis.scheduled("jobs:delayed") == [{"type": "reconcile", "video_id": str(video_pk), "attempt": 2}]
    not_before = next(iter(fake_redis.zsets["jobs:delayed"].values()))
    assert before + 4 <= not_before <= time.time() + 4


def test_reconcile_job_finishes_on_ready(session_factory, owner, cdn, http_session, queue, fake_redis, make_video):
    video_pk = make_video(owner, status=VideoStatus.PROCESSING)
    http_session.queue(FakeResponse(200, {"status": 4, "length": 30}))

    result = process_job({"type": "reconcile", "video_id": str(video_pk)}, session_factory, cdn, queue)

    assert result.is_processed is True
    assert fake_redis.scheduled("jobs:delayed") == []
    with session_factory() as session:
        record = session.get(Video, video_pk)
        assert record.status == VideoStatus.READY
        assert record.duration == 30


def test_reconcile_job_stops_after_max_attempts(session_factory, owner, cdn, http_session, queue, fake_redis, make_video):
    video_pk = make_video(owner, status=VideoStatus.PROCESSING)
    http_session.queue(FakeResponse(200, {"status": 3}))

    process_job(
        {"type": "reconcile", "video_id": str(video_pk), "attempt": 4},
        session_factory, cdn, queue, BackoffPolicy(2, 2, 60, 5),
    )

    assert fake_redis.scheduled("jobs:delayed") == []
    with session_factory() as session:
        assert session.get(Video, video_pk).status == VideoStatus.PROCESSING


def test_reconcile_job_for_deleted_video_is_dropped(db, session_factory, owner, cdn, http_session, queue, fake_redis, make_video):
    video_pk = make_video(owner, status=VideoStatus.PROCESSING)
    delete_video(db, owner, video_pk, queue)

    result = process_job({"type": "reconcile", "video_id": str(video_pk)}, session_factory, cdn, queue)

    assert result.status == "error"
    assert http_session.calls == []
    assert fake_redis.scheduled("jobs:delayed") == []


def test_pending_video_does_not_hold_up_other_jobs(db, session_factory, owner, cdn, http_session, queue, fake_redis, make_video):
    pending = make_video(owner, status=VideoStatus.PROCESSING)
    doomed = make_video(owner)
    delete_video(db, owner, doomed, queue)
    fake_redis.lists["jobs"].clear()
    queue.enqueue_status_reconcile(str(pending))
    queue.enqueue_purge(str(doomed))
    http_session.queue(FakeResponse(200, {"status": 3}))
    http_session.queue(FakeResponse(200, {}))

    while (job := queue.next_job(timeout=1)) is not None:
        process_job(job, session_factory, cdn, queue, BackoffPolicy(2, 2, 60, 5))

    assert [method for method, _, _ in http_session.calls] == ["GET", "DELETE"]
    with session_factory() as session:
        assert session.get(Video, doomed) is None
        assert session.get(Video, pending).status == VideoStatus.PROCESSING
    assert fake_redis.scheduled("jobs:delayed") == [{"type": "reconcile", "video_id": str(pending), "attempt": 1}]


def test_purge_retry_is_scheduled_with_backoff(db, session_factory, owner, cdn, http_session, queue, fake_redis, make_video):
    video_pk = make_video(owner)
    delete_video(db, owner, video_pk, queue)
    http_session.queue(FakeResponse(503, {}))

    before = time.time()
    process_job(
        {"type": "purge", "video_id": str(video_pk), "attempt": 2},
        session_factory, cdn, queue, BackoffPolicy(1, 2, 10, 5),
    )

    assert fake_redis.scheduled("jobs:delayed") == [{"type": "purge", "video_id": str(video_pk), "attempt": 3}]
    assert next(iter(fake_redis.zsets["jobs:delayed"].values())) >= before + 4


def test_due_jobs_are_promoted_in_order(queue, fake_redis):
    first, second, later = (str(uuid.uuid4()) for _ in range(3))
    queue.enqueue_status_reconcile(second, attempt=1, delay=20)
    queue.enqueue_status_reconcile(first, attempt=1, delay=10)
    queue.enqueue_purge(later, attempt=1, delay=600)

    assert queue.promote_due_jobs(now=time.time() + 30) == 2

    assert [job["video_id"] for job in fake_redis.jobs("jobs")] == [first, second]
    assert [job["video_id"] for job in fake_redis.scheduled("jobs:delayed")] == [later]
    assert queue.promote_due_jobs() == 0


def test_requeue_unsettled_videos(db, session_factory, owner, queue, fake_redis, make_video):
    processing = make_video(owner, status=VideoStatus.PROCESSING)
    make_video(owner, status=VideoStatus.UPLOADING)
    make_video(owner, status=VideoStatus.READY)
    deleted = make_video(owner, status=VideoStatus.PROCESSING)
    delete_video(db, owner, deleted, queue)
    fake_redis.lists["jobs"].clear()

    assert requeue_unsettled_videos(session_factory, queue) == 1
    assert fake_redis.jobs("jobs") == [{"type": "reconcile", "video_id": str(processing), "attempt": 0}]


def test_unknown_job_type_is_dropped(session_factory, cdn, queue):
    assert process_job({"type": "transcode", "video_id": str(uuid.uuid4())}, session_factory, cdn, queue) is None
