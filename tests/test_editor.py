import uuid

import pytest

from snapcast.core.exceptions import AuthorizationError, VideoAccessDenied, VideoValidationError
from snapcast.models.video import Video, VideoStatus
from snapcast.services.editor_service import VideoDetails, delete_video, save_details, update_visibility
from snapcast.services.query_service import list_by_owner, list_public


def _reload(db, video_pk):
    db.expire_all()
    return db.get(Video, video_pk)


def test_save_details_by_non_owner_fails_and_leaves_record(db, owner, other_user, make_video):
    video_pk = make_video(owner, title="Original", is_public=False, status=VideoStatus.PROCESSING)

    with pytest.raises(AuthorizationError):
        save_details(db, other_user, video_pk, VideoDetails(title="Demo", visibility="public"))

    record = _reload(db, video_pk)
    assert record.title == "Original"
    assert record.is_public is False
    assert record.status == VideoStatus.PROCESSING


def test_save_details_publishes(db, owner, make_video):
    video_pk = make_video(owner, is_public=False, status=VideoStatus.PROCESSING)
    details = VideoDetails(
        title="  Demo  ",
        description="",
        tags=["python", " demo ", "python", ""],
        visibility="public",
        thumbnail_url="https://cdn.example.com/thumbnails/t.jpg",
    )

    result = save_details(db, owner, video_pk, details)

    video = result.video
    assert video.title == "Demo"
    assert video.description is None
    assert video.tags == ["python", "demo"]
    assert video.is_public is True
    assert video.status == VideoStatus.READY
    assert video.thumbnail_url == "https://cdn.example.com/thumbnails/t.jpg"
    assert result.invalidated == [f"/video/{video_pk}", "/", f"/profile/{owner.user_id}"]


def test_save_details_keeps_error_terminal(db, owner, make_video):
    video_pk = make_video(owner, status=VideoStatus.ERROR)

    result = save_details(db, owner, video_pk, VideoDetails(title="Broken upload"))

    assert result.video.title == "Broken upload"
    assert result.video.status == VideoStatus.ERROR


@pytest.mark.parametrize(
    "details, field",
    [
        (VideoDetails(title=""), "title"),
        (VideoDetails(title="   "), "title"),
        (VideoDetails(title="Ok", visibility="friends"), "visibility"),
    ],
)
def test_save_details_validation_writes_nothing(db, owner, make_video, details, field):
    video_pk = make_video(owner, title="Original", status=VideoStatus.PROCESSING)

    with pytest.raises(VideoValidationError) as excinfo:
        save_details(db, owner, video_pk, details)

    assert excinfo.value.field == field
    record = _reload(db, video_pk)
    assert record.title == "Original"
    assert record.status == VideoStatus.PROCESSING


def test_update_visibility(db, owner, other_user, make_video):
    video_pk = make_video(owner, is_public=False)

    result = update_visibility(db, owner, video_pk, True)
    assert result.video.is_public is True
    assert "/" in result.invalidated

    with pytest.raises(VideoAccessDenied):
        update_visibility(db, other_user, video_pk, False)
    assert _reload(db, video_pk).is_public is True


def test_update_visibility_missing_video_looks_like_denied(db, owner):
    with pytest.raises(VideoAccessDenied) as excinfo:
        update_visibility(db, owner, uuid.uuid4(), True)
    assert "not found" in excinfo.value.detail


def test_delete_video_marks_and_queues_purge(db, owner, other_user, queue, fake_redis, make_video):
    video_pk = make_video(owner)

    with pytest.raises(VideoAccessDenied):
        delete_video(db, other_user, video_pk, queue)
    assert fake_redis.jobs("jobs") == []

    result = delete_video(db, owner, video_pk, queue)

    assert result.video is None
    assert fake_redis.jobs("jobs") == [{"type": "purge", "video_id": str(video_pk), "attempt": 0}]
    assert _reload(db, video_pk).deleted_at is not None
    assert list_public(db).total_count == 0
    assert list_by_owner(db, owner.user_id).total_count == 0

    # A second delete finds nothing left to mark
    with pytest.raises(VideoAccessDenied):
        delete_video(db, owner, video_pk, queue)
