# snapcast/api/endpoints/videos.py

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from snapcast.api.dependencies import get_current_user, resolve_session
from snapcast.shared.db.database import get_db_session
from snapcast.services.bunny_service import BunnyStreamService, get_bunny_service
from snapcast.services.queue_service import QueueService, get_queue_service
from snapcast.services.r2_service import R2Service, get_r2_service
from snapcast.services import editor_service, query_service, status_service, upload_service
# Models
from snapcast.models.auth import SessionUser, UserResponse
from snapcast.models.video import VideoStatus

router = APIRouter()


# --- Pydantic Schemas for Request/Response ---
class VideoUploadResponse(BaseModel):
    id: uuid.UUID
    video_id: str
    upload_url: str
    headers: dict[str, str]


class VideoResponse(BaseModel):
    id: uuid.UUID
    video_id: str
    user_id: uuid.UUID
    title: str
    description: str | None = None
    tags: list[str] = []
    thumbnail_url: str | None = None
    is_public: bool
    status: VideoStatus
    duration: float | None = None
    views: int
    likes: int
    created_at: datetime
    updated_at: datetime
    user: UserResponse | None = None

    model_config = ConfigDict(from_attributes=True)


class VideoListResponse(BaseModel):
    videos: list[VideoResponse]
    total_count: int
    total_pages: int
    limit: int
    offset: int


class EditResponse(BaseModel):
    success: bool = True
    video: VideoResponse | None = None
    invalidated: list[str] = []


class StatusResponse(BaseModel):
    is_processed: bool
    status: int | str
    lifecycle: VideoStatus | None = None


class VisibilityRequest(BaseModel):
    is_public: bool


class VideoDetailsRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    tags: list[str] = []
    visibility: str = Field("private", pattern="^(public|private)$")
    thumbnail_url: str | None = None


class ThumbnailUploadResponse(BaseModel):
    upload_url: str
    file_path: str
    public_url: str


class TranscriptResponse(BaseModel):
    video_id: uuid.UUID
    language: str | None = None
    content: str

    model_config = ConfigDict(from_attributes=True)


def _publish(queue: QueueService, result: editor_service.EditResult) -> EditResponse:
    queue.publish_invalidations(result.invalidated)
    video = VideoResponse.model_validate(result.video) if result.video is not None else None
    return EditResponse(video=video, invalidated=result.invalidated)


def _page_response(page: query_service.VideoPage) -> VideoListResponse:
    return VideoListResponse(
        videos=[VideoResponse.model_validate(v) for v in page.videos],
        total_count=page.total_count,
        total_pages=page.total_pages,
        limit=page.limit,
        offset=page.offset,
    )


# --- Upload workflow ---
@router.post(
    "/request-upload",
    response_model=VideoUploadResponse,
    summary="Request a URL to upload a video",
    description="Creates a video record in the 'uploading' state and returns the CDN URL and headers the client uses to PUT the file directly.",
)
def request_video_upload(
    db: Session = Depends(get_db_session),
    current_user: SessionUser = Depends(get_current_user),
    cdn: BunnyStreamService = Depends(get_bunny_service),
):
    target = upload_service.begin_upload(db, current_user, cdn)
    return VideoUploadResponse(
        id=target.id, video_id=target.video_id, upload_url=target.upload_url, headers=target.headers,
    )


@router.post(
    "/{video_pk}/upload-complete",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Confirm video upload is complete and trigger status reconciliation",
)
def confirm_upload_complete(
    video_pk: uuid.UUID,
    db: Session = Depends(get_db_session),
    current_user: SessionUser = Depends(get_current_user),
    queue: QueueService = Depends(get_queue_service),
):
    video = upload_service.confirm_upload_complete(db, current_user, video_pk, queue)
    return {"status": video.status.value, "message": "Video processing status is being tracked."}


@router.get("/{video_pk}/status", response_model=StatusResponse, summary="Check the CDN encoding status")
def get_processing_status(
    video_pk: uuid.UUID,
    db: Session = Depends(get_db_session),
    current_user: SessionUser = Depends(get_current_user),
    cdn: BunnyStreamService = Depends(get_bunny_service),
):
    check = status_service.check_status(db, video_pk, cdn, user=current_user)
    return StatusResponse(is_processed=check.is_processed, status=check.status, lifecycle=check.lifecycle)


@router.post("/{video_pk}/thumbnail-upload", response_model=ThumbnailUploadResponse)
def request_thumbnail_upload(
    video_pk: uuid.UUID,
    db: Session = Depends(get_db_session),
    current_user: SessionUser = Depends(get_current_user),
    storage: R2Service = Depends(get_r2_service),
):
    target = upload_service.get_thumbnail_upload_url(db, current_user, video_pk, storage)
    return ThumbnailUploadResponse(
        upload_url=target.upload_url, file_path=target.file_path, public_url=target.public_url,
    )


# --- Editing ---
@router.patch("/{video_pk}/visibility", response_model=EditResponse)
def update_visibility(
    video_pk: uuid.UUID,
    payload: VisibilityRequest,
    db: Session = Depends(get_db_session),
    current_user: SessionUser = Depends(get_current_user),
    queue: QueueService = Depends(get_queue_service),
):
    result = editor_service.update_visibility(db, current_user, video_pk, payload.is_public)
    return _publish(queue, result)


@router.put("/{video_pk}/details", response_model=EditResponse, summary="Save details and publish the video")
def save_details(
    video_pk: uuid.UUID,
    payload: VideoDetailsRequest,
    db: Session = Depends(get_db_session),
    current_user: SessionUser = Depends(get_current_user),
    queue: QueueService = Depends(get_queue_service),
):
    details = editor_service.VideoDetails(**payload.model_dump())
    result = editor_service.save_details(db, current_user, video_pk, details)
    return _publish(queue, result)


@router.delete("/{video_pk}", response_model=EditResponse, status_code=status.HTTP_202_ACCEPTED)
def delete_video(
    video_pk: uuid.UUID,
    db: Session = Depends(get_db_session),
    current_user: SessionUser = Depends(get_current_user),
    queue: QueueService = Depends(get_queue_service),
):
    result = editor_service.delete_video(db, current_user, video_pk, queue)
    return _publish(queue, result)


# --- Reading ---
@router.get("/", response_model=VideoListResponse, summary="List public videos")
def list_public_videos(
    search_query: str | None = Query(None, alias="query"),
    sort_filter: str | None = Query(None, alias="filter"),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db_session),
    current_user: SessionUser = Depends(get_current_user),
):
    options = query_service.QueryOptions(search_query, sort_filter, limit, offset)
    return _page_response(query_service.list_public(db, options))


@router.get("/users/{user_id}", response_model=VideoListResponse, summary="List a user's videos")
def list_user_videos(
    user_id: uuid.UUID,
    search_query: str | None = Query(None, alias="query"),
    sort_filter: str | None = Query(None, alias="filter"),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db_session),
    current_user: SessionUser = Depends(get_current_user),
):
    options = query_service.QueryOptions(search_query, sort_filter, limit, offset)
    if user_id == current_user.user_id:
        page = query_service.list_by_owner(db, user_id, options)
    else:
        # Someone else's profile only shows what they made public
        page = query_service.list_by_owner(db, user_id, options, public_only=True)
    return _page_response(page)


@router.get("/{video_pk}", response_model=VideoResponse, summary="Get a video and count the view")
def get_video(
    video_pk: uuid.UUID,
    db: Session = Depends(get_db_session),
    viewer: SessionUser | None = Depends(resolve_session),
):
    return VideoResponse.model_validate(query_service.get_video_by_id(db, video_pk, viewer))


@router.get("/{video_pk}/transcript", response_model=TranscriptResponse)
def get_transcript(
    video_pk: uuid.UUID,
    db: Session = Depends(get_db_session),
    viewer: SessionUser | None = Depends(resolve_session),
):
    return TranscriptResponse.model_validate(query_service.get_transcript(db, video_pk, viewer))
