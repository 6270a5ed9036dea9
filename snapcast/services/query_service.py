# snapcast/services/query_service.py

import math
import uuid
from dataclasses import dataclass

from sqlalchemy.orm import Session

from ..core.exceptions import VideoNotFound
from ..models.auth import SessionUser
from ..models.video import Transcript, Video
from .video_store import DEFAULT_SORT_FIELD, VideoQuery, VideoStore

DEFAULT_LIMIT = 10


@dataclass
class QueryOptions:
    search_query: str | None = None
    sort_filter: str | None = None
    limit: int = DEFAULT_LIMIT
    offset: int = 0


@dataclass
class VideoPage:
    videos: list[Video]
    total_count: int
    limit: int
    offset: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.limit) if self.limit else 0


def parse_sort_filter(sort_filter: str | None) -> tuple[str, bool]:
    """
    ``"views-asc"`` -> ("views", True). Only an ``-asc`` suffix sorts
    ascending; a missing field falls back to creation time.
    """
    if not sort_filter:
        return DEFAULT_SORT_FIELD, False
    field_name, sep, direction = sort_filter.rpartition("-")
    if not sep:
        # no dash: the whole string is the field
        field_name, direction = sort_filter, ""
    return field_name or DEFAULT_SORT_FIELD, direction == "asc"


def _build_query(options: QueryOptions, **filters) -> VideoQuery:
    sort_field, ascending = parse_sort_filter(options.sort_filter)
    return VideoQuery(
        search_query=options.search_query.strip() if options.search_query else None,
        sort_field=sort_field,
        ascending=ascending,
        limit=max(options.limit, 1),
        offset=max(options.offset, 0),
        **filters,
    )


def _page(db: Session, query: VideoQuery) -> VideoPage:
    videos, total = VideoStore(db).query(query)
    return VideoPage(videos=videos, total_count=total, limit=query.limit, offset=query.offset)


def list_public(db: Session, options: QueryOptions | None = None) -> VideoPage:
    return _page(db, _build_query(options or QueryOptions(), is_public=True))


def list_by_owner(
    db: Session, user_id: uuid.UUID, options: QueryOptions | None = None, public_only: bool = False,
) -> VideoPage:
    """All of a user's videos, private ones included unless ``public_only``."""
    filters = {"user_id": user_id}
    if public_only:
        filters["is_public"] = True
    return _page(db, _build_query(options or QueryOptions(), **filters))


def _readable(video: Video | None, viewer: SessionUser | None) -> bool:
    if video is None:
        return False
    return video.is_public or (viewer is not None and video.user_id == viewer.user_id)


def get_video_by_id(db: Session, video_pk: uuid.UUID, viewer: SessionUser | None = None) -> Video:
    """Loads a video the viewer may see and counts the view."""
    store = VideoStore(db)
    if not _readable(store.get(video_pk), viewer):
        raise VideoNotFound()
    store.increment_views(video_pk)
    video = store.get(video_pk)
    if video is None:
        # deleted between the two statements
        raise VideoNotFound()
    return video


def get_transcript(db: Session, video_pk: uuid.UUID, viewer: SessionUser | None = None) -> Transcript:
    store = VideoStore(db)
    if not _readable(store.get(video_pk), viewer):
        raise VideoNotFound()
    transcript = store.get_transcript(video_pk)
    if transcript is None:
        raise VideoNotFound("Transcript not found.")
    return transcript
