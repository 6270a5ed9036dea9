# snapcast/services/video_store.py

import uuid
from dataclasses import dataclass, field
from typing import Any, Iterable

from sqlalchemy import asc, delete, desc, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from snapcast.models.auth import User
from snapcast.models.video import Transcript, Video, VideoStatus, utcnow

SORTABLE_FIELDS = {
    "created_at": Video.created_at,
    "updated_at": Video.updated_at,
    "title": Video.title,
    "views": Video.views,
    "likes": Video.likes,
    "duration": Video.duration,
}
DEFAULT_SORT_FIELD = "created_at"


@dataclass
class VideoQuery:
    """Filters and paging for a listing over the videos table."""
    is_public: bool | None = None
    user_id: uuid.UUID | None = None
    search_query: str | None = None
    sort_field: str = DEFAULT_SORT_FIELD
    ascending: bool = False
    limit: int = 10
    offset: int = 0
    extra_filters: list = field(default_factory=list)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class VideoStore:
    """
    Persistence for video records. Every mutation is one UPDATE/DELETE
    filtered in SQL, so concurrent requests never read-modify-write.
    """

    def __init__(self, db: Session):
        self.db = db

    # --- reads ---
    def get(self, video_pk: uuid.UUID, include_deleted: bool = False) -> Video | None:
        stmt = select(Video).where(Video.id == video_pk)
        if not include_deleted:
            stmt = stmt.where(Video.deleted_at.is_(None))
        return self.db.execute(stmt).unique().scalar_one_or_none()

    def get_owned(self, video_pk: uuid.UUID, user_id: uuid.UUID) -> Video | None:
        stmt = select(Video).where(
            Video.id == video_pk,
            Video.user_id == user_id,
            Video.deleted_at.is_(None),
        )
        return self.db.execute(stmt).unique().scalar_one_or_none()

    def marked_for_deletion(self) -> list[Video]:
        stmt = select(Video).where(Video.deleted_at.is_not(None)).order_by(Video.deleted_at)
        return list(self.db.execute(stmt).unique().scalars().all())

    def in_status(self, statuses: Iterable[VideoStatus]) -> list[Video]:
        stmt = (
            select(Video)
            .where(Video.status.in_(list(statuses)), Video.deleted_at.is_(None))
            .order_by(Video.created_at)
        )
        return list(self.db.execute(stmt).unique().scalars().all())

    def get_transcript(self, video_pk: uuid.UUID) -> Transcript | None:
        stmt = select(Transcript).where(Transcript.video_id == video_pk)
        return self.db.execute(stmt).scalar_one_or_none()

    def query(self, q: VideoQuery) -> tuple[list[Video], int]:
        """Returns one page of videos plus the total number of matches."""
        filters = [Video.deleted_at.is_(None), *q.extra_filters]
        if q.is_public is not None:
            filters.append(Video.is_public == q.is_public)
        if q.user_id is not None:
            filters.append(Video.user_id == q.user_id)
        if q.search_query:
            filters.append(Video.title.ilike(f"%{_escape_like(q.search_query)}%", escape="\\"))

        total = self.db.execute(
            select(func.count()).select_from(Video).where(*filters)
        ).scalar_one()

        direction = asc if q.ascending else desc
        sort_column = SORTABLE_FIELDS.get(q.sort_field, SORTABLE_FIELDS[DEFAULT_SORT_FIELD])
        stmt = (
            select(Video)
            .where(*filters)
            # id breaks ties so pages never overlap between calls
            .order_by(direction(sort_column), direction(Video.id))
            .limit(q.limit)
            .offset(q.offset)
        )
        videos = list(self.db.execute(stmt).unique().scalars().all())
        return videos, total

    # --- writes ---
    def ensure_owner(self, user_id: uuid.UUID, email: str | None = None) -> None:
        """Stages a users row mirroring the auth user; committed with the next write."""
        if self.db.get(User, user_id) is None:
            self.db.add(User(id=user_id, email=email))

    def create(self, video: Video) -> Video:
        try:
            self.db.add(video)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self.db.refresh(video)
        return video

    def _execute_update(self, stmt) -> int:
        try:
            result = self.db.execute(stmt.execution_options(synchronize_session=False))
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        return result.rowcount

    def update_owned(self, video_pk: uuid.UUID, user_id: uuid.UUID, values: dict[str, Any]) -> Video | None:
        """
        Applies ``values`` in one statement filtered by id and owner.
        Returns the refreshed record, or None when no row matched.
        """
        stmt = (
            update(Video)
            .where(Video.id == video_pk, Video.user_id == user_id, Video.deleted_at.is_(None))
            .values(**values)
        )
        if self._execute_update(stmt) == 0:
            return None
        return self.get(video_pk)

    def transition_status(
        self,
        video_pk: uuid.UUID,
        to_status: VideoStatus,
        from_statuses: Iterable[VideoStatus],
        user_id: uuid.UUID | None = None,
        **values: Any,
    ) -> bool:
        """Compare-and-set on status. False when the record was not in ``from_statuses``."""
        stmt = update(Video).where(
            Video.id == video_pk,
            Video.status.in_(list(from_statuses)),
            Video.deleted_at.is_(None),
        )
        if user_id is not None:
            stmt = stmt.where(Video.user_id == user_id)
        stmt = stmt.values(status=to_status, **values)
        return self._execute_update(stmt) > 0

    def increment_views(self, video_pk: uuid.UUID) -> bool:
        # Counter bumps are reads, not edits: keep updated_at as it was.
        stmt = (
            update(Video)
            .where(Video.id == video_pk, Video.deleted_at.is_(None))
            .values(views=Video.views + 1, updated_at=Video.updated_at)
        )
        return self._execute_update(stmt) > 0

    def mark_deleted(self, video_pk: uuid.UUID, user_id: uuid.UUID) -> bool:
        stmt = (
            update(Video)
            .where(Video.id == video_pk, Video.user_id == user_id, Video.deleted_at.is_(None))
            .values(deleted_at=utcnow())
        )
        return self._execute_update(stmt) > 0

    def purge(self, video_pk: uuid.UUID) -> bool:
        """Removes a record already marked for deletion, transcript included."""
        try:
            marked = select(Video.id).where(Video.id == video_pk, Video.deleted_at.is_not(None))
            self.db.execute(
                delete(Transcript).where(Transcript.video_id.in_(marked)).execution_options(synchronize_session=False)
            )
            result = self.db.execute(
                delete(Video).where(Video.id.in_(marked)).execution_options(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        return result.rowcount > 0
