import os

# Settings are read at import time; give them test values first.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SUPABASE_URL", "http://supabase.test")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("BUNNY_LIBRARY_ID", "lib-123")
os.environ.setdefault("BUNNY_STREAM_ACCESS_KEY", "access-key")

import json
import uuid
from datetime import datetime, timedelta, timezone

import pytest
import redis
import requests
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from snapcast.models.auth import SessionUser
from snapcast.models.video import Video, VideoStatus
from snapcast.services.bunny_service import BunnyStreamService
from snapcast.services.queue_service import QueueService
from snapcast.services.r2_service import R2Service
from snapcast.shared.db.database import init_db

BASE_URL = "https://video.bunnycdn.test"
LIBRARY_ID = "lib-123"


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("no JSON body")
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)


class FakeHttpSession:
    """Stands in for requests.Session; answers from queued responses."""
    def __init__(self):
        self.responses = []
        self.calls = []

    def queue(self, response):
        self.responses.append(response)

    def _next(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        response = self.responses.pop(0) if self.responses else FakeResponse(200, {})
        if isinstance(response, Exception):
            raise response
        return response

    def get(self, url, **kwargs):
        return self._next("GET", url, **kwargs)

    def delete(self, url, **kwargs):
        return self._next("DELETE", url, **kwargs)


class FakeRedis:
    def __init__(self):
        self.lists = {}
        self.zsets = {}
        self.published = []
        self.down = False

    def lpush(self, name, value):
        if self.down:
            raise redis.ConnectionError("Connection refused")
        self.lists.setdefault(name, []).insert(0, value)
        return len(self.lists[name])

    def brpop(self, name, timeout=0):
        items = self.lists.get(name) or []
        if not items:
            return None
        return name, items.pop()

    def zadd(self, name, mapping):
        zset = self.zsets.setdefault(name, {})
        added = sum(1 for member in mapping if member not in zset)
        zset.update(mapping)
        return added

    def zrangebyscore(self, name, min, max):
        low, high = float(min), float(max)
        ordered = sorted(self.zsets.get(name, {}).items(), key=lambda item: item[1])
        return [member for member, score in ordered if low <= score <= high]

    def zrem(self, name, *members):
        zset = self.zsets.get(name, {})
        return sum(1 for member in members if zset.pop(member, None) is not None)

    def publish(self, channel, message):
        self.published.append((channel, json.loads(message)))
        return 1

    def jobs(self, name):
        return [json.loads(item) for item in reversed(self.lists.get(name, []))]

    def scheduled(self, name):
        ordered = sorted(self.zsets.get(name, {}).items(), key=lambda item: item[1])
        return [json.loads(member) for member, _ in ordered]


class FakeS3Client:
    class meta:
        endpoint_url = "https://r2.test"

    def generate_presigned_url(self, ClientMethod, Params, ExpiresIn):
        return f"https://r2.test/{Params['Bucket']}/{Params['Key']}?signature=abc&expires={ExpiresIn}"


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def owner():
    return SessionUser(user_id=uuid.uuid4(), email="owner@example.com")


@pytest.fixture
def other_user():
    return SessionUser(user_id=uuid.uuid4(), email="other@example.com")


@pytest.fixture
def http_session():
    return FakeHttpSession()


@pytest.fixture
def cdn(http_session):
    return BunnyStreamService(BASE_URL, LIBRARY_ID, "access-key", timeout=5, session=http_session)


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def queue(fake_redis):
    return QueueService(fake_redis, "jobs", "invalidations")


@pytest.fixture
def storage():
    return R2Service(FakeS3Client(), bucket_name="thumbnails", public_base_url="https://cdn.example.com")


@pytest.fixture
def make_video(db):
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    counter = {"n": 0}

    def _make(user, **fields):
        counter["n"] += 1
        vid = uuid.uuid4()
        values = dict(
            id=vid,
            video_id=str(vid),
            user_id=user.user_id,
            title=f"Video {counter['n']}",
            is_public=True,
            status=VideoStatus.READY,
            created_at=base + timedelta(minutes=counter["n"]),
        )
        values.update(fields)
        video = Video(**values)
        db.add(video)
        db.commit()
        return video.id

    return _make
