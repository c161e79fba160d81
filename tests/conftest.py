"""테스트 공용 픽스처: 저장소/소스/세션/시크릿 저장소의 메모리 구현."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Optional

import pytest

from harvester.application.dedup_gate import DedupGate
from harvester.application.session_guard import SessionGuard
from harvester.application.session_store import SessionStore
from harvester.domain.entities import (
    FeedPage,
    MediaRecord,
    Post,
    PostStatus,
    Producer,
    SessionCredential,
)
from harvester.domain.exceptions import DownloadError, UploadFailure
from harvester.domain.services.media_io import TranscodedImage


def make_credential(token: str) -> SessionCredential:
    return SessionCredential(
        storage_state={
            "cookies": [{"name": "SUB", "value": token, "domain": ".weibo.cn"}],
            "origins": [],
        }
    )


def make_image_post(post_id: str, urls: list[str], user_id: str = "u1") -> dict[str, Any]:
    return {
        "id": post_id,
        "created_at": "Sat Oct 18 10:00:00 +0800 2025",
        "user": {"id": user_id},
        "pic_ids": [f"p{i}" for i in range(len(urls))],
        "pics": [{"pid": f"p{i}", "url": url, "large": {"url": url}} for i, url in enumerate(urls)],
    }


# ─── 저장소 ───


class InMemoryPostRepository:
    def __init__(self):
        self.posts: dict[str, Post] = {}
        self.lookups = 0
        self.status_history: list[tuple[str, PostStatus]] = []

    async def existing_platform_ids(self, platform, platform_ids):
        self.lookups += 1
        return {
            pid for pid in platform_ids if f"{platform}_{pid}" in self.posts
        }

    async def upsert(self, post: Post) -> Post:
        stored = self.posts.get(post.key)
        if stored is None:
            post.status = PostStatus.PENDING
            post.id = post.key
            self.posts[post.key] = post
            return post
        stored.user_id = post.user_id
        stored.producer_id = post.producer_id
        stored.created_at = post.created_at
        return stored

    async def get_next_pending(self, platform=None) -> Optional[Post]:
        pending = [
            p for p in self.posts.values()
            if p.status is PostStatus.PENDING and (platform is None or p.platform == platform)
        ]
        if not pending:
            return None
        pending.sort(key=lambda p: p.created_at or datetime.min, reverse=True)
        return pending[0]

    async def update_status(self, post: Post, status: PostStatus) -> Post:
        post.status = status
        self.posts[post.key] = post
        self.status_history.append((post.key, status))
        return post


class InMemoryMediaRepository:
    def __init__(self):
        self.records: dict[str, MediaRecord] = {}
        self.lookups = 0

    async def existing_origin_urls(self, urls):
        self.lookups += 1
        return {u for u in urls if u in self.records}

    async def insert_many(self, records: list[MediaRecord]) -> int:
        for r in records:
            self.records[r.origin_url] = r
        return len(records)


class InMemoryProducerRepository:
    def __init__(self, producers: Optional[list[Producer]] = None):
        self.producers = list(producers or [])
        self.touched: dict[str, datetime] = {}

    async def get_by_kinds(self, kinds):
        kinds = set(kinds)
        return [p for p in self.producers if p.kind in kinds]

    async def touch_last_crawled(self, producer_id: str, when: datetime) -> None:
        self.touched[producer_id] = when


# ─── 소스/세션 ───


class ScriptedSource:
    """Producer별로 미리 정한 응답(FeedPage 또는 예외)을 순서대로 돌려준다."""

    source_name = "fake"
    platform = "WEIBO"

    def __init__(self):
        self.pages: dict[str, list[Any]] = {}
        self.details: dict[str, Any] = {}
        self.page_calls: list[tuple[str, Optional[str]]] = []
        self.detail_calls: list[str] = []

    def script(self, producer_id: str, *responses: Any) -> None:
        self.pages.setdefault(producer_id, []).extend(responses)

    async def fetch_page(self, producer, cursor) -> FeedPage:
        self.page_calls.append((producer.id, cursor.since))
        queue = self.pages.get(producer.id, [])
        response = queue.pop(0) if queue else FeedPage(raw_posts=[], next_cursor=None)
        if isinstance(response, BaseException):
            raise response
        return response

    async def fetch_post_detail(self, platform_id: str) -> dict[str, Any]:
        self.detail_calls.append(platform_id)
        response = self.details[platform_id]
        if isinstance(response, list):
            response = response.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


class FakeBrowsingSession:
    def __init__(self, credential: Optional[SessionCredential] = None):
        self.credential = credential
        self.applied: list[SessionCredential] = []
        self.exported: Optional[SessionCredential] = None
        self.apply_error: Optional[BaseException] = None
        self.current_url = ""

    async def navigate(self, url, wait_until="domcontentloaded", timeout_ms=30000):
        self.current_url = url
        return 200

    async def evaluate(self, script):
        return None

    async def raw_text_body(self):
        return ""

    async def apply_credential(self, credential):
        if self.apply_error is not None:
            raise self.apply_error
        self.credential = credential
        self.applied.append(credential)

    async def export_credential(self):
        if self.exported is not None:
            self.credential = self.exported
        return self.credential


class FakeSecretStore:
    def __init__(self, credentials: Optional[list[SessionCredential]] = None, delay: float = 0.0):
        self.credentials = list(credentials or [])
        self.loads = 0
        self.saved: list[SessionCredential] = []
        self.delay = delay

    async def load_credential(self):
        self.loads += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if not self.credentials:
            raise RuntimeError("시크릿 없음")
        if len(self.credentials) > 1:
            return self.credentials.pop(0)
        return self.credentials[0]

    async def save_credential(self, credential):
        self.saved.append(credential)


# ─── 미디어 ───


class FakeDownloader:
    def __init__(self, failing: Optional[set[str]] = None, delay: float = 0.0):
        self.failing = failing or set()
        self.delay = delay
        self.calls: list[str] = []
        self.active = 0
        self.max_active = 0

    async def download(self, url: str) -> bytes:
        self.calls.append(url)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
            if url in self.failing:
                raise DownloadError(f"다운로드 실패: {url}")
            return b"x" * 100
        finally:
            self.active -= 1


class FakeTranscoder:
    def transcode(self, data: bytes) -> TranscodedImage:
        return TranscodedImage(data=data[:50], thumbnail=data[:10], mime_type="image/webp", extension="webp")


class FakeObjectStore:
    def __init__(self, fail_times: int = 0, fail_names: Optional[set[str]] = None):
        self.fail_times = fail_times
        self.fail_names = fail_names or set()
        self.uploads: list[tuple[str, str]] = []

    async def upload(self, data: bytes, filename: str, mime_type: str) -> str:
        if filename in self.fail_names:
            raise UploadFailure(f"업로드 실패: {filename}")
        if self.fail_times > 0:
            self.fail_times -= 1
            raise UploadFailure("일시적 업로드 실패")
        self.uploads.append((filename, mime_type))
        return f"https://gallery.test/file/{filename}"


# ─── 픽스처 ───


@pytest.fixture
def sleeps():
    """대기 시간을 기록만 하는 sleep 대체."""
    return []


@pytest.fixture
def no_sleep(sleeps):
    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return _sleep


@pytest.fixture
def post_repo():
    return InMemoryPostRepository()


@pytest.fixture
def media_repo():
    return InMemoryMediaRepository()


@pytest.fixture
def producer_repo():
    return InMemoryProducerRepository()


@pytest.fixture
def source():
    return ScriptedSource()


@pytest.fixture
def credential():
    return make_credential("first")


@pytest.fixture
def browsing_session(credential):
    return FakeBrowsingSession(credential)


@pytest.fixture
def secret_store():
    return FakeSecretStore([make_credential("refreshed")])


@pytest.fixture
def session_store(secret_store):
    return SessionStore(secret_store)


@pytest.fixture
def guard(browsing_session, session_store, no_sleep):
    return SessionGuard(
        session=browsing_session,
        store=session_store,
        max_refreshes=2,
        transient_attempts=3,
        transient_backoff_seconds=2.0,
        sleep=no_sleep,
    )


@pytest.fixture
def dedup(post_repo, media_repo):
    return DedupGate(post_repo, media_repo)


@pytest.fixture
def downloader():
    return FakeDownloader()


@pytest.fixture
def transcoder():
    return FakeTranscoder()


@pytest.fixture
def object_store():
    return FakeObjectStore()
