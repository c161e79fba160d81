"""수집/소비 유즈케이스 테스트."""

from datetime import datetime

import pytest

from conftest import (
    FakeBrowsingSession,
    FakeDownloader,
    FakeSecretStore,
    InMemoryProducerRepository,
    ScriptedSource,
    make_credential,
    make_image_post,
)
from harvester.application.cursor_paginator import CursorPaginator
from harvester.application.deadline import RunDeadline
from harvester.application.ingestion_pipeline import IngestionPipeline
from harvester.application.post_lifecycle import PostLifecycle
from harvester.application.session_guard import SessionGuard
from harvester.application.session_store import SessionStore
from harvester.application.use_cases.consume_posts import ConsumePostsUseCase
from harvester.application.use_cases.crawl_producers import CrawlProducersUseCase, CrawlRoute
from harvester.domain.entities import FeedPage, Post, PostStatus, Producer, ProducerKind
from harvester.domain.exceptions import SessionExpiredError
from harvester.domain.services.media_extractor import MediaExtractor

NOW = datetime(2025, 10, 18, 12, 0, 0)


@pytest.fixture
def producers():
    return InMemoryProducerRepository([
        Producer(id="p1", source_id="5000", kind=ProducerKind.PERSONAL, name="작가"),
        Producer(id="p2", source_id="100808abc", kind=ProducerKind.TOPIC, name="토픽"),
    ])


@pytest.fixture
def crawl_use_case(producers, source, guard, dedup, browsing_session, session_store, no_sleep):
    def _make(deadline=None):
        paginator = CursorPaginator(
            source=source, guard=guard, extractor=MediaExtractor(), dedup=dedup, sleep=no_sleep
        )
        return CrawlProducersUseCase(
            producer_repo=producers,
            paginator=paginator,
            session=browsing_session,
            session_store=session_store,
            producer_delay_seconds=5.0,
            deadline=deadline,
            sleep=no_sleep,
            clock=lambda: NOW,
        )

    return _make


@pytest.fixture
def consume_use_case(post_repo, media_repo, source, guard, dedup, transcoder, object_store,
                     browsing_session, session_store, no_sleep):
    def _make(deadline=None):
        pipeline = IngestionPipeline(FakeDownloader(), transcoder, object_store, sleep=no_sleep)
        lifecycle = PostLifecycle(
            post_repo=post_repo,
            media_repo=media_repo,
            source=source,
            guard=guard,
            extractor=MediaExtractor(),
            dedup=dedup,
            pipeline=pipeline,
        )
        return ConsumePostsUseCase(lifecycle, browsing_session, session_store, deadline=deadline)

    return _make


# ─── 수집 ───


@pytest.mark.asyncio
async def test_crawl_touches_only_producers_with_new_posts(crawl_use_case, producers, source, sleeps):
    """새 게시물이 있던 Producer만 마지막 수집 시각을 갱신."""
    source.script("p1", FeedPage([make_image_post("a", ["https://img/a.jpg"])], None))
    source.script("p2", FeedPage([], None))

    summary = await crawl_use_case().execute([ProducerKind.PERSONAL, ProducerKind.TOPIC], max_pages=20)

    assert summary.processed == 2
    assert summary.succeeded == 2
    assert summary.items == 1
    assert producers.touched == {"p1": NOW}
    assert sleeps == [5.0]
    assert summary.completed_at is not None


@pytest.mark.asyncio
async def test_crawl_mode_filters_producer_kinds(crawl_use_case, source):
    """종류를 지정하면 해당 Producer만 수집."""
    summary = await crawl_use_case().execute([ProducerKind.TOPIC], max_pages=20)

    assert summary.processed == 1
    assert [call[0] for call in source.page_calls] == ["p2"]


@pytest.mark.asyncio
async def test_aborted_producer_does_not_stop_run(crawl_use_case, producers, source):
    """한 Producer가 중단되어도 다음 Producer는 계속 수집."""
    source.script("p1", *[SessionExpiredError("weibo")] * 3)
    source.script("p2", FeedPage([make_image_post("b", ["https://img/b.jpg"])], None))

    summary = await crawl_use_case().execute([ProducerKind.PERSONAL, ProducerKind.TOPIC], max_pages=20)

    assert summary.aborted == 1
    assert summary.succeeded == 1
    assert "p1" not in producers.touched
    assert "p2" in producers.touched


@pytest.mark.asyncio
async def test_credential_apply_crash_aborts_only_current_producer(crawl_use_case, producers, source, browsing_session):
    """자격 증명 적용 중 브라우저 오류가 나도 다음 Producer는 수집한다."""
    browsing_session.apply_error = RuntimeError("Target page, context or browser has been closed")
    source.script("p1", SessionExpiredError("weibo"))
    source.script("p2", FeedPage([make_image_post("b", ["https://img/b.jpg"])], None))

    summary = await crawl_use_case().execute([ProducerKind.PERSONAL, ProducerKind.TOPIC], max_pages=20)

    assert summary.aborted == 1
    assert summary.succeeded == 1
    assert [call[0] for call in source.page_calls] == ["p1", "p2"]
    assert "p2" in producers.touched


@pytest.mark.asyncio
async def test_crawl_publishes_rotated_credential_once(crawl_use_case, browsing_session, secret_store):
    """서버가 교체한 쿠키는 시크릿 저장소에 한 번만 반영."""
    rotated = make_credential("rotated")
    browsing_session.exported = rotated

    await crawl_use_case().execute([ProducerKind.PERSONAL, ProducerKind.TOPIC], max_pages=20)

    assert secret_store.saved == [rotated]


@pytest.mark.asyncio
async def test_crawl_respects_deadline(crawl_use_case, source):
    """시간 제한이 지나면 Producer를 시작하지 않는다."""
    summary = await crawl_use_case(deadline=RunDeadline(0)).execute([ProducerKind.PERSONAL], max_pages=20)

    assert summary.processed == 0
    assert summary.deadline_reached is True
    assert source.page_calls == []


@pytest.mark.asyncio
async def test_xiaohongshu_producers_use_their_own_route(
    producers, source, guard, dedup, browsing_session, session_store, no_sleep, post_repo
):
    """小红书 Producer는 전용 소스/세션으로 수집하고 교체된 쿠키도 전용 저장소에 반영."""
    producers.producers.append(Producer(id="x1", source_id="xhs-user", kind=ProducerKind.XHS_PERSONAL))
    xhs_source = ScriptedSource()
    xhs_source.platform = "XIAOHONGSHU"
    xhs_source.script("x1", FeedPage([make_image_post("n1", ["https://sns-img/n1.jpg"])], None))
    xhs_session = FakeBrowsingSession(make_credential("xhs"))
    xhs_secret = FakeSecretStore([make_credential("xhs")])
    xhs_store = SessionStore(xhs_secret)
    xhs_session.exported = make_credential("xhs-rotated")
    xhs_guard = SessionGuard(xhs_session, xhs_store, sleep=no_sleep)

    uc = CrawlProducersUseCase(
        producer_repo=producers,
        paginator=CursorPaginator(source=source, guard=guard, extractor=MediaExtractor(), dedup=dedup, sleep=no_sleep),
        session=browsing_session,
        session_store=session_store,
        sleep=no_sleep,
        clock=lambda: NOW,
        routes={
            ProducerKind.XHS_PERSONAL: CrawlRoute(
                CursorPaginator(source=xhs_source, guard=xhs_guard, extractor=MediaExtractor(), dedup=dedup,
                                sleep=no_sleep),
                xhs_session,
                xhs_store,
            )
        },
    )

    summary = await uc.execute([ProducerKind.XHS_PERSONAL], max_pages=5)

    assert summary.succeeded == 1
    assert source.page_calls == []
    assert xhs_source.page_calls == [("x1", None)]
    assert "XIAOHONGSHU_n1" in post_repo.posts
    assert xhs_secret.saved == [make_credential("xhs-rotated")]


# ─── 소비 ───


async def _seed(post_repo, source, pid: str, hour: int, detail):
    post = Post(platform="WEIBO", platform_id=pid, producer_id="p1", user_id="u1",
                created_at=datetime(2025, 10, 18, hour))
    await post_repo.upsert(post)
    source.details[pid] = detail


@pytest.mark.asyncio
async def test_consume_processes_until_no_pending(consume_use_case, post_repo, source):
    """PENDING이 없을 때까지 처리."""
    await _seed(post_repo, source, "A", 10, make_image_post("A", ["https://img/a1.jpg", "https://img/a2.jpg"]))
    await _seed(post_repo, source, "B", 9, {"id": "B"})

    summary = await consume_use_case().execute()

    assert summary.processed == 2
    assert summary.succeeded == 2
    assert summary.items == 2
    assert {p.status for p in post_repo.posts.values()} == {PostStatus.UPLOADED}


@pytest.mark.asyncio
async def test_consume_respects_max_posts(consume_use_case, post_repo, source):
    """상한만큼만 처리하고 최신 게시물부터."""
    await _seed(post_repo, source, "old", 8, {"id": "old"})
    await _seed(post_repo, source, "new", 11, {"id": "new"})

    summary = await consume_use_case().execute(max_posts=1)

    assert summary.processed == 1
    assert post_repo.posts["WEIBO_new"].status is PostStatus.UPLOADED
    assert post_repo.posts["WEIBO_old"].status is PostStatus.PENDING


@pytest.mark.asyncio
async def test_consume_stops_when_session_is_lost(consume_use_case, post_repo, source):
    """세션을 잃으면 현재 게시물만 FAILED로 두고 멈춘다."""
    await _seed(post_repo, source, "A", 11, SessionExpiredError("weibo"))
    await _seed(post_repo, source, "B", 10, {"id": "B"})

    summary = await consume_use_case().execute()

    assert summary.processed == 1
    assert summary.failed == 1
    assert summary.aborted == 1
    assert post_repo.posts["WEIBO_A"].status is PostStatus.FAILED
    assert post_repo.posts["WEIBO_B"].status is PostStatus.PENDING


@pytest.mark.asyncio
async def test_consume_respects_deadline(consume_use_case, post_repo, source):
    """시간 제한이 지나면 새 게시물을 꺼내지 않는다."""
    await _seed(post_repo, source, "A", 10, {"id": "A"})

    summary = await consume_use_case(deadline=RunDeadline(0)).execute()

    assert summary.processed == 0
    assert summary.deadline_reached is True
    assert post_repo.posts["WEIBO_A"].status is PostStatus.PENDING


@pytest.mark.asyncio
async def test_consume_skips_posts_of_other_platforms(consume_use_case, post_repo, source):
    """소비는 소스 플랫폼(WEIBO)의 게시물만 꺼낸다."""
    await post_repo.upsert(Post(platform="XIAOHONGSHU", platform_id="n1", producer_id="x1", user_id="u",
                                created_at=datetime(2025, 10, 18, 12)))
    await _seed(post_repo, source, "A", 10, {"id": "A"})

    summary = await consume_use_case().execute()

    assert summary.processed == 1
    assert source.detail_calls == ["A"]
    assert post_repo.posts["XIAOHONGSHU_n1"].status is PostStatus.PENDING
