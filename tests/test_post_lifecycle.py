"""게시물 상태 기계 테스트."""

import pytest

from conftest import FakeDownloader, make_image_post
from harvester.application.ingestion_pipeline import IngestionPipeline
from harvester.application.post_lifecycle import PostLifecycle
from harvester.domain.entities import Post, PostStatus
from harvester.domain.exceptions import InvalidTransition, MalformedPayloadError, SessionExpiredError
from harvester.domain.services.media_extractor import MediaExtractor

A_URLS = [f"https://wx1.sinaimg.cn/large/a{i}.jpg" for i in range(3)]


@pytest.fixture
def make_lifecycle(post_repo, media_repo, source, guard, dedup, transcoder, object_store, no_sleep):
    def _make(downloader=None):
        pipeline = IngestionPipeline(
            downloader=downloader or FakeDownloader(),
            transcoder=transcoder,
            object_store=object_store,
            sleep=no_sleep,
        )
        return PostLifecycle(
            post_repo=post_repo,
            media_repo=media_repo,
            source=source,
            guard=guard,
            extractor=MediaExtractor(),
            dedup=dedup,
            pipeline=pipeline,
        )

    return _make


async def _pending(post_repo, pid: str) -> Post:
    return await post_repo.upsert(Post(platform="WEIBO", platform_id=pid, producer_id="p1", user_id="u1"))


@pytest.mark.asyncio
async def test_post_with_images_and_post_without_media(make_lifecycle, post_repo, media_repo, source):
    """이미지 3장 게시물은 레코드 3건, 미디어 없는 게시물은 레코드 없이 UPLOADED."""
    lifecycle = make_lifecycle()
    a = await _pending(post_repo, "A")
    b = await _pending(post_repo, "B")
    source.details["A"] = make_image_post("A", A_URLS)
    source.details["B"] = {"id": "B", "text": "텍스트만"}

    outcome_a = await lifecycle.process(a)
    outcome_b = await lifecycle.process(b)

    assert outcome_a.status is PostStatus.UPLOADED
    assert outcome_a.media_uploaded == 3
    assert sorted(media_repo.records) == sorted(A_URLS)
    assert all(r.post_id == "WEIBO_A" for r in media_repo.records.values())
    assert outcome_b.status is PostStatus.UPLOADED
    assert outcome_b.media_found == 0
    assert post_repo.status_history == [
        ("WEIBO_A", PostStatus.PROCESSING),
        ("WEIBO_A", PostStatus.UPLOADED),
        ("WEIBO_B", PostStatus.PROCESSING),
        ("WEIBO_B", PostStatus.UPLOADED),
    ]
    assert await lifecycle.next_pending() is None


@pytest.mark.asyncio
async def test_already_recorded_media_is_not_downloaded(make_lifecycle, post_repo, source):
    """미디어가 이미 모두 기록되어 있으면 다운로드 없이 UPLOADED."""
    downloader = FakeDownloader()
    first = await _pending(post_repo, "A")
    source.details["A"] = make_image_post("A", A_URLS)
    await make_lifecycle().process(first)

    second = await _pending(post_repo, "A2")
    source.details["A2"] = make_image_post("A2", A_URLS)
    outcome = await make_lifecycle(downloader).process(second)

    assert downloader.calls == []
    assert outcome.status is PostStatus.UPLOADED
    assert outcome.media_skipped == 3


@pytest.mark.asyncio
async def test_partial_success_is_success(make_lifecycle, post_repo, media_repo, source):
    """일부만 업로드되어도 UPLOADED."""
    post = await _pending(post_repo, "A")
    source.details["A"] = make_image_post("A", A_URLS)

    outcome = await make_lifecycle(FakeDownloader(failing={A_URLS[0]})).process(post)

    assert outcome.status is PostStatus.UPLOADED
    assert outcome.media_uploaded == 2
    assert len(media_repo.records) == 2


@pytest.mark.asyncio
async def test_all_items_failing_marks_post_failed(make_lifecycle, post_repo, source):
    """모든 항목이 실패하면 FAILED."""
    post = await _pending(post_repo, "A")
    source.details["A"] = make_image_post("A", A_URLS)

    outcome = await make_lifecycle(FakeDownloader(failing=set(A_URLS))).process(post)

    assert outcome.status is PostStatus.FAILED
    assert post_repo.posts["WEIBO_A"].status is PostStatus.FAILED


@pytest.mark.asyncio
async def test_malformed_detail_marks_post_failed(make_lifecycle, post_repo, source):
    """상세 응답 형식 오류는 FAILED이며 세션은 유지."""
    post = await _pending(post_repo, "A")
    source.details["A"] = MalformedPayloadError("$render_data 없음")

    outcome = await make_lifecycle().process(post)

    assert outcome.status is PostStatus.FAILED
    assert outcome.session_lost is False
    assert source.detail_calls == ["A"]


@pytest.mark.asyncio
async def test_unrecoverable_session_marks_post_failed(make_lifecycle, post_repo, source):
    """세션을 복구하지 못하면 FAILED이고 session_lost 표시."""
    post = await _pending(post_repo, "A")
    source.details["A"] = SessionExpiredError("weibo", "passport.weibo.com")

    outcome = await make_lifecycle().process(post)

    assert outcome.status is PostStatus.FAILED
    assert outcome.session_lost is True
    assert len(source.detail_calls) == 3


@pytest.mark.asyncio
async def test_credential_apply_crash_marks_post_failed(make_lifecycle, post_repo, source, browsing_session):
    """자격 증명 적용이 실패해도 게시물은 PROCESSING에 남지 않고 FAILED."""
    post = await _pending(post_repo, "A")
    source.details["A"] = SessionExpiredError("weibo")
    browsing_session.apply_error = RuntimeError("Target page, context or browser has been closed")

    outcome = await make_lifecycle().process(post)

    assert outcome.status is PostStatus.FAILED
    assert outcome.session_lost is True
    assert post_repo.posts["WEIBO_A"].status is PostStatus.FAILED


@pytest.mark.asyncio
async def test_terminal_states_reject_transitions(make_lifecycle, post_repo):
    """종료 상태에서는 어떤 전이도 허용되지 않는다."""
    lifecycle = make_lifecycle()
    post = await _pending(post_repo, "A")

    with pytest.raises(InvalidTransition):
        await lifecycle.transition(post, PostStatus.UPLOADED)

    await lifecycle.transition(post, PostStatus.PROCESSING)
    await lifecycle.transition(post, PostStatus.FAILED)
    with pytest.raises(InvalidTransition):
        await lifecycle.transition(post, PostStatus.PROCESSING)
