"""커서 기반 페이지네이션.

한 Producer의 피드를 페이지 단위로 가져온다. 종료 조건(순서대로):
 (a) 소스가 다음 커서를 주지 않음
 (b) 최대 페이지 수 도달
 (c) 페이지의 수집 대상 게시물이 전부 이미 알려진 것 (피드는 최신순이므로 더 볼 필요 없음)
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Optional

from harvester.application.deadline import RunDeadline
from harvester.application.dedup_gate import DedupGate
from harvester.application.retry import SleepFn
from harvester.application.session_guard import SessionGuard
from harvester.domain.entities import Cursor, Post, Producer, ProducerCrawlResult, ProducerKind
from harvester.domain.exceptions import (
    MalformedPayloadError,
    ProducerAborted,
)
from harvester.domain.services.media_extractor import MediaExtractor
from harvester.domain.services.page_source import PageSource

logger = logging.getLogger(__name__)

CREATED_AT_FORMAT = "%a %b %d %H:%M:%S %z %Y"

DEFAULT_INCREMENTAL_MAX_PAGES = {
    ProducerKind.PERSONAL: 1,
    ProducerKind.TOPIC: 5,
    ProducerKind.XHS_PERSONAL: 5,
}


def parse_created_at(value: Any) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.strptime(value, CREATED_AT_FORMAT)
    except ValueError:
        return None


class CursorPaginator:
    def __init__(
        self,
        source: PageSource,
        guard: SessionGuard,
        extractor: MediaExtractor,
        dedup: DedupGate,
        page_delay_seconds: float = 5.0,
        incremental_max_pages: Optional[dict[ProducerKind, int]] = None,
        deadline: Optional[RunDeadline] = None,
        sleep: Optional[SleepFn] = None,
    ):
        self._source = source
        self._guard = guard
        self._extractor = extractor
        self._dedup = dedup
        self._page_delay = page_delay_seconds
        self._incremental = incremental_max_pages or DEFAULT_INCREMENTAL_MAX_PAGES
        self._deadline = deadline or RunDeadline.unlimited()
        self._sleep = sleep or asyncio.sleep

    def effective_max_pages(self, producer: Producer, max_pages: int) -> int:
        """이전에 수집한 적이 있으면 최신 페이지만 보도록 줄인다."""
        if producer.last_crawled_at is None:
            return max_pages
        return min(self._incremental.get(producer.kind, 1), max_pages)

    async def crawl(self, producer: Producer, max_pages: int) -> ProducerCrawlResult:
        result = ProducerCrawlResult(producer_id=producer.id)
        limit = self.effective_max_pages(producer, max_pages)
        if producer.last_crawled_at is not None:
            logger.info(f"[{producer.label}] 이전 수집 기록 있음 — 최대 {limit}페이지로 제한")

        self._guard.reset()
        cursor = Cursor()

        for page_index in range(limit):
            if self._deadline.expired():
                result.aborted = "deadline"
                break

            progress = f"[{producer.label}][페이지 {page_index + 1}/{limit}]"
            try:
                page = await self._guard.run(
                    lambda: self._source.fetch_page(producer, cursor),
                    operation=f"{self._source.source_name}:{producer.label}",
                )
            except ProducerAborted as e:
                logger.error(f"{progress} 수집 중단: {e}")
                result.aborted = str(e)
                break
            except MalformedPayloadError as e:
                logger.warning(f"{progress} 응답 형식 오류로 종료: {e}")
                result.aborted = str(e)
                break

            result.pages_fetched += 1
            posts = self._qualifying_posts(producer, page.raw_posts)
            new_posts = await self._dedup.admit_posts(posts)
            result.processed += len(new_posts)
            logger.info(
                f"{progress} 게시물 {len(page.raw_posts)}건, 미디어 포함 {len(posts)}건, "
                f"신규 {len(new_posts)}건"
            )

            if not page.next_cursor:
                logger.info(f"{progress} 더 이상 데이터 없음")
                break
            if page_index + 1 >= limit:
                break
            if posts and not new_posts:
                logger.info(f"{progress} 모두 이미 수집된 게시물 — 조기 종료")
                break

            cursor = cursor.advance(page.next_cursor)
            await self._sleep(self._page_delay)

        return result

    def _qualifying_posts(self, producer: Producer, raw_posts: list[dict[str, Any]]) -> list[Post]:
        posts: list[Post] = []
        for raw in raw_posts:
            try:
                if not self._extractor.qualifies(raw):
                    continue
                posts.append(self._to_post(producer, raw))
            except MalformedPayloadError as e:
                logger.warning(f"[{producer.label}] 게시물 건너뜀: {e}")
        return posts

    def _to_post(self, producer: Producer, raw: dict[str, Any]) -> Post:
        platform_id = raw.get("id") or raw.get("mid")
        if not platform_id:
            raise MalformedPayloadError("게시물 id 없음")
        user = raw.get("user") if isinstance(raw.get("user"), dict) else {}
        user_id = user.get("id") or producer.source_id
        return Post(
            platform=self._source.platform,
            platform_id=str(platform_id),
            producer_id=producer.id,
            user_id=str(user_id),
            created_at=parse_created_at(raw.get("created_at")),
        )
