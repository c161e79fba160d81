"""유즈케이스: Producer 수집 실행.

Producer를 하나씩 순서대로 돌며 CursorPaginator로 새 게시물을 PENDING 상태로 저장한다.
Producer 사이에는 고정 대기를 둔다 (소스에 대한 예의/속도 제한 정책).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Optional

from harvester.application.cursor_paginator import CursorPaginator
from harvester.application.deadline import RunDeadline
from harvester.application.retry import SleepFn
from harvester.application.session_store import SessionStore
from harvester.domain.entities import ProducerKind, RunSummary
from harvester.domain.repositories.producer_repository import ProducerRepository
from harvester.domain.services.browsing import BrowsingSession

logger = logging.getLogger(__name__)


@dataclass
class CrawlRoute:
    """한 플랫폼의 수집 경로: 페이지 순회기와 그 순회기가 쓰는 브라우징 세션."""

    paginator: CursorPaginator
    session: BrowsingSession
    session_store: SessionStore


class CrawlProducersUseCase:
    def __init__(
        self,
        producer_repo: ProducerRepository,
        paginator: CursorPaginator,
        session: BrowsingSession,
        session_store: SessionStore,
        producer_delay_seconds: float = 5.0,
        deadline: Optional[RunDeadline] = None,
        sleep: Optional[SleepFn] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
        routes: Optional[dict[ProducerKind, CrawlRoute]] = None,
    ):
        self._producer_repo = producer_repo
        self._default_route = CrawlRoute(paginator, session, session_store)
        self._routes = routes or {}
        self._producer_delay = producer_delay_seconds
        self._deadline = deadline or RunDeadline.unlimited()
        self._sleep = sleep or asyncio.sleep
        self._clock = clock

    async def execute(self, kinds: Iterable[ProducerKind], max_pages: int) -> RunSummary:
        summary = RunSummary(run="crawl")
        producers = await self._producer_repo.get_by_kinds(list(kinds))
        logger.info(f"수집 시작: Producer {len(producers)}개, 최대 {max_pages}페이지")

        for i, producer in enumerate(producers):
            if self._deadline.expired():
                summary.deadline_reached = True
                logger.warning("실행 시간 제한 도달 — 남은 Producer 건너뜀")
                break

            logger.info(f"[총 진행 {i + 1}/{len(producers)}] {producer.label} ({producer.kind.value}) 수집 시작")
            route = self._routes.get(producer.kind, self._default_route)
            result = await route.paginator.crawl(producer, max_pages)

            summary.processed += 1
            summary.items += result.processed
            if result.aborted == "deadline":
                summary.deadline_reached = True
            elif result.aborted:
                summary.aborted += 1
            else:
                summary.succeeded += 1

            if result.processed > 0:
                await self._producer_repo.touch_last_crawled(producer.id, self._clock())
                logger.info(f"[{producer.label}] 마지막 수집 시각 갱신")
            logger.info(
                f"[총 진행 {i + 1}/{len(producers)}] {producer.label} 완료: "
                f"신규 {result.processed}건, {result.pages_fetched}페이지"
            )

            await self._sync_credential(route)

            if i < len(producers) - 1 and not self._deadline.expired():
                await self._sleep(self._producer_delay)

        summary.finish()
        logger.info(summary.describe())
        return summary

    @staticmethod
    async def _sync_credential(route: CrawlRoute) -> None:
        try:
            await route.session_store.publish_if_rotated(await route.session.export_credential())
        except Exception as e:
            logger.warning(f"세션 상태 동기화 실패: {e}")
