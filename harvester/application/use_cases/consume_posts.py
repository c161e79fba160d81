"""유즈케이스: PENDING 게시물 소비.

PENDING 게시물이 없을 때까지(또는 상한/시간 제한까지) 하나씩 꺼내 미디어를 수집한다.
"""

from __future__ import annotations

import logging
from typing import Optional

from harvester.application.deadline import RunDeadline
from harvester.application.post_lifecycle import PostLifecycle
from harvester.application.session_store import SessionStore
from harvester.domain.entities import RunSummary
from harvester.domain.services.browsing import BrowsingSession

logger = logging.getLogger(__name__)


class ConsumePostsUseCase:
    def __init__(
        self,
        lifecycle: PostLifecycle,
        session: BrowsingSession,
        session_store: SessionStore,
        deadline: Optional[RunDeadline] = None,
    ):
        self._lifecycle = lifecycle
        self._session = session
        self._store = session_store
        self._deadline = deadline or RunDeadline.unlimited()

    async def execute(self, max_posts: Optional[int] = None) -> RunSummary:
        summary = RunSummary(run="consume")

        try:
            while max_posts is None or summary.processed < max_posts:
                if self._deadline.expired():
                    summary.deadline_reached = True
                    logger.warning("실행 시간 제한 도달 — 소비 중단")
                    break

                post = await self._lifecycle.next_pending()
                if post is None:
                    logger.info("처리할 PENDING 게시물 없음")
                    break

                outcome = await self._lifecycle.process(post)
                summary.processed += 1
                summary.items += outcome.media_uploaded
                if outcome.succeeded:
                    summary.succeeded += 1
                else:
                    summary.failed += 1

                if outcome.session_lost:
                    summary.aborted += 1
                    logger.error("세션을 복구할 수 없어 소비를 중단합니다.")
                    break
        finally:
            try:
                await self._store.publish_if_rotated(await self._session.export_credential())
            except Exception as e:
                logger.warning(f"세션 상태 동기화 실패: {e}")

        summary.finish()
        logger.info(summary.describe())
        return summary
