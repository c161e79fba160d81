"""게시물 상태 기계.

PENDING → PROCESSING → {UPLOADED | FAILED}

- PENDING: 수집 중 처음 발견했을 때의 초기 상태
- UPLOADED: 미디어 레코드가 하나라도 생성됨 (부분 성공도 성공), 또는 처리할 미디어가 없음
- FAILED: 추출/수집 오류. 종료 상태이며 자동 재시도하지 않는다 (운영자가 PENDING으로 되돌려야 함)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from harvester.application.dedup_gate import DedupGate
from harvester.application.ingestion_pipeline import IngestionPipeline
from harvester.application.session_guard import SessionGuard
from harvester.domain.entities import Post, PostStatus
from harvester.domain.exceptions import (
    CollectionError,
    InvalidTransition,
    SessionRefreshExhausted,
)
from harvester.domain.repositories.media_repository import MediaRepository
from harvester.domain.repositories.post_repository import PostRepository
from harvester.domain.services.media_extractor import MediaExtractor
from harvester.domain.services.page_source import PageSource

logger = logging.getLogger(__name__)

TRANSITIONS: dict[PostStatus, frozenset[PostStatus]] = {
    PostStatus.PENDING: frozenset({PostStatus.PROCESSING}),
    PostStatus.PROCESSING: frozenset({PostStatus.UPLOADED, PostStatus.FAILED}),
    PostStatus.UPLOADED: frozenset(),
    PostStatus.FAILED: frozenset(),
}


@dataclass
class PostOutcome:
    post: Post
    status: PostStatus
    media_found: int = 0
    media_uploaded: int = 0
    media_skipped: int = 0
    error: Optional[str] = None
    session_lost: bool = False

    @property
    def succeeded(self) -> bool:
        return self.status is PostStatus.UPLOADED


class PostLifecycle:
    def __init__(
        self,
        post_repo: PostRepository,
        media_repo: MediaRepository,
        source: PageSource,
        guard: SessionGuard,
        extractor: MediaExtractor,
        dedup: DedupGate,
        pipeline: IngestionPipeline,
        concurrency_limit: Optional[int] = None,
    ):
        self._post_repo = post_repo
        self._media_repo = media_repo
        self._source = source
        self._guard = guard
        self._extractor = extractor
        self._dedup = dedup
        self._pipeline = pipeline
        self._concurrency_limit = concurrency_limit

    async def transition(self, post: Post, target: PostStatus) -> Post:
        if target not in TRANSITIONS[post.status]:
            raise InvalidTransition(post.key, post.status.value, target.value)
        updated = await self._post_repo.update_status(post, target)
        post.status = target
        return updated

    async def next_pending(self) -> Optional[Post]:
        return await self._post_repo.get_next_pending(self._source.platform)

    async def process(self, post: Post) -> PostOutcome:
        """PENDING 게시물 하나를 끝까지 처리한다. 반환 시 게시물은 항상 종료 상태."""
        await self.transition(post, PostStatus.PROCESSING)
        self._guard.reset()

        try:
            detail = await self._guard.run(
                lambda: self._source.fetch_post_detail(post.platform_id),
                operation=f"{self._source.source_name}:detail:{post.platform_id}",
            )
            descriptors = self._extractor.extract(detail, post.url)
        except CollectionError as e:
            logger.error(f"[{post.key}] 상세 조회/추출 실패: {e}")
            await self.transition(post, PostStatus.FAILED)
            return PostOutcome(
                post=post,
                status=PostStatus.FAILED,
                error=str(e),
                session_lost=isinstance(e, SessionRefreshExhausted),
            )

        try:
            to_ingest = await self._dedup.filter_media(descriptors)
            records = await self._pipeline.ingest(to_ingest, post, self._concurrency_limit)
            if records:
                await self._media_repo.insert_many(records)
        except Exception as e:
            logger.error(f"[{post.key}] 미디어 수집 실패: {e}", exc_info=True)
            await self.transition(post, PostStatus.FAILED)
            return PostOutcome(
                post=post, status=PostStatus.FAILED, media_found=len(descriptors), error=str(e)
            )

        if records or not to_ingest:
            status = PostStatus.UPLOADED
        else:
            status = PostStatus.FAILED
        await self.transition(post, status)

        outcome = PostOutcome(
            post=post,
            status=status,
            media_found=len(descriptors),
            media_uploaded=len(records),
            media_skipped=len(descriptors) - len(to_ingest),
        )
        logger.info(
            f"[{post.key}] {status.value}: 미디어 {outcome.media_found}건, "
            f"업로드 {outcome.media_uploaded}건, 기존 {outcome.media_skipped}건"
        )
        return outcome
