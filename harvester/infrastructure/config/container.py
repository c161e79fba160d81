"""의존성 주입 컨테이너.

클린 아키텍처에서 모든 의존성 조립은 최외곽(Composition Root)에서 이루어진다.
이 컨테이너가 설정에 따라 구체 구현을 생성하고 유즈케이스에 주입한다.
"""

from __future__ import annotations

from typing import Iterable

from harvester.application.cursor_paginator import CursorPaginator
from harvester.application.deadline import RunDeadline
from harvester.application.dedup_gate import DedupGate
from harvester.application.ingestion_pipeline import IngestionPipeline
from harvester.application.post_lifecycle import PostLifecycle
from harvester.application.session_guard import SessionGuard
from harvester.application.session_store import SessionStore
from harvester.application.use_cases.consume_posts import ConsumePostsUseCase
from harvester.application.use_cases.crawl_producers import CrawlProducersUseCase, CrawlRoute
from harvester.domain.entities import ProducerKind
from harvester.domain.services.failure_classifier import (
    DEFAULT_SESSION_KEYWORDS,
    KeywordFailureClassifier,
)
from harvester.domain.services.media_extractor import MediaExtractor
from harvester.infrastructure.collectors.crawl_session import CrawlSession
from harvester.infrastructure.collectors.weibo_source import WeiboSource
from harvester.infrastructure.collectors.xiaohongshu_source import XiaohongshuSource
from harvester.infrastructure.config.settings import AppConfig, Settings
from harvester.infrastructure.database.repositories.media_repo import FirestoreMediaRepository
from harvester.infrastructure.database.repositories.post_repo import FirestorePostRepository
from harvester.infrastructure.database.repositories.producer_repo import (
    FirestoreProducerRepository,
)
from harvester.infrastructure.media.downloader import HttpMediaDownloader
from harvester.infrastructure.media.transcoder import PillowTranscoder
from harvester.infrastructure.secrets.gist_store import GistSecretStore
from harvester.infrastructure.storage.gallery_uploader import GalleryUploader

WEIBO_KINDS = (ProducerKind.PERSONAL, ProducerKind.TOPIC)


class Container:
    """애플리케이션 의존성 컨테이너."""

    def __init__(
        self,
        settings: Settings,
        app_config: AppConfig,
        firestore_db,
    ):
        self.settings = settings
        self.config = app_config

        # ─── Repositories (Firebase Firestore) ───
        self.producer_repo = FirestoreProducerRepository(firestore_db)
        self.post_repo = FirestorePostRepository(firestore_db)
        self.media_repo = FirestoreMediaRepository(firestore_db)

        # ─── 세션 ───
        self.secret_store = GistSecretStore(
            gist_id=settings.gist_id,
            token=settings.gist_token,
            filename=settings.gist_storage_state_filename,
        )
        self.session_store = SessionStore(self.secret_store, cache_path=settings.storage_state_path)
        self.session = CrawlSession(app_config.browser)

        self.session_keywords = app_config.session.session_keywords or DEFAULT_SESSION_KEYWORDS
        self.guard = self._guard_for(self.session, self.session_store)

        # ─── 小红书 세션 (같은 Gist의 별도 파일, 필요할 때만 연다) ───
        self.xhs_secret_store = GistSecretStore(
            gist_id=settings.gist_id,
            token=settings.gist_token,
            filename=settings.gist_xhs_storage_state_filename,
        )
        self.xhs_session_store = SessionStore(self.xhs_secret_store, cache_path=settings.xhs_storage_state_path)
        self.xhs_session = CrawlSession(app_config.browser, user_agents=app_config.browser.xhs_user_agents)
        self.xhs_guard = self._guard_for(self.xhs_session, self.xhs_session_store)

        # ─── 수집/미디어 ───
        self.source = WeiboSource(self.session, login_markers=self.session_keywords)
        self.xhs_source = XiaohongshuSource(
            self.xhs_session,
            login_markers=self.session_keywords,
            max_scrolls=app_config.crawl.xhs_max_scrolls,
        )
        self.extractor = MediaExtractor()
        self.dedup = DedupGate(self.post_repo, self.media_repo)

        ingestion = app_config.ingestion
        self.downloader = HttpMediaDownloader(
            max_bytes=ingestion.max_download_mb * 1024 * 1024,
            timeout=ingestion.download_timeout_seconds,
            referer=ingestion.referer,
        )
        self.uploader = GalleryUploader(settings.gallery_url, timeout=ingestion.upload_timeout_seconds)
        self.transcoder = PillowTranscoder(
            quality=ingestion.image_quality,
            thumbnail_max_side=ingestion.thumbnail_max_side,
            thumbnail_quality=ingestion.thumbnail_quality,
        )
        self.pipeline = IngestionPipeline(
            downloader=self.downloader,
            transcoder=self.transcoder,
            object_store=self.uploader,
            concurrency_limit=ingestion.concurrency,
            upload_attempts=ingestion.upload_attempts,
            upload_backoff_seconds=ingestion.upload_backoff_seconds,
            upload_backoff_factor=ingestion.upload_backoff_factor,
        )

        # 프로세스 전체에 하나의 시간 제한
        hours = app_config.run.deadline_hours
        self.deadline = RunDeadline(hours * 3600 if hours else None)

    async def open_session(self, kinds: Iterable[ProducerKind] = WEIBO_KINDS) -> None:
        """필요한 플랫폼의 자격 증명을 받아 브라우저를 연다."""
        kinds = set(kinds)
        if kinds & set(WEIBO_KINDS):
            await self.session.open(await self.session_store.get())
        if ProducerKind.XHS_PERSONAL in kinds:
            await self.xhs_session.open(await self.xhs_session_store.get())

    async def aclose(self) -> None:
        await self.session.close()
        await self.xhs_session.close()
        await self.downloader.aclose()
        await self.uploader.aclose()
        await self.secret_store.aclose()
        await self.xhs_secret_store.aclose()

    def _guard_for(self, session: CrawlSession, store: SessionStore) -> SessionGuard:
        session_cfg = self.config.session
        return SessionGuard(
            session=session,
            store=store,
            classifier=KeywordFailureClassifier(self.session_keywords),
            max_refreshes=session_cfg.max_refreshes,
            transient_attempts=session_cfg.transient_retries + 1,
            transient_backoff_seconds=session_cfg.transient_backoff_seconds,
        )

    # ─── Use Case 팩토리 ───

    def crawl_producers_use_case(self) -> CrawlProducersUseCase:
        crawl = self.config.crawl
        incremental = {
            ProducerKind.PERSONAL: crawl.incremental_pages_personal,
            ProducerKind.TOPIC: crawl.incremental_pages_topic,
            ProducerKind.XHS_PERSONAL: crawl.incremental_pages_xhs,
        }
        paginator = CursorPaginator(
            source=self.source,
            guard=self.guard,
            extractor=self.extractor,
            dedup=self.dedup,
            page_delay_seconds=crawl.page_delay_seconds,
            incremental_max_pages=incremental,
            deadline=self.deadline,
        )
        xhs_paginator = CursorPaginator(
            source=self.xhs_source,
            guard=self.xhs_guard,
            extractor=self.extractor,
            dedup=self.dedup,
            page_delay_seconds=crawl.page_delay_seconds,
            incremental_max_pages=incremental,
            deadline=self.deadline,
        )
        return CrawlProducersUseCase(
            producer_repo=self.producer_repo,
            paginator=paginator,
            session=self.session,
            session_store=self.session_store,
            producer_delay_seconds=crawl.producer_delay_seconds,
            deadline=self.deadline,
            routes={
                ProducerKind.XHS_PERSONAL: CrawlRoute(xhs_paginator, self.xhs_session, self.xhs_session_store),
            },
        )

    def consume_posts_use_case(self) -> ConsumePostsUseCase:
        lifecycle = PostLifecycle(
            post_repo=self.post_repo,
            media_repo=self.media_repo,
            source=self.source,
            guard=self.guard,
            extractor=self.extractor,
            dedup=self.dedup,
            pipeline=self.pipeline,
        )
        return ConsumePostsUseCase(
            lifecycle=lifecycle,
            session=self.session,
            session_store=self.session_store,
            deadline=self.deadline,
        )
