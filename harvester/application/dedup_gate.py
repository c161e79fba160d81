"""중복 제거 게이트.

게시물은 (platform, platform_id) 기준 upsert로, 미디어는 원본 URL 집합 조회로 걸러낸다.
두 경우 모두 페이지(또는 게시물)당 한 번의 일괄 조회만 한다.
"""

from __future__ import annotations

import logging

from harvester.domain.entities import MediaDescriptor, Post
from harvester.domain.repositories.media_repository import MediaRepository
from harvester.domain.repositories.post_repository import PostRepository

logger = logging.getLogger(__name__)


class DedupGate:
    def __init__(self, post_repo: PostRepository, media_repo: MediaRepository):
        self._post_repo = post_repo
        self._media_repo = media_repo

    async def admit_posts(self, posts: list[Post]) -> list[Post]:
        """모든 게시물을 upsert하고, 처음 본 게시물만 반환한다."""
        if not posts:
            return []

        unique: dict[tuple[str, str], Post] = {}
        for post in posts:
            unique.setdefault((post.platform, post.platform_id), post)

        known: set[tuple[str, str]] = set()
        by_platform: dict[str, list[str]] = {}
        for platform, platform_id in unique:
            by_platform.setdefault(platform, []).append(platform_id)
        for platform, ids in by_platform.items():
            existing = await self._post_repo.existing_platform_ids(platform, ids)
            known.update((platform, pid) for pid in existing)

        new_posts: list[Post] = []
        for key, post in unique.items():
            await self._post_repo.upsert(post)
            if key not in known:
                new_posts.append(post)

        logger.debug(f"게시물 {len(unique)}건 중 신규 {len(new_posts)}건")
        return new_posts

    async def filter_media(self, descriptors: list[MediaDescriptor]) -> list[MediaDescriptor]:
        """이미 업로드된 원본 URL을 제외한 목록을 반환한다."""
        unique: dict[str, MediaDescriptor] = {}
        for d in descriptors:
            unique.setdefault(d.origin_url, d)
        if not unique:
            return []

        existing = await self._media_repo.existing_origin_urls(list(unique))
        remaining = [d for url, d in unique.items() if url not in existing]
        if existing:
            logger.info(f"이미 업로드된 미디어 {len(existing)}건 건너뜀")
        return remaining
