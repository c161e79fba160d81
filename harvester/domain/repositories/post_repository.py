from __future__ import annotations

from typing import Iterable, Protocol

from harvester.domain.entities import Post, PostStatus


class PostRepository(Protocol):
    """게시물 저장소 인터페이스 (의존성 역전)."""

    async def existing_platform_ids(self, platform: str, platform_ids: Iterable[str]) -> set[str]:
        """이미 저장된 platform_id 집합을 한 번의 일괄 조회로 반환."""
        ...

    async def upsert(self, post: Post) -> Post:
        """(platform, platform_id) 기준 upsert.

        신규면 PENDING 상태로 생성하고, 기존이면 user_id/producer_id/created_at만 갱신한다.
        """
        ...

    async def get_next_pending(self, platform: str | None = None) -> Post | None:
        """PENDING 게시물 하나를 조회 (최신 우선). platform을 주면 해당 플랫폼만."""
        ...

    async def update_status(self, post: Post, status: PostStatus) -> Post: ...
