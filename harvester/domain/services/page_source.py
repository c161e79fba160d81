from __future__ import annotations

from typing import Any, Protocol

from harvester.domain.entities import Cursor, FeedPage, Producer


class PageSource(Protocol):
    """SNS 피드 소스 인터페이스.

    브라우징 세션을 통해 페이지 단위로 원본 게시물을 가져온다.
    """

    @property
    def source_name(self) -> str:
        """소스 이름 (weibo, xiaohongshu)."""
        ...

    @property
    def platform(self) -> str:
        """Post 식별자에 쓰이는 플랫폼 키 (WEIBO, XIAOHONGSHU)."""
        ...

    async def fetch_page(self, producer: Producer, cursor: Cursor) -> FeedPage:
        """커서 위치의 피드 한 페이지를 반환."""
        ...

    async def fetch_post_detail(self, platform_id: str) -> dict[str, Any]:
        """게시물 상세 페이로드(미디어 추출 대상)를 반환."""
        ...
