from __future__ import annotations

from typing import Iterable, Protocol

from harvester.domain.entities import MediaRecord


class MediaRepository(Protocol):
    """미디어 레코드 저장소 인터페이스."""

    async def existing_origin_urls(self, urls: Iterable[str]) -> set[str]:
        """이미 업로드된 원본 URL 집합을 한 번의 일괄 조회로 반환."""
        ...

    async def insert_many(self, records: list[MediaRecord]) -> int:
        """여러 레코드 일괄 저장. 저장된 건수 반환."""
        ...
