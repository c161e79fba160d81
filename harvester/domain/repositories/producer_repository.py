from __future__ import annotations

from datetime import datetime
from typing import Iterable, Protocol

from harvester.domain.entities import Producer, ProducerKind


class ProducerRepository(Protocol):
    """수집 대상 저장소 인터페이스."""

    async def get_by_kinds(self, kinds: Iterable[ProducerKind]) -> list[Producer]:
        """삭제되지 않은 Producer를 종류별로 조회."""
        ...

    async def touch_last_crawled(self, producer_id: str, when: datetime) -> None:
        """마지막 수집 성공 시각을 갱신."""
        ...
