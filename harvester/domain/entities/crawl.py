from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


@dataclass
class Cursor:
    """한 Producer 수집 동안만 유지되는 페이지네이션 상태."""

    since: Optional[str] = None
    page: int = 0

    def advance(self, next_since: str) -> Cursor:
        return Cursor(since=next_since, page=self.page + 1)


@dataclass
class FeedPage:
    """소스가 반환한 한 페이지의 원본 게시물과 다음 커서."""

    raw_posts: list[dict[str, Any]]
    next_cursor: Optional[str] = None


@dataclass
class ProducerCrawlResult:
    producer_id: str
    processed: int = 0  # 새로 저장된 게시물 수
    pages_fetched: int = 0
    aborted: Optional[str] = None


@dataclass
class RunSummary:
    """수집/소비 실행 결과 요약."""

    run: str
    started_at: datetime = field(default_factory=datetime.utcnow)

    completed_at: Optional[datetime] = None
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    aborted: int = 0
    items: int = 0  # 수집: 신규 게시물 수, 소비: 업로드된 미디어 수
    deadline_reached: bool = False

    def finish(self) -> RunSummary:
        self.completed_at = datetime.utcnow()
        return self

    def describe(self) -> str:
        text = (
            f"[{self.run}] 처리 {self.processed}건, 성공 {self.succeeded}건, "
            f"실패 {self.failed}건, 중단 {self.aborted}건, 항목 {self.items}건"
        )
        if self.deadline_reached:
            text += " (실행 시간 제한 도달)"
        return text
