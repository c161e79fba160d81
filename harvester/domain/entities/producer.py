from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class ProducerKind(str, Enum):
    PERSONAL = "personal-account"
    TOPIC = "topic"
    XHS_PERSONAL = "xhs-personal-account"


@dataclass
class Producer:
    """수집 대상 (Weibo 개인 계정·슈퍼토픽, 小红书 개인 계정)."""

    id: str
    source_id: str  # Weibo 개인 계정은 uid, 토픽은 containerid, 小红书는 user_id 또는 프로필 URL
    kind: ProducerKind

    name: Optional[str] = None
    last_crawled_at: Optional[datetime] = None

    @property
    def label(self) -> str:
        return self.name or self.source_id
