from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

POST_URL_TEMPLATES = {
    "WEIBO": "https://m.weibo.cn/detail/{id}",
    "XIAOHONGSHU": "https://www.xiaohongshu.com/explore/{id}",
}


class PostStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    UPLOADED = "UPLOADED"
    FAILED = "FAILED"


@dataclass
class Post:
    """수집된 게시물 도메인 엔티티.

    식별자는 (platform, platform_id) 쌍이며 전역적으로 유일하다.
    """

    platform: str
    platform_id: str
    producer_id: str
    user_id: str

    id: Optional[str] = None
    created_at: Optional[datetime] = None
    status: PostStatus = PostStatus.PENDING
    discovered_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def key(self) -> str:
        """저장소 문서 ID로 쓰이는 자연 키."""
        return f"{self.platform}_{self.platform_id}"

    @property
    def url(self) -> str:
        template = POST_URL_TEMPLATES.get(self.platform, POST_URL_TEMPLATES["WEIBO"])
        return template.format(id=self.platform_id)
