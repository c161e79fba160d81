from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class MediaKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


@dataclass(frozen=True)
class MediaDescriptor:
    """게시물 페이로드에서 추출한 미디어 참조. 저장하지 않는다."""

    origin_url: str
    kind: MediaKind
    width: Optional[int] = None
    height: Optional[int] = None
    post_url: Optional[str] = None


@dataclass
class MediaRecord:
    """업로드에 성공한 미디어. origin_url이 중복 제거 키."""

    origin_url: str
    gallery_url: str
    kind: MediaKind
    post_id: str

    id: Optional[str] = None
    thumbnail_url: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    user_id: Optional[str] = None
    post_url: Optional[str] = None
    status: str = "UPLOADED"
    created_at: datetime = field(default_factory=datetime.utcnow)
