from __future__ import annotations

from typing import Protocol


class ObjectStore(Protocol):
    """미디어를 게시하는 외부 오브젝트 스토어."""

    async def upload(self, data: bytes, filename: str, mime_type: str) -> str:
        """업로드 후 공개 URL 반환. 실패 시 UploadFailure."""
        ...
