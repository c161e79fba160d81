"""갤러리(오브젝트 스토어) 업로더.

POST {gallery}/upload 에 multipart 'file' 필드로 올리면
[{"src": "/file/xxx.webp"}] 형태로 경로를 돌려준다. 공개 URL은 갤러리 주소 + src.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from harvester.domain.exceptions import UploadFailure

logger = logging.getLogger(__name__)


class GalleryUploader:
    def __init__(
        self,
        base_url: str,
        timeout: float = 120.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def upload(self, data: bytes, filename: str, mime_type: str) -> str:
        try:
            resp = await self._client.post(
                f"{self._base_url}/upload",
                files={"file": (filename, data, mime_type)},
            )
        except httpx.HTTPError as e:
            raise UploadFailure(f"업로드 요청 실패 {filename}: {e}") from e

        if resp.status_code >= 400:
            raise UploadFailure(f"업로드 실패 {filename}: HTTP {resp.status_code} {resp.text[:200]}")

        try:
            payload = resp.json()
            src = payload[0]["src"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise UploadFailure(f"업로드 응답 형식 오류 {filename}: {resp.text[:200]}") from e
        if not isinstance(src, str) or not src:
            raise UploadFailure(f"업로드 응답에 src 없음: {filename}")

        url = src if src.startswith("http") else f"{self._base_url}{src}"
        logger.debug(f"업로드 완료 {filename} → {url}")
        return url
