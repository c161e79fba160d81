"""원본 미디어 다운로더 (httpx 스트리밍).

Weibo CDN은 Referer가 없으면 403을 돌려준다.
응답을 조각으로 읽으며 용량 상한을 넘으면 즉시 중단한다.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from harvester.domain.exceptions import DownloadError

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/126.0 Safari/537.36"
)


class HttpMediaDownloader:
    def __init__(
        self,
        max_bytes: int = 50 * 1024 * 1024,
        timeout: float = 60.0,
        referer: str = "https://weibo.com/",
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._max_bytes = max_bytes
        self._headers = {"Referer": referer, "User-Agent": DEFAULT_USER_AGENT}
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)
        self._owns_client = client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def download(self, url: str) -> bytes:
        try:
            async with self._client.stream("GET", url, headers=self._headers) as resp:
                if resp.status_code >= 400:
                    raise DownloadError(f"HTTP {resp.status_code}: {url}")

                declared = resp.headers.get("content-length")
                if declared and declared.isdigit() and int(declared) > self._max_bytes:
                    raise DownloadError(f"용량 상한 초과 ({declared} bytes): {url}")

                chunks: list[bytes] = []
                total = 0
                async for chunk in resp.aiter_bytes():
                    total += len(chunk)
                    if total > self._max_bytes:
                        raise DownloadError(f"용량 상한 초과 (>{self._max_bytes} bytes): {url}")
                    chunks.append(chunk)
        except httpx.HTTPError as e:
            raise DownloadError(f"다운로드 실패 {url}: {e}") from e

        data = b"".join(chunks)
        if not data:
            raise DownloadError(f"빈 응답: {url}")
        logger.debug(f"다운로드 완료 {url} ({total} bytes)")
        return data
