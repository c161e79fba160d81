"""GitHub Gist 기반 세션 시크릿 저장소.

Gist 한 개의 파일(기본 weibo.storage.json)에 Playwright storage state JSON을 보관한다.
내용이 크면 API 응답이 잘리므로(truncated) raw_url로 원문을 다시 받는다.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import httpx

from harvester.domain.entities import SessionCredential
from harvester.domain.exceptions import CredentialUnavailableError

logger = logging.getLogger(__name__)

GIST_API_URL = "https://api.github.com/gists/{gist_id}"


class GistSecretStore:
    def __init__(
        self,
        gist_id: str,
        token: str,
        filename: str = "weibo.storage.json",
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        self._url = GIST_API_URL.format(gist_id=gist_id)
        self._filename = filename
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def load_credential(self) -> SessionCredential:
        try:
            resp = await self._client.get(self._url, headers=self._headers)
            resp.raise_for_status()
            file_info = resp.json().get("files", {}).get(self._filename)
            if not file_info:
                raise CredentialUnavailableError(f"Gist에 {self._filename} 파일이 없습니다.")

            content = file_info.get("content") or ""
            if file_info.get("truncated") and file_info.get("raw_url"):
                logger.debug("Gist 내용이 잘려 raw_url에서 다시 받음")
                raw = await self._client.get(file_info["raw_url"], headers=self._headers)
                raw.raise_for_status()
                content = raw.text
        except httpx.HTTPError as e:
            raise CredentialUnavailableError(f"Gist 조회 실패: {e}") from e

        data = self._parse(content)
        logger.info(f"Gist에서 세션 로드 완료 (쿠키 {len(data['cookies'])}개)")
        return SessionCredential(storage_state=data)

    async def save_credential(self, credential: SessionCredential) -> None:
        body = {
            "files": {
                self._filename: {
                    "content": json.dumps(credential.storage_state, ensure_ascii=False, indent=2),
                }
            }
        }
        resp = await self._client.patch(self._url, headers=self._headers, json=body)
        resp.raise_for_status()
        logger.info("Gist 세션 업데이트 완료")

    def _parse(self, content: str) -> dict[str, Any]:
        try:
            data = json.loads(content)
        except ValueError as e:
            raise CredentialUnavailableError(f"Gist 내용이 JSON이 아닙니다: {e}") from e
        if not SessionCredential.is_storage_state(data):
            raise CredentialUnavailableError("Gist 내용이 storage state 형식이 아닙니다 (cookies/origins 없음).")
        return data
