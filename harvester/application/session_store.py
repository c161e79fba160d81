"""세션 자격 증명 저장소.

메모리 캐시 → 로컬 storage state 파일 → 외부 시크릿 저장소 순으로 자격 증명을 찾는다.
갱신은 단일 비행(single-flight): 동시에 여러 호출자가 갱신을 요청해도 외부 조회는 한 번만 일어난다.
동시성 판단은 갱신 세대(generation) 기준이며, 교체된 쿠키를 반영해도 세대는 바뀌지 않는다.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

from harvester.domain.entities import SessionCredential
from harvester.domain.exceptions import CredentialUnavailableError
from harvester.domain.services.secret_store import SecretStore

logger = logging.getLogger(__name__)


class SessionStore:
    def __init__(self, secret_store: SecretStore, cache_path: Optional[str] = None):
        self._secret_store = secret_store
        self._cache_path = Path(cache_path) if cache_path else None
        self._cached: Optional[SessionCredential] = None
        self._lock = asyncio.Lock()
        self._generation = 0
        self.refresh_count = 0

    @property
    def cached(self) -> Optional[SessionCredential]:
        return self._cached

    async def get(self) -> SessionCredential:
        """현재 자격 증명. 없으면 파일, 그다음 시크릿 저장소에서 가져온다."""
        async with self._lock:
            if self._cached is not None:
                return self._cached

            credential = await asyncio.to_thread(self._read_cache_file)
            if credential is not None:
                logger.info(f"로컬 storage state 사용: {self._cache_path}")
            else:
                credential = await self._pull()
            self._cached = credential
            return credential

    @property
    def generation(self) -> int:
        """시크릿 저장소에서 갱신을 마친 횟수. 쿠키 교체 반영으로는 늘지 않는다."""
        return self._generation

    async def refresh(self) -> SessionCredential:
        """만료된 자격 증명을 시크릿 저장소에서 다시 가져온다.

        잠금을 기다리는 동안 다른 호출자가 갱신을 끝냈다면 추가 조회 없이 그 결과를 돌려준다.
        """
        observed = self._generation
        async with self._lock:
            if self._generation != observed and self._cached is not None:
                logger.debug("다른 호출자가 이미 세션을 갱신함 — 캐시 사용")
                return self._cached

            credential = await self._pull()
            self._cached = credential
            self._generation += 1
            self.refresh_count += 1
            logger.info(f"세션 자격 증명 갱신 완료 ({self.refresh_count}회째)")
            return credential

    async def publish_if_rotated(self, current: SessionCredential) -> bool:
        """서버가 쿠키를 교체했다면 시크릿 저장소에 반영한다."""
        async with self._lock:
            if self._cached is not None and self._cached.fingerprint == current.fingerprint:
                return False
            try:
                await self._secret_store.save_credential(current)
            except Exception as e:
                logger.warning(f"교체된 세션 업로드 실패: {e}")
                return False
            self._cached = current
            await asyncio.to_thread(self._write_cache_file, current)
            logger.info("교체된 세션 자격 증명을 시크릿 저장소에 반영")
            return True

    # ─── 내부 ───

    async def _pull(self) -> SessionCredential:
        try:
            credential = await self._secret_store.load_credential()
        except CredentialUnavailableError:
            raise
        except Exception as e:
            raise CredentialUnavailableError(f"시크릿 저장소 조회 실패: {e}") from e
        await asyncio.to_thread(self._write_cache_file, credential)
        return credential

    def _read_cache_file(self) -> Optional[SessionCredential]:
        if self._cache_path is None or not self._cache_path.exists():
            return None
        try:
            data = json.loads(self._cache_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"storage state 파일 읽기 실패: {e}")
            return None
        if not SessionCredential.is_storage_state(data):
            logger.warning(f"storage state 형식이 아님 (cookies/origins 없음): {self._cache_path}")
            return None
        return SessionCredential(storage_state=data)

    def _write_cache_file(self, credential: SessionCredential) -> None:
        if self._cache_path is None:
            return
        try:
            self._cache_path.parent.mkdir(parents=True, exist_ok=True)
            self._cache_path.write_text(
                json.dumps(credential.storage_state, ensure_ascii=False), encoding="utf-8"
            )
        except OSError as e:
            logger.warning(f"storage state 파일 저장 실패: {e}")
