from __future__ import annotations

from typing import Protocol

from harvester.domain.entities import SessionCredential


class SecretStore(Protocol):
    """세션 자격 증명을 보관하는 외부 시크릿 저장소."""

    async def load_credential(self) -> SessionCredential: ...

    async def save_credential(self, credential: SessionCredential) -> None:
        """서버가 교체한 자격 증명을 다시 올린다."""
        ...
