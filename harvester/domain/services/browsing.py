from __future__ import annotations

from typing import Any, Callable, Optional, Protocol

from harvester.domain.entities import SessionCredential


class BrowsingSession(Protocol):
    """페이지 이동 + 스크립트 평가 능력.

    하나의 장수 세션을 직렬로 재사용한다. 이전 이동이 끝나야 다음 이동을 시작한다.
    """

    @property
    def credential(self) -> Optional[SessionCredential]: ...

    async def navigate(self, url: str, wait_until: str = "domcontentloaded", timeout_ms: int = 30000) -> Optional[int]:
        """이동 후 HTTP 상태 코드 반환."""
        ...

    async def evaluate(self, script: str) -> Any: ...

    async def raw_text_body(self) -> str: ...

    @property
    def current_url(self) -> str: ...

    async def apply_credential(self, credential: SessionCredential) -> None: ...

    async def export_credential(self) -> SessionCredential: ...


class ScrollingSession(BrowsingSession, Protocol):
    """무한 스크롤 페이지에서 스크롤로 발생한 API 응답을 가로채는 능력."""

    async def scroll_for_json(
        self,
        url_fragment: str,
        accept: Optional[Callable[[Any], bool]] = None,
        max_scrolls: int = 12,
    ) -> Any:
        """url_fragment가 포함된 응답 중 accept를 통과한 첫 JSON 본문. 끝내 없으면 None."""
        ...
