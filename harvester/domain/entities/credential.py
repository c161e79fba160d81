from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class SessionCredential:
    """Playwright storage state 묶음 (cookies + origins).

    만료 시각은 알 수 없다. 유효성은 실행 중 실패 분류로만 판단한다.
    """

    storage_state: dict[str, Any]
    loaded_at: datetime = field(default_factory=datetime.utcnow, compare=False)

    @property
    def cookies(self) -> list[dict[str, Any]]:
        return list(self.storage_state.get("cookies", []))

    @property
    def fingerprint(self) -> str:
        """쿠키 이름/값/도메인 기반 해시. 서버 측 쿠키 교체 감지에 사용."""
        parts = sorted(
            f"{c.get('domain', '')}|{c.get('name', '')}={c.get('value', '')}"
            for c in self.cookies
        )
        return hashlib.sha256("\n".join(parts).encode("utf-8")).hexdigest()

    @staticmethod
    def is_storage_state(data: Any) -> bool:
        return (
            isinstance(data, dict)
            and isinstance(data.get("cookies"), list)
            and isinstance(data.get("origins"), list)
        )
