from __future__ import annotations

import time
from typing import Callable, Optional


class RunDeadline:
    """프로세스 전체 실행 시간 제한. 만료되면 새 작업을 받지 않는다."""

    def __init__(self, seconds: Optional[float], clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._expires_at = None if seconds is None else clock() + seconds

    @classmethod
    def unlimited(cls) -> RunDeadline:
        return cls(None)

    def remaining(self) -> Optional[float]:
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._clock())

    def expired(self) -> bool:
        return self._expires_at is not None and self._clock() >= self._expires_at
