"""재시도 정책 조합기.

페이지 수집 재시도와 업로드 재시도가 같은 조합기를 공유한다.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

IsRetryableFn = Callable[[BaseException], bool]
SleepFn = Callable[[float], Awaitable[None]]


def _always(_: BaseException) -> bool:
    return True


@dataclass(frozen=True)
class RetryPolicy:
    """(max_attempts, backoff, is_retryable) 재시도 정책.

    - max_attempts는 첫 시도를 포함한다 (3 → 1회 시도 + 2회 재시도).
    - backoff_seconds는 고정 대기, backoff_factor > 1이면 시도마다 곱해진다.
    """

    max_attempts: int = 3
    backoff_seconds: float = 1.0
    backoff_factor: float = 1.0
    is_retryable: IsRetryableFn = _always

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.backoff_seconds < 0:
            raise ValueError("backoff_seconds must be >= 0")
        if self.backoff_factor < 1:
            raise ValueError("backoff_factor must be >= 1")

    def delay_for(self, failure_attempt: int) -> float:
        return self.backoff_seconds * (self.backoff_factor ** max(0, failure_attempt - 1))


async def call_with_retries(
    fn: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    operation: str = "operation",
    sleep: Optional[SleepFn] = None,
) -> T:
    """fn()을 정책에 따라 재시도한다. 재시도 불가 오류나 마지막 실패는 그대로 전파."""
    sleeper = sleep or asyncio.sleep

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await fn()
        except Exception as e:
            if attempt >= policy.max_attempts or not policy.is_retryable(e):
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                f"[{operation}] 시도 {attempt}/{policy.max_attempts} 실패: {e}. "
                f"{delay:.1f}초 후 재시도"
            )
            if delay > 0:
                await sleeper(delay)

    raise RuntimeError(f"재시도 루프가 예기치 않게 종료됨: {operation}")  # unreachable
