"""세션 가드.

페이지 수집 호출을 감싸서
- 일시적 오류는 짧은 고정 대기 후 같은 페이지를 제한 횟수만큼 재시도하고,
- 세션 만료는 Producer 수집당 제한된 횟수만큼 자격 증명을 갱신한 뒤 같은 페이지를 다시 시도한다.
어느 쪽이든 예산을 다 쓰면 ProducerAborted 계열 예외로 현재 Producer만 중단시킨다.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional, TypeVar

from harvester.application.retry import RetryPolicy, SleepFn, call_with_retries
from harvester.application.session_store import SessionStore
from harvester.domain.exceptions import (
    FetchRetriesExhausted,
    MalformedPayloadError,
    SessionRefreshExhausted,
)
from harvester.domain.services.browsing import BrowsingSession
from harvester.domain.services.failure_classifier import (
    FailureClassifier,
    FailureKind,
    KeywordFailureClassifier,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SessionGuard:
    def __init__(
        self,
        session: BrowsingSession,
        store: SessionStore,
        classifier: Optional[FailureClassifier] = None,
        max_refreshes: int = 2,
        transient_attempts: int = 3,
        transient_backoff_seconds: float = 2.0,
        sleep: Optional[SleepFn] = None,
    ):
        self._session = session
        self._store = store
        self._classify = classifier or KeywordFailureClassifier()
        self._max_refreshes = max_refreshes
        self._sleep = sleep
        self._transient_policy = RetryPolicy(
            max_attempts=transient_attempts,
            backoff_seconds=transient_backoff_seconds,
            is_retryable=self._is_transient,
        )
        self.refreshes_used = 0

    def classify(self, error: BaseException) -> FailureKind:
        return self._classify(error)

    def reset(self) -> None:
        """Producer 수집 시작마다 갱신 예산을 초기화."""
        self.refreshes_used = 0

    async def run(self, fetch: Callable[[], Awaitable[T]], operation: str = "fetch") -> T:
        while True:
            try:
                return await call_with_retries(
                    fetch,
                    policy=self._transient_policy,
                    operation=operation,
                    sleep=self._sleep,
                )
            except MalformedPayloadError:
                raise
            except Exception as e:
                if self.classify(e) is not FailureKind.SESSION_EXPIRED:
                    logger.error(f"[{operation}] 일시적 오류 재시도 소진: {e}")
                    raise FetchRetriesExhausted(operation, self._transient_policy.max_attempts) from e

                if self.refreshes_used >= self._max_refreshes:
                    logger.error(f"[{operation}] 세션 갱신 예산 소진 ({self._max_refreshes}회)")
                    raise SessionRefreshExhausted(self.refreshes_used) from e

                self.refreshes_used += 1
                logger.warning(
                    f"[{operation}] 세션 만료 감지 — 자격 증명 갱신 "
                    f"{self.refreshes_used}/{self._max_refreshes}: {e}"
                )
                try:
                    credential = await self._store.refresh()
                    await self._session.apply_credential(credential)
                except Exception as refresh_error:
                    logger.error(f"[{operation}] 자격 증명 갱신/적용 실패: {refresh_error}")
                    raise SessionRefreshExhausted(self.refreshes_used) from refresh_error

    def _is_transient(self, error: BaseException) -> bool:
        if isinstance(error, MalformedPayloadError):
            return False
        return self.classify(error) is FailureKind.TRANSIENT
