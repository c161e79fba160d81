"""수집 실패 분류기.

소스는 구조화된 오류 코드 대신 로그인 안내 HTML/JSON을 돌려주므로
오류 문자열에 대한 키워드 매칭으로 세션 만료를 추정한다.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Protocol

from harvester.domain.exceptions import SessionExpiredError


class FailureKind(str, Enum):
    TRANSIENT = "transient"
    SESSION_EXPIRED = "session_expired"


class FailureClassifier(Protocol):
    def __call__(self, error: BaseException) -> FailureKind: ...


DEFAULT_SESSION_KEYWORDS = (
    "passport.weibo",
    "signin",
    "login",
    "visitor",
    "登录",
    "ok\":-100",
)


class KeywordFailureClassifier:
    """오류 텍스트에 로그인 관련 키워드가 있으면 세션 만료로 분류."""

    def __init__(self, keywords: Iterable[str] = DEFAULT_SESSION_KEYWORDS):
        self._keywords = tuple(k.lower() for k in keywords if k)

    def __call__(self, error: BaseException) -> FailureKind:
        if isinstance(error, SessionExpiredError) or self._matches(error):
            return FailureKind.SESSION_EXPIRED
        return FailureKind.TRANSIENT

    def _matches(self, error: BaseException) -> bool:
        text = f"{type(error).__name__}: {error}".lower()
        return any(kw in text for kw in self._keywords)
