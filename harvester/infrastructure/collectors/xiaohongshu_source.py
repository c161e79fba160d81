"""小红书 개인 계정 소스.

프로필 페이지를 열고 스크롤해서 웹 클라이언트가 부르는 user_posted API 응답을 가로챈다.
API는 요청 서명이 필요해 직접 호출할 수 없으므로 페이지가 스스로 부르게 한다.
노트는 표지 이미지 하나만 미디어로 다루며, 미디어 추출기가 읽는 게시물 형태로 바꿔 돌려준다.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional
from urllib.parse import urlsplit

from harvester.domain.entities import Cursor, FeedPage, Producer
from harvester.domain.exceptions import MalformedPayloadError, SessionExpiredError, TransientFetchError
from harvester.domain.services.browsing import ScrollingSession
from harvester.domain.services.failure_classifier import DEFAULT_SESSION_KEYWORDS

logger = logging.getLogger(__name__)

PLATFORM = "XIAOHONGSHU"
PROFILE_URL = "https://www.xiaohongshu.com/user/profile/{user_id}"
USER_POSTED_API = "/api/sns/web/v1/user_posted"
LOGIN_REQUIRED_CODE = -100


def parse_profile(source_id: str) -> tuple[str, str]:
    """user_id 또는 프로필 URL → (user_id, 프로필 URL)."""
    if not source_id.startswith("http"):
        return source_id, PROFILE_URL.format(user_id=source_id)
    parts = [p for p in urlsplit(source_id).path.split("/") if p]
    if "profile" in parts and parts.index("profile") + 1 < len(parts):
        return parts[parts.index("profile") + 1], source_id
    return (parts[-1] if parts else source_id), source_id


def extract_cover_url(note: dict[str, Any]) -> Optional[str]:
    cover = note.get("cover")
    if not isinstance(cover, dict):
        return None
    info_list = cover.get("info_list") if isinstance(cover.get("info_list"), list) else []
    first_info = info_list[0] if info_list and isinstance(info_list[0], dict) else {}
    url = cover.get("url_default") or cover.get("url_pre") or cover.get("url") or first_info.get("url")
    return str(url) if url else None


def to_raw_post(note: dict[str, Any], fallback_user_id: str) -> dict[str, Any]:
    note_id = str(note["note_id"])
    user = note.get("user") if isinstance(note.get("user"), dict) else {}
    cover = note.get("cover") if isinstance(note.get("cover"), dict) else {}
    cover_url = extract_cover_url(note)
    pics = []
    if cover_url:
        pics.append({
            "pid": note_id,
            "url": cover_url,
            "geo": {"width": cover.get("width"), "height": cover.get("height")},
        })
    return {
        "id": note_id,
        "text": note.get("display_title") or "",
        "user": {"id": user.get("user_id") or fallback_user_id},
        "pics": pics,
    }


class XiaohongshuSource:
    """小红书 개인 계정 노트 목록 소스."""

    def __init__(
        self,
        session: ScrollingSession,
        login_markers: Iterable[str] = DEFAULT_SESSION_KEYWORDS,
        max_scrolls: int = 12,
    ):
        self._session = session
        self._login_markers = tuple(m.lower() for m in login_markers if m)
        self._max_scrolls = max_scrolls
        self._seen_cursors: dict[str, set[str]] = {}

    @property
    def source_name(self) -> str:
        return "xiaohongshu"

    @property
    def platform(self) -> str:
        return PLATFORM

    async def fetch_page(self, producer: Producer, cursor: Cursor) -> FeedPage:
        user_id, profile_url = parse_profile(producer.source_id)
        if cursor.since is None:
            self._seen_cursors[producer.id] = set()
        seen = self._seen_cursors.setdefault(producer.id, set())

        # 첫 페이지이거나 자격 증명 재적용으로 프로필 페이지를 벗어났으면 다시 연다
        if cursor.since is None or user_id not in self._session.current_url:
            logger.info(f"[xiaohongshu] 프로필 열기: {profile_url}")
            await self._session.navigate(profile_url)
            self._check_redirect()

        body = await self._session.scroll_for_json(
            USER_POSTED_API,
            accept=lambda b: self._cursor_of(b) not in seen,
            max_scrolls=self._max_scrolls,
        )
        self._check_redirect()
        if body is None:
            if cursor.since is None:
                raise TransientFetchError(f"노트 목록 응답을 받지 못함: {profile_url}")
            logger.info(f"[xiaohongshu] {producer.label} 추가 노트 응답 없음")
            return FeedPage(raw_posts=[], next_cursor=None)

        data = self._data(body)
        notes = data.get("notes")
        if not isinstance(notes, list):
            raise MalformedPayloadError(f"notes 없음: {producer.source_id}")
        seen.add(self._cursor_of(body))

        raw_posts = [
            to_raw_post(note, user_id)
            for note in notes
            if isinstance(note, dict) and note.get("note_id")
        ]
        next_cursor = data.get("cursor") if data.get("has_more") else None
        return FeedPage(raw_posts=raw_posts, next_cursor=str(next_cursor) if next_cursor else None)

    async def fetch_post_detail(self, platform_id: str) -> dict[str, Any]:
        raise NotImplementedError("小红书 노트는 수집만 하고 미디어 소비는 지원하지 않습니다.")

    # ─── 내부 ───

    @staticmethod
    def _cursor_of(body: Any) -> str:
        data = body.get("data") if isinstance(body, dict) else None
        return str(data.get("cursor") or "") if isinstance(data, dict) else ""

    def _data(self, body: Any) -> dict[str, Any]:
        if not isinstance(body, dict):
            raise MalformedPayloadError("예상치 못한 user_posted 응답 형식")
        if not body.get("success"):
            code = body.get("code")
            msg = str(body.get("msg") or "")
            if code == LOGIN_REQUIRED_CODE or self._has_login_marker(msg):
                raise SessionExpiredError("xiaohongshu", msg)
            raise TransientFetchError(f"user_posted 실패 (code={code}): {msg}")
        data = body.get("data")
        if not isinstance(data, dict):
            raise MalformedPayloadError("user_posted 응답에 data 없음")
        return data

    def _check_redirect(self) -> None:
        current = self._session.current_url
        if self._has_login_marker(current):
            raise SessionExpiredError("xiaohongshu", current)

    def _has_login_marker(self, text: str) -> bool:
        text = text.lower()
        return any(marker in text for marker in self._login_markers)
