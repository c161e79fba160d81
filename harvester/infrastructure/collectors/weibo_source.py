"""Weibo 모바일 API 소스.

브라우징 세션으로 m.weibo.cn 컨테이너 API를 열고 본문 텍스트(JSON)를 읽는다.
로그인이 필요하면 API가 로그인 안내 JSON/HTML을 돌려주므로
그 텍스트를 예외 메시지에 실어 분류기가 세션 만료를 판단하게 한다.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Optional
from urllib.parse import urlencode

from harvester.domain.entities import Cursor, FeedPage, Producer, ProducerKind
from harvester.domain.exceptions import MalformedPayloadError, SessionExpiredError, TransientFetchError
from harvester.domain.services.browsing import BrowsingSession
from harvester.domain.services.failure_classifier import DEFAULT_SESSION_KEYWORDS
from harvester.domain.value_objects.card import iter_post_blogs, parse_cards

logger = logging.getLogger(__name__)

PLATFORM = "WEIBO"
API_URL = "https://m.weibo.cn/api/container/getIndex"
DETAIL_URL = "https://m.weibo.cn/detail/{id}"
POST_CARD_TYPE = 9
RENDER_DATA_SCRIPT = "() => (window.$render_data && window.$render_data.status) || null"


def normalize_since_id(value: Any) -> Optional[str]:
    """since_id는 숫자/문자열로 오며 0·빈 값은 '다음 페이지 없음'."""
    if value is None or value == "" or value == 0 or value == "0":
        return None
    return str(value)


class WeiboSource:
    """Weibo 개인 계정/슈퍼토픽 피드 소스."""

    def __init__(self, session: BrowsingSession, login_markers: Iterable[str] = DEFAULT_SESSION_KEYWORDS):
        self._session = session
        self._login_markers = tuple(m.lower() for m in login_markers if m)
        self._container_ids: dict[str, str] = {}

    @property
    def source_name(self) -> str:
        return "weibo"

    @property
    def platform(self) -> str:
        return PLATFORM

    async def fetch_page(self, producer: Producer, cursor: Cursor) -> FeedPage:
        if producer.kind == ProducerKind.PERSONAL:
            return await self._fetch_personal_page(producer, cursor)
        return await self._fetch_topic_page(producer, cursor)

    async def fetch_post_detail(self, platform_id: str) -> dict[str, Any]:
        url = DETAIL_URL.format(id=platform_id)
        await self._session.navigate(url, wait_until="networkidle")
        self._check_redirect()
        status = await self._session.evaluate(RENDER_DATA_SCRIPT)
        if not isinstance(status, dict):
            raise MalformedPayloadError(f"상세 페이지에 $render_data 없음: {platform_id}")
        return status

    # ─── 개인 계정 ───

    async def _fetch_personal_page(self, producer: Producer, cursor: Cursor) -> FeedPage:
        container_id = await self._container_id(producer.source_id)
        params = {"type": "uid", "value": producer.source_id, "containerid": container_id}
        if cursor.since:
            params["since_id"] = cursor.since
        data = await self._get_json(params)

        cards = data.get("cards")
        if not isinstance(cards, list):
            raise MalformedPayloadError(f"cards 없음: {producer.source_id}")
        raw_posts = [
            card["mblog"]
            for card in cards
            if isinstance(card, dict)
            and str(card.get("card_type")) == str(POST_CARD_TYPE)
            and isinstance(card.get("mblog"), dict)
        ]
        info = data.get("cardlistInfo") if isinstance(data.get("cardlistInfo"), dict) else {}
        return FeedPage(raw_posts=raw_posts, next_cursor=normalize_since_id(info.get("since_id")))

    async def _container_id(self, uid: str) -> str:
        """개인 계정 피드의 containerid (tabsInfo의 두 번째 탭)."""
        if uid in self._container_ids:
            return self._container_ids[uid]
        data = await self._get_json({"type": "uid", "value": uid})
        try:
            container_id = str(data["tabsInfo"]["tabs"][1]["containerid"])
        except (KeyError, IndexError, TypeError) as e:
            raise MalformedPayloadError(f"사용자 containerid 조회 실패: {uid}") from e
        logger.info(f"[weibo] 사용자 {uid} containerid: {container_id}")
        self._container_ids[uid] = container_id
        return container_id

    # ─── 슈퍼토픽 ───

    async def _fetch_topic_page(self, producer: Producer, cursor: Cursor) -> FeedPage:
        params = {"containerid": producer.source_id}
        if cursor.since:
            params["since_id"] = cursor.since
        data = await self._get_json(params)

        cards = parse_cards(data.get("cards"))
        raw_posts = list(iter_post_blogs(cards))
        info = data.get("pageInfo") if isinstance(data.get("pageInfo"), dict) else {}
        next_cursor = normalize_since_id(info.get("since_id")) if cards else None
        return FeedPage(raw_posts=raw_posts, next_cursor=next_cursor)

    # ─── 공통 ───

    async def _get_json(self, params: dict[str, str]) -> dict[str, Any]:
        url = f"{API_URL}?{urlencode(params)}"
        status = await self._session.navigate(url)
        self._check_redirect()
        body = await self._session.raw_text_body()

        if status is not None and status >= 500:
            raise TransientFetchError(f"HTTP {status}: {url}")
        try:
            payload = json.loads(body)
        except ValueError:
            # 로그인 안내 HTML 등. 본문 일부를 남겨 분류기가 판단하게 한다
            raise TransientFetchError(f"JSON 아님 (HTTP {status}): {body[:200]}")

        if not isinstance(payload, dict):
            raise MalformedPayloadError(f"예상치 못한 응답 형식: {url}")
        if payload.get("ok") == -100:
            raise SessionExpiredError("weibo", str(payload.get("url", "")))
        data = payload.get("data")
        if not isinstance(data, dict):
            if payload.get("ok") == 0:
                # 더 이상 데이터가 없는 마지막 페이지
                return {"cards": []}
            raise MalformedPayloadError(f"data 필드 없음: {url}")
        return data

    def _check_redirect(self) -> None:
        current = self._session.current_url
        if any(marker in current.lower() for marker in self._login_markers):
            raise SessionExpiredError("weibo", current)
