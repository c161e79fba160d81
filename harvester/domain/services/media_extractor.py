"""게시물 페이로드 → MediaDescriptor 목록 변환.

피드/상세 페이로드의 형태가 제각각이므로 필드 선택 우선순위를 한곳에 모은다.
크기 필드는 문자열/숫자가 섞여 오므로 int 또는 None으로 정규화하며 절대 예외를 던지지 않는다.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from harvester.domain.entities import MediaDescriptor, MediaKind

logger = logging.getLogger(__name__)


def to_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    """'1080', 1080, 1080.0 → 1080. 해석 불가면 default."""
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        pass
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def _first_map_value(urls: Any) -> Optional[str]:
    """대체 포맷 맵의 첫 번째 항목 (삽입 순서)."""
    if not isinstance(urls, dict):
        return None
    for value in urls.values():
        if value:
            return str(value)
    return None


def _iter_pics(pics: Any) -> Iterable[dict[str, Any]]:
    # pics는 리스트 또는 {"0": {...}, "1": {...}} 형태로 온다
    if isinstance(pics, dict):
        pics = list(pics.values())
    if not isinstance(pics, list):
        return []
    return [p for p in pics if isinstance(p, dict)]


class MediaExtractor:
    """원본 게시물에서 이미지/동영상 참조를 뽑아낸다."""

    def extract(self, raw_post: dict[str, Any], post_url: Optional[str] = None) -> list[MediaDescriptor]:
        if not isinstance(raw_post, dict):
            return []
        if post_url is None and raw_post.get("id"):
            post_url = f"https://m.weibo.cn/detail/{raw_post['id']}"

        medias: list[MediaDescriptor] = []
        seen: set[str] = set()

        def add(descriptor: Optional[MediaDescriptor]) -> None:
            if descriptor and descriptor.origin_url not in seen:
                seen.add(descriptor.origin_url)
                medias.append(descriptor)

        for pic in _iter_pics(raw_post.get("pics")):
            if pic.get("type") == "video":
                add(self._inline_video(pic, post_url))
            else:
                add(self._image(pic, post_url))

        page_info = raw_post.get("page_info")
        if isinstance(page_info, dict) and page_info.get("type") == "video":
            add(self._page_info_video(page_info, post_url))

        return medias

    def qualifies(self, raw_post: dict[str, Any]) -> bool:
        """이미지나 동영상이 하나라도 있어야 수집 대상. 텍스트 전용 게시물은 흔적을 남기지 않는다."""
        if not isinstance(raw_post, dict):
            return False
        if raw_post.get("pic_ids"):
            return True
        return bool(self.extract(raw_post))

    # ─── 개별 항목 ───

    def _image(self, pic: dict[str, Any], post_url: Optional[str]) -> Optional[MediaDescriptor]:
        large = pic.get("large") if isinstance(pic.get("large"), dict) else {}
        url = large.get("url") or pic.get("url")
        if not url:
            return None
        large_geo = large.get("geo") if isinstance(large.get("geo"), dict) else {}
        geo = pic.get("geo") if isinstance(pic.get("geo"), dict) else {}
        return MediaDescriptor(
            origin_url=str(url),
            kind=MediaKind.IMAGE,
            width=to_int(large_geo.get("width")) or to_int(geo.get("width")),
            height=to_int(large_geo.get("height")) or to_int(geo.get("height")),
            post_url=post_url,
        )

    def _inline_video(self, pic: dict[str, Any], post_url: Optional[str]) -> Optional[MediaDescriptor]:
        url = (
            pic.get("videoSrc")
            or pic.get("stream_url_hd")
            or pic.get("stream_url")
            or _first_map_value(pic.get("urls"))
        )
        if not url:
            logger.debug(f"동영상 URL 없는 pic 항목 건너뜀: {pic.get('pid')}")
            return None
        geo = pic.get("geo") if isinstance(pic.get("geo"), dict) else {}
        return MediaDescriptor(
            origin_url=str(url),
            kind=MediaKind.VIDEO,
            width=to_int(geo.get("width")),
            height=to_int(geo.get("height")),
            post_url=post_url,
        )

    def _page_info_video(
        self, page_info: dict[str, Any], post_url: Optional[str]
    ) -> Optional[MediaDescriptor]:
        media_info = page_info.get("media_info") if isinstance(page_info.get("media_info"), dict) else {}
        url = (
            media_info.get("stream_url_hd")
            or media_info.get("stream_url")
            or _first_map_value(page_info.get("urls"))
        )
        if not url:
            return None
        page_pic = page_info.get("page_pic") if isinstance(page_info.get("page_pic"), dict) else {}
        return MediaDescriptor(
            origin_url=str(url),
            kind=MediaKind.VIDEO,
            width=to_int(page_pic.get("width"), 0),
            height=to_int(page_pic.get("height"), 0),
            post_url=post_url,
        )
