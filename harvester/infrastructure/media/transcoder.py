"""Pillow 기반 이미지 변환기.

원본을 WebP로 다시 인코딩하고, 긴 변 기준으로 축소한 썸네일을 만든다.
애니메이션 GIF/WebP는 프레임을 유지한 채 변환한다.
"""

from __future__ import annotations

import io
import logging

from PIL import Image, ImageOps, UnidentifiedImageError

from harvester.domain.exceptions import TranscodeError
from harvester.domain.services.media_io import TranscodedImage

logger = logging.getLogger(__name__)


class PillowTranscoder:
    def __init__(self, quality: int = 80, thumbnail_max_side: int = 600, thumbnail_quality: int = 50):
        self._quality = quality
        self._thumb_side = thumbnail_max_side
        self._thumb_quality = thumbnail_quality

    def transcode(self, data: bytes) -> TranscodedImage:
        try:
            with Image.open(io.BytesIO(data)) as img:
                animated = getattr(img, "is_animated", False)
                if animated:
                    main = self._encode_animated(img)
                    img.seek(0)
                    first = self._prepare(img.copy())
                else:
                    first = self._prepare(ImageOps.exif_transpose(img))
                    main = self._encode(first, self._quality)

                thumb = first.copy()
                thumb.thumbnail((self._thumb_side, self._thumb_side))
                thumbnail = self._encode(thumb, self._thumb_quality)
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise TranscodeError(f"이미지 변환 실패: {e}") from e

        return TranscodedImage(data=main, thumbnail=thumbnail, mime_type="image/webp", extension="webp")

    @staticmethod
    def _prepare(img: Image.Image) -> Image.Image:
        # WebP는 RGB/RGBA만 받는다
        if img.mode in ("RGB", "RGBA"):
            return img
        if img.mode in ("P", "LA", "PA") or "transparency" in img.info:
            return img.convert("RGBA")
        return img.convert("RGB")

    @staticmethod
    def _encode(img: Image.Image, quality: int) -> bytes:
        buf = io.BytesIO()
        img.save(buf, format="WEBP", quality=quality, method=4)
        return buf.getvalue()

    def _encode_animated(self, img: Image.Image) -> bytes:
        buf = io.BytesIO()
        img.save(buf, format="WEBP", save_all=True, quality=self._quality, method=4)
        return buf.getvalue()
