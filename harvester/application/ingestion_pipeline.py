"""미디어 수집 파이프라인: 다운로드 → 변환 → 업로드.

항목별로 독립 처리하며 동시 처리 개수를 세마포어로 제한한다.
어느 단계에서 실패하든 해당 항목만 버리고 나머지는 계속한다.
"""

from __future__ import annotations

import asyncio
import logging
import posixpath
from typing import Optional
from urllib.parse import urlsplit

from harvester.application.retry import RetryPolicy, SleepFn, call_with_retries
from harvester.domain.entities import MediaDescriptor, MediaKind, MediaRecord, Post
from harvester.domain.exceptions import IngestionError, UnsupportedMediaKind, UploadFailure
from harvester.domain.services.media_io import ImageTranscoder, MediaDownloader
from harvester.domain.services.object_store import ObjectStore

logger = logging.getLogger(__name__)

IMAGE_MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
}
VIDEO_MIME_TYPES = {
    "mp4": "video/mp4",
    "mov": "video/quicktime",
}


def file_extension(url: str) -> str:
    path = urlsplit(url).path
    return posixpath.splitext(path)[1].lstrip(".").lower()


def file_name(url: str) -> str:
    name = posixpath.basename(urlsplit(url).path)
    return name or f"file.{file_extension(url) or 'bin'}"


def format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.2f} KB"
    return f"{size / (1024 * 1024):.2f} MB"


class IngestionPipeline:
    def __init__(
        self,
        downloader: MediaDownloader,
        transcoder: ImageTranscoder,
        object_store: ObjectStore,
        concurrency_limit: int = 4,
        upload_attempts: int = 3,
        upload_backoff_seconds: float = 1.0,
        upload_backoff_factor: float = 2.0,
        sleep: Optional[SleepFn] = None,
    ):
        if concurrency_limit < 1:
            raise ValueError("concurrency_limit must be >= 1")
        self._downloader = downloader
        self._transcoder = transcoder
        self._store = object_store
        self._concurrency_limit = concurrency_limit
        self._sleep = sleep
        self._upload_policy = RetryPolicy(
            max_attempts=upload_attempts,
            backoff_seconds=upload_backoff_seconds,
            backoff_factor=upload_backoff_factor,
            is_retryable=lambda e: isinstance(e, UploadFailure),
        )

    async def ingest(
        self,
        descriptors: list[MediaDescriptor],
        post: Post,
        concurrency_limit: Optional[int] = None,
    ) -> list[MediaRecord]:
        """모든 항목이 끝날 때까지 기다린 뒤 성공한 레코드만 반환한다."""
        if not descriptors:
            return []

        semaphore = asyncio.Semaphore(concurrency_limit or self._concurrency_limit)

        async def worker(descriptor: MediaDescriptor) -> Optional[MediaRecord]:
            async with semaphore:
                return await self._ingest_one(descriptor, post)

        results = await asyncio.gather(*(worker(d) for d in descriptors))
        records = [r for r in results if r is not None]
        logger.info(
            f"[{post.key}] 미디어 {len(descriptors)}건 중 {len(records)}건 업로드, "
            f"{len(descriptors) - len(records)}건 실패"
        )
        return records

    async def _ingest_one(self, descriptor: MediaDescriptor, post: Post) -> Optional[MediaRecord]:
        url = descriptor.origin_url
        try:
            if descriptor.kind == MediaKind.IMAGE:
                return await self._ingest_image(descriptor, post)
            if descriptor.kind == MediaKind.VIDEO:
                return await self._ingest_video(descriptor, post)
            raise UnsupportedMediaKind(f"지원하지 않는 미디어 종류: {descriptor.kind}")
        except IngestionError as e:
            logger.warning(f"[{post.key}] 미디어 처리 실패 {url}: {e}")
        except Exception as e:
            logger.error(f"[{post.key}] 미디어 처리 중 예기치 않은 오류 {url}: {e}", exc_info=True)
        return None

    async def _ingest_image(self, descriptor: MediaDescriptor, post: Post) -> MediaRecord:
        url = descriptor.origin_url
        if file_extension(url) not in IMAGE_MIME_TYPES:
            raise UnsupportedMediaKind(f"지원하지 않는 이미지 형식: {url}")

        original = await self._downloader.download(url)
        image = await asyncio.to_thread(self._transcoder.transcode, original)

        stem = posixpath.splitext(file_name(url))[0]
        gallery_url = await self._upload(image.data, f"{stem}.{image.extension}", image.mime_type)

        thumbnail_url: Optional[str] = None
        try:
            thumbnail_url = await self._upload(
                image.thumbnail, f"{stem}_thumb.{image.extension}", image.mime_type
            )
        except UploadFailure as e:
            logger.warning(f"[{post.key}] 썸네일 업로드 실패 {url}: {e}")

        ratio = len(image.data) / len(original) * 100 if original else 0.0
        logger.info(
            f"변환 업로드 완료 [{url}] → [{gallery_url}] "
            f"({format_size(len(original))} → {format_size(len(image.data))}, {ratio:.2f}%)"
        )
        return self._record(descriptor, post, gallery_url, thumbnail_url)

    async def _ingest_video(self, descriptor: MediaDescriptor, post: Post) -> MediaRecord:
        url = descriptor.origin_url
        mime_type = VIDEO_MIME_TYPES.get(file_extension(url), "video/mp4")
        name = file_name(url)
        if not posixpath.splitext(name)[1]:
            name = f"{name}.mp4"

        data = await self._downloader.download(url)
        logger.info(f"동영상 업로드 시작 [{url}] ({format_size(len(data))})")
        gallery_url = await self._upload(data, name, mime_type)
        return self._record(descriptor, post, gallery_url, None)

    async def _upload(self, data: bytes, filename: str, mime_type: str) -> str:
        return await call_with_retries(
            lambda: self._store.upload(data, filename, mime_type),
            policy=self._upload_policy,
            operation=f"upload:{filename}",
            sleep=self._sleep,
        )

    @staticmethod
    def _record(
        descriptor: MediaDescriptor,
        post: Post,
        gallery_url: str,
        thumbnail_url: Optional[str],
    ) -> MediaRecord:
        return MediaRecord(
            origin_url=descriptor.origin_url,
            gallery_url=gallery_url,
            thumbnail_url=thumbnail_url,
            kind=descriptor.kind,
            post_id=post.id or post.key,
            user_id=post.user_id,
            post_url=descriptor.post_url or post.url,
            width=descriptor.width,
            height=descriptor.height,
        )
