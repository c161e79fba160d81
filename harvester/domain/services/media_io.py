from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class TranscodedImage:
    data: bytes
    thumbnail: bytes
    mime_type: str
    extension: str


class MediaDownloader(Protocol):
    async def download(self, url: str) -> bytes:
        """원본 다운로드. 용량 상한 초과나 네트워크 오류는 DownloadError."""
        ...


class ImageTranscoder(Protocol):
    def transcode(self, data: bytes) -> TranscodedImage:
        """효율 코덱 변환 + 썸네일 생성 (CPU 작업, 동기). 실패 시 TranscodeError."""
        ...
