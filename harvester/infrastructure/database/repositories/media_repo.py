"""MediaRepository — Firebase Firestore 구현.

Firestore 컬렉션: 'media'
문서 ID: 원본 URL의 SHA-256 (compute_media_key)
"""

from __future__ import annotations

import asyncio
from typing import Any, Iterable

from harvester.domain.entities import MediaRecord
from harvester.domain.value_objects.media_key import compute_media_key
from harvester.infrastructure.database.firebase_client import BATCH_LIMIT, chunked


def _record_to_dict(record: MediaRecord) -> dict[str, Any]:
    return {
        "origin_url": record.origin_url,
        "gallery_url": record.gallery_url,
        "thumbnail_url": record.thumbnail_url,
        "kind": record.kind.value,
        "post_id": record.post_id,
        "post_url": record.post_url,
        "user_id": record.user_id,
        "width": record.width,
        "height": record.height,
        "status": record.status,
        "created_at": record.created_at,
    }


class FirestoreMediaRepository:
    """Firestore 기반 MediaRepository 구현."""

    COLLECTION = "media"

    def __init__(self, db):
        self._db = db

    def _col(self):
        return self._db.collection(self.COLLECTION)

    async def existing_origin_urls(self, urls: Iterable[str]) -> set[str]:
        by_key = {compute_media_key(url): url for url in urls}

        def _lookup():
            found: set[str] = set()
            for chunk in chunked(list(by_key)):
                refs = [self._col().document(key) for key in chunk]
                for doc in self._db.get_all(refs):
                    if doc.exists:
                        found.add(by_key[doc.id])
            return found

        if not by_key:
            return set()
        return await asyncio.to_thread(_lookup)

    async def insert_many(self, records: list[MediaRecord]) -> int:
        def _insert_many():
            batch = self._db.batch()
            count = 0
            for record in records:
                record.id = compute_media_key(record.origin_url)
                batch.set(self._col().document(record.id), _record_to_dict(record))
                count += 1
                if count % BATCH_LIMIT == 0:
                    batch.commit()
                    batch = self._db.batch()
            if count % BATCH_LIMIT != 0:
                batch.commit()
            return count

        if not records:
            return 0
        return await asyncio.to_thread(_insert_many)
