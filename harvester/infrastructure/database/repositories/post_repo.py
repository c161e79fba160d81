"""PostRepository — Firebase Firestore 구현.

Firestore 컬렉션: 'posts'
문서 ID: f"{platform}_{platform_id}" (자연 키를 그대로 문서 ID로 사용)
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Iterable

from harvester.domain.entities import Post, PostStatus
from harvester.infrastructure.database.firebase_client import chunked

# ─── 도메인 엔티티 ↔ Firestore 문서 변환 ───


def _post_to_dict(post: Post) -> dict[str, Any]:
    return {
        "platform": post.platform,
        "platform_id": post.platform_id,
        "producer_id": post.producer_id,
        "user_id": post.user_id,
        "created_at": post.created_at,
        "status": post.status.value,
        "discovered_at": post.discovered_at,
        "updated_at": datetime.utcnow(),
    }


def _post_from_doc(doc) -> Post:
    d = doc.to_dict()
    return Post(
        id=doc.id,  # Firestore 문서 ID를 id로 사용
        platform=d.get("platform", ""),
        platform_id=d.get("platform_id", ""),
        producer_id=d.get("producer_id", ""),
        user_id=d.get("user_id", ""),
        created_at=d.get("created_at"),
        status=PostStatus(d.get("status", PostStatus.PENDING.value)),
        discovered_at=d.get("discovered_at") or datetime.utcnow(),
    )


class FirestorePostRepository:
    """Firestore 기반 PostRepository 구현."""

    COLLECTION = "posts"

    def __init__(self, db):
        self._db = db

    def _col(self):
        return self._db.collection(self.COLLECTION)

    async def existing_platform_ids(self, platform: str, platform_ids: Iterable[str]) -> set[str]:
        ids = list(dict.fromkeys(platform_ids))

        def _lookup():
            found: set[str] = set()
            for chunk in chunked(ids):
                refs = [self._col().document(f"{platform}_{pid}") for pid in chunk]
                for doc in self._db.get_all(refs):
                    if doc.exists:
                        found.add(doc.to_dict().get("platform_id", ""))
            return found

        return await asyncio.to_thread(_lookup)

    async def upsert(self, post: Post) -> Post:
        def _upsert():
            doc_ref = self._col().document(post.key)
            doc = doc_ref.get()
            if doc.exists:
                # 상태는 건드리지 않는다
                doc_ref.update({
                    "producer_id": post.producer_id,
                    "user_id": post.user_id,
                    "created_at": post.created_at,
                    "updated_at": datetime.utcnow(),
                })
                post.status = PostStatus(doc.to_dict().get("status", PostStatus.PENDING.value))
            else:
                post.status = PostStatus.PENDING
                doc_ref.set(_post_to_dict(post))
            post.id = doc_ref.id
            return post

        return await asyncio.to_thread(_upsert)

    async def get_next_pending(self, platform: str | None = None) -> Post | None:
        def _get():
            query = self._col().where("status", "==", PostStatus.PENDING.value)
            if platform:
                query = query.where("platform", "==", platform)
            query = query.order_by("created_at", direction="DESCENDING").limit(1)
            docs = list(query.stream())
            return _post_from_doc(docs[0]) if docs else None

        return await asyncio.to_thread(_get)

    async def update_status(self, post: Post, status: PostStatus) -> Post:
        def _update():
            doc_id = post.id or post.key
            self._col().document(doc_id).update({
                "status": status.value,
                "updated_at": datetime.utcnow(),
            })
            post.status = status
            return post

        return await asyncio.to_thread(_update)
