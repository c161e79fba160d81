"""ProducerRepository — Firebase Firestore 구현.

Firestore 컬렉션: 'producers'
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Iterable

from harvester.domain.entities import Producer, ProducerKind


def _producer_from_doc(doc) -> Producer:
    d = doc.to_dict()
    return Producer(
        id=doc.id,
        source_id=str(d.get("source_id", "")),
        kind=ProducerKind(d.get("kind", ProducerKind.PERSONAL.value)),
        name=d.get("name"),
        last_crawled_at=d.get("last_crawled_at"),
    )


class FirestoreProducerRepository:
    """Firestore 기반 ProducerRepository 구현."""

    COLLECTION = "producers"

    def __init__(self, db):
        self._db = db

    def _col(self):
        return self._db.collection(self.COLLECTION)

    async def get_by_kinds(self, kinds: Iterable[ProducerKind]) -> list[Producer]:
        values = [k.value for k in kinds]

        def _get():
            if not values:
                return []
            query = self._col().where("kind", "in", values)
            producers = []
            for doc in query.stream():
                if doc.to_dict().get("deleted"):
                    continue
                producers.append(_producer_from_doc(doc))
            producers.sort(key=lambda p: (p.kind.value, p.id))
            return producers

        return await asyncio.to_thread(_get)

    async def touch_last_crawled(self, producer_id: str, when: datetime) -> None:
        def _update():
            self._col().document(producer_id).update({"last_crawled_at": when})

        await asyncio.to_thread(_update)
