"""토픽 피드의 카드 트리.

토픽 응답의 cards는 card_group 안에 다시 카드가 중첩되는 구조이며 깊이 제한이 없다.
명시적인 LeafCard | GroupCard 타입으로 파싱하고, 깊이 제한을 둔다.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Optional, Union

MAX_CARD_DEPTH = 8
POST_CARD_TYPE = "9"


@dataclass(frozen=True)
class LeafCard:
    card_type: str
    mblog: Optional[dict[str, Any]] = None


@dataclass(frozen=True)
class GroupCard:
    card_type: str
    children: tuple["Card", ...] = field(default_factory=tuple)


Card = Union[LeafCard, GroupCard]


def parse_card(raw: dict[str, Any], depth: int = 0, max_depth: int = MAX_CARD_DEPTH) -> Card:
    card_type = str(raw.get("card_type", ""))
    group = raw.get("card_group")
    if isinstance(group, list):
        if depth >= max_depth:
            # 제한을 넘는 하위 그룹은 버린다
            return GroupCard(card_type=card_type)
        children = tuple(
            parse_card(child, depth + 1, max_depth) for child in group if isinstance(child, dict)
        )
        return GroupCard(card_type=card_type, children=children)
    mblog = raw.get("mblog")
    return LeafCard(card_type=card_type, mblog=mblog if isinstance(mblog, dict) else None)


def parse_cards(raw_cards: Any, max_depth: int = MAX_CARD_DEPTH) -> list[Card]:
    if not isinstance(raw_cards, list):
        return []
    return [parse_card(c, 0, max_depth) for c in raw_cards if isinstance(c, dict)]


def iter_post_blogs(cards: list[Card]) -> Iterator[dict[str, Any]]:
    """게시물 카드(card_type 9)의 mblog를 문서 순서대로 순회한다 (반복 방식)."""
    stack: list[Card] = list(reversed(cards))
    while stack:
        card = stack.pop()
        if isinstance(card, GroupCard):
            stack.extend(reversed(card.children))
        elif card.card_type == POST_CARD_TYPE and card.mblog is not None:
            yield card.mblog
