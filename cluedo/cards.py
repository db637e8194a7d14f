"""卡牌目录：三类卡牌的固定全集。"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Tuple

from .models import UnknownCardName


class Category(str, Enum):
    """卡牌类别。"""

    SUSPECT = "suspect"
    WEAPON = "weapon"
    ROOM = "room"


CATEGORY_ORDER: Tuple[Category, ...] = (Category.SUSPECT, Category.WEAPON, Category.ROOM)

SUSPECTS: List[str] = [
    "Colonel Mustard",
    "Professor Plum",
    "Reverend Green",
    "Mrs. Peacock",
    "Miss Scarlett",
    "Mrs. White",
]

WEAPONS: List[str] = [
    "Candlestick",
    "Knife",
    "Lead Pipe",
    "Revolver",
    "Rope",
    "Wrench",
]

ROOMS: List[str] = [
    "Kitchen",
    "Ballroom",
    "Conservatory",
    "Billiard Room",
    "Library",
    "Study",
    "Hall",
    "Lounge",
    "Dining Room",
]


@dataclass(frozen=True, slots=True)
class Card:
    """单张卡牌，按 (类别, 名称) 判等。"""

    category: Category
    name: str

    @property
    def key(self) -> str:
        return f"{self.category.value}:{self.name}"

    def __str__(self) -> str:
        return self.name


class CardCatalog:
    """只读卡牌目录，提供枚举与 O(1) 编号查询。"""

    def __init__(self, names: Dict[Category, Iterable[str]]) -> None:
        self._cards: List[Card] = []
        self._ids: Dict[Tuple[Category, str], int] = {}
        for category in CATEGORY_ORDER:
            for name in names.get(category, ()):
                card = Card(category, name)
                self._ids[(category, name)] = len(self._cards)
                self._cards.append(card)
        self._by_category: Dict[Category, List[Card]] = {
            category: [card for card in self._cards if card.category == category]
            for category in CATEGORY_ORDER
        }

    def __len__(self) -> int:
        return len(self._cards)

    def __iter__(self):
        return iter(self._cards)

    def __contains__(self, card: object) -> bool:
        return isinstance(card, Card) and (card.category, card.name) in self._ids

    @property
    def cards(self) -> List[Card]:
        return list(self._cards)

    def by_category(self, category: Category) -> List[Card]:
        return list(self._by_category[Category(category)])

    def card_id(self, card: Card) -> int:
        try:
            return self._ids[(card.category, card.name)]
        except KeyError:
            raise UnknownCardName(card.name, card.category.value) from None

    def card_at(self, card_id: int) -> Card:
        return self._cards[card_id]

    def lookup(self, category: Category | str, name: str) -> Card:
        """按类别与名称查找卡牌，名称不在目录中时抛出 UnknownCardName。"""
        if not isinstance(name, str):
            raise UnknownCardName(name)
        try:
            category = Category(category)
        except ValueError:
            raise UnknownCardName(name, str(category)) from None
        if (category, name) not in self._ids:
            raise UnknownCardName(name, category.value)
        return self._cards[self._ids[(category, name)]]

    def find(self, name: str) -> Card:
        """仅按名称查找（三类名称互不重复）。"""
        for card in self._cards:
            if card.name == name:
                return card
        raise UnknownCardName(name)

    def to_dict(self) -> Dict[str, List[str]]:
        return {category.value: [card.name for card in self._by_category[category]] for category in CATEGORY_ORDER}

    @classmethod
    def from_dict(cls, data: Dict[str, Iterable[str]]) -> "CardCatalog":
        return cls({Category(key): list(value) for key, value in data.items()})


DEFAULT_CATALOG = CardCatalog(
    {
        Category.SUSPECT: SUSPECTS,
        Category.WEAPON: WEAPONS,
        Category.ROOM: ROOMS,
    }
)


__all__ = [
    "Card",
    "CardCatalog",
    "Category",
    "CATEGORY_ORDER",
    "DEFAULT_CATALOG",
    "ROOMS",
    "SUSPECTS",
    "WEAPONS",
]
