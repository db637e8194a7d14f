"""核心数据模型与错误类型定义。"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional

if TYPE_CHECKING:
    from .cards import Card


class CardStatus(str, Enum):
    """某位玩家与某张卡牌之间的已知关系。"""

    UNKNOWN = "unknown"
    MAYBE_HAS = "maybe_has"
    HAS = "has"
    DOES_NOT_HAVE = "does_not_have"

    @property
    def strength(self) -> int:
        return _STRENGTH[self]

    @property
    def is_terminal(self) -> bool:
        return self in (CardStatus.HAS, CardStatus.DOES_NOT_HAVE)

    def conflicts_with(self, other: "CardStatus") -> bool:
        return self.is_terminal and other.is_terminal and self != other


_STRENGTH: Dict[CardStatus, int] = {
    CardStatus.UNKNOWN: 0,
    CardStatus.MAYBE_HAS: 1,
    CardStatus.HAS: 2,
    CardStatus.DOES_NOT_HAVE: 2,
}


# ---------------------------------------------------------------- errors --
class CluedoError(Exception):
    """推理引擎错误基类。"""


class InvalidPosition(CluedoError, IndexError):
    """玩家座位号越界或阵容不合法。"""

    def __init__(self, position: object, message: Optional[str] = None) -> None:
        self.position = position
        super().__init__(message or f"无效的玩家座位：{position}")

    def __str__(self) -> str:
        return self.args[0]


class UnknownCardName(CluedoError, KeyError):
    """卡牌名称不在卡牌目录中。"""

    def __init__(self, name: object, category: Optional[str] = None) -> None:
        self.name = name
        self.category = category
        where = f"（类别 {category}）" if category else ""
        super().__init__(f"未知卡牌：{name}{where}")

    def __str__(self) -> str:
        return self.args[0]


class InvalidSuggestion(CluedoError, ValueError):
    """推理事件本身自相矛盾，在任何修改前拒绝。"""


class SnapshotError(CluedoError, ValueError):
    """快照数据无法还原为知识状态。"""


class ContradictoryEvidence(CluedoError):
    """新的状态或答案与已确立的事实冲突。"""

    def __init__(
        self,
        player: Optional[int],
        card: "Card",
        attempted: str,
        message: Optional[str] = None,
    ) -> None:
        self.player = player
        self.card = card
        self.attempted = attempted
        who = f"玩家 {player}" if player is not None else "答案"
        super().__init__(message or f"证据矛盾：{who} / {card} / {attempted}")

    def as_dict(self) -> Dict[str, object]:
        return {
            "player": self.player,
            "card": {"category": self.card.category.value, "name": self.card.name},
            "attempted": self.attempted,
        }


class HandOverflow(ContradictoryEvidence):
    """确认持有的卡牌数将超过该玩家的手牌数。"""


# ---------------------------------------------------------------- records --
@dataclass(slots=True)
class PlayerInfo:
    """玩家座位信息。"""

    position: int
    name: str
    hand_size: int
    is_observer: bool = False


@dataclass(frozen=True, slots=True)
class SuggestionEvent:
    """一次推理事件：提问者、三张卡牌、回应者与（若可见）亮出的牌。"""

    proposer: int
    suspect: "Card"
    weapon: "Card"
    room: "Card"
    responder: Optional[int] = None
    revealed: Optional["Card"] = None

    @property
    def cards(self) -> List["Card"]:
        return [self.suspect, self.weapon, self.room]

    def passers(self, player_count: int) -> List[int]:
        """按座次返回被询问但无法反驳的玩家。

        没有回应者时，除提问者外的所有人都算作放过。
        """
        stop = self.proposer if self.responder is None else self.responder
        seats: List[int] = []
        current = (self.proposer + 1) % player_count
        while current != stop:
            seats.append(current)
            current = (current + 1) % player_count
        return seats


@dataclass(frozen=True, slots=True)
class ManualFact:
    """手动录入的场外信息。"""

    player: int
    card: "Card"
    status: CardStatus


@dataclass(slots=True)
class CardProbability:
    """单张卡牌的概率估计。"""

    card: "Card"
    in_solution: float
    holders: Dict[int, float] = field(default_factory=dict)


__all__ = [
    "CardProbability",
    "CardStatus",
    "CluedoError",
    "ContradictoryEvidence",
    "HandOverflow",
    "InvalidPosition",
    "InvalidSuggestion",
    "ManualFact",
    "PlayerInfo",
    "SnapshotError",
    "SuggestionEvent",
    "UnknownCardName",
]
