"""每局游戏的知识状态：玩家×卡牌状态表、手牌数与答案槽。"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from .cards import CATEGORY_ORDER, Card, CardCatalog, Category
from .models import (
    CardStatus,
    ContradictoryEvidence,
    HandOverflow,
    InvalidPosition,
    PlayerInfo,
)

logger = logging.getLogger(__name__)


class KnowledgeState:
    """可变事实库。

    状态表是按 [玩家编号][卡牌编号] 排布的二维列表。所有修改都会立即级联：
    设为 HAS 会让其他玩家对该牌变为 DOES_NOT_HAVE，确定答案会让所有玩家
    对该牌变为 DOES_NOT_HAVE。状态只能单调增强，冲突直接抛出异常。
    """

    def __init__(self, catalog: CardCatalog, players: List[PlayerInfo]) -> None:
        self.catalog = catalog
        self.players = players
        self._table: List[List[CardStatus]] = [[CardStatus.UNKNOWN] * len(catalog) for _ in players]
        self._has_count: List[int] = [0] * len(players)
        self._solution: Dict[Category, Optional[Card]] = {category: None for category in CATEGORY_ORDER}
        self.revision = 0

    # ------------------------------------------------------------- queries --
    @property
    def player_count(self) -> int:
        return len(self.players)

    def check_position(self, player: int) -> int:
        if isinstance(player, bool) or not isinstance(player, int) or not 0 <= player < len(self.players):
            raise InvalidPosition(player)
        return player

    def get_status(self, player: int, card: Card) -> CardStatus:
        return self._table[self.check_position(player)][self.catalog.card_id(card)]

    def get_hand_size(self, player: int) -> int:
        return self.players[self.check_position(player)].hand_size

    def has_count(self, player: int) -> int:
        return self._has_count[self.check_position(player)]

    def holder_of(self, card: Card) -> Optional[int]:
        card_id = self.catalog.card_id(card)
        for player, row in enumerate(self._table):
            if row[card_id] == CardStatus.HAS:
                return player
        return None

    def cards_with_status(self, player: int, *statuses: CardStatus) -> List[Card]:
        row = self._table[self.check_position(player)]
        return [self.catalog.card_at(idx) for idx, status in enumerate(row) if status in statuses]

    def get_solution(self, category: Category) -> Optional[Card]:
        return self._solution[Category(category)]

    def solution(self) -> Dict[Category, Optional[Card]]:
        return dict(self._solution)

    def rows(self) -> List[List[CardStatus]]:
        """状态表的副本，便于比较与导出。"""
        return [list(row) for row in self._table]

    # ----------------------------------------------------------- mutations --
    def set_status(self, player: int, card: Card, status: CardStatus) -> bool:
        """把 (player, card) 增强到 status；返回是否发生了变化。

        不比当前更强的取值视为无操作；与已确定的相反取值冲突时抛出
        ContradictoryEvidence。
        """
        player = self.check_position(player)
        card_id = self.catalog.card_id(card)
        status = CardStatus(status)
        current = self._table[player][card_id]

        if current == status or status.strength < current.strength:
            return False
        if current.conflicts_with(status):
            raise ContradictoryEvidence(player, card, status.value)

        if status == CardStatus.HAS:
            self._claim(player, card, card_id)
        else:
            self._write(player, card_id, status)
        return True

    def set_solution(self, category: Category, card: Card) -> bool:
        """确定某一类别的答案；返回是否发生了变化。"""
        category = Category(category)
        self.catalog.card_id(card)
        if card.category != category:
            raise ContradictoryEvidence(None, card, f"solution:{category.value}")
        current = self._solution[category]
        if current == card:
            return False
        if current is not None:
            raise ContradictoryEvidence(
                None, card, "solution", f"答案冲突：{category.value} 已确定为 {current}，不能改为 {card}"
            )
        holder = self.holder_of(card)
        if holder is not None:
            raise ContradictoryEvidence(holder, card, "solution")

        self._solution[category] = card
        self.revision += 1
        logger.info("推断出答案：%s = %s", category.value, card.name)
        for player in range(len(self.players)):
            self.set_status(player, card, CardStatus.DOES_NOT_HAVE)
        return True

    def _claim(self, player: int, card: Card, card_id: int) -> None:
        if self._solution[card.category] == card:
            raise ContradictoryEvidence(player, card, CardStatus.HAS.value)
        for other, row in enumerate(self._table):
            if other != player and row[card_id] == CardStatus.HAS:
                raise ContradictoryEvidence(player, card, CardStatus.HAS.value)
        if self._has_count[player] + 1 > self.players[player].hand_size:
            raise HandOverflow(
                player,
                card,
                CardStatus.HAS.value,
                f"手牌溢出：玩家 {player} 已确认 {self._has_count[player]} 张，手牌数为 {self.players[player].hand_size}",
            )
        self._write(player, card_id, CardStatus.HAS)
        for other in range(len(self.players)):
            if other != player:
                self.set_status(other, card, CardStatus.DOES_NOT_HAVE)

    def _write(self, player: int, card_id: int, status: CardStatus) -> None:
        if status == CardStatus.HAS:
            self._has_count[player] += 1
        self._table[player][card_id] = status
        self.revision += 1

    # ---------------------------------------------------------- invariants --
    def check_invariants(self) -> List[str]:
        """返回违反的不变量描述列表，空列表表示一致。"""
        problems: List[str] = []
        for card_id, card in enumerate(self.catalog):
            holders = [p for p, row in enumerate(self._table) if row[card_id] == CardStatus.HAS]
            if len(holders) > 1:
                problems.append(f"{card} 同时被 {holders} 持有")
            if holders and self._solution[card.category] == card:
                problems.append(f"{card} 既被持有又是答案")
        for player, info in enumerate(self.players):
            if self._has_count[player] > info.hand_size:
                problems.append(f"玩家 {player} 确认 {self._has_count[player]} 张，超过手牌数 {info.hand_size}")
        return problems

    # ------------------------------------------------------------- restore --
    def load(
        self,
        rows: Iterable[Iterable[CardStatus]],
        solution: Dict[Category, Optional[Card]],
    ) -> None:
        """原样载入状态表与答案槽，不触发级联。"""
        table = [[CardStatus(status) for status in row] for row in rows]
        if len(table) != len(self.players) or any(len(row) != len(self.catalog) for row in table):
            raise ValueError("状态表尺寸与阵容或卡牌目录不符")
        self._table = table
        self._has_count = [sum(1 for status in row if status == CardStatus.HAS) for row in table]
        self._solution = {category: solution.get(category) for category in CATEGORY_ORDER}
        self.revision += 1
