"""基于剩余空位的概率估计。"""

from __future__ import annotations

from typing import Dict, List

from .knowledge import KnowledgeState
from .models import CardProbability, CardStatus


class ProbabilityEstimator:
    """只读估计器。

    未确定的牌被视为均匀落在所有可能持有者的剩余手牌空位与答案槽之中：
    P(答案) = 1 / (空位总数 + 1)，P(玩家 p 持有) = p 的空位 / (空位总数 + 1)。
    这是近似模型，没有考虑多张牌争夺同一批空位的联合分布。
    """

    def __init__(self, state: KnowledgeState) -> None:
        self.state = state

    def open_slots(self, player: int) -> int:
        return max(0, self.state.get_hand_size(player) - self.state.has_count(player))

    def estimate(self) -> List[CardProbability]:
        return [self.estimate_card(card) for card in self.state.catalog]

    def estimate_card(self, card) -> CardProbability:
        state = self.state
        holders: Dict[int, float] = {player: 0.0 for player in range(state.player_count)}

        if state.get_solution(card.category) == card:
            return CardProbability(card=card, in_solution=1.0, holders=holders)

        holder = state.holder_of(card)
        if holder is not None:
            holders[holder] = 1.0
            return CardProbability(card=card, in_solution=0.0, holders=holders)

        eligible = [
            player
            for player in range(state.player_count)
            if state.get_status(player, card) != CardStatus.DOES_NOT_HAVE
        ]
        slots = {player: self.open_slots(player) for player in eligible}
        open_total = sum(slots.values())
        if not eligible or open_total == 0:
            return CardProbability(card=card, in_solution=1.0, holders=holders)

        total = open_total + 1
        for player, count in slots.items():
            holders[player] = count / total
        return CardProbability(card=card, in_solution=1 / total, holders=holders)
