"""推理传播引擎：把新证据写入知识状态，并反复应用规则直到不动点。"""

from __future__ import annotations

import logging
from typing import Callable, List

from .cards import CATEGORY_ORDER
from .knowledge import KnowledgeState
from .models import CardStatus, ManualFact, SuggestionEvent

logger = logging.getLogger(__name__)


class PropagationEngine:
    """基于规则的推理引擎。

    直接规则（无人回应、放过链与亮牌）只在事件到达时应用一次；全局规则
    （排除法定答案、手牌饱和、共同排除）循环执行，直到完整一轮没有任何
    变化。规则抛出的 ContradictoryEvidence 会中止传播，之前已写入的修改
    保留，由调用方决定是否回滚。
    """

    def __init__(self, state: KnowledgeState) -> None:
        self.state = state
        self.rules: List[Callable[[], None]] = [
            self._solution_by_elimination,
            self._hand_saturation,
            self._common_elimination,
        ]

    # -------------------------------------------------------- direct rules --
    def apply_suggestion(self, event: SuggestionEvent) -> None:
        state = self.state
        for seat in event.passers(state.player_count):
            for card in event.cards:
                state.set_status(seat, card, CardStatus.DOES_NOT_HAVE)
        if event.responder is None:
            return
        for card in event.cards:
            if state.get_status(event.responder, card) == CardStatus.UNKNOWN:
                state.set_status(event.responder, card, CardStatus.MAYBE_HAS)
        if event.revealed is not None:
            state.set_status(event.responder, event.revealed, CardStatus.HAS)

    def apply_fact(self, fact: ManualFact) -> None:
        self.state.set_status(fact.player, fact.card, fact.status)

    # ------------------------------------------------------------ fixpoint --
    def run(self) -> int:
        """执行全局规则直到不动点，返回传播过程中的修改次数。"""
        start = self.state.revision
        passes = 0
        while True:
            before = self.state.revision
            for rule in self.rules:
                rule()
            passes += 1
            changes = self.state.revision - before
            logger.debug("第 %d 轮传播：%d 处修改", passes, changes)
            if changes == 0:
                break
        return self.state.revision - start

    def propagate_suggestion(self, event: SuggestionEvent) -> int:
        start = self.state.revision
        self.apply_suggestion(event)
        self.run()
        return self.state.revision - start

    def propagate_fact(self, fact: ManualFact) -> int:
        start = self.state.revision
        self.apply_fact(fact)
        self.run()
        return self.state.revision - start

    # --------------------------------------------------------------- rules --
    def _solution_by_elimination(self) -> None:
        state = self.state
        for category in CATEGORY_ORDER:
            unassigned = [card for card in state.catalog.by_category(category) if state.holder_of(card) is None]
            if len(unassigned) == 1:
                state.set_solution(category, unassigned[0])

    def _hand_saturation(self) -> None:
        state = self.state
        for player in range(state.player_count):
            hand_size = state.get_hand_size(player)
            has_count = state.has_count(player)
            if has_count == hand_size:
                for card in state.cards_with_status(player, CardStatus.UNKNOWN, CardStatus.MAYBE_HAS):
                    state.set_status(player, card, CardStatus.DOES_NOT_HAVE)
            elif has_count == hand_size - 1:
                maybe = state.cards_with_status(player, CardStatus.MAYBE_HAS)
                if len(maybe) == 1:
                    state.set_status(player, maybe[0], CardStatus.HAS)

    def _common_elimination(self) -> None:
        state = self.state
        for card in state.catalog:
            if all(
                state.get_status(player, card) == CardStatus.DOES_NOT_HAVE
                for player in range(state.player_count)
            ):
                state.set_solution(card.category, card)
