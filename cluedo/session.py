"""推理会话：对外暴露的入口，持有知识状态与事件账本。"""

from __future__ import annotations

import logging
import math
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Union

from .cards import CATEGORY_ORDER, DEFAULT_CATALOG, Card, CardCatalog, Category
from .engine import PropagationEngine
from .knowledge import KnowledgeState
from .ledger import LedgerEntry, SuggestionLedger
from .models import (
    CardProbability,
    CardStatus,
    CluedoError,
    InvalidPosition,
    InvalidSuggestion,
    ManualFact,
    PlayerInfo,
    SnapshotError,
    SuggestionEvent,
    UnknownCardName,
)
from .probability import ProbabilityEstimator

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1
SOLUTION_SIZE = len(CATEGORY_ORDER)

CardRef = Union[Card, str, Dict[str, str]]


def default_hand_sizes(catalog: CardCatalog, player_count: int, observer: int, observer_cards: int) -> List[int]:
    """未给出手牌数时的估计：观察者按已知手牌计，其余玩家取剩余牌数均分后的上限。

    估计偏小会让手牌饱和规则排除掉真实持有的牌，偏大只会让推理变弱。
    """
    dealt = len(catalog) - SOLUTION_SIZE
    others = math.ceil(max(0, dealt - observer_cards) / (player_count - 1))
    return [observer_cards if seat == observer else others for seat in range(player_count)]


class DeductionSession:
    """一局游戏的推理会话。

    每次修改（一条推理或一次手动录入）都先追加账本、再执行直接规则，
    最后传播到不动点。同一会话上的修改必须由调用方串行化。
    """

    def __init__(
        self,
        catalog: CardCatalog,
        players: List[PlayerInfo],
        observer_hand: Sequence[Card],
        name: Optional[str] = None,
    ) -> None:
        self.catalog = catalog
        self.players = players
        self.observer_hand: List[Card] = list(observer_hand)
        self.name = name
        self.state = KnowledgeState(catalog, players)
        self.ledger = SuggestionLedger()
        self.engine = PropagationEngine(self.state)
        self.estimator = ProbabilityEstimator(self.state)

    # ---------------------------------------------------------------- setup --
    @classmethod
    def create_game(
        cls,
        player_names: Sequence[str],
        observer_position: int,
        observer_hand: Iterable[CardRef],
        hand_sizes: Optional[Sequence[int]] = None,
        name: Optional[str] = None,
        catalog: CardCatalog = DEFAULT_CATALOG,
    ) -> "DeductionSession":
        names = list(player_names)
        if len(names) < 2:
            raise InvalidPosition(len(names), "至少需要 2 名玩家")
        if isinstance(observer_position, bool) or not isinstance(observer_position, int):
            raise InvalidPosition(observer_position)
        if not 0 <= observer_position < len(names):
            raise InvalidPosition(observer_position)

        hand = []
        for ref in observer_hand:
            card = _resolve_card(catalog, ref)
            if card not in hand:
                hand.append(card)

        if hand_sizes is None:
            sizes = default_hand_sizes(catalog, len(names), observer_position, len(hand))
        else:
            if not isinstance(hand_sizes, (list, tuple)):
                raise InvalidPosition(hand_sizes, f"手牌数必须是列表：{hand_sizes!r}")
            sizes = list(hand_sizes)
            if len(sizes) != len(names):
                raise InvalidPosition(len(sizes), f"手牌数列表长度 {len(sizes)} 与玩家数 {len(names)} 不符")
            for seat, size in enumerate(sizes):
                if isinstance(size, bool) or not isinstance(size, int) or size < 0:
                    raise InvalidPosition(seat, f"玩家 {seat} 的手牌数无效：{size!r}")

        players = [
            PlayerInfo(position=seat, name=str(player_name), hand_size=sizes[seat], is_observer=seat == observer_position)
            for seat, player_name in enumerate(names)
        ]
        session = cls(catalog, players, hand, name=name)
        for card in hand:
            session.state.set_status(observer_position, card, CardStatus.HAS)
        session.engine.run()
        logger.info("新建对局：%d 名玩家，观察者座位 %d，已知手牌 %d 张", len(players), observer_position, len(hand))
        return session

    @property
    def observer(self) -> int:
        return next(player.position for player in self.players if player.is_observer)

    # ------------------------------------------------------------ mutations --
    def record_suggestion(
        self,
        proposer: int,
        suspect: CardRef,
        weapon: CardRef,
        room: CardRef,
        responder: Optional[int] = None,
        revealed: Optional[CardRef] = None,
    ) -> SuggestionEvent:
        """登记一条推理并传播。引用错误在任何修改之前抛出。"""
        event = self._build_suggestion(proposer, suspect, weapon, room, responder, revealed)
        self.ledger.append(event)
        changes = self.engine.propagate_suggestion(event)
        logger.debug("推理 #%d 带来 %d 处修改", len(self.ledger), changes)
        return event

    def set_card_status(self, player: int, card: CardRef, status: Union[CardStatus, str]) -> ManualFact:
        """手动录入场外信息并传播。"""
        self.state.check_position(player)
        resolved = _resolve_card(self.catalog, card)
        try:
            status = CardStatus(status)
        except ValueError:
            raise InvalidSuggestion(f"未知状态：{status!r}") from None
        fact = ManualFact(player=player, card=resolved, status=status)
        self.ledger.append(fact)
        changes = self.engine.propagate_fact(fact)
        logger.debug("手动录入 #%d 带来 %d 处修改", len(self.ledger), changes)
        return fact

    def _build_suggestion(self, proposer, suspect, weapon, room, responder, revealed) -> SuggestionEvent:
        self.state.check_position(proposer)
        if responder is not None:
            self.state.check_position(responder)
            if responder == proposer:
                raise InvalidPosition(responder, "回应者不能是提问者本人")
        cards = [
            _resolve_card(self.catalog, suspect, Category.SUSPECT),
            _resolve_card(self.catalog, weapon, Category.WEAPON),
            _resolve_card(self.catalog, room, Category.ROOM),
        ]
        shown: Optional[Card] = None
        if revealed is not None:
            shown = _resolve_card(self.catalog, revealed)
            if responder is None:
                raise InvalidSuggestion("没有回应者时不可能亮牌")
            if shown not in cards:
                raise InvalidSuggestion(f"亮出的牌 {shown} 不在本次推理的三张牌之中")
        return SuggestionEvent(
            proposer=proposer,
            suspect=cards[0],
            weapon=cards[1],
            room=cards[2],
            responder=responder,
            revealed=shown,
        )

    def apply(self, entry: LedgerEntry) -> None:
        if isinstance(entry, SuggestionEvent):
            self.record_suggestion(
                entry.proposer, entry.suspect, entry.weapon, entry.room, entry.responder, entry.revealed
            )
        else:
            self.set_card_status(entry.player, entry.card, entry.status)

    @contextmanager
    def transaction(self) -> Iterator["DeductionSession"]:
        """出错时把会话恢复到进入前的快照，然后继续抛出异常。"""
        saved = self.to_snapshot()
        try:
            yield self
        except CluedoError:
            logger.warning("修改被拒绝，恢复到之前的状态")
            self._adopt(self.from_snapshot(saved))
            raise

    # -------------------------------------------------------------- queries --
    def query_probabilities(self) -> List[CardProbability]:
        return self.estimator.estimate()

    def query_solution(self) -> Dict[Category, Optional[Card]]:
        return self.state.solution()

    def is_solved(self) -> bool:
        return all(card is not None for card in self.query_solution().values())

    # --------------------------------------------------------------- replay --
    def replay(self, entries: Optional[Iterable[LedgerEntry]] = None) -> "DeductionSession":
        """从初始手牌开始按顺序重放账本，返回新的会话。"""
        fresh = self.create_game(
            [player.name for player in self.players],
            self.observer,
            self.observer_hand,
            hand_sizes=[player.hand_size for player in self.players],
            name=self.name,
            catalog=self.catalog,
        )
        for entry in self.ledger if entries is None else entries:
            fresh.apply(entry)
        return fresh

    def undo_last(self) -> Optional[LedgerEntry]:
        """丢弃最新的一条账本记录并重放其余记录。"""
        dropped = self.ledger.last()
        if dropped is None:
            return None
        self._adopt(self.replay(self.ledger.head(len(self.ledger) - 1)))
        logger.info("已撤销：%s", dropped)
        return dropped

    def _adopt(self, other: "DeductionSession") -> None:
        self.catalog = other.catalog
        self.players = other.players
        self.observer_hand = other.observer_hand
        self.name = other.name
        self.state = other.state
        self.ledger = other.ledger
        self.engine = other.engine
        self.estimator = other.estimator

    # ------------------------------------------------------------- snapshot --
    def to_snapshot(self) -> Dict[str, object]:
        statuses = {
            str(player.position): {
                card.key: row[card_id].value for card_id, card in enumerate(self.catalog)
            }
            for player, row in zip(self.players, self.state.rows())
        }
        return {
            "version": SNAPSHOT_VERSION,
            "name": self.name,
            "catalog": self.catalog.to_dict(),
            "players": [
                {
                    "position": player.position,
                    "name": player.name,
                    "hand_size": player.hand_size,
                    "is_observer": player.is_observer,
                }
                for player in self.players
            ],
            "observer_hand": [card_to_dict(card) for card in self.observer_hand],
            "statuses": statuses,
            "solution": {
                category.value: (card.name if card is not None else None)
                for category, card in self.state.solution().items()
            },
            "ledger": [entry_to_dict(entry) for entry in self.ledger],
        }

    @classmethod
    def from_snapshot(cls, data: Dict[str, object]) -> "DeductionSession":
        """按快照原样还原会话（不重新传播）。"""
        try:
            if data.get("version") != SNAPSHOT_VERSION:
                raise SnapshotError(f"不支持的快照版本：{data.get('version')!r}")
            catalog = CardCatalog.from_dict(data["catalog"]) if data.get("catalog") else DEFAULT_CATALOG
            players = [
                PlayerInfo(
                    position=int(item["position"]),
                    name=str(item["name"]),
                    hand_size=int(item["hand_size"]),
                    is_observer=bool(item.get("is_observer", False)),
                )
                for item in data["players"]
            ]
            if [player.position for player in players] != list(range(len(players))):
                raise SnapshotError("玩家座位必须从 0 开始连续编号")
            if sum(1 for player in players if player.is_observer) != 1:
                raise SnapshotError("快照中必须恰好有一名观察者")
            hand = [_resolve_card(catalog, item) for item in data.get("observer_hand", [])]
            session = cls(catalog, players, hand, name=data.get("name"))

            statuses = data["statuses"]
            rows = []
            for player in players:
                recorded = statuses.get(str(player.position), {})
                rows.append([CardStatus(recorded.get(card.key, CardStatus.UNKNOWN.value)) for card in catalog])
            solution = {
                category: catalog.lookup(category, name) if name else None
                for category, name in ((Category(key), value) for key, value in data.get("solution", {}).items())
            }
            session.state.load(rows, solution)
            for item in data.get("ledger", []):
                session.ledger.append(entry_from_dict(catalog, item))
        except SnapshotError:
            raise
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise SnapshotError(f"快照格式错误：{exc}") from exc
        problems = session.state.check_invariants()
        if problems:
            raise SnapshotError("快照违反一致性：" + "；".join(problems))
        return session


# ------------------------------------------------------------------ helpers --
def _resolve_card(catalog: CardCatalog, ref: CardRef, category: Optional[Category] = None) -> Card:
    if isinstance(ref, Card):
        card = catalog.lookup(ref.category, ref.name)
    elif isinstance(ref, dict):
        card = catalog.lookup(ref.get("category", category.value if category else ""), ref.get("name", ""))
    elif isinstance(ref, str):
        card = catalog.lookup(category, ref) if category is not None else catalog.find(ref)
    else:
        raise UnknownCardName(ref)
    if category is not None and card.category != category:
        raise UnknownCardName(card.name, category.value)
    return card


def card_to_dict(card: Card) -> Dict[str, str]:
    return {"category": card.category.value, "name": card.name}


def entry_to_dict(entry: LedgerEntry) -> Dict[str, object]:
    if isinstance(entry, SuggestionEvent):
        return {
            "kind": "suggestion",
            "proposer": entry.proposer,
            "suspect": entry.suspect.name,
            "weapon": entry.weapon.name,
            "room": entry.room.name,
            "responder": entry.responder,
            "revealed": card_to_dict(entry.revealed) if entry.revealed is not None else None,
        }
    return {
        "kind": "fact",
        "player": entry.player,
        "card": card_to_dict(entry.card),
        "status": entry.status.value,
    }


def entry_from_dict(catalog: CardCatalog, data: Dict[str, object]) -> LedgerEntry:
    kind = data.get("kind")
    if kind == "suggestion":
        revealed = data.get("revealed")
        return SuggestionEvent(
            proposer=int(data["proposer"]),
            suspect=catalog.lookup(Category.SUSPECT, data["suspect"]),
            weapon=catalog.lookup(Category.WEAPON, data["weapon"]),
            room=catalog.lookup(Category.ROOM, data["room"]),
            responder=int(data["responder"]) if data.get("responder") is not None else None,
            revealed=_resolve_card(catalog, revealed) if revealed else None,
        )
    if kind == "fact":
        return ManualFact(
            player=int(data["player"]),
            card=_resolve_card(catalog, data["card"]),
            status=CardStatus(data["status"]),
        )
    raise SnapshotError(f"未知的账本条目类型：{kind!r}")
