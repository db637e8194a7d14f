import json

import pytest

from cluedo.cards import DEFAULT_CATALOG, Category
from cluedo.models import (
    CardStatus,
    ContradictoryEvidence,
    HandOverflow,
    InvalidPosition,
    InvalidSuggestion,
    ManualFact,
    SnapshotError,
    SuggestionEvent,
    UnknownCardName,
)
from cluedo.session import DeductionSession, default_hand_sizes

PLAYERS = ["你", "阿光", "小美", "老王"]
HAND = ["Mrs. White", "Wrench", "Hall", "Study", "Lounge"]


@pytest.fixture
def session():
    return DeductionSession.create_game(PLAYERS, 0, HAND, hand_sizes=[5, 5, 4, 4], name="周五夜局")


def test_create_game_marks_observer_hand(session):
    white = DEFAULT_CATALOG.find("Mrs. White")
    assert session.state.get_status(0, white) == CardStatus.HAS
    for player in (1, 2, 3):
        assert session.state.get_status(player, white) == CardStatus.DOES_NOT_HAVE
    assert session.observer == 0
    assert session.players[0].is_observer


@pytest.mark.parametrize(
    "names, observer",
    [
        (["独自一人"], 0),
        (PLAYERS, 4),
        (PLAYERS, -1),
    ],
)
def test_create_game_rejects_bad_roster(names, observer):
    with pytest.raises(InvalidPosition):
        DeductionSession.create_game(names, observer, HAND)


def test_create_game_rejects_unknown_cards():
    with pytest.raises(UnknownCardName):
        DeductionSession.create_game(PLAYERS, 0, ["Banana"])


def test_create_game_rejects_mismatched_hand_sizes():
    with pytest.raises(InvalidPosition):
        DeductionSession.create_game(PLAYERS, 0, HAND, hand_sizes=[5, 5, 4])


def test_observer_hand_larger_than_declared_size():
    with pytest.raises(HandOverflow):
        DeductionSession.create_game(PLAYERS, 0, HAND, hand_sizes=[3, 5, 5, 5])


def test_default_hand_sizes():
    assert default_hand_sizes(DEFAULT_CATALOG, 4, 0, 5) == [5, 5, 5, 5]
    assert default_hand_sizes(DEFAULT_CATALOG, 4, 0, 4) == [4, 5, 5, 5]
    assert default_hand_sizes(DEFAULT_CATALOG, 3, 2, 6) == [6, 6, 6]
    created = DeductionSession.create_game(PLAYERS, 1, HAND)
    assert [player.hand_size for player in created.players] == [5, 5, 5, 5]


def test_default_hand_sizes_never_block_an_uneven_deal():
    # 实际发牌 4/5/5/4，未声明手牌数
    session = DeductionSession.create_game(PLAYERS, 0, ["Mrs. White", "Wrench", "Hall", "Study"])
    assert [player.hand_size for player in session.players] == [4, 5, 5, 5]

    shown = [
        ("Colonel Mustard", "Wrench", "Hall", "Colonel Mustard"),
        ("Mrs. White", "Rope", "Study", "Rope"),
        ("Mrs. White", "Wrench", "Library", "Library"),
        ("Mrs. White", "Wrench", "Lounge", "Lounge"),
        ("Mrs. White", "Candlestick", "Hall", "Candlestick"),
    ]
    for suspect, weapon, room, revealed in shown:
        session.record_suggestion(0, suspect, weapon, room, responder=1, revealed=revealed)
    session.record_suggestion(1, "Professor Plum", "Knife", "Kitchen", responder=2)

    held = {DEFAULT_CATALOG.find(name) for name in ("Colonel Mustard", "Rope", "Library", "Lounge", "Candlestick")}
    assert set(session.state.cards_with_status(1, CardStatus.HAS)) == held
    assert session.state.check_invariants() == []


@pytest.mark.parametrize("hand_sizes", [5, "5545", {"0": 5}])
def test_create_game_rejects_non_list_hand_sizes(hand_sizes):
    with pytest.raises(InvalidPosition):
        DeductionSession.create_game(PLAYERS, 0, HAND, hand_sizes=hand_sizes)


def test_record_suggestion_appends_to_ledger(session):
    event = session.record_suggestion(0, "Colonel Mustard", "Rope", "Library", responder=3, revealed="Rope")
    assert isinstance(event, SuggestionEvent)
    assert event.revealed == DEFAULT_CATALOG.find("Rope")
    assert session.ledger.suggestions == (event,)
    assert len(session.ledger) == 1


def test_card_refs_accept_dicts_and_cards(session):
    rope = DEFAULT_CATALOG.find("Rope")
    event = session.record_suggestion(
        0,
        {"category": "suspect", "name": "Colonel Mustard"},
        rope,
        "Library",
        responder=3,
        revealed={"category": "weapon", "name": "Rope"},
    )
    assert event.weapon == rope
    assert event.revealed == rope


@pytest.mark.parametrize(
    "kwargs, error",
    [
        (dict(proposer=9), InvalidPosition),
        (dict(responder=7), InvalidPosition),
        (dict(responder=0), InvalidPosition),
        (dict(suspect="Knife"), UnknownCardName),
        (dict(room="Attic"), UnknownCardName),
        (dict(revealed="Rope"), InvalidSuggestion),
        (dict(responder=2, revealed="Candlestick"), InvalidSuggestion),
    ],
)
def test_bad_suggestions_are_rejected_before_mutation(session, kwargs, error):
    args = dict(proposer=0, suspect="Colonel Mustard", weapon="Rope", room="Library", responder=None, revealed=None)
    args.update(kwargs)
    before = session.state.rows()
    with pytest.raises(error):
        session.record_suggestion(**args)
    assert session.state.rows() == before
    assert len(session.ledger) == 0


def test_set_card_status_records_fact(session):
    fact = session.set_card_status(2, "Knife", "has")
    assert fact == ManualFact(player=2, card=DEFAULT_CATALOG.find("Knife"), status=CardStatus.HAS)
    assert session.ledger.facts == (fact,)
    assert session.state.get_status(1, DEFAULT_CATALOG.find("Knife")) == CardStatus.DOES_NOT_HAVE


def test_set_card_status_rejects_unknown_status(session):
    with pytest.raises(InvalidSuggestion):
        session.set_card_status(2, "Knife", "probably")
    assert len(session.ledger) == 0


def test_contradiction_reports_conflicting_triple(session):
    with pytest.raises(ContradictoryEvidence) as excinfo:
        session.set_card_status(1, "Mrs. White", CardStatus.HAS)
    assert excinfo.value.as_dict() == {
        "player": 1,
        "card": {"category": "suspect", "name": "Mrs. White"},
        "attempted": "has",
    }


def test_contradiction_without_transaction_keeps_partial_state(session):
    with pytest.raises(ContradictoryEvidence):
        session.set_card_status(1, "Mrs. White", CardStatus.HAS)
    assert len(session.ledger) == 1


def test_transaction_rolls_back_on_contradiction(session):
    session.record_suggestion(0, "Colonel Mustard", "Rope", "Library", responder=3, revealed="Rope")
    before = session.to_snapshot()
    with pytest.raises(ContradictoryEvidence):
        with session.transaction():
            session.set_card_status(1, "Rope", CardStatus.HAS)
    assert session.to_snapshot() == before


def test_snapshot_round_trip(session):
    session.record_suggestion(0, "Colonel Mustard", "Rope", "Library", responder=3, revealed="Rope")
    session.record_suggestion(1, "Professor Plum", "Knife", "Kitchen")
    session.set_card_status(2, "Candlestick", CardStatus.HAS)

    snapshot = json.loads(json.dumps(session.to_snapshot()))
    restored = DeductionSession.from_snapshot(snapshot)

    assert restored.state.rows() == session.state.rows()
    assert restored.query_solution() == session.query_solution()
    assert list(restored.ledger) == list(session.ledger)
    assert restored.to_snapshot() == session.to_snapshot()
    assert restored.name == "周五夜局"


@pytest.mark.parametrize(
    "mutate",
    [
        lambda data: data.update(version=99),
        lambda data: data.pop("players"),
        lambda data: data["players"][1].update(is_observer=True),
        lambda data: data["statuses"]["1"].update({"suspect:Mrs. White": "has"}),
        lambda data: data["ledger"].append({"kind": "rumour"}),
        lambda data: data["solution"].update(weapon="Banana"),
    ],
)
def test_malformed_snapshots_are_rejected(session, mutate):
    data = session.to_snapshot()
    mutate(data)
    with pytest.raises(SnapshotError):
        DeductionSession.from_snapshot(data)


def test_replay_rebuilds_identical_state(session):
    session.record_suggestion(0, "Colonel Mustard", "Rope", "Library", responder=3, revealed="Rope")
    session.record_suggestion(2, "Miss Scarlett", "Knife", "Kitchen", responder=1)
    session.set_card_status(1, "Knife", CardStatus.HAS)

    rebuilt = session.replay()
    assert rebuilt.state.rows() == session.state.rows()
    assert list(rebuilt.ledger) == list(session.ledger)


def test_undo_last_discards_newest_entry(session):
    session.record_suggestion(0, "Colonel Mustard", "Rope", "Library", responder=3, revealed="Rope")
    after_first = session.state.rows()
    session.set_card_status(1, "Knife", CardStatus.HAS)

    dropped = session.undo_last()
    assert isinstance(dropped, ManualFact)
    assert session.state.rows() == after_first
    assert len(session.ledger) == 1


def test_undo_on_empty_ledger(session):
    assert session.undo_last() is None


def test_query_solution_and_is_solved(session):
    assert session.query_solution() == {Category.SUSPECT: None, Category.WEAPON: None, Category.ROOM: None}
    assert not session.is_solved()
