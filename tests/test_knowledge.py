import pytest

from cluedo.cards import DEFAULT_CATALOG, Card, Category
from cluedo.knowledge import KnowledgeState
from cluedo.models import (
    CardStatus,
    ContradictoryEvidence,
    HandOverflow,
    InvalidPosition,
    PlayerInfo,
    UnknownCardName,
)

ROPE = DEFAULT_CATALOG.lookup(Category.WEAPON, "Rope")
KNIFE = DEFAULT_CATALOG.lookup(Category.WEAPON, "Knife")
WRENCH = DEFAULT_CATALOG.lookup(Category.WEAPON, "Wrench")
HALL = DEFAULT_CATALOG.lookup(Category.ROOM, "Hall")


@pytest.fixture
def state():
    players = [
        PlayerInfo(position=0, name="你", hand_size=3, is_observer=True),
        PlayerInfo(position=1, name="阿光", hand_size=3),
        PlayerInfo(position=2, name="小美", hand_size=2),
    ]
    return KnowledgeState(DEFAULT_CATALOG, players)


def test_status_defaults_to_unknown(state):
    assert state.get_status(1, ROPE) == CardStatus.UNKNOWN
    assert state.get_solution(Category.WEAPON) is None


def test_weaker_status_is_a_no_op(state):
    assert state.set_status(1, ROPE, CardStatus.MAYBE_HAS) is True
    assert state.set_status(1, ROPE, CardStatus.UNKNOWN) is False
    assert state.set_status(1, ROPE, CardStatus.MAYBE_HAS) is False
    assert state.get_status(1, ROPE) == CardStatus.MAYBE_HAS


def test_maybe_has_does_not_weaken_terminal_status(state):
    state.set_status(1, ROPE, CardStatus.DOES_NOT_HAVE)
    assert state.set_status(1, ROPE, CardStatus.MAYBE_HAS) is False
    assert state.get_status(1, ROPE) == CardStatus.DOES_NOT_HAVE


def test_has_cascades_does_not_have_to_other_players(state):
    state.set_status(1, ROPE, CardStatus.MAYBE_HAS)
    state.set_status(2, ROPE, CardStatus.HAS)
    assert state.get_status(0, ROPE) == CardStatus.DOES_NOT_HAVE
    assert state.get_status(1, ROPE) == CardStatus.DOES_NOT_HAVE
    assert state.holder_of(ROPE) == 2
    assert state.has_count(2) == 1


def test_opposite_terminal_status_is_contradictory(state):
    state.set_status(1, ROPE, CardStatus.HAS)
    with pytest.raises(ContradictoryEvidence) as excinfo:
        state.set_status(1, ROPE, CardStatus.DOES_NOT_HAVE)
    assert excinfo.value.player == 1
    assert excinfo.value.card == ROPE
    assert excinfo.value.attempted == "does_not_have"


def test_second_holder_is_contradictory(state):
    state.set_status(1, ROPE, CardStatus.HAS)
    with pytest.raises(ContradictoryEvidence):
        state.set_status(2, ROPE, CardStatus.HAS)
    assert state.holder_of(ROPE) == 1


def test_hand_overflow(state):
    state.set_status(2, ROPE, CardStatus.HAS)
    state.set_status(2, KNIFE, CardStatus.HAS)
    with pytest.raises(HandOverflow) as excinfo:
        state.set_status(2, HALL, CardStatus.HAS)
    assert excinfo.value.player == 2
    assert state.get_status(2, HALL) == CardStatus.UNKNOWN
    assert state.check_invariants() == []


def test_solution_cascades_and_is_final(state):
    assert state.set_solution(Category.WEAPON, ROPE) is True
    assert all(state.get_status(p, ROPE) == CardStatus.DOES_NOT_HAVE for p in range(3))
    assert state.set_solution(Category.WEAPON, ROPE) is False
    with pytest.raises(ContradictoryEvidence):
        state.set_solution(Category.WEAPON, KNIFE)
    assert state.get_solution(Category.WEAPON) == ROPE


def test_solution_card_cannot_be_held(state):
    state.set_solution(Category.WEAPON, ROPE)
    with pytest.raises(ContradictoryEvidence):
        state.set_status(0, ROPE, CardStatus.HAS)


def test_held_card_cannot_become_solution(state):
    state.set_status(0, WRENCH, CardStatus.HAS)
    with pytest.raises(ContradictoryEvidence) as excinfo:
        state.set_solution(Category.WEAPON, WRENCH)
    assert excinfo.value.player == 0
    assert state.get_solution(Category.WEAPON) is None


def test_bad_references(state):
    with pytest.raises(InvalidPosition):
        state.get_status(3, ROPE)
    with pytest.raises(InvalidPosition):
        state.set_status(-1, ROPE, CardStatus.HAS)
    with pytest.raises(UnknownCardName):
        state.get_status(0, Card(Category.WEAPON, "Banana"))


def test_revision_counts_every_write(state):
    before = state.revision
    state.set_status(1, ROPE, CardStatus.HAS)
    assert state.revision - before == 3
    state.set_status(1, ROPE, CardStatus.HAS)
    assert state.revision - before == 3


def test_load_restores_table_exactly(state):
    state.set_status(1, ROPE, CardStatus.HAS)
    state.set_status(2, HALL, CardStatus.MAYBE_HAS)
    other = KnowledgeState(DEFAULT_CATALOG, state.players)
    other.load(state.rows(), state.solution())
    assert other.rows() == state.rows()
    assert other.has_count(1) == 1
