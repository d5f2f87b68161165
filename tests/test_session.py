import pytest

from geomerge.config import GameConfig
from geomerge.sim.core import MAX_EVENT_TRACE, GameSession
from geomerge.sim.grid import CellIndex
from geomerge.sim.rules import SessionModule
from geomerge.sim.state import GameState


class RecordingModule(SessionModule):
    name = "recording"

    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def on_session_start(self, session) -> None:
        self.calls.append(("start",))

    def on_player_moved(self, session, previous_cell, current_cell) -> None:
        self.calls.append(("moved", previous_cell, current_cell))

    def on_interaction(self, session, outcome) -> None:
        self.calls.append(("interaction", outcome.kind, session.state.player.held_token))

    def on_new_game(self, session) -> None:
        self.calls.append(("new_game", len(session.state.overlay)))


def _build_session() -> GameSession:
    config = GameConfig(anchor_lat=0.00005, anchor_lng=0.00005)
    return GameSession(state=GameState.create(config, luck=lambda key: 0.99))


def test_register_module_rejects_duplicate_names() -> None:
    session = _build_session()
    session.register_module(RecordingModule())

    with pytest.raises(ValueError, match="duplicate session module name"):
        session.register_module(RecordingModule())
    assert isinstance(session.get_module("recording"), RecordingModule)
    assert session.get_module("missing") is None


def test_move_player_steps_whole_cells_and_notifies_modules() -> None:
    session = _build_session()
    module = RecordingModule()
    session.register_module(module)

    session.move_player(1, 0)
    session.move_player(0, -2)

    assert session.player_cell() == CellIndex(1, -2)
    assert module.calls == [
        ("start",),
        ("moved", CellIndex(0, 0), CellIndex(1, 0)),
        ("moved", CellIndex(1, 0), CellIndex(1, -2)),
    ]


def test_move_player_rejects_non_integer_steps() -> None:
    session = _build_session()

    with pytest.raises(ValueError, match="d_row"):
        session.move_player(0.5, 0)
    with pytest.raises(ValueError, match="d_col"):
        session.move_player(0, True)


@pytest.mark.parametrize("anchor", [0.0, 0.0003, 1.0, 10.0])
def test_move_player_lands_exactly_on_target_cell_from_cell_edges(anchor) -> None:
    session = GameSession(GameConfig(anchor_lat=anchor, anchor_lng=anchor))

    for _ in range(2000):
        expected = session.player_cell().offset(1, 1)
        assert session.move_player(1, 1) == expected
        assert session.player_cell() == expected

    for _ in range(50):
        expected = session.player_cell().offset(-1, 0)
        assert session.move_player(-1, 0) == expected


def test_move_player_to_rejects_non_finite_position_without_moving() -> None:
    session = _build_session()
    module = RecordingModule()
    session.register_module(module)
    before = (session.state.player.lat, session.state.player.lng)

    with pytest.raises(ValueError, match="finite"):
        session.move_player_to(float("nan"), 0.0)
    with pytest.raises(ValueError, match="finite"):
        session.move_player_to(0.0, float("inf"))

    assert (session.state.player.lat, session.state.player.lng) == before
    assert module.calls == [("start",)]
    assert session.get_event_trace() == []


def test_modules_observe_committed_interaction_state() -> None:
    session = _build_session()
    module = RecordingModule()
    session.register_module(module)
    session.state.overlay.set(CellIndex(0, 1), 2)

    session.interact(CellIndex(0, 1))

    assert module.calls[-1] == ("interaction", "pickup", 2)


def test_new_game_clears_overlay_and_resets_player() -> None:
    session = _build_session()
    module = RecordingModule()
    session.register_module(module)
    cell = CellIndex(0, 1)
    baseline = session.state.generator.generate(cell)
    session.state.overlay.set(cell, 2)
    session.state.overlay.set(CellIndex(1, 1), 2)
    session.interact(cell)
    session.interact(CellIndex(1, 1))
    session.move_player(4, 4)

    session.new_game()

    assert session.state.overlay.get(cell) == baseline
    assert session.state.overlay.get(CellIndex(1, 1)) is None
    assert session.state.player.held_token is None
    assert session.player_cell() == CellIndex(0, 0)
    assert module.calls[-1] == ("new_game", 0)


def test_event_trace_is_bounded() -> None:
    session = _build_session()

    for _ in range(MAX_EVENT_TRACE + 10):
        session.interact(CellIndex(0, 0))

    trace = session.get_event_trace()
    assert len(trace) == MAX_EVENT_TRACE
    assert trace[0]["event_id"] == 10
    assert trace[-1]["params"]["kind"] == "nothing_to_do"


def test_session_rejects_config_that_differs_from_state() -> None:
    state = GameState.create(GameConfig())

    with pytest.raises(ValueError, match="config does not match"):
        GameSession(GameConfig(win_value=64), state=state)
