import itertools
from collections import Counter

import pytest

from geomerge.config import GameConfig
from geomerge.sim.core import GameSession
from geomerge.sim.grid import CellIndex
from geomerge.sim.state import GameState
from geomerge.sim.viewport import ViewportBounds, ViewportManager


class RecordingRenderer:
    def __init__(self) -> None:
        self.calls: Counter[str] = Counter()
        self.borders: dict[int, tuple] = {}
        self.markers: dict[int, list] = {}
        self.player_position = None
        self._handles = itertools.count(1)

    def create_cell_border(self, cell, bounds, on_click):
        self.calls["create_cell_border"] += 1
        handle = next(self._handles)
        self.borders[handle] = (cell, on_click)
        return handle

    def remove_cell_border(self, handle) -> None:
        self.calls["remove_cell_border"] += 1
        del self.borders[handle]

    def create_token_marker(self, cell, center, value, on_click):
        self.calls["create_token_marker"] += 1
        handle = next(self._handles)
        self.markers[handle] = [cell, value, on_click]
        return handle

    def update_token_marker(self, handle, value) -> None:
        self.calls["update_token_marker"] += 1
        self.markers[handle][1] = value

    def remove_token_marker(self, handle) -> None:
        self.calls["remove_token_marker"] += 1
        del self.markers[handle]

    def move_player_marker(self, lat, lng) -> None:
        self.player_position = (lat, lng)

    def values(self) -> dict:
        return {cell: value for cell, value, _ in self.markers.values()}

    def click_border(self, cell) -> None:
        for border_cell, on_click in list(self.borders.values()):
            if border_cell == cell:
                on_click()
                return
        raise AssertionError(f"no border for {cell}")


class FixedMapView:
    def __init__(self, bounds: ViewportBounds) -> None:
        self.bounds = bounds
        self.centers: list[tuple[float, float]] = []

    def get_bounds(self) -> ViewportBounds:
        return self.bounds

    def set_center(self, lat: float, lng: float) -> None:
        self.centers.append((lat, lng))


def _bounds(rows: range, cols: range, cell_size: float = 0.0001) -> ViewportBounds:
    inset = cell_size / 10
    return ViewportBounds(
        south=rows.start * cell_size + inset,
        west=cols.start * cell_size + inset,
        north=(rows.stop - 1) * cell_size + cell_size - inset,
        east=(cols.stop - 1) * cell_size + cell_size - inset,
    )


def _build(luck=None, padding: int = 0, map_view=None):
    config = GameConfig(anchor_lat=0.00005, anchor_lng=0.00005)
    state = GameState.create(config) if luck is None else GameState.create(config, luck=luck)
    session = GameSession(state=state)
    renderer = RecordingRenderer()
    manager = ViewportManager(renderer, padding=padding, map_view=map_view)
    session.register_module(manager)
    return session, renderer, manager


def test_reconcile_spawns_one_border_per_needed_cell_and_markers_for_tokens() -> None:
    session, renderer, manager = _build()

    manager.reconcile(_bounds(range(-3, 4), range(-3, 4)))

    expected = {CellIndex(row, col) for row in range(-3, 4) for col in range(-3, 4)}
    assert set(manager.visible_cells()) == expected
    assert renderer.calls["create_cell_border"] == 49
    expected_tokens = {cell: 1 for cell in expected if session.state.generator.generate(cell) is not None}
    assert renderer.values() == expected_tokens


def test_reconcile_twice_with_same_bounds_causes_no_churn() -> None:
    _, renderer, manager = _build(padding=1)
    bounds = _bounds(range(0, 6), range(0, 6))

    manager.reconcile(bounds)
    first = Counter(renderer.calls)
    manager.reconcile(bounds)

    assert renderer.calls == first


def test_panning_despawns_cells_that_left_view_without_touching_overlay() -> None:
    session, renderer, manager = _build()
    kept = CellIndex(0, 0)
    session.state.overlay.set(CellIndex(0, 5), 64)

    manager.reconcile(_bounds(range(0, 1), range(0, 6)))
    manager.reconcile(_bounds(range(0, 1), range(0, 2)))

    assert manager.visible_cells() == [kept, CellIndex(0, 1)]
    assert not manager.is_visible(CellIndex(0, 5))
    assert renderer.calls["remove_cell_border"] == 4
    assert len(renderer.borders) == 2
    assert session.state.overlay.get(CellIndex(0, 5)) == 64


def test_respawned_cell_shows_current_value_and_baseline_regenerates() -> None:
    session, renderer, manager = _build()
    near = _bounds(range(-4, 5), range(-4, 5))
    far = _bounds(range(100, 103), range(100, 103))
    modified = CellIndex(2, 2)
    session.state.overlay.set(modified, 16)

    manager.reconcile(near)
    before = renderer.values()
    manager.reconcile(far)
    assert not any(manager.is_visible(CellIndex(row, col)) for row in range(-4, 5) for col in range(-4, 5))
    manager.reconcile(near)

    assert renderer.values() == before
    assert renderer.values()[modified] == 16
    for cell in manager.visible_cells():
        if cell != modified:
            assert renderer.values().get(cell) == session.state.generator.generate(cell)


def test_reconcile_refreshes_values_changed_while_visible() -> None:
    session, renderer, manager = _build(luck=lambda key: 0.99)
    bounds = _bounds(range(0, 3), range(0, 3))
    manager.reconcile(bounds)
    assert renderer.values() == {}

    session.state.overlay.set(CellIndex(1, 1), 2)
    manager.reconcile(bounds)
    session.state.overlay.set(CellIndex(1, 1), 4)
    manager.reconcile(bounds)
    session.state.overlay.set(CellIndex(1, 1), None)
    manager.reconcile(bounds)

    assert renderer.calls["create_token_marker"] == 1
    assert renderer.calls["update_token_marker"] == 1
    assert renderer.calls["remove_token_marker"] == 1
    assert renderer.values() == {}


def test_click_routes_into_interaction_and_refreshes_visual() -> None:
    session, renderer, manager = _build(luck=lambda key: 0.99)
    outcomes = []
    manager.on_outcome = outcomes.append
    session.state.overlay.set(CellIndex(1, 0), 2)
    manager.reconcile(_bounds(range(-1, 3), range(-1, 3)))

    renderer.click_border(CellIndex(1, 0))
    renderer.click_border(CellIndex(0, 1))

    assert [outcome.kind for outcome in outcomes] == ["pickup", "drop"]
    assert renderer.values() == {CellIndex(0, 1): 2}
    assert session.state.player.held_token is None


def test_rejected_click_leaves_visuals_alone() -> None:
    session, renderer, manager = _build(luck=lambda key: 0.99)
    manager.reconcile(_bounds(range(0, 6), range(0, 6)))
    before = Counter(renderer.calls)

    renderer.click_border(CellIndex(5, 5))

    assert renderer.calls == before
    assert session.get_event_trace()[-1]["params"]["kind"] == "out_of_range"


def test_player_movement_recenters_map_and_reconciles() -> None:
    map_view = FixedMapView(_bounds(range(0, 2), range(0, 2)))
    session, renderer, manager = _build(map_view=map_view)

    map_view.bounds = _bounds(range(1, 3), range(0, 2))
    session.move_player(1, 0)

    assert map_view.centers == [(session.state.player.lat, session.state.player.lng)]
    assert renderer.player_position == (session.state.player.lat, session.state.player.lng)
    assert set(manager.visible_cells()) == {CellIndex(1, 0), CellIndex(1, 1), CellIndex(2, 0), CellIndex(2, 1)}


def test_new_game_restores_baseline_markers_of_visible_cells() -> None:
    session, renderer, manager = _build()
    bounds = _bounds(range(-2, 3), range(-2, 3))
    manager.reconcile(bounds)
    baseline = renderer.values()
    for cell in manager.visible_cells():
        session.state.overlay.set(cell, 8)
    manager.reconcile(bounds)
    assert set(renderer.values().values()) == {8}

    session.new_game()

    assert renderer.values() == baseline


def test_clear_removes_every_visual_but_keeps_overlay() -> None:
    session, renderer, manager = _build()
    session.state.overlay.set(CellIndex(0, 0), 4)
    manager.reconcile(_bounds(range(0, 3), range(0, 3)))

    manager.clear()

    assert renderer.borders == {}
    assert renderer.markers == {}
    assert session.state.overlay.get(CellIndex(0, 0)) == 4


def test_manager_requires_registration_and_map_view() -> None:
    manager = ViewportManager(RecordingRenderer(), padding=0)

    with pytest.raises(ValueError, match="not registered"):
        manager.reconcile(_bounds(range(0, 1), range(0, 1)))
    with pytest.raises(ValueError, match="no map view"):
        manager.on_viewport_settled()
