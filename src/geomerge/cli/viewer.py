from __future__ import annotations

import argparse
import itertools
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Sequence

from geomerge.config import GameConfig
from geomerge.content.io import AutosaveModule, GameStorage, JsonFileKeyValueStore
from geomerge.sim.core import GameSession
from geomerge.sim.grid import CellBounds, CellIndex
from geomerge.sim.hash import state_hash
from geomerge.sim.interactions import (
    DROP,
    INCOMPATIBLE,
    MERGE,
    NOTHING_TO_DO,
    OUT_OF_RANGE,
    PICKUP,
    InteractionOutcome,
    is_within_reach,
)
from geomerge.sim.movement import DiscreteMovement, MovementController, PositionFeed, PositionFeedMovement
from geomerge.sim.state import GameState
from geomerge.sim.viewport import ClickCallback, MapView, Renderer, ViewportBounds, ViewportManager

DEFAULT_STORE_PATH = "saves/geomerge_store.json"
COMMAND_DIRECTIONS = {"n": "north", "s": "south", "e": "east", "w": "west"}


def describe_outcome(outcome: InteractionOutcome) -> str:
    where = f"cell {outcome.cell.key}"
    if outcome.kind == PICKUP:
        message = f"picked up {outcome.held_token} from {where}"
    elif outcome.kind == DROP:
        message = f"dropped {outcome.cell_value} on {where}"
    elif outcome.kind == MERGE:
        message = f"merged into {outcome.cell_value} on {where}"
    elif outcome.kind == OUT_OF_RANGE:
        message = f"{where} is out of reach (distance {outcome.distance})"
    elif outcome.kind == INCOMPATIBLE:
        message = f"cannot combine {outcome.held_token} with {outcome.cell_value}"
    elif outcome.kind == NOTHING_TO_DO:
        message = "nothing to pick up and nothing in hand"
    else:
        message = outcome.kind
    if outcome.won:
        message += f" - you reached {outcome.cell_value}, you win!"
    return message


@dataclass
class TextMapView:
    """Square window of cells kept centered on a position."""

    radius_cells: int
    cell_size: float
    center: tuple[float, float] = (0.0, 0.0)

    def get_bounds(self) -> ViewportBounds:
        return ViewportBounds.around(self.center[0], self.center[1], self.radius_cells, self.cell_size)

    def set_center(self, lat: float, lng: float) -> None:
        self.center = (lat, lng)


@dataclass
class TextRenderer:
    """Renderer that keeps primitives as plain records for terminal output."""

    borders: dict[int, tuple[CellIndex, ClickCallback]] = field(default_factory=dict)
    markers: dict[int, tuple[CellIndex, int, ClickCallback]] = field(default_factory=dict)
    player_position: tuple[float, float] | None = None
    _handles: Any = field(default_factory=lambda: itertools.count(1), init=False, repr=False)

    def create_cell_border(self, cell: CellIndex, bounds: CellBounds, on_click: ClickCallback) -> int:
        handle = next(self._handles)
        self.borders[handle] = (cell, on_click)
        return handle

    def remove_cell_border(self, handle: int) -> None:
        del self.borders[handle]

    def create_token_marker(
        self,
        cell: CellIndex,
        center: tuple[float, float],
        value: int,
        on_click: ClickCallback,
    ) -> int:
        handle = next(self._handles)
        self.markers[handle] = (cell, value, on_click)
        return handle

    def update_token_marker(self, handle: int, value: int) -> None:
        cell, _, on_click = self.markers[handle]
        self.markers[handle] = (cell, value, on_click)

    def remove_token_marker(self, handle: int) -> None:
        del self.markers[handle]

    def move_player_marker(self, lat: float, lng: float) -> None:
        self.player_position = (lat, lng)

    def marker_values(self) -> dict[CellIndex, int]:
        return {cell: value for cell, value, _ in self.markers.values()}

    def visible_cells(self) -> set[CellIndex]:
        return {cell for cell, _ in self.borders.values()}

    def click(self, cell: CellIndex) -> bool:
        """Route a click to the topmost primitive on ``cell``; False if nothing is drawn there."""
        for marker_cell, _, on_click in list(self.markers.values()):
            if marker_cell == cell:
                on_click()
                return True
        for border_cell, on_click in list(self.borders.values()):
            if border_cell == cell:
                on_click()
                return True
        return False


class AsciiViewer:
    """Read-only projection of the drawn cells for terminal display."""

    def render(self, session: GameSession, renderer: TextRenderer) -> str:
        player_cell = session.player_cell()
        held = session.state.player.held_token
        lines = [
            f"player={player_cell.key} held={held if held is not None else '-'} "
            f"modified_cells={len(session.state.overlay)}"
        ]

        cells = renderer.visible_cells()
        if not cells:
            return "\n".join(lines + ["<nothing drawn>"])

        values = renderer.marker_values()
        rows = sorted({cell.row for cell in cells}, reverse=True)
        cols = sorted({cell.col for cell in cells})
        for row in rows:
            glyphs: list[str] = []
            for col in cols:
                cell = CellIndex(row, col)
                value = values.get(cell)
                text = str(value) if value is not None else "."
                if cell == player_cell:
                    text = "@" if value is None else f"@{value}"
                elif value is None and not is_within_reach(session.state, cell):
                    text = " "
                glyphs.append(f"{text:>4}")
            lines.append("".join(glyphs))
        return "\n".join(lines)


@dataclass
class SessionHandles:
    session: GameSession
    viewport: ViewportManager
    movement: MovementController
    storage: GameStorage


def start_session(
    config: GameConfig,
    *,
    storage: GameStorage,
    renderer: Renderer,
    map_view: MapView,
    position_feed: PositionFeed | None = None,
    on_outcome: Callable[[InteractionOutcome], None] | None = None,
    on_movement_error: Callable[[str], None] | None = None,
) -> SessionHandles:
    """Restore (or create) a game and wire viewport, autosave and movement."""
    state = GameState.create(config)
    storage.load(state)
    session = GameSession(state=state)

    viewport = ViewportManager(renderer, map_view=map_view, on_outcome=on_outcome)
    session.register_module(viewport)
    session.register_module(AutosaveModule(storage))

    map_view.set_center(state.player.lat, state.player.lng)
    viewport.on_viewport_settled()

    movement = MovementController(
        DiscreteMovement(session),
        PositionFeedMovement(session, position_feed),
        on_error=on_movement_error,
    )
    movement.use_discrete()
    return SessionHandles(session=session, viewport=viewport, movement=movement, storage=storage)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="geomerge-text", description="Play geomerge in the terminal.")
    parser.add_argument("--save-path", default=DEFAULT_STORE_PATH, help="Key-value JSON file holding the saved game.")
    parser.add_argument("--namespace", default=None, help="Seed namespace for generated tokens.")
    return parser


def run_text_viewer(
    *,
    save_path: str = DEFAULT_STORE_PATH,
    namespace: str | None = None,
    input_fn: Callable[[str], str] = input,
    output_fn: Callable[[str], None] = print,
) -> int:
    overrides = {"namespace": namespace} if namespace else {}
    config = GameConfig.from_env(**overrides)
    storage = GameStorage(JsonFileKeyValueStore(Path(save_path)))
    renderer = TextRenderer()
    map_view = TextMapView(radius_cells=config.visible_radius, cell_size=config.cell_size_degrees)

    def report_outcome(outcome: InteractionOutcome) -> None:
        output_fn(describe_outcome(outcome))

    def report_movement_error(message: str) -> None:
        output_fn(f"[geomerge.viewer] position feed: {message}; using buttons")

    handles = start_session(
        config,
        storage=storage,
        renderer=renderer,
        map_view=map_view,
        on_outcome=report_outcome,
        on_movement_error=report_movement_error,
    )
    session = handles.session
    view = AsciiViewer()

    output_fn("geomerge. Commands: n | s | e | w | click <d_row> <d_col> | sensor | new | show | quit")
    output_fn(view.render(session, renderer))

    while True:
        try:
            raw = input_fn("> ").strip()
        except EOFError:
            break
        if raw in {"quit", "exit"}:
            break
        if raw == "show":
            output_fn(view.render(session, renderer))
            continue
        if raw in COMMAND_DIRECTIONS:
            if handles.movement.active is not handles.movement.discrete:
                handles.movement.use_discrete()
            handles.movement.discrete.move(COMMAND_DIRECTIONS[raw])
            output_fn(view.render(session, renderer))
            continue
        if raw == "sensor":
            handles.movement.use_position_feed()
            continue
        if raw == "new":
            session.new_game()
            output_fn("new game started")
            output_fn(view.render(session, renderer))
            continue

        parts = raw.split()
        if len(parts) == 3 and parts[0] == "click":
            try:
                d_row, d_col = int(parts[1]), int(parts[2])
            except ValueError:
                output_fn("click expects two integers")
                continue
            target = session.player_cell().offset(d_row, d_col)
            if not renderer.click(target):
                output_fn(f"cell {target.key} is not on screen")
            output_fn(view.render(session, renderer))
            continue

        output_fn("unknown command")

    output_fn(f"[geomerge.viewer] exiting state_hash={state_hash(session.state)}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    return run_text_viewer(save_path=args.save_path, namespace=args.namespace)


if __name__ == "__main__":
    raise SystemExit(main())
