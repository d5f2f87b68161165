from __future__ import annotations

import copy
import logging
import math
from typing import Any

from geomerge.config import GameConfig
from geomerge.sim.grid import CellIndex, cell_center, to_cell_index
from geomerge.sim.interactions import InteractionOutcome, resolve_interaction
from geomerge.sim.rules import SessionModule
from geomerge.sim.state import GameState

_logger = logging.getLogger(__name__)

MAX_EVENT_TRACE = 256
PLAYER_MOVED_EVENT_TYPE = "player_moved"
INTERACTION_EVENT_TYPE = "interaction"
WIN_EVENT_TYPE = "win"
NEW_GAME_EVENT_TYPE = "new_game"


class GameSession:
    """Single-threaded event dispatcher over one ``GameState``.

    Every public handler commits its state change completely and only then
    notifies the registered modules, so modules always observe a consistent
    state and at most one transition is in flight.
    """

    def __init__(self, config: GameConfig | None = None, *, state: GameState | None = None) -> None:
        if state is None:
            state = GameState.create(config)
        elif config is not None and config != state.config:
            raise ValueError("config does not match the provided state")
        self.state = state
        self.modules: list[SessionModule] = []
        self._event_trace: list[dict[str, Any]] = []
        self._next_event_id = 0

    @property
    def config(self) -> GameConfig:
        return self.state.config

    def get_module(self, module_name: str) -> SessionModule | None:
        for module in self.modules:
            if module.name == module_name:
                return module
        return None

    def register_module(self, module: SessionModule) -> None:
        if any(existing.name == module.name for existing in self.modules):
            raise ValueError(f"duplicate session module name: {module.name}")
        self.modules.append(module)
        module.on_session_start(self)

    def get_event_trace(self) -> list[dict[str, Any]]:
        return copy.deepcopy(self._event_trace)

    def player_cell(self) -> CellIndex:
        return self.state.player_cell()

    def move_player(self, d_row: int, d_col: int) -> CellIndex:
        """Move the player by whole cells, keeping the offset inside the cell."""
        if isinstance(d_row, bool) or not isinstance(d_row, int):
            raise ValueError("d_row must be an integer")
        if isinstance(d_col, bool) or not isinstance(d_col, int):
            raise ValueError("d_col must be an integer")
        cell_size = self.config.cell_size_degrees
        player = self.state.player
        target = self.player_cell().offset(d_row, d_col)
        lat = player.lat + d_row * cell_size
        lng = player.lng + d_col * cell_size
        # rounding near a cell edge can land one cell short or long
        center_lat, center_lng = cell_center(target, cell_size)
        if math.floor(lat / cell_size) != target.row:
            lat = center_lat
        if math.floor(lng / cell_size) != target.col:
            lng = center_lng
        return self.move_player_to(lat, lng)

    def move_player_to(self, lat: float, lng: float) -> CellIndex:
        lat = float(lat)
        lng = float(lng)
        if not (math.isfinite(lat) and math.isfinite(lng)):
            raise ValueError("player position must be finite")
        previous_cell = self.player_cell()
        current_cell = to_cell_index(lat, lng, self.config.cell_size_degrees)
        self.state.player.lat = lat
        self.state.player.lng = lng
        self._append_event(
            PLAYER_MOVED_EVENT_TYPE,
            {"from": previous_cell.key, "to": current_cell.key, "lat": lat, "lng": lng},
        )
        for module in self.modules:
            module.on_player_moved(self, previous_cell, current_cell)
        return current_cell

    def interact(self, cell: CellIndex) -> InteractionOutcome:
        outcome = resolve_interaction(self.state, cell)
        self._append_event(INTERACTION_EVENT_TYPE, outcome.to_dict())
        if outcome.won:
            _logger.info("win reached at %s with value %s", cell.key, outcome.cell_value)
            self._append_event(WIN_EVENT_TYPE, {"cell": cell.key, "value": outcome.cell_value})
        for module in self.modules:
            module.on_interaction(self, outcome)
        return outcome

    def new_game(self) -> None:
        self.state.reset()
        self._append_event(NEW_GAME_EVENT_TYPE, {"player_cell": self.player_cell().key})
        for module in self.modules:
            module.on_new_game(self)

    def _append_event(self, event_type: str, params: dict[str, Any]) -> None:
        self._event_trace.append({"event_id": self._next_event_id, "event_type": event_type, "params": params})
        self._next_event_id += 1
        if len(self._event_trace) > MAX_EVENT_TRACE:
            del self._event_trace[: len(self._event_trace) - MAX_EVENT_TRACE]
