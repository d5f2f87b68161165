from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from geomerge.sim.grid import CellIndex, chebyshev_distance
from geomerge.sim.state import GameState

_logger = logging.getLogger(__name__)

PICKUP = "pickup"
DROP = "drop"
MERGE = "merge"
OUT_OF_RANGE = "out_of_range"
INCOMPATIBLE = "incompatible"
NOTHING_TO_DO = "nothing_to_do"

ACCEPTED_KINDS = frozenset({PICKUP, DROP, MERGE})


@dataclass(frozen=True)
class InteractionOutcome:
    """Result of one click on a cell.

    ``held_token`` and ``cell_value`` describe the state after the
    interaction; for rejected kinds they are the unchanged values.
    """

    kind: str
    cell: CellIndex
    held_token: int | None
    cell_value: int | None
    distance: int
    won: bool = False

    @property
    def ok(self) -> bool:
        return self.kind in ACCEPTED_KINDS

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "cell": self.cell.key,
            "held_token": self.held_token,
            "cell_value": self.cell_value,
            "distance": self.distance,
            "won": self.won,
        }


def is_within_reach(state: GameState, cell: CellIndex) -> bool:
    return chebyshev_distance(state.player_cell(), cell) <= state.config.interaction_radius


def _reached_win(state: GameState, held_token: int | None, cell_value: int | None) -> bool:
    return max(held_token or 0, cell_value or 0) >= state.config.win_value


def resolve_interaction(state: GameState, cell: CellIndex) -> InteractionOutcome:
    """Apply the pickup/drop/merge transition for ``cell`` or reject it.

    The transition is decided from ``(held_token, cell_value)`` before any
    write, then the overlay and the player are updated together.
    """
    distance = chebyshev_distance(state.player_cell(), cell)
    held = state.player.held_token
    current = state.overlay.get(cell)

    if distance > state.config.interaction_radius:
        return InteractionOutcome(OUT_OF_RANGE, cell, held, current, distance)

    if held is None and current is None:
        return InteractionOutcome(NOTHING_TO_DO, cell, held, current, distance)
    if held is not None and current is not None and held != current:
        return InteractionOutcome(INCOMPATIBLE, cell, held, current, distance)

    if held is None:
        kind, next_held, next_cell = PICKUP, current, None
    elif current is None:
        kind, next_held, next_cell = DROP, None, held
    else:
        kind, next_held, next_cell = MERGE, None, held * 2

    state.overlay.set(cell, next_cell)
    state.player.held_token = next_held

    won = kind != PICKUP and _reached_win(state, next_held, next_cell)
    _logger.debug("interaction %s at %s held=%s cell=%s won=%s", kind, cell.key, next_held, next_cell, won)
    return InteractionOutcome(kind, cell, next_held, next_cell, distance, won=won)
