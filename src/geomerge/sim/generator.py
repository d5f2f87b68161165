from __future__ import annotations

from typing import Callable

from geomerge.config import GameConfig
from geomerge.sim.grid import CellIndex
from geomerge.sim.rng import luck as default_luck

LuckFunction = Callable[[str], float]


def cell_luck_key(namespace: str, cell: CellIndex) -> str:
    return f"{namespace}:{cell.row},{cell.col}"


class BaselineGenerator:
    """Deterministic baseline token for any cell of the infinite grid.

    The value is a pure function of ``(namespace, row, col)``: regenerating a
    cell that was never stored is indistinguishable from having kept it.
    """

    def __init__(
        self,
        namespace: str,
        *,
        spawn_probability: float = 0.3,
        starting_value: int = 1,
        luck: LuckFunction = default_luck,
    ) -> None:
        if not namespace:
            raise ValueError("namespace must be a non-empty string")
        if not 0.0 <= spawn_probability <= 1.0:
            raise ValueError("spawn_probability must be within [0, 1]")
        self.namespace = namespace
        self.spawn_probability = spawn_probability
        self.starting_value = starting_value
        self._luck = luck

    @classmethod
    def from_config(cls, config: GameConfig, *, luck: LuckFunction = default_luck) -> "BaselineGenerator":
        return cls(
            config.namespace,
            spawn_probability=config.spawn_probability,
            starting_value=config.starting_token_value,
            luck=luck,
        )

    def generate(self, cell: CellIndex) -> int | None:
        if self._luck(cell_luck_key(self.namespace, cell)) < self.spawn_probability:
            return self.starting_value
        return None
