from __future__ import annotations

from dataclasses import dataclass

from geomerge.config import GameConfig
from geomerge.sim.generator import BaselineGenerator, LuckFunction
from geomerge.sim.grid import CellIndex, to_cell_index
from geomerge.sim.overlay import OverlayStore
from geomerge.sim.rng import luck as default_luck


@dataclass
class PlayerState:
    lat: float
    lng: float
    held_token: int | None = None

    def __post_init__(self) -> None:
        if isinstance(self.lat, bool) or not isinstance(self.lat, (int, float)):
            raise ValueError("player.lat must be numeric")
        if isinstance(self.lng, bool) or not isinstance(self.lng, (int, float)):
            raise ValueError("player.lng must be numeric")
        self.lat = float(self.lat)
        self.lng = float(self.lng)
        if self.held_token is not None and (isinstance(self.held_token, bool) or not isinstance(self.held_token, int)):
            raise ValueError("player.held_token must be an integer or None")

    @classmethod
    def at_anchor(cls, config: GameConfig) -> "PlayerState":
        return cls(lat=config.anchor_lat, lng=config.anchor_lng)


@dataclass
class GameState:
    """Owned aggregate of everything a session mutates.

    Passed explicitly into every operation; no state lives at module level,
    so independent instances never share cells or players.
    """

    config: GameConfig
    overlay: OverlayStore
    player: PlayerState

    @classmethod
    def create(cls, config: GameConfig | None = None, *, luck: LuckFunction = default_luck) -> "GameState":
        config = config or GameConfig()
        generator = BaselineGenerator.from_config(config, luck=luck)
        return cls(config=config, overlay=OverlayStore(generator), player=PlayerState.at_anchor(config))

    @property
    def generator(self) -> BaselineGenerator:
        return self.overlay.generator

    def player_cell(self) -> CellIndex:
        return to_cell_index(self.player.lat, self.player.lng, self.config.cell_size_degrees)

    def cell_value(self, cell: CellIndex) -> int | None:
        return self.overlay.get(cell)

    def reset(self) -> None:
        self.overlay.clear()
        self.player = PlayerState.at_anchor(self.config)
