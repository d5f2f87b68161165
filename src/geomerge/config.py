"""Game configuration for geomerge."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from typing import Any

DEFAULT_ANCHOR_LAT = 36.98949379578401
DEFAULT_ANCHOR_LNG = -122.06277128548504
DEFAULT_CELL_SIZE_DEGREES = 0.0001
DEFAULT_SPAWN_PROBABILITY = 0.3
DEFAULT_STARTING_TOKEN_VALUE = 1
DEFAULT_INTERACTION_RADIUS = 3
DEFAULT_WIN_VALUE = 32
DEFAULT_VIEWPORT_PADDING = 1
DEFAULT_NAMESPACE = "geomerge"
DEFAULT_VISIBLE_RADIUS = 8

_ENV_FLOAT_FIELDS = {
    "GEOMERGE_ANCHOR_LAT": "anchor_lat",
    "GEOMERGE_ANCHOR_LNG": "anchor_lng",
    "GEOMERGE_CELL_SIZE_DEGREES": "cell_size_degrees",
    "GEOMERGE_SPAWN_PROBABILITY": "spawn_probability",
}
_ENV_INT_FIELDS = {
    "GEOMERGE_STARTING_TOKEN_VALUE": "starting_token_value",
    "GEOMERGE_INTERACTION_RADIUS": "interaction_radius",
    "GEOMERGE_WIN_VALUE": "win_value",
    "GEOMERGE_VIEWPORT_PADDING": "viewport_padding",
    "GEOMERGE_VISIBLE_RADIUS": "visible_radius",
}


def _require_int(value: Any, *, field_name: str, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field_name} must be an integer")
    if value < minimum:
        raise ValueError(f"{field_name} must be >= {minimum}")


@dataclasses.dataclass(frozen=True)
class GameConfig:
    """Tunable constants of a game session.

    Parameters
    ----------
    anchor_lat, anchor_lng : float
        Player start position and "new game" reset position.
    cell_size_degrees : float
        Side of one grid cell in degrees of latitude/longitude.
    spawn_probability : float
        Chance in ``[0, 1]`` that a cell's baseline holds a token.
    starting_token_value : int
        Value of a freshly generated token.
    interaction_radius : int
        Maximum Chebyshev distance (in cells) between the player and a
        cell the player may interact with.
    win_value : int
        Token value that triggers a win report.
    viewport_padding : int
        Extra ring of cells spawned outside the visible bounds.
    namespace : str
        Seed namespace mixed into every baseline lookup.
    visible_radius : int
        Half-size, in cells, of the view window used by the bundled
        front-ends.
    """

    anchor_lat: float = DEFAULT_ANCHOR_LAT
    anchor_lng: float = DEFAULT_ANCHOR_LNG
    cell_size_degrees: float = DEFAULT_CELL_SIZE_DEGREES
    spawn_probability: float = DEFAULT_SPAWN_PROBABILITY
    starting_token_value: int = DEFAULT_STARTING_TOKEN_VALUE
    interaction_radius: int = DEFAULT_INTERACTION_RADIUS
    win_value: int = DEFAULT_WIN_VALUE
    viewport_padding: int = DEFAULT_VIEWPORT_PADDING
    namespace: str = DEFAULT_NAMESPACE
    visible_radius: int = DEFAULT_VISIBLE_RADIUS

    def __post_init__(self) -> None:
        if not -90.0 <= self.anchor_lat <= 90.0:
            raise ValueError("anchor_lat must be within [-90, 90]")
        if not -180.0 <= self.anchor_lng <= 180.0:
            raise ValueError("anchor_lng must be within [-180, 180]")
        if not self.cell_size_degrees > 0.0:
            raise ValueError("cell_size_degrees must be > 0")
        if not 0.0 <= self.spawn_probability <= 1.0:
            raise ValueError("spawn_probability must be within [0, 1]")
        _require_int(self.starting_token_value, field_name="starting_token_value", minimum=1)
        _require_int(self.interaction_radius, field_name="interaction_radius", minimum=0)
        _require_int(self.win_value, field_name="win_value", minimum=1)
        _require_int(self.viewport_padding, field_name="viewport_padding", minimum=0)
        _require_int(self.visible_radius, field_name="visible_radius", minimum=0)
        if not isinstance(self.namespace, str) or not self.namespace:
            raise ValueError("namespace must be a non-empty string")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: Any) -> GameConfig:
        """Create configuration from ``GEOMERGE_*`` environment variables.

        Explicit keyword arguments take precedence over the environment.
        """
        env = os.environ if environ is None else environ

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_FLOAT_FIELDS.items():
            raw = env.get(env_key)
            if raw is not None:
                config_kwargs[field_name] = float(raw)
        for env_key, field_name in _ENV_INT_FIELDS.items():
            raw = env.get(env_key)
            if raw is not None:
                config_kwargs[field_name] = int(raw)
        namespace = env.get("GEOMERGE_NAMESPACE")
        if namespace is not None:
            config_kwargs["namespace"] = namespace

        config_kwargs.update(overrides)
        return cls(**config_kwargs)
