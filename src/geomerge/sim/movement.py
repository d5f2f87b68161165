from __future__ import annotations

import logging
from typing import Any, Callable, Protocol

from geomerge.sim.core import GameSession
from geomerge.sim.grid import CellIndex, to_cell_index

_logger = logging.getLogger(__name__)

PositionCallback = Callable[[float, float], None]
ErrorCallback = Callable[[str], None]

DIRECTION_DELTAS: dict[str, tuple[int, int]] = {
    "north": (1, 0),
    "south": (-1, 0),
    "east": (0, 1),
    "west": (0, -1),
}


class MovementSource(Protocol):
    def start(self) -> None: ...

    def stop(self) -> None: ...


class PositionFeed(Protocol):
    """Continuous position provider, e.g. a device geolocation watcher."""

    def watch(self, on_position: PositionCallback, on_error: ErrorCallback) -> Any: ...

    def clear_watch(self, handle: Any) -> None: ...


class DiscreteMovement:
    """Whole-cell step commands (buttons / keys)."""

    def __init__(self, session: GameSession) -> None:
        self.session = session
        self.active = False

    def start(self) -> None:
        self.active = True

    def stop(self) -> None:
        self.active = False

    def step(self, d_row: int, d_col: int) -> CellIndex | None:
        if not self.active:
            return None
        return self.session.move_player(d_row, d_col)

    def move(self, direction: str) -> CellIndex | None:
        if direction not in DIRECTION_DELTAS:
            raise ValueError(f"unknown direction: {direction}")
        d_row, d_col = DIRECTION_DELTAS[direction]
        return self.step(d_row, d_col)


class PositionFeedMovement:
    """Follows a continuous position feed, snapped to whole-cell deltas."""

    def __init__(
        self,
        session: GameSession,
        feed: PositionFeed | None,
        *,
        on_error: ErrorCallback | None = None,
    ) -> None:
        self.session = session
        self.feed = feed
        self.on_error = on_error
        self._watch_handle: Any = None
        self._watching = False

    @property
    def active(self) -> bool:
        return self._watching

    def start(self) -> None:
        if self._watching:
            return
        if self.feed is None:
            self._report_error("position feed unavailable")
            return
        self._watching = True
        handle = self.feed.watch(self.handle_position, self._report_error)
        if self._watching:
            self._watch_handle = handle
        else:
            # the feed failed synchronously inside watch()
            self.feed.clear_watch(handle)

    def stop(self) -> None:
        if not self._watching:
            return
        handle = self._watch_handle
        self._watching = False
        self._watch_handle = None
        if self.feed is not None and handle is not None:
            self.feed.clear_watch(handle)

    def handle_position(self, lat: float, lng: float) -> CellIndex | None:
        if not self._watching:
            return None
        target = to_cell_index(lat, lng, self.session.config.cell_size_degrees)
        current = self.session.player_cell()
        d_row = target.row - current.row
        d_col = target.col - current.col
        if d_row == 0 and d_col == 0:
            return current
        return self.session.move_player(d_row, d_col)

    def _report_error(self, message: str) -> None:
        _logger.warning("position feed error: %s", message)
        self.stop()
        if self.on_error is not None:
            self.on_error(message)


class MovementController:
    """Owns the active movement source; swapping always stops the old one first."""

    def __init__(
        self,
        discrete: DiscreteMovement,
        continuous: PositionFeedMovement | None = None,
        *,
        on_error: ErrorCallback | None = None,
    ) -> None:
        self.discrete = discrete
        self.continuous = continuous
        self.on_error = on_error
        self.active: MovementSource | None = None
        if continuous is not None:
            continuous.on_error = self._handle_feed_error

    @property
    def mode(self) -> str:
        if self.active is None:
            return "none"
        return "position_feed" if self.active is self.continuous else "discrete"

    def use_discrete(self) -> None:
        self._activate(self.discrete)

    def use_position_feed(self) -> None:
        if self.continuous is None:
            self._handle_feed_error("position feed unavailable")
            return
        self._activate(self.continuous)

    def stop(self) -> None:
        if self.active is not None:
            self.active.stop()
        self.active = None

    def _activate(self, source: MovementSource) -> None:
        if self.active is not None:
            self.active.stop()
        self.active = source
        source.start()

    def _handle_feed_error(self, message: str) -> None:
        if self.on_error is not None:
            self.on_error(message)
        if self.active is not self.discrete:
            self._activate(self.discrete)
