from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Protocol

from geomerge.sim.grid import CellBounds, CellIndex, cell_center, cells_covering, to_bounds
from geomerge.sim.interactions import InteractionOutcome
from geomerge.sim.rules import SessionModule

if TYPE_CHECKING:
    from geomerge.sim.core import GameSession

_logger = logging.getLogger(__name__)

ClickCallback = Callable[[], None]
OutcomeCallback = Callable[[InteractionOutcome], None]


@dataclass(frozen=True)
class ViewportBounds:
    """Geographic rectangle in degrees."""

    south: float
    west: float
    north: float
    east: float

    def __post_init__(self) -> None:
        if self.south > self.north:
            raise ValueError("viewport south must be <= north")
        if self.west > self.east:
            raise ValueError("viewport west must be <= east")

    @classmethod
    def around(cls, lat: float, lng: float, radius_cells: int, cell_size: float) -> "ViewportBounds":
        span = radius_cells * cell_size
        return cls(south=lat - span, west=lng - span, north=lat + span, east=lng + span)


class Renderer(Protocol):
    """On-map drawing primitives; handles returned here are opaque to the core."""

    def create_cell_border(self, cell: CellIndex, bounds: CellBounds, on_click: ClickCallback) -> Any: ...

    def remove_cell_border(self, handle: Any) -> None: ...

    def create_token_marker(
        self,
        cell: CellIndex,
        center: tuple[float, float],
        value: int,
        on_click: ClickCallback,
    ) -> Any: ...

    def update_token_marker(self, handle: Any, value: int) -> None: ...

    def remove_token_marker(self, handle: Any) -> None: ...

    def move_player_marker(self, lat: float, lng: float) -> None: ...


class MapView(Protocol):
    def get_bounds(self) -> ViewportBounds: ...

    def set_center(self, lat: float, lng: float) -> None: ...


@dataclass
class VisualState:
    cell: CellIndex
    border: Any
    marker: Any = None
    marker_value: int | None = None


class ViewportManager(SessionModule):
    """Keeps exactly one visual per needed cell and none for the rest.

    Visual lifetime follows viewport membership only. Destroying a visual
    never touches the overlay, and a visual's value is always re-read from
    the overlay (falling back to the generated baseline).
    """

    name = "viewport"

    def __init__(
        self,
        renderer: Renderer,
        *,
        map_view: MapView | None = None,
        padding: int | None = None,
        on_outcome: OutcomeCallback | None = None,
    ) -> None:
        if padding is not None and padding < 0:
            raise ValueError("padding must be >= 0")
        self.renderer = renderer
        self.map_view = map_view
        self.on_outcome = on_outcome
        self.session: GameSession | None = None
        self._padding = padding
        self._visuals: dict[CellIndex, VisualState] = {}

    @property
    def padding(self) -> int:
        if self._padding is not None:
            return self._padding
        return self._require_session().config.viewport_padding

    def on_session_start(self, session: GameSession) -> None:
        self.session = session
        player = session.state.player
        self.renderer.move_player_marker(player.lat, player.lng)

    def on_player_moved(self, session: GameSession, previous_cell: CellIndex, current_cell: CellIndex) -> None:
        self._follow_player()

    def on_interaction(self, session: GameSession, outcome: InteractionOutcome) -> None:
        if outcome.ok:
            self.refresh_cell(outcome.cell)

    def on_new_game(self, session: GameSession) -> None:
        for cell in list(self._visuals):
            self.refresh_cell(cell)
        self._follow_player()

    def visible_cells(self) -> list[CellIndex]:
        return sorted(self._visuals)

    def is_visible(self, cell: CellIndex) -> bool:
        return cell in self._visuals

    def on_viewport_settled(self) -> None:
        if self.map_view is None:
            raise ValueError("viewport manager has no map view")
        self.reconcile(self.map_view.get_bounds())

    def reconcile(self, bounds: ViewportBounds) -> None:
        session = self._require_session()
        cell_size = session.config.cell_size_degrees
        needed = cells_covering(bounds, cell_size, self.padding)
        needed_set = set(needed)

        spawned = 0
        for cell in needed:
            visual = self._visuals.get(cell)
            if visual is None:
                self._spawn(cell)
                spawned += 1
            else:
                self._sync_marker(visual, session.state.cell_value(cell))

        stale = [cell for cell in self._visuals if cell not in needed_set]
        for cell in stale:
            self._despawn(cell)

        if spawned or stale:
            _logger.debug("reconcile spawned=%d despawned=%d visible=%d", spawned, len(stale), len(self._visuals))

    def refresh_cell(self, cell: CellIndex) -> None:
        visual = self._visuals.get(cell)
        if visual is None:
            return
        self._sync_marker(visual, self._require_session().state.cell_value(cell))

    def clear(self) -> None:
        for cell in list(self._visuals):
            self._despawn(cell)

    def _spawn(self, cell: CellIndex) -> None:
        session = self._require_session()
        cell_size = session.config.cell_size_degrees
        border = self.renderer.create_cell_border(cell, to_bounds(cell, cell_size), self._click_handler(cell))
        visual = VisualState(cell=cell, border=border)
        self._visuals[cell] = visual
        self._sync_marker(visual, session.state.cell_value(cell))

    def _despawn(self, cell: CellIndex) -> None:
        visual = self._visuals.pop(cell)
        if visual.marker is not None:
            self.renderer.remove_token_marker(visual.marker)
        self.renderer.remove_cell_border(visual.border)

    def _sync_marker(self, visual: VisualState, value: int | None) -> None:
        if value is None:
            if visual.marker is not None:
                self.renderer.remove_token_marker(visual.marker)
                visual.marker = None
                visual.marker_value = None
            return
        if visual.marker is None:
            center = cell_center(visual.cell, self._require_session().config.cell_size_degrees)
            visual.marker = self.renderer.create_token_marker(visual.cell, center, value, self._click_handler(visual.cell))
        elif visual.marker_value != value:
            self.renderer.update_token_marker(visual.marker, value)
        visual.marker_value = value

    def _click_handler(self, cell: CellIndex) -> ClickCallback:
        def handle_click() -> None:
            outcome = self._require_session().interact(cell)
            if self.on_outcome is not None:
                self.on_outcome(outcome)

        return handle_click

    def _follow_player(self) -> None:
        player = self._require_session().state.player
        self.renderer.move_player_marker(player.lat, player.lng)
        if self.map_view is not None:
            self.map_view.set_center(player.lat, player.lng)
            self.on_viewport_settled()

    def _require_session(self) -> GameSession:
        if self.session is None:
            raise ValueError("viewport manager is not registered on a session")
        return self.session
