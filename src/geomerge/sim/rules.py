from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from geomerge.sim.core import GameSession
    from geomerge.sim.grid import CellIndex
    from geomerge.sim.interactions import InteractionOutcome


class SessionModule:
    """Reaction substrate for a ``GameSession``.

    Modules are registered on a session and are notified in stable
    registration order after each event handler has fully committed its
    state change.
    """

    name: str

    def on_session_start(self, session: GameSession) -> None:
        """Called once, immediately when the module is registered."""

    def on_player_moved(self, session: GameSession, previous_cell: CellIndex, current_cell: CellIndex) -> None:
        """Called after the player position changed."""

    def on_interaction(self, session: GameSession, outcome: InteractionOutcome) -> None:
        """Called after every interaction attempt, accepted or rejected."""

    def on_new_game(self, session: GameSession) -> None:
        """Called after the overlay was cleared and the player reset."""
