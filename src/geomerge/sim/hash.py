from __future__ import annotations

import hashlib
import json
from typing import Any

from geomerge.sim.state import GameState


def overlay_hash(state: GameState) -> str:
    payload = [[cell.row, cell.col, value] for cell, value in state.overlay.items()]
    encoded = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


def state_hash(state: GameState) -> str:
    payload: dict[str, Any] = {
        "namespace": state.config.namespace,
        "player": {
            "lat": round(state.player.lat, 10),
            "lng": round(state.player.lng, 10),
            "held_token": state.player.held_token,
        },
        "overlay_hash": overlay_hash(state),
    }
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()
