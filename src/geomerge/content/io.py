from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import TYPE_CHECKING, Any, Protocol

from geomerge.content.schema import validate_save_payload
from geomerge.sim.grid import CellIndex
from geomerge.sim.interactions import InteractionOutcome
from geomerge.sim.rules import SessionModule
from geomerge.sim.state import GameState, PlayerState

if TYPE_CHECKING:
    from geomerge.sim.core import GameSession

_logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
DEFAULT_SAVE_KEY = "geomerge.save"
CANONICAL_JSON_INDENT = 2
CANONICAL_JSON_SEPARATORS = (",", ": ")


class KeyValueStore(Protocol):
    """String key-value storage in the manner of browser ``localStorage``."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryKeyValueStore:
    def __init__(self, items: dict[str, str] | None = None) -> None:
        self.items: dict[str, str] = dict(items or {})

    def get_item(self, key: str) -> str | None:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value

    def remove_item(self, key: str) -> None:
        self.items.pop(key, None)


class JsonFileKeyValueStore:
    """All keys live in one JSON object file, rewritten atomically on change."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def get_item(self, key: str) -> str | None:
        value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        items = self._read_all()
        items[key] = value
        _write_atomic_json(self.path, items)

    def remove_item(self, key: str) -> None:
        items = self._read_all()
        if key not in items:
            return
        del items[key]
        _write_atomic_json(self.path, items)

    def _read_all(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            _logger.warning("ignoring unreadable key-value file %s: %s", self.path, exc)
            return {}
        if not isinstance(payload, dict):
            _logger.warning("ignoring key-value file %s: top level is not an object", self.path)
            return {}
        return payload


def _canonical_json(payload: dict[str, Any]) -> str:
    return json.dumps(
        payload,
        indent=CANONICAL_JSON_INDENT,
        separators=CANONICAL_JSON_SEPARATORS,
        sort_keys=True,
    )


def _write_atomic_json(path: str | Path, payload: dict[str, Any]) -> None:
    destination = Path(path)
    destination.parent.mkdir(parents=True, exist_ok=True)
    serialized = _canonical_json(payload)

    temp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=destination.parent,
            delete=False,
            suffix=".tmp",
        ) as temp_file:
            temp_path = Path(temp_file.name)
            temp_file.write(serialized)
            temp_file.flush()
            os.fsync(temp_file.fileno())
        os.replace(temp_path, destination)
    except Exception:
        if temp_path is not None:
            temp_path.unlink(missing_ok=True)
        raise


def serialize_game(state: GameState) -> dict[str, Any]:
    return {
        "schemaVersion": SCHEMA_VERSION,
        "playerLat": state.player.lat,
        "playerLng": state.player.lng,
        "heldToken": state.player.held_token,
        "modifiedCells": [{"id": cell.key, "value": value} for cell, value in state.overlay.items()],
    }


def deserialize_game(state: GameState, payload: Any) -> None:
    """Replace player and overlay contents from a save payload.

    The payload is fully validated before anything is written, so a
    rejected payload leaves ``state`` untouched.
    """
    validate_save_payload(payload)
    player = PlayerState(
        lat=float(payload["playerLat"]),
        lng=float(payload["playerLng"]),
        held_token=payload["heldToken"],
    )
    entries = [(CellIndex.from_key(entry["id"]), entry["value"]) for entry in payload["modifiedCells"]]
    state.player = player
    state.overlay.replace(entries)


class GameStorage:
    """Persists one game blob under a single key of a ``KeyValueStore``."""

    def __init__(self, store: KeyValueStore, *, key: str = DEFAULT_SAVE_KEY) -> None:
        if not key:
            raise ValueError("save key must be a non-empty string")
        self.store = store
        self.key = key

    def save(self, state: GameState) -> None:
        self.store.set_item(self.key, json.dumps(serialize_game(state), sort_keys=True, separators=(",", ":")))

    def load(self, state: GameState) -> bool:
        raw = self.store.get_item(self.key)
        if raw is None:
            _logger.info("no saved game under %r", self.key)
            return False
        try:
            deserialize_game(state, json.loads(raw))
        except (ValueError, RecursionError) as exc:
            _logger.warning("discarding unreadable saved game under %r: %s", self.key, exc)
            return False
        _logger.info("restored saved game under %r (%d modified cells)", self.key, len(state.overlay))
        return True

    def erase(self) -> None:
        self.store.remove_item(self.key)


class AutosaveModule(SessionModule):
    name = "autosave"

    def __init__(self, storage: GameStorage) -> None:
        self.storage = storage

    def on_player_moved(self, session: GameSession, previous_cell: CellIndex, current_cell: CellIndex) -> None:
        self.storage.save(session.state)

    def on_interaction(self, session: GameSession, outcome: InteractionOutcome) -> None:
        if outcome.ok:
            self.storage.save(session.state)

    def on_new_game(self, session: GameSession) -> None:
        self.storage.erase()
