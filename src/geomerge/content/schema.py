from __future__ import annotations

import math
from typing import Any

from geomerge.sim.grid import CellIndex

SUPPORTED_SCHEMA_VERSIONS = {1}
REQUIRED_SAVE_FIELDS = {"playerLat", "playerLng", "heldToken", "modifiedCells"}


def _require_coordinate(value: Any, *, field_name: str, limit: float) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{field_name} must be a number")
    try:
        number = float(value)
    except OverflowError as exc:
        raise ValueError(f"{field_name} must be within [-{limit:g}, {limit:g}]") from exc
    if not math.isfinite(number) or abs(number) > limit:
        raise ValueError(f"{field_name} must be within [-{limit:g}, {limit:g}]")


def _require_token(value: Any, *, field_name: str) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field_name} must be an integer or null")
    if value <= 0:
        raise ValueError(f"{field_name} must be > 0")


def validate_save_payload(payload: Any) -> None:
    if not isinstance(payload, dict):
        raise ValueError("save payload must be an object")

    missing = REQUIRED_SAVE_FIELDS - set(payload.keys())
    if missing:
        raise ValueError(f"save payload missing fields: {sorted(missing)}")

    schema_version = payload.get("schemaVersion", 1)
    if schema_version not in SUPPORTED_SCHEMA_VERSIONS:
        raise ValueError(f"unsupported schemaVersion: {schema_version}")

    _require_coordinate(payload["playerLat"], field_name="playerLat", limit=90.0)
    _require_coordinate(payload["playerLng"], field_name="playerLng", limit=180.0)
    _require_token(payload["heldToken"], field_name="heldToken")

    cells = payload["modifiedCells"]
    if not isinstance(cells, list):
        raise ValueError("modifiedCells must be a list")

    seen: set[CellIndex] = set()
    for index, entry in enumerate(cells):
        if not isinstance(entry, dict):
            raise ValueError(f"modifiedCells[{index}] must be an object")
        if "id" not in entry or "value" not in entry:
            raise ValueError(f"modifiedCells[{index}] missing id or value")
        try:
            cell = CellIndex.from_key(entry["id"])
        except ValueError as exc:
            raise ValueError(f"modifiedCells[{index}].id invalid: {exc}") from exc
        if cell in seen:
            raise ValueError(f"modifiedCells[{index}] duplicates cell {cell.key}")
        seen.add(cell)
        _require_token(entry["value"], field_name=f"modifiedCells[{index}].value")
