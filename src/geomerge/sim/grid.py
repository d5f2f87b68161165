from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from geomerge.sim.viewport import ViewportBounds

DEFAULT_CELL_SIZE_DEGREES = 0.0001


@dataclass(frozen=True, order=True)
class CellIndex:
    """Integer grid coordinate (row, col); row follows latitude, col longitude."""

    row: int
    col: int

    @property
    def key(self) -> str:
        return f"{self.row},{self.col}"

    @classmethod
    def from_key(cls, key: str) -> "CellIndex":
        if not isinstance(key, str):
            raise ValueError("cell id must be a string")
        parts = key.split(",")
        if len(parts) != 2:
            raise ValueError(f"cell id must look like 'row,col': {key!r}")
        try:
            return cls(row=int(parts[0]), col=int(parts[1]))
        except ValueError as exc:
            raise ValueError(f"cell id must contain integers: {key!r}") from exc

    def offset(self, d_row: int, d_col: int) -> "CellIndex":
        return CellIndex(self.row + d_row, self.col + d_col)


@dataclass(frozen=True)
class CellBounds:
    min_lat: float
    min_lng: float
    max_lat: float
    max_lng: float


def to_cell_index(lat: float, lng: float, cell_size: float = DEFAULT_CELL_SIZE_DEGREES) -> CellIndex:
    return CellIndex(row=math.floor(lat / cell_size), col=math.floor(lng / cell_size))


def to_bounds(cell: CellIndex, cell_size: float = DEFAULT_CELL_SIZE_DEGREES) -> CellBounds:
    return CellBounds(
        min_lat=cell.row * cell_size,
        min_lng=cell.col * cell_size,
        max_lat=(cell.row + 1) * cell_size,
        max_lng=(cell.col + 1) * cell_size,
    )


def cell_center(cell: CellIndex, cell_size: float = DEFAULT_CELL_SIZE_DEGREES) -> tuple[float, float]:
    return ((cell.row + 0.5) * cell_size, (cell.col + 0.5) * cell_size)


def chebyshev_distance(a: CellIndex, b: CellIndex) -> int:
    """Ring distance in the 8-connected neighborhood."""
    return max(abs(a.row - b.row), abs(a.col - b.col))


def cells_covering(
    bounds: ViewportBounds,
    cell_size: float = DEFAULT_CELL_SIZE_DEGREES,
    padding: int = 0,
) -> list[CellIndex]:
    """Row-major list of cells whose boxes intersect ``bounds``, grown by ``padding`` rings."""
    if padding < 0:
        raise ValueError("padding must be >= 0")
    south_west = to_cell_index(bounds.south, bounds.west, cell_size)
    north_east = to_cell_index(bounds.north, bounds.east, cell_size)
    return [
        CellIndex(row, col)
        for row in range(south_west.row - padding, north_east.row + padding + 1)
        for col in range(south_west.col - padding, north_east.col + padding + 1)
    ]
