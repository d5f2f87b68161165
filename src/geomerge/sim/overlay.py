from __future__ import annotations

from collections.abc import Iterable, Iterator

from geomerge.sim.generator import BaselineGenerator
from geomerge.sim.grid import CellIndex


class OverlayStore:
    """Sparse record of cells whose value diverged from the generated baseline.

    A cell is stored only while its current value differs from
    ``generator.generate(cell)``; writing the baseline value back removes the
    entry. ``None`` is a real stored value (a baseline token was taken away).
    """

    def __init__(self, generator: BaselineGenerator) -> None:
        self.generator = generator
        self._entries: dict[CellIndex, int | None] = {}

    def get(self, cell: CellIndex) -> int | None:
        if cell in self._entries:
            return self._entries[cell]
        return self.generator.generate(cell)

    def set(self, cell: CellIndex, value: int | None) -> None:
        if value == self.generator.generate(cell):
            self._entries.pop(cell, None)
            return
        self._entries[cell] = value

    def has(self, cell: CellIndex) -> bool:
        return cell in self._entries

    def clear(self) -> None:
        self._entries.clear()

    def replace(self, entries: Iterable[tuple[CellIndex, int | None]]) -> None:
        self._entries.clear()
        for cell, value in entries:
            self.set(cell, value)

    def items(self) -> list[tuple[CellIndex, int | None]]:
        return sorted(self._entries.items())

    def __contains__(self, cell: object) -> bool:
        return cell in self._entries

    def __iter__(self) -> Iterator[CellIndex]:
        return iter(sorted(self._entries))

    def __len__(self) -> int:
        return len(self._entries)
