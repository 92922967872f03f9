"""Grid: the single source of truth for cell state.

Cells are stored in row-major insertion order (A1, B1, ..., A2, B2, ...).
Recalculation, dependent scans, snapshots and CSV export all iterate in that
order, so results never depend on incidental dict ordering.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from typing import Any

from gridcalc._cell import Cell, ErrorState
from gridcalc._utils import MAX_COLUMNS, iter_addresses, normalize_address, rowcol_to_a1

logger = logging.getLogger(__name__)

Snapshot = dict[str, dict[str, Any]]


class Grid:
    """Fixed ``rows x columns`` mapping from address to :class:`Cell`."""

    __slots__ = ("_rows", "_columns", "_cells")

    def __init__(self, rows: int, columns: int) -> None:
        if rows < 1:
            raise ValueError(f"rows must be >= 1, got {rows}")
        if not 1 <= columns <= MAX_COLUMNS:
            raise ValueError(f"columns must be in 1..{MAX_COLUMNS}, got {columns}")
        self._rows = rows
        self._columns = columns
        self._cells: dict[str, Cell] = {
            addr: Cell(addr) for addr in iter_addresses(rows, columns)
        }

    @classmethod
    def from_snapshot(cls, snapshot: Mapping[str, Any], rows: int, columns: int) -> Grid:
        """Rebuild a grid from a persisted snapshot.

        Addresses outside the grid are dropped; missing addresses stay empty.
        Sentinel values restore their error state.
        """
        grid = cls(rows, columns)
        for key, entry in snapshot.items():
            try:
                addr = normalize_address(key)
            except ValueError:
                logger.warning("Ignoring invalid address %r in snapshot", key)
                continue
            if addr not in grid._cells:
                logger.warning("Ignoring out-of-range address %s in snapshot", addr)
                continue
            if not isinstance(entry, Mapping):
                logger.warning("Ignoring malformed snapshot entry for %s", addr)
                continue
            cell = grid._cells[addr]
            cell.value = str(entry.get("value") or "")
            formula = entry.get("formula")
            cell.formula = str(formula) if formula else None
            cell.error = ErrorState.from_sentinel(cell.value)
        return grid

    # ------------------------------------------------------------------
    # Mapping access
    # ------------------------------------------------------------------

    @property
    def rows(self) -> int:
        return self._rows

    @property
    def columns(self) -> int:
        return self._columns

    def __getitem__(self, address: str) -> Cell:
        try:
            return self._cells[normalize_address(address)]
        except ValueError:
            raise KeyError(address) from None

    def __contains__(self, address: object) -> bool:
        if not isinstance(address, str):
            return False
        try:
            return normalize_address(address) in self._cells
        except ValueError:
            return False

    def __iter__(self) -> Iterator[str]:
        return iter(self._cells)

    def __len__(self) -> int:
        return len(self._cells)

    def get(self, address: str) -> Cell | None:
        try:
            return self[address]
        except KeyError:
            return None

    def cells(self) -> Iterator[Cell]:
        """Cells in row-major order."""
        return iter(self._cells.values())

    def formula_cells(self) -> list[Cell]:
        return [c for c in self._cells.values() if c.formula is not None]

    def error_cells(self) -> list[Cell]:
        return [c for c in self._cells.values() if c.is_error]

    def has_errors(self) -> bool:
        return any(c.is_error for c in self._cells.values())

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def snapshot(self) -> Snapshot:
        """Full address -> {value, formula} copy, row-major."""
        return {addr: cell.to_snapshot() for addr, cell in self._cells.items()}

    def to_csv(self) -> str:
        """Flatten display values: one line per row, one field per column."""
        lines: list[str] = []
        for r in range(1, self._rows + 1):
            fields = [
                self._cells[rowcol_to_a1(r, c)].value
                for c in range(1, self._columns + 1)
            ]
            lines.append(",".join(fields))
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"<Grid {self._rows}x{self._columns}>"
