"""Dependency graph for formula cells, built by scanning formula text."""

from __future__ import annotations

from typing import TYPE_CHECKING

from gridcalc.calc._parser import formula_body, parse_references

if TYPE_CHECKING:
    from gridcalc._grid import Grid


class DependencyGraph:
    """Tracks which formula cells read from which addresses.

    Dependents are kept as lists in registration order.  :meth:`from_grid`
    registers cells row-major, so every scan over dependents is row-major too.
    """

    __slots__ = ("dependencies", "dependents", "formulas")

    def __init__(self) -> None:
        # cell -> addresses it reads from, first-occurrence order
        self.dependencies: dict[str, list[str]] = {}
        # address -> formula cells that read from it (reverse edges)
        self.dependents: dict[str, list[str]] = {}
        # cell -> formula string
        self.formulas: dict[str, str] = {}

    def add_formula(self, address: str, formula: str) -> None:
        """Register a formula cell and its references."""
        self.formulas[address] = formula
        refs = parse_references(formula_body(formula))
        self.dependencies[address] = refs
        for ref in refs:
            self.dependents.setdefault(ref, []).append(address)

    def dependents_of(self, address: str) -> list[str]:
        """Formula cells whose text references *address*."""
        return list(self.dependents.get(address, ()))

    @classmethod
    def from_grid(cls, grid: Grid) -> DependencyGraph:
        graph = cls()
        for cell in grid.cells():
            if cell.formula is not None:
                graph.add_formula(cell.address, cell.formula)
        return graph
