"""RecalcScheduler: commit -> evaluate -> propagate, plus reconciliation sweeps."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from gridcalc._cell import Cell, ErrorState
from gridcalc._errors import ValidationError
from gridcalc.calc._evaluator import FormulaEvaluator, format_number
from gridcalc.calc._graph import DependencyGraph
from gridcalc.calc._protocol import CalcError, CellDelta, CommitResult, SweepResult
from gridcalc.calc._validation import validate_full

if TYPE_CHECKING:
    from gridcalc._grid import Grid, Snapshot

logger = logging.getLogger(__name__)


class RecalcScheduler:
    """Applies committed input to a grid and keeps formula cells current.

    Usage::

        scheduler = RecalcScheduler(grid)
        scheduler.commit("A1", "$1000")
        scheduler.commit("B1", "15%")
        result = scheduler.commit("C1", "=A1*B1")
        assert result.value == "150"
    """

    def __init__(
        self,
        grid: Grid,
        evaluator: FormulaEvaluator | None = None,
        max_propagation_depth: int | None = None,
    ) -> None:
        self._grid = grid
        self._evaluator = evaluator or FormulaEvaluator()
        self._max_depth = max_propagation_depth or len(grid)
        # Grid state as of the last reconciliation sweep; empty until the first.
        self._prior: Snapshot = {}

    @property
    def grid(self) -> Grid:
        return self._grid

    @property
    def max_propagation_depth(self) -> int:
        return self._max_depth

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    def commit(self, address: str, text: str) -> CommitResult:
        """Commit *text* to *address* and propagate to dependents.

        Raises ``KeyError`` for an address outside the grid; every other
        failure is recorded on the cell.
        """
        cell = self._grid[address]
        old_value = cell.value
        error_message: str | None = None
        text = text.strip()
        # Tokens resolved during this commit; inputs do not change under it.
        cache: dict[str, str] = {}

        if text.startswith("="):
            err = self._apply_formula(cell, text, cache)
            if err is not None:
                error_message = err.message
        elif not text:
            cell.reset()
        elif validate_full(text):
            cell.value = text
            cell.formula = None
            cell.error = ErrorState.NONE
        else:
            error_message = str(ValidationError(cell.address, text))
            logger.debug(error_message)
            cell.set_error(ErrorState.ERROR)

        deltas: list[CellDelta] = []
        if cell.value != old_value:
            deltas.append(CellDelta(cell.address, old_value, cell.value, cell.formula))

        propagated = 0
        if deltas and not cell.is_error:
            graph = DependencyGraph.from_grid(self._grid)
            propagated = self._propagate(cell.address, graph, deltas, cache)

        return CommitResult(
            address=cell.address,
            value=cell.value,
            error_state=cell.error,
            deltas=tuple(deltas),
            error_message=error_message,
            propagated_cells=propagated,
        )

    def _apply_formula(
        self, cell: Cell, formula: str, cache: dict[str, str],
    ) -> CalcError | None:
        """Evaluate *formula* for *cell*, storing the display or a sentinel."""
        result = self._evaluator.evaluate_formula(formula, self._grid, cell.address, cache)
        if isinstance(result, CalcError):
            cell.set_error(result.error_state, formula)
            return result
        cell.value = format_number(result)
        cell.formula = formula
        cell.error = ErrorState.NONE
        return None

    def _propagate(
        self,
        address: str,
        graph: DependencyGraph,
        deltas: list[CellDelta],
        cache: dict[str, str],
    ) -> int:
        """Re-run the formula commit path for every dependent of *address*.

        Dependents are walked depth-first in row-major order.  Each is
        re-evaluated at most once per commit, and a dependent whose depth
        reaches :attr:`max_propagation_depth` is updated but not followed
        further.  Returns the number of cells re-evaluated.
        """
        visited = {address}
        stack = [(0, iter(graph.dependents_of(address)))]
        count = 0
        while stack:
            depth, dependents = stack[-1]
            dep = next(dependents, None)
            if dep is None:
                stack.pop()
                continue
            if dep in visited:
                continue
            visited.add(dep)
            cell = self._grid[dep]
            if cell.formula is None:
                continue
            old_value = cell.value
            self._apply_formula(cell, cell.formula, cache)
            count += 1
            if cell.value == old_value:
                continue
            deltas.append(CellDelta(dep, old_value, cell.value, cell.formula))
            if cell.is_error:
                continue
            if depth + 1 >= self.max_propagation_depth:
                logger.warning("Propagation from %s stopped at depth %d", address, depth + 1)
                continue
            stack.append((depth + 1, iter(graph.dependents_of(dep))))
        return count

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def has_changed(self) -> bool:
        """``True`` if the grid differs from the state after the last sweep."""
        return self._grid.snapshot() != self._prior

    def reconcile(self) -> SweepResult:
        """Re-evaluate every formula cell if the grid changed since the last sweep.

        Catches cells whose inputs moved without the cell itself being
        committed.  On an unchanged grid this is a no-op.
        """
        if not self.has_changed():
            return SweepResult(ran=False)

        deltas: list[CellDelta] = []
        cache: dict[str, str] = {}
        formula_cells = self._grid.formula_cells()
        for cell in formula_cells:
            old_value = cell.value
            self._apply_formula(cell, cell.formula, cache)  # type: ignore[arg-type]
            if cell.value != old_value:
                deltas.append(CellDelta(cell.address, old_value, cell.value, cell.formula))

        self._prior = self._grid.snapshot()
        if deltas:
            logger.debug("Reconciliation updated %d cell(s)", len(deltas))
        return SweepResult(
            ran=True,
            deltas=tuple(deltas),
            total_formula_cells=len(formula_cells),
        )
