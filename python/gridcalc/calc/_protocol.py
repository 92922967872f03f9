"""Result dataclasses shared by the evaluator and the recalculation scheduler."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from gridcalc._cell import CIRCULAR_SENTINEL, ERROR_SENTINEL, ErrorState
from gridcalc._errors import (
    CircularReferenceError,
    FormulaError,
    UnknownReferenceError,
)


class ErrorKind(str, Enum):
    INVALID = "invalid"
    UNKNOWN_REFERENCE = "unknown_reference"
    CIRCULAR = "circular"


@dataclass(frozen=True)
class CalcError:
    """A failed evaluation, returned by value instead of raised."""

    kind: ErrorKind
    message: str

    @classmethod
    def from_exception(cls, exc: FormulaError) -> CalcError:
        if isinstance(exc, CircularReferenceError):
            kind = ErrorKind.CIRCULAR
        elif isinstance(exc, UnknownReferenceError):
            kind = ErrorKind.UNKNOWN_REFERENCE
        else:
            kind = ErrorKind.INVALID
        return cls(kind, str(exc))

    @property
    def sentinel(self) -> str:
        """Display string: ``#CIRCULAR_REF`` for cycles, ``#ERROR`` otherwise."""
        return CIRCULAR_SENTINEL if self.kind is ErrorKind.CIRCULAR else ERROR_SENTINEL

    @property
    def error_state(self) -> ErrorState:
        if self.kind is ErrorKind.CIRCULAR:
            return ErrorState.CIRCULAR_REF
        return ErrorState.ERROR

    def __str__(self) -> str:
        return self.sentinel


@dataclass(frozen=True)
class CellDelta:
    """A single cell's display change."""

    address: str
    old_value: str
    new_value: str
    formula: str | None = None


@dataclass(frozen=True)
class CommitResult:
    """Outcome of committing one cell, including dependent propagation."""

    address: str
    value: str
    error_state: ErrorState
    deltas: tuple[CellDelta, ...] = ()
    # Formula failure or literal validation message for the committed cell.
    error_message: str | None = None
    propagated_cells: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.deltas)

    @property
    def is_error(self) -> bool:
        return self.error_state is not ErrorState.NONE


@dataclass(frozen=True)
class SweepResult:
    """Outcome of a reconciliation sweep over all formula cells."""

    ran: bool
    deltas: tuple[CellDelta, ...] = ()
    total_formula_cells: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.deltas)
