"""Cell state held by the grid."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

ERROR_SENTINEL = "#ERROR"
CIRCULAR_SENTINEL = "#CIRCULAR_REF"
SENTINELS = frozenset({ERROR_SENTINEL, CIRCULAR_SENTINEL})


class ErrorState(str, Enum):
    NONE = "none"
    ERROR = "error"
    CIRCULAR_REF = "circular_ref"

    @property
    def sentinel(self) -> str:
        """Display string for this state ("" for NONE)."""
        if self is ErrorState.ERROR:
            return ERROR_SENTINEL
        if self is ErrorState.CIRCULAR_REF:
            return CIRCULAR_SENTINEL
        return ""

    @classmethod
    def from_sentinel(cls, value: str) -> ErrorState:
        if value == ERROR_SENTINEL:
            return cls.ERROR
        if value == CIRCULAR_SENTINEL:
            return cls.CIRCULAR_REF
        return cls.NONE


@dataclass
class Cell:
    """A single addressable cell.

    ``value`` is always display text: a literal, the last computed result of
    ``formula``, or an error sentinel.  ``formula`` keeps the ``=``-prefixed
    text as entered.
    """

    address: str
    value: str = ""
    formula: str | None = None
    error: ErrorState = ErrorState.NONE

    @property
    def is_error(self) -> bool:
        return self.error is not ErrorState.NONE or self.value in SENTINELS

    @property
    def is_empty(self) -> bool:
        return not self.value and self.formula is None

    def set_error(self, state: ErrorState, formula: str | None = None) -> None:
        self.value = state.sentinel
        self.formula = formula
        self.error = state

    def reset(self) -> None:
        self.value = ""
        self.formula = None
        self.error = ErrorState.NONE

    def to_snapshot(self) -> dict[str, str | None]:
        return {"value": self.value, "formula": self.formula}
