"""Exception hierarchy for gridcalc.

    GridError
    ├── ValidationError          malformed literal on commit
    ├── FormulaError
    │   ├── UnknownReferenceError   formula cites an address outside the grid
    │   ├── CircularReferenceError  direct or transitive self-reference
    │   └── EvaluationError         invalid characters / syntax / non-finite result
    └── PersistenceError         network or server failure while saving

All of these are recovered locally.  Formula errors never leave the
evaluator as exceptions: they are converted into :class:`CalcError` values
and recorded on the affected cell.
"""

from __future__ import annotations


class GridError(Exception):
    """Base class for all gridcalc errors."""


class ValidationError(GridError):
    def __init__(self, address: str, text: str) -> None:
        self.address = address
        self.text = text
        super().__init__(f"Invalid value format in {address}: {text!r}")


class FormulaError(GridError):
    """Base class for formula evaluation failures."""


class UnknownReferenceError(FormulaError):
    def __init__(self, reference: str) -> None:
        self.reference = reference
        super().__init__(f"Invalid cell reference {reference}")


class CircularReferenceError(FormulaError):
    def __init__(self, reference: str, path: tuple[str, ...] = ()) -> None:
        self.reference = reference
        self.path = path
        chain = " -> ".join((*path, reference)) if path else reference
        super().__init__(f"Circular dependency detected: {chain}")


class EvaluationError(FormulaError):
    pass


class PersistenceError(GridError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)
