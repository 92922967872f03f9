"""gridcalc: reactive spreadsheet grid with formula recalculation and remote save.

Usage::

    from gridcalc import Session, Settings

    async with Session(Settings(rows=10, columns=3)) as session:
        session.commit("A1", "$1000")
        session.commit("B1", "15%")
        session.commit("C1", "=A1*B1")
        print(session.grid["C1"].value)  # 150

Cells hold literals (``1000``, ``$1000``, ``15%``) or ``=`` formulas with
``+ - * /`` arithmetic over other cells.  Errors surface as the ``#ERROR``
and ``#CIRCULAR_REF`` sentinels.
"""

from gridcalc._cell import CIRCULAR_SENTINEL, ERROR_SENTINEL, Cell, ErrorState
from gridcalc._config import Settings, configure_logging
from gridcalc._errors import (
    CircularReferenceError,
    EvaluationError,
    FormulaError,
    GridError,
    PersistenceError,
    UnknownReferenceError,
    ValidationError,
)
from gridcalc._grid import Grid, Snapshot
from gridcalc._notify import (
    Level,
    LoggingNotifier,
    Notification,
    Notifier,
    RecordingNotifier,
)
from gridcalc._session import Session

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "CIRCULAR_SENTINEL",
    "ERROR_SENTINEL",
    "Cell",
    "CircularReferenceError",
    "ErrorState",
    "EvaluationError",
    "FormulaError",
    "Grid",
    "GridError",
    "Level",
    "LoggingNotifier",
    "Notification",
    "Notifier",
    "PersistenceError",
    "RecordingNotifier",
    "Session",
    "Settings",
    "Snapshot",
    "UnknownReferenceError",
    "ValidationError",
    "configure_logging",
]
