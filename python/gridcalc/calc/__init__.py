"""gridcalc.calc - Literal validation, formula evaluation and recalculation."""

from gridcalc.calc._evaluator import FormulaEvaluator, evaluate_arithmetic, format_number
from gridcalc.calc._graph import DependencyGraph
from gridcalc.calc._parser import parse_references
from gridcalc.calc._protocol import CalcError, CellDelta, CommitResult, ErrorKind, SweepResult
from gridcalc.calc._scheduler import RecalcScheduler
from gridcalc.calc._validation import validate_full, validate_partial

__all__ = [
    "CalcError",
    "CellDelta",
    "CommitResult",
    "DependencyGraph",
    "ErrorKind",
    "FormulaEvaluator",
    "RecalcScheduler",
    "SweepResult",
    "evaluate_arithmetic",
    "format_number",
    "parse_references",
    "validate_full",
    "validate_partial",
]
