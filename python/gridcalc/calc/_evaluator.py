"""FormulaEvaluator: reference resolution with cycle detection + arithmetic.

A formula body such as ``A1*B1`` is evaluated in two stages:

1. Every referenced address is resolved to a numeric token.  Formula cells
   are re-evaluated from their formula text (never from their cached
   display) on an explicit resolution stack, so a cycle of any length
   (``A1 -> B1 -> C1 -> A1``) is reported as circular and a long acyclic
   chain is limited only by the grid size.
2. The substituted text is handed to a small recursive descent evaluator
   supporting ``+ - * /``, unary signs, parentheses and postfix ``%``.

Results are rounded to two decimals on every evaluation, including the
intermediate values substituted for formula references.  Re-evaluating a
rounded display value is an accepted lossy step.
"""

from __future__ import annotations

import logging
import math
import re
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import TYPE_CHECKING

from gridcalc._errors import (
    CircularReferenceError,
    EvaluationError,
    FormulaError,
    UnknownReferenceError,
)
from gridcalc.calc._parser import (
    canonical_ref,
    formula_body,
    has_invalid_chars,
    literal_token,
    parse_references,
    substitute_references,
)
from gridcalc.calc._protocol import CalcError

if TYPE_CHECKING:
    from gridcalc._grid import Grid

logger = logging.getLogger(__name__)

_NUMBER_RE = re.compile(r"\d+(\.\d*)?|\.\d+")
_CENT = Decimal("0.01")


# ---------------------------------------------------------------------------
# Number formatting
# ---------------------------------------------------------------------------


def _quantize(value: float) -> Decimal:
    # Enough precision for any finite float at cent resolution
    with localcontext() as ctx:
        ctx.prec = 400
        return Decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)


def round_display(value: float) -> float:
    """Round to two decimals, halves away from zero."""
    return float(_quantize(value))


def format_number(value: float) -> str:
    """Display text for a result: ``150.0 -> "150"``, ``0.125 -> "0.13"``."""
    text = f"{_quantize(value):f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    if text in ("-0", ""):
        return "0"
    return text


def _number_token(value: float) -> str:
    text = format_number(value)
    return f"({text})" if text.startswith("-") else text


# ---------------------------------------------------------------------------
# Arithmetic parsing helpers
# ---------------------------------------------------------------------------


def _find_matching_paren(expr: str, start: int) -> int:
    """Index of the ``')'`` matching the ``'('`` at *expr[start]*, or -1."""
    depth = 1
    i = start + 1
    while i < len(expr):
        ch = expr[i]
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1


def _find_top_level_split(expr: str) -> tuple[str, str, str] | None:
    """Find the rightmost lowest-precedence binary operator at paren depth 0.

    Additive operators are tried before multiplicative ones; the right-to-left
    scan gives left associativity.  Returns ``(left, op, right)`` or ``None``.
    """
    for ops in ("+-", "*/"):
        depth = 0
        i = len(expr) - 1
        while i > 0:
            ch = expr[i]
            if ch == ")":
                depth += 1
            elif ch == "(":
                depth -= 1
            elif depth == 0 and ch in ops:
                # Binary only when something other than an operator precedes it
                j = i - 1
                while j >= 0 and expr[j] == " ":
                    j -= 1
                if j >= 0 and expr[j] not in "(+-*/":
                    left = expr[:i].strip()
                    right = expr[i + 1 :].strip()
                    if left and right:
                        return (left, ch, right)
            i -= 1
    return None


def _binary_op(left: float, op: str, right: float) -> float:
    if op == "+":
        return left + right
    if op == "-":
        return left - right
    if op == "*":
        return left * right
    if right == 0:
        raise EvaluationError("Division by zero")
    return left / right


def evaluate_arithmetic(expr: str) -> float:
    """Evaluate a reference-free arithmetic expression.

    Raises :class:`EvaluationError` for anything that is not a finite number.
    """
    try:
        result = _eval_expr(expr)
    except RecursionError:
        raise EvaluationError("Formula is nested too deeply") from None
    except OverflowError:
        raise EvaluationError("Invalid formula result") from None
    if not math.isfinite(result):
        raise EvaluationError("Invalid formula result")
    return result


def _eval_expr(expr: str) -> float:
    """Recursively evaluate *expr*.

    Dispatch order (first match wins):

    1. Binary split at top level (additive, then multiplicative)
    2. Postfix percent ``x%``
    3. Parenthesized sub-expression ``(...)``
    4. Unary minus / plus
    5. Numeric literal
    """
    expr = expr.strip()
    if not expr:
        raise EvaluationError("Invalid or incomplete formula")

    split = _find_top_level_split(expr)
    if split:
        left_str, op, right_str = split
        return _binary_op(_eval_expr(left_str), op, _eval_expr(right_str))

    if expr.endswith("%"):
        return _eval_expr(expr[:-1]) / 100

    if expr.startswith("("):
        close = _find_matching_paren(expr, 0)
        if close == len(expr) - 1:
            return _eval_expr(expr[1:close])
        raise EvaluationError("Unbalanced parentheses")

    if expr.startswith("-"):
        return -_eval_expr(expr[1:])
    if expr.startswith("+"):
        return _eval_expr(expr[1:])

    if _NUMBER_RE.fullmatch(expr):
        return float(expr)

    raise EvaluationError(f"Cannot evaluate {expr!r}")


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------


class _Frame:
    """One formula on the resolution path, waiting for its references."""

    __slots__ = ("address", "body", "refs", "next_ref")

    def __init__(self, address: str, body: str) -> None:
        if has_invalid_chars(body):
            raise EvaluationError("Invalid or incomplete formula")
        self.address = address
        self.body = body
        self.refs = parse_references(body)
        self.next_ref = 0


class FormulaEvaluator:
    """Evaluates formula bodies against a :class:`~gridcalc.Grid`.

    Usage::

        evaluator = FormulaEvaluator()
        result = evaluator.evaluate("A1*B1", grid, "C1")
        if isinstance(result, CalcError):
            print(result.sentinel)

    *cache* maps addresses to resolved numeric tokens.  It may be shared
    across several evaluations as long as no cell input changes in between;
    the scheduler shares one per commit and per reconciliation sweep.
    """

    def evaluate(
        self,
        body: str,
        grid: Grid,
        origin: str,
        cache: dict[str, str] | None = None,
    ) -> float | CalcError:
        """Evaluate *body* (no leading ``=``) as if it were stored in *origin*."""
        origin = canonical_ref(origin)
        resolved = cache if cache is not None else {}
        try:
            value = self._evaluate_body(body, grid, origin, resolved)
        except FormulaError as exc:
            logger.debug("Formula %r in %s failed: %s", body, origin, exc)
            return CalcError.from_exception(exc)
        resolved[origin] = _number_token(value)
        return value

    def evaluate_formula(
        self,
        formula: str,
        grid: Grid,
        origin: str,
        cache: dict[str, str] | None = None,
    ) -> float | CalcError:
        """Like :meth:`evaluate` but accepts the ``=``-prefixed formula text."""
        return self.evaluate(formula_body(formula), grid, origin, cache)

    def _evaluate_body(
        self,
        body: str,
        grid: Grid,
        origin: str,
        resolved: dict[str, str],
    ) -> float:
        """Resolve references depth-first on an explicit stack.

        The stack is the current resolution path (origin first): meeting an
        address already on it is a cycle.  A formula is computed only once
        every reference it reads has a token in *resolved*, so an input
        shared by two branches is resolved once and never mistaken for a
        cycle.  Chain length is bounded by the grid, not the call stack.
        """
        stack = [_Frame(origin, body)]
        on_path = {origin}
        while True:
            frame = stack[-1]
            if frame.next_ref < len(frame.refs):
                ref = frame.refs[frame.next_ref]
                if ref in on_path:
                    raise CircularReferenceError(ref, tuple(f.address for f in stack))
                cell = grid.get(ref)
                if cell is None:
                    raise UnknownReferenceError(ref)
                if ref in resolved:
                    frame.next_ref += 1
                elif cell.formula is not None:
                    stack.append(_Frame(ref, formula_body(cell.formula)))
                    on_path.add(ref)
                else:
                    literal = literal_token(cell.value)
                    if literal is None:
                        raise EvaluationError(f"Cell {ref} does not hold a number")
                    resolved[ref] = literal
                    frame.next_ref += 1
                continue

            expr = substitute_references(frame.body, resolved.__getitem__)
            logger.debug("Substituted %r -> %r", frame.body, expr)
            value = round_display(evaluate_arithmetic(expr))
            stack.pop()
            if not stack:
                return value
            on_path.discard(frame.address)
            resolved[frame.address] = _number_token(value)
            stack[-1].next_ref += 1
