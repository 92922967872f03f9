"""Tests for gridcalc.calc FormulaEvaluator."""

from __future__ import annotations

import pytest

from gridcalc import Grid
from gridcalc.calc._evaluator import (
    FormulaEvaluator,
    evaluate_arithmetic,
    format_number,
    round_display,
)
from gridcalc.calc._protocol import CalcError, ErrorKind
from gridcalc._errors import EvaluationError


def _make_grid(rows: int = 5, columns: int = 3, **cells: str) -> Grid:
    """Grid with literal values or ``=`` formulas placed directly on cells.

    Formula cells get a stale display of "0" so tests notice when the
    evaluator reads the display instead of the formula.
    """
    grid = Grid(rows, columns)
    for addr, text in cells.items():
        cell = grid[addr]
        if text.startswith("="):
            cell.formula = text
            cell.value = "0"
        else:
            cell.value = text
    return grid


def _eval(grid: Grid, body: str, origin: str = "C5") -> float | CalcError:
    return FormulaEvaluator().evaluate(body, grid, origin)


class TestArithmetic:
    @pytest.mark.parametrize(
        ("expr", "expected"),
        [
            ("1+2*3", 7),
            ("(1+2)*3", 9),
            ("10-4-3", 3),
            ("100/10/5", 2),
            ("-3+5", 2),
            ("2*-3", -6),
            ("2--3", 5),
            ("+4", 4),
            ("1000*15%", 150),
            ("(50+50)%", 1),
            (".5*4", 2),
            (" 7 ", 7),
        ],
    )
    def test_expressions(self, expr: str, expected: float) -> None:
        assert evaluate_arithmetic(expr) == pytest.approx(expected)

    @pytest.mark.parametrize("expr", ["", "1+", "*2", "(1+2", "1+2)", "2(3)", "abc", "1/0"])
    def test_invalid(self, expr: str) -> None:
        with pytest.raises(EvaluationError):
            evaluate_arithmetic(expr)


class TestFormatting:
    def test_trailing_zeros_dropped(self) -> None:
        assert format_number(150.0) == "150"
        assert format_number(0.5) == "0.5"
        assert format_number(2.25) == "2.25"

    def test_rounds_half_up(self) -> None:
        assert format_number(0.125) == "0.13"
        assert round_display(1 / 3) == 0.33

    def test_negative_zero(self) -> None:
        assert format_number(-0.001) == "0"

    def test_negative(self) -> None:
        assert format_number(-2.5) == "-2.5"


class TestResolution:
    def test_currency_times_percent(self) -> None:
        grid = _make_grid(A1="$1000", B1="15%")
        assert _eval(grid, "A1*B1", "C1") == 150

    def test_empty_cell_is_zero(self) -> None:
        grid = _make_grid(A1="5")
        assert _eval(grid, "A1+B1") == 5

    def test_formula_reference_uses_formula_not_display(self) -> None:
        grid = _make_grid(A1="4", B1="=A1*2")
        assert _eval(grid, "B1+1", "C1") == 9

    def test_negative_formula_value_substituted(self) -> None:
        grid = _make_grid(A1="3", B1="=0-A1")
        assert _eval(grid, "2-B1", "C1") == 5

    def test_chain(self) -> None:
        grid = _make_grid(A1="1", A2="=A1+1", A3="=A2+1", A4="=A3+1")
        assert _eval(grid, "A4*10", "B1") == 40

    def test_diamond_is_not_circular(self) -> None:
        grid = _make_grid(A1="2", B1="=A1*3", B2="=A1+1")
        assert _eval(grid, "B1+B2", "C1") == 9

    def test_intermediate_rounding(self) -> None:
        grid = _make_grid(A1="1", B1="=A1/3")
        assert _eval(grid, "B1*3", "C1") == 0.99

    def test_long_chain_resolves(self) -> None:
        rows = 1000
        cells = {f"A{r}": f"=A{r + 1}+1" for r in range(1, rows)}
        cells[f"A{rows}"] = "1"
        grid = _make_grid(rows=rows, columns=2, **cells)
        assert _eval(grid, "A1", "B1") == 1000

    def test_shared_cache(self) -> None:
        grid = _make_grid(A1="2", B1="=A1*3", C1="=B1+1")
        cache: dict[str, str] = {}
        evaluator = FormulaEvaluator()
        assert evaluator.evaluate("C1*2", grid, "A3", cache) == 14
        assert cache == {"A1": "2", "B1": "6", "C1": "7", "A3": "14"}
        # A cached token wins over the cell contents while the cache is live.
        grid["A1"].value = "100"
        assert evaluator.evaluate("B1", grid, "A4", cache) == 6

    def test_failed_evaluation_not_cached(self) -> None:
        cache: dict[str, str] = {}
        result = FormulaEvaluator().evaluate("1/0", _make_grid(), "A1", cache)
        assert isinstance(result, CalcError)
        assert cache == {}


class TestErrors:
    def test_invalid_characters(self) -> None:
        result = _eval(_make_grid(), "A1^2")
        assert isinstance(result, CalcError)
        assert result.kind is ErrorKind.INVALID
        assert result.sentinel == "#ERROR"

    def test_unknown_reference(self) -> None:
        result = _eval(_make_grid(), "Z99")
        assert isinstance(result, CalcError)
        assert result.kind is ErrorKind.UNKNOWN_REFERENCE
        assert result.sentinel == "#ERROR"
        assert "Z99" in result.message

    def test_self_reference(self) -> None:
        result = _eval(_make_grid(), "A1+1", "A1")
        assert isinstance(result, CalcError)
        assert result.kind is ErrorKind.CIRCULAR
        assert result.sentinel == "#CIRCULAR_REF"

    def test_direct_cycle(self) -> None:
        grid = _make_grid(B1="=A1")
        result = _eval(grid, "B1", "A1")
        assert isinstance(result, CalcError)
        assert result.kind is ErrorKind.CIRCULAR

    def test_multi_hop_cycle(self) -> None:
        grid = _make_grid(B1="=C1+1", C1="=A1*2")
        result = _eval(grid, "B1", "A1")
        assert isinstance(result, CalcError)
        assert result.kind is ErrorKind.CIRCULAR

    def test_cycle_not_involving_origin(self) -> None:
        grid = _make_grid(A1="=B1", B1="=A1")
        result = _eval(grid, "A1+1", "C1")
        assert isinstance(result, CalcError)
        assert result.kind is ErrorKind.CIRCULAR

    def test_long_cycle_terminates(self) -> None:
        rows = 60
        cells = {f"A{r}": f"=A{r + 1}" for r in range(1, rows)}
        cells[f"A{rows}"] = "=A1"
        grid = _make_grid(rows=rows, columns=1, **cells)
        result = _eval(grid, "A1", "A1")
        assert isinstance(result, CalcError)
        assert result.kind is ErrorKind.CIRCULAR

    def test_sentinel_literal_is_invalid(self) -> None:
        grid = _make_grid(A1="#ERROR")
        result = _eval(grid, "A1+1", "B1")
        assert isinstance(result, CalcError)
        assert result.kind is ErrorKind.INVALID

    def test_invalid_inner_formula_propagates(self) -> None:
        grid = _make_grid(A1="=1/0")
        result = _eval(grid, "A1+1", "B1")
        assert isinstance(result, CalcError)
        assert result.kind is ErrorKind.INVALID

    def test_division_by_zero(self) -> None:
        result = _eval(_make_grid(A1="0"), "5/A1", "B1")
        assert isinstance(result, CalcError)

    def test_lowercase_identifier(self) -> None:
        result = _eval(_make_grid(A1="1"), "a1+1", "B1")
        assert isinstance(result, CalcError)
        assert result.kind is ErrorKind.INVALID

    def test_empty_formula(self) -> None:
        result = FormulaEvaluator().evaluate_formula("=", _make_grid(), "A1")
        assert isinstance(result, CalcError)
