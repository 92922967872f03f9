"""Address helpers: column letters, A1 parsing and normalization."""

from __future__ import annotations

import re

MAX_COLUMNS = 26

_A1_RE = re.compile(r"^\s*([A-Za-z])0*(\d+)\s*$")


def column_letter(index: int) -> str:
    """1-based column index -> letter (1 -> "A")."""
    if not 1 <= index <= MAX_COLUMNS:
        raise ValueError(f"Column index out of range: {index}")
    return chr(ord("A") + index - 1)


def column_index(letter: str) -> int:
    """Column letter -> 1-based index ("A" -> 1)."""
    if len(letter) != 1 or not letter.isalpha():
        raise ValueError(f"Invalid column letter: {letter!r}")
    return ord(letter.upper()) - ord("A") + 1


def a1_to_rowcol(address: str) -> tuple[int, int]:
    """Parse ``"C12"`` into ``(12, 3)``.

    Leading zeros in the row part are ignored (``"A01"`` is ``A1``).
    """
    m = _A1_RE.match(address)
    if not m:
        raise ValueError(f"Invalid cell address: {address!r}")
    row = int(m.group(2))
    if row < 1:
        raise ValueError(f"Invalid cell address: {address!r}")
    return row, column_index(m.group(1))


def rowcol_to_a1(row: int, col: int) -> str:
    """``(12, 3)`` -> ``"C12"``."""
    if row < 1:
        raise ValueError(f"Row out of range: {row}")
    return f"{column_letter(col)}{row}"


def normalize_address(address: str) -> str:
    """Canonical form of an address: upper-case letter, no leading zeros."""
    return rowcol_to_a1(*a1_to_rowcol(address))


def iter_addresses(rows: int, columns: int) -> list[str]:
    """All addresses of a ``rows x columns`` grid in row-major order."""
    return [
        rowcol_to_a1(r, c)
        for r in range(1, rows + 1)
        for c in range(1, columns + 1)
    ]
