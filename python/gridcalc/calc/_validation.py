"""Literal grammar: digits with optional leading ``$``, decimals and trailing ``%``."""

from __future__ import annotations

import re

# Anything a user could still be typing on the way to a full literal.
_PARTIAL_RE = re.compile(r"^\$?\d*(\.\d*)?%?$")
_FULL_RE = re.compile(r"^\$?\d+(\.\d+)?%?$")


def validate_partial(text: str) -> bool:
    """``True`` for in-progress input such as ``""``, ``"$"`` or ``"12."``."""
    return _PARTIAL_RE.match(text) is not None


def validate_full(text: str) -> bool:
    """``True`` only for a complete literal such as ``"$1000.50"`` or ``"15%"``."""
    return _FULL_RE.match(text) is not None

