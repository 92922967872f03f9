"""Formula text helpers: character check, reference extraction, substitution."""

from __future__ import annotations

import re
from collections.abc import Callable

from gridcalc._utils import normalize_address

# ---------------------------------------------------------------------------
# Regex patterns
# ---------------------------------------------------------------------------

# Everything a formula body may contain: refs, numbers, operators, parens.
_INVALID_CHAR_RE = re.compile(r"[^A-Za-z0-9+\-*/(). ]")

# Upper-case column letters + row digits, not glued to a preceding identifier
# (so ``xA1`` stays an unknown name instead of silently becoming ``A1``).
_REF_RE = re.compile(r"(?<![A-Za-z0-9_])([A-Z]+[0-9]+)")

_SEPARATORS_RE = re.compile(r"[$,\s]")
_LITERAL_TOKEN_RE = re.compile(r"^\d+(\.\d+)?%?$")


def formula_body(formula: str) -> str:
    """Strip the leading ``=`` (and surrounding whitespace) from a formula."""
    body = formula.strip()
    if body.startswith("="):
        body = body[1:]
    return body.strip()


def has_invalid_chars(body: str) -> bool:
    return _INVALID_CHAR_RE.search(body) is not None


def canonical_ref(token: str) -> str:
    """Grid address for a reference token (``A01`` -> ``A1``).

    Tokens that cannot be an address in any grid (``AB1``) are returned
    unchanged so the lookup fails as an unknown reference.
    """
    try:
        return normalize_address(token)
    except ValueError:
        return token


# ---------------------------------------------------------------------------
# Reference extraction
# ---------------------------------------------------------------------------


def parse_references(body: str) -> list[str]:
    """Canonical addresses referenced by a formula, in first-occurrence order."""
    refs: list[str] = []
    seen: set[str] = set()
    for m in _REF_RE.finditer(body):
        ref = canonical_ref(m.group(1))
        if ref not in seen:
            refs.append(ref)
            seen.add(ref)
    return refs


# ---------------------------------------------------------------------------
# Substitution
# ---------------------------------------------------------------------------


def substitute_references(body: str, resolve: Callable[[str], str]) -> str:
    """Replace every reference token with ``resolve(canonical_address)``.

    Replacement is token-based: ``A1`` never matches inside ``A10``.
    """
    return _REF_RE.sub(lambda m: resolve(canonical_ref(m.group(1))), body)


def literal_token(value: str) -> str | None:
    """Arithmetic token for a literal cell value.

    Currency and thousands separators are dropped, a trailing ``%`` is kept
    (the evaluator treats it as a unit).  Empty cells read as ``"0"``.
    Returns ``None`` if *value* is not a number.
    """
    clean = _SEPARATORS_RE.sub("", value)
    if not clean:
        return "0"
    if _LITERAL_TOKEN_RE.match(clean):
        return clean
    return None
