"""Typed lookups of environment variables with fallbacks."""

from __future__ import annotations

import os
import re

_INT_RE = re.compile(r"[+-]?[0-9]+")
_TRUE = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE = frozenset({"0", "f", "F", "FALSE", "false", "False"})


def get_string(key: str, fallback: str) -> str:
    """Return the variable's value, or ``fallback`` when it is unset."""
    return os.environ.get(key, fallback)


def get_int(key: str, fallback: int) -> int:
    """Return the variable as a decimal integer, or ``fallback`` if unset or invalid."""
    value = os.environ.get(key)
    if value is None or not _INT_RE.fullmatch(value):
        return fallback
    number = int(value)
    if not -(2**63) <= number < 2**63:
        return fallback
    return number


def get_bool(key: str, fallback: bool) -> bool:
    """Return the variable as a boolean, or ``fallback`` if unset or invalid."""
    value = os.environ.get(key)
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    return fallback