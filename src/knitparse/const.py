"""
General use constants.
"""

from __future__ import annotations
from typing import Final

LOGGER_NAME: Final[str] = "knitparse"
DEFAULT_ERROR: Final[str] = "Error"
"""Shown by `Result.error` when no message was set."""

WHITESPACES: Final[frozenset[str]] = frozenset({" ", "\t", "\n", "\r", "\f", "\v"})
DECIMAL: Final[frozenset[str]] = frozenset({"0", "1", "2", "3", "4", "5", "6", "7", "8", "9"})
LOWERCASE: Final[frozenset[str]] = frozenset("abcdefghijklmnopqrstuvwxyz")
UPPERCASE: Final[frozenset[str]] = frozenset("ABCDEFGHIJKLMNOPQRSTUVWXYZ")
ALPHABETIC: Final[frozenset[str]] = LOWERCASE | UPPERCASE
ALNUM: Final[frozenset[str]] = ALPHABETIC | DECIMAL
