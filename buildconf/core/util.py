"""
Small list, path-prefix and number-parsing helpers shared by the config accessors.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence


def in_list(item: str, items: Iterable[str] | None) -> bool:
    """Return True if ``item`` is in ``items`` (``None`` is an empty list)."""
    return item in (items or ())


def has_any_prefix(value: str, prefixes: Iterable[str] | None) -> bool:
    """Return True if ``value`` starts with any of ``prefixes``."""
    return any(value.startswith(p) for p in prefixes or ())


def copy_of(items: Sequence[str] | None) -> list[str]:
    """Return a fresh list so callers can't alias product-variable state."""
    return list(items or [])


def split_comma_list(value: str) -> list[str]:
    """Split a comma-separated flag value, dropping empty entries."""
    return [part.strip() for part in value.split(",") if part.strip()]


def match_pattern(pattern: str, value: str) -> bool:
    """Match ``value`` against a pattern with at most one ``%`` wildcard."""
    prefix, sep, suffix = pattern.partition("%")
    if not sep:
        return pattern == value
    return value.startswith(prefix) and value.endswith(suffix)


def subst_pattern(pattern: str, replacement: str, value: str) -> str:
    """Substitute the ``%`` stem matched in ``value`` into ``replacement``.

    ``replacement`` is returned unchanged unless both it and ``pattern``
    contain exactly one ``%``.
    """
    pattern_parts = pattern.split("%")
    replacement_parts = replacement.split("%")
    if len(pattern_parts) != 2 or len(replacement_parts) != 2:
        return replacement
    stem = value.removeprefix(pattern_parts[0]).removesuffix(pattern_parts[1])
    return replacement_parts[0] + stem + replacement_parts[1]


_OCTAL_LITERAL = re.compile(r"0_?[0-7][0-7_]*")


def parse_uint(value: str) -> int | None:
    """Parse an unsigned 64-bit integer literal, or return None.

    Accepts decimal and the ``0x``, ``0o``, ``0b`` and leading-``0``
    (octal) prefixes, with ``_`` between digits. A sign or surrounding
    whitespace makes the value invalid.
    """
    if not value or not value.isascii() or value[0] in "+-" or value != value.strip():
        return None
    try:
        if _OCTAL_LITERAL.fullmatch(value):
            number = int(value[1:].lstrip("_"), 8)
        else:
            number = int(value, 0)
    except ValueError:
        return None
    return number if number < 1 << 64 else None
