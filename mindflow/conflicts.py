"""Name-based conflict detection for incoming maps.

Imported map ids are opaque to the destination library, so identity is by
display name, compared case-insensitively.
"""

from __future__ import annotations

from typing import Iterable


def _fold(name: str) -> str:
    return name.casefold()


def detect_conflict(name: str, existing_names: Iterable[str]) -> bool:
    """Return True if `name` matches any existing library name, ignoring case."""
    folded = _fold(name)
    return any(_fold(existing) == folded for existing in existing_names)


def next_available_name(name: str, taken: Iterable[str]) -> str:
    """Return ``"<name> (n)"`` for the lowest n >= 1 not in `taken` (case-insensitive).

    >>> next_available_name("Alpha Plan", ["Alpha Plan", "alpha plan (1)"])
    'Alpha Plan (2)'
    """
    taken_folded = {_fold(t) for t in taken}
    n = 1
    while _fold(f"{name} ({n})") in taken_folded:
        n += 1
    return f"{name} ({n})"
