"""Locate the town root (the Gas Town workspace) from a directory."""

from __future__ import annotations

import os
from pathlib import Path

PRIMARY_MARKER = Path("mayor") / "town.json"
SECONDARY_MARKER = Path("mayor")


def find_town_root(start: Path | str) -> Path | None:
    """Walk up from start. The nearest directory with mayor/town.json wins,
    then the nearest with a mayor/ directory."""
    p = Path(start).resolve()
    fallback = None
    for candidate in (p, *p.parents):
        if (candidate / PRIMARY_MARKER).is_file():
            return candidate
        if fallback is None and (candidate / SECONDARY_MARKER).is_dir():
            fallback = candidate
    return fallback


def find_town_root_from_cwd() -> Path | None:
    """GT_TOWN_ROOT if it names a directory, else search up from the cwd."""
    override = os.getenv("GT_TOWN_ROOT")
    if override and Path(override).is_dir():
        return Path(override)
    try:
        cwd = Path.cwd()
    except OSError:
        return None
    return find_town_root(cwd)
