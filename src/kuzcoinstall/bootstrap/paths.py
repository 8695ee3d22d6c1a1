"""Install directory selection."""

from __future__ import annotations

from typing import List, Sequence

from kuzcoinstall.config.models import DEFAULT_BIN_DIRS
from kuzcoinstall.core.errors import NoBinDirError


def split_search_path(path_entries: str) -> List[str]:
    """Split a PATH-style string, normalising trailing slashes."""
    entries = []
    for entry in path_entries.split(":"):
        if not entry:
            continue
        entries.append(entry.rstrip("/") or "/")
    return entries


def select_bin_dir(
    path_entries: str,
    candidates: Sequence[str] = DEFAULT_BIN_DIRS,
) -> str:
    """Return the first candidate directory that is an entry of ``path_entries``.

    Raises:
        NoBinDirError: If no candidate is on the search path.
    """
    entries = set(split_search_path(path_entries))
    for candidate in candidates:
        if (candidate.rstrip("/") or "/") in entries:
            return candidate
    raise NoBinDirError(candidates)
