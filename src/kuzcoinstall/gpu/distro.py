"""Host distribution and package manager discovery."""

from __future__ import annotations

import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Sequence

from kuzcoinstall.core.errors import UnsupportedDistroError
from kuzcoinstall.core.subprocess_runner import available

OS_RELEASE_PATH = Path("/etc/os-release")

# Probed in order; dnf is preferred over yum on hosts that ship both
PACKAGE_MANAGERS: Sequence[str] = ("dnf", "yum", "apt-get")


@dataclass(frozen=True)
class OSRelease:
    """Identity fields from /etc/os-release."""

    id: str
    version_id: str


def parse_os_release(text: str) -> Dict[str, str]:
    """Parse os-release KEY=value lines, honouring shell quoting."""
    values: Dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, raw = line.partition("=")
        try:
            parts = shlex.split(raw)
        except ValueError:
            parts = [raw.strip("\"'")]
        values[key.strip()] = parts[0] if parts else ""
    return values


def read_os_release(path: Path = OS_RELEASE_PATH) -> OSRelease:
    """Read the distribution ID and VERSION_ID.

    Raises:
        UnsupportedDistroError: If the file is missing or lacks an ID.
    """
    if not path.exists():
        raise UnsupportedDistroError("Unknown distribution. Skipping CUDA installation.")
    values = parse_os_release(path.read_text(encoding="utf-8", errors="replace"))
    os_id = values.get("ID", "")
    if not os_id:
        raise UnsupportedDistroError(f"No distribution ID in {path}")
    return OSRelease(id=os_id, version_id=values.get("VERSION_ID", ""))


def detect_package_manager(candidates: Sequence[str] = PACKAGE_MANAGERS) -> Optional[str]:
    """Return the first available package manager, or None."""
    for name in candidates:
        if available(name):
            return name
    return None
