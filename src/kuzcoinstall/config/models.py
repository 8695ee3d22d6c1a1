"""Installer configuration model."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

DEFAULT_BASE_URL = "kuzco.xyz"

# Searched in order; the first one found on PATH receives the binaries
DEFAULT_BIN_DIRS: Tuple[str, ...] = ("/usr/local/bin", "/usr/bin", "/bin")

DEFAULT_ROCM_PATH = "/opt/rocm"


@dataclass(frozen=True)
class InstallerConfig:
    """Immutable settings for one installer run.

    Built once by ``kuzcoinstall.config.loader.load_config`` and passed to
    every phase; nothing reads the environment after that.

    Attributes:
        kuzco_base_url: Deployment domain (kuzco.xyz for production).
        bucket_url: Host serving the manifest and binary artifacts.
        web_url: Web dashboard URL.
        api_url: Relay API URL.
        cli_version: Pinned version; when set the manifest is not fetched.
        debug_mode: Enable debug logging.
        hip_path: HIP install prefix searched for an existing ROCm.
        rocm_path: ROCm install prefix searched for an existing ROCm.
        path: Executable search path used to choose the install directory.
        bin_dir: Explicit install directory, bypassing PATH selection.
        bin_dir_candidates: Install directories tried in order.
        skip_drivers: Do not attempt GPU driver installation.
    """

    kuzco_base_url: str = DEFAULT_BASE_URL
    bucket_url: str = f"cfs.{DEFAULT_BASE_URL}"
    web_url: str = f"https://{DEFAULT_BASE_URL}"
    api_url: str = f"https://relay.{DEFAULT_BASE_URL}"
    cli_version: Optional[str] = None
    debug_mode: bool = False
    hip_path: Optional[str] = None
    rocm_path: Optional[str] = None
    path: str = ""
    bin_dir: Optional[str] = None
    bin_dir_candidates: Tuple[str, ...] = DEFAULT_BIN_DIRS
    skip_drivers: bool = False

    @property
    def rocm_search_paths(self) -> Tuple[str, ...]:
        """Prefixes searched for a pre-installed ROCm, unset entries skipped."""
        candidates = (self.hip_path, self.rocm_path, DEFAULT_ROCM_PATH)
        return tuple(c for c in candidates if c)
