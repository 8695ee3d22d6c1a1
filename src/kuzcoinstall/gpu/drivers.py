"""GPU driver planning.

Decides what to do about GPU drivers without executing anything:

- no GPU                        -> SKIP
- AMD, ROCm already present     -> SKIP
- AMD                           -> DOWNLOAD_AND_EXTRACT_ROCM
- NVIDIA, CUDA already reported -> SKIP
- NVIDIA on a known distro      -> INSTALL_CUDA_DRIVER (with repo)
- NVIDIA elsewhere              -> UNSUPPORTED (warn and skip)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence

from kuzcoinstall.config.models import DEFAULT_ROCM_PATH
from kuzcoinstall.core.logging import get_logger
from kuzcoinstall.gpu.detect import GPUKind

LOGGER = get_logger(__name__)

NVIDIA_REPO_BASE = "https://developer.download.nvidia.com/compute/cuda/repos"
CUDA_KEYRING_PACKAGE = "cuda-keyring_1.1-1_all.deb"

# Newest Fedora release NVIDIA publishes a CUDA repository for
FEDORA_MAX_VERSION = 37

# Library whose presence marks a compatible ROCm 6 install
ROCM_MARKER = os.path.join("lib", "libhipblas.so.2")

CUDA_MANUAL_INSTALL_MSG = (
    "NVIDIA GPU detected, but your OS and Architecture are not supported by NVIDIA. "
    "Please install the CUDA driver manually "
    "https://docs.nvidia.com/cuda/cuda-installation-guide-linux/"
)

_FAMILY_MANAGERS = {
    "yum": ("dnf", "yum"),
    "apt": ("apt-get",),
}


class DriverActionKind(str, Enum):
    SKIP = "skip"
    DOWNLOAD_AND_EXTRACT_ROCM = "download_and_extract_rocm"
    INSTALL_CUDA_DRIVER = "install_cuda_driver"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class CudaRepo:
    """NVIDIA CUDA repository for one distribution release.

    Attributes:
        os_id: Host distribution ID (before mapping, e.g. "rocky").
        distro: Repository distro name (rhel, fedora, debian, ubuntu).
        version: Repository version token (e.g. "9", "37", "2204").
        family: Package family, "yum" or "apt".
        machine: Raw architecture used in the repository path.
    """

    os_id: str
    distro: str
    version: str
    family: str
    machine: str = "x86_64"

    @property
    def name(self) -> str:
        return f"{self.distro}{self.version}"

    @property
    def base_url(self) -> str:
        return f"{NVIDIA_REPO_BASE}/{self.name}/{self.machine}"

    @property
    def repo_url(self) -> str:
        """Repository definition used by yum/dnf."""
        return f"{self.base_url}/cuda-{self.name}.repo"

    @property
    def keyring_url(self) -> str:
        """Keyring package used by apt."""
        return f"{self.base_url}/{CUDA_KEYRING_PACKAGE}"


@dataclass(frozen=True)
class DriverAction:
    """Outcome of driver planning."""

    kind: DriverActionKind
    reason: str = ""
    repo: Optional[CudaRepo] = None
    rocm_path: Optional[str] = None


def _major(version: str) -> Optional[str]:
    major = version.split(".")[0]
    return major if major.isdigit() else None


def resolve_cuda_repo(os_id: str, os_version: str, machine: str = "x86_64") -> Optional[CudaRepo]:
    """Look up the CUDA repository for a distribution release.

    Returns:
        CudaRepo, or None when NVIDIA publishes nothing for the host.
    """
    if os_id in ("centos", "rhel", "rocky"):
        major = _major(os_version)
        if major is None:
            return None
        return CudaRepo(os_id, "rhel", major, "yum", machine)

    if os_id == "fedora":
        major = _major(os_version)
        if major is None:
            return None
        version = min(int(major), FEDORA_MAX_VERSION)
        return CudaRepo(os_id, "fedora", str(version), "yum", machine)

    if os_id == "amzn":
        return CudaRepo(os_id, "fedora", str(FEDORA_MAX_VERSION), "yum", machine)

    if os_id == "debian" and os_version:
        return CudaRepo(os_id, "debian", os_version, "apt", machine)

    if os_id == "ubuntu" and os_version:
        return CudaRepo(os_id, "ubuntu", os_version.replace(".", "", 1), "apt", machine)

    return None


def find_rocm(
    search_paths: Sequence[str] = (DEFAULT_ROCM_PATH,),
    path_exists: Callable[[str], bool] = os.path.exists,
) -> Optional[str]:
    """Return the first prefix holding a compatible ROCm library."""
    for prefix in search_paths:
        if prefix and path_exists(os.path.join(prefix, ROCM_MARKER)):
            return prefix
    return None


def plan_driver_install(
    gpu_kind: GPUKind,
    package_manager: Optional[str],
    os_id: str,
    os_version: str,
    *,
    machine: str = "x86_64",
    rocm_search_paths: Sequence[str] = (DEFAULT_ROCM_PATH,),
    path_exists: Callable[[str], bool] = os.path.exists,
    cuda_probe: Callable[[], Optional[str]] = lambda: None,
) -> DriverAction:
    """Decide which GPU driver action applies to the host.

    Args:
        gpu_kind: Detected GPU vendor.
        package_manager: Available package manager (dnf, yum, apt-get) or None.
        os_id: Distribution ID from os-release.
        os_version: VERSION_ID from os-release.
        machine: Raw architecture used in NVIDIA repository paths.
        rocm_search_paths: Prefixes searched for an existing ROCm install.
        path_exists: Filesystem probe.
        cuda_probe: Returns the CUDA version reported by nvidia-smi, or None.
    """
    if gpu_kind == GPUKind.NONE:
        return DriverAction(
            DriverActionKind.SKIP, "No GPU detected. Kuzco will run in CPU-only mode."
        )

    if gpu_kind == GPUKind.AMD:
        found = find_rocm(rocm_search_paths, path_exists)
        if found:
            return DriverAction(
                DriverActionKind.SKIP,
                f"Compatible AMD GPU ROCm library detected at {found}",
                rocm_path=found,
            )
        return DriverAction(
            DriverActionKind.DOWNLOAD_AND_EXTRACT_ROCM,
            "AMD GPU detected without a compatible ROCm library",
            rocm_path=DEFAULT_ROCM_PATH,
        )

    cuda_version = cuda_probe()
    if cuda_version:
        return DriverAction(
            DriverActionKind.SKIP, f"NVIDIA GPU installed (CUDA {cuda_version})."
        )

    repo = resolve_cuda_repo(os_id, os_version, machine)
    if repo is None:
        LOGGER.debug(f"No CUDA repository for {os_id} {os_version}")
        return DriverAction(DriverActionKind.UNSUPPORTED, CUDA_MANUAL_INSTALL_MSG)

    if package_manager not in _FAMILY_MANAGERS[repo.family]:
        return DriverAction(
            DriverActionKind.UNSUPPORTED,
            f"No {repo.family} package manager found for {os_id}. {CUDA_MANUAL_INSTALL_MSG}",
        )

    return DriverAction(
        DriverActionKind.INSTALL_CUDA_DRIVER,
        f"Installing CUDA driver from the {repo.name} repository",
        repo=repo,
    )
