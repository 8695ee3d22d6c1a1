"""GPU driver installers.

Executes the actions chosen by ``kuzcoinstall.gpu.drivers`` through the host
package manager. Each package-manager family implements DriverInstaller:
``install_cuda_repo`` registers NVIDIA's repository and ``install_package``
installs a single package.

References:
- https://docs.nvidia.com/cuda/cuda-installation-guide-linux/index.html#ubuntu
- https://docs.nvidia.com/cuda/cuda-installation-guide-linux/index.html#rhel-9-rocky-9
- https://docs.nvidia.com/cuda/cuda-installation-guide-linux/index.html#fedora
"""

from __future__ import annotations

import platform
import shutil
import tarfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, List

from kuzcoinstall.bootstrap.download import download_file, url_exists
from kuzcoinstall.bootstrap.installer import check_archive_members
from kuzcoinstall.config.models import DEFAULT_ROCM_PATH
from kuzcoinstall.core.errors import InstallerError, UnsupportedDistroError
from kuzcoinstall.core.logging import get_logger, status
from kuzcoinstall.core.subprocess_runner import CommandRunner
from kuzcoinstall.gpu.drivers import CUDA_MANUAL_INSTALL_MSG, CudaRepo

LOGGER = get_logger(__name__)

CUDA_DRIVER_PACKAGE = "cuda-drivers"
EPEL_RELEASE_URL = "https://dl.fedoraproject.org/pub/epel/epel-release-latest-{version}.noarch.rpm"

APT_SOURCES = Path("/etc/apt/sources.list")
APT_SOURCES_DIR = Path("/etc/apt/sources.list.d")


class DriverInstaller(ABC):
    """Installs NVIDIA's CUDA repository and packages for one package family."""

    def __init__(
        self,
        runner: CommandRunner,
        work_dir: Path,
        probe_url: Callable[[str], bool] = url_exists,
        download: Callable[[str, Path], Path] = download_file,
    ) -> None:
        self.runner = runner
        self.work_dir = work_dir
        self.probe_url = probe_url
        self.download = download

    @property
    @abstractmethod
    def package_manager(self) -> str:
        """Executable used to install packages."""

    @abstractmethod
    def install_cuda_repo(self, repo: CudaRepo) -> None:
        """Register NVIDIA's CUDA repository for ``repo``."""

    @abstractmethod
    def install_package(self, name: str, check: bool = True) -> None:
        """Install a single package non-interactively."""

    @abstractmethod
    def kernel_header_packages(self, os_id: str, kernel_release: str) -> List[str]:
        """Packages providing headers for building the NVIDIA kernel module."""

    def _require_repo(self, url: str) -> None:
        if not self.probe_url(url):
            raise UnsupportedDistroError(CUDA_MANUAL_INSTALL_MSG)

    def install_cuda_driver(self, repo: CudaRepo) -> None:
        status("Installing NVIDIA repository...")
        self.install_cuda_repo(repo)
        status("Installing CUDA driver...")
        self.install_package(CUDA_DRIVER_PACKAGE)

    def load_kernel_module(self, os_id: str, kernel_release: str = "") -> str:
        """Build and load the nvidia module if it is not loaded yet.

        Returns:
            "loaded", "already_loaded" or "reboot_required".
        """
        if "nvidia" in self.runner.output(["lsmod"]):
            return "already_loaded"

        release = kernel_release or platform.release()
        for package in self.kernel_header_packages(os_id, release):
            self.install_package(package)

        module = _dkms_added_module(self.runner.output(["dkms", "status"], privileged=True))
        if module:
            self.runner.run(["dkms", "install", module], privileged=True)

        if "nouveau" in self.runner.output(["lsmod"]):
            status("Reboot to complete NVIDIA CUDA driver install.")
            return "reboot_required"

        self.runner.run(["modprobe", "nvidia"], privileged=True)
        return "loaded"


def _dkms_added_module(dkms_status: str) -> str:
    """Return the first module that dkms lists as added but not built."""
    for line in dkms_status.splitlines():
        if "added" in line:
            return line.split(":", 1)[0].strip()
    return ""


class AptInstaller(DriverInstaller):
    """Debian and Ubuntu via apt-get and the cuda-keyring package."""

    @property
    def package_manager(self) -> str:
        return "apt-get"

    def install_cuda_repo(self, repo: CudaRepo) -> None:
        self._require_repo(repo.keyring_url)
        keyring = self.download(repo.keyring_url, self.work_dir / "cuda-keyring.deb")

        if repo.distro == "debian":
            status("Enabling contrib sources...")
            self.enable_contrib_sources()

        self.runner.run(["dpkg", "-i", str(keyring)], privileged=True)
        self.runner.run(["apt-get", "update"], privileged=True)

    def enable_contrib_sources(self) -> None:
        """Mirror the main apt sources as contrib sources."""
        pairs = [
            (APT_SOURCES, APT_SOURCES_DIR / "contrib.list"),
            (APT_SOURCES_DIR / "debian.sources", APT_SOURCES_DIR / "contrib.sources"),
        ]
        for source, target in pairs:
            if not source.exists():
                continue
            contrib = _to_contrib(source.read_text(encoding="utf-8", errors="replace"))
            self.runner.run(["tee", str(target)], privileged=True, input_text=contrib)

    def install_package(self, name: str, check: bool = True) -> None:
        self.runner.run(
            ["apt-get", "-y", "install", name, "-q"],
            privileged=True,
            check=check,
            env={"DEBIAN_FRONTEND": "noninteractive"},
        )

    def kernel_header_packages(self, os_id: str, kernel_release: str) -> List[str]:
        return [f"linux-headers-{kernel_release}"]


def _to_contrib(text: str) -> str:
    """Replace the first "main" on each line with "contrib"."""
    return "".join(line.replace("main", "contrib", 1) for line in text.splitlines(keepends=True))


class YumDnfInstaller(DriverInstaller):
    """RHEL, CentOS, Rocky, Fedora and Amazon Linux via yum or dnf."""

    def __init__(self, runner: CommandRunner, work_dir: Path, manager: str = "dnf", **kwargs) -> None:
        super().__init__(runner, work_dir, **kwargs)
        if manager not in ("yum", "dnf"):
            raise ValueError(f"Not a yum-family package manager: {manager}")
        self._manager = manager

    @property
    def package_manager(self) -> str:
        return self._manager

    def install_cuda_repo(self, repo: CudaRepo) -> None:
        if self._manager == "yum":
            self.install_package("yum-utils")
            self._require_repo(repo.repo_url)
            self.runner.run(["yum-config-manager", "--add-repo", repo.repo_url], privileged=True)
        else:
            self._require_repo(repo.repo_url)
            self.runner.run(["dnf", "config-manager", "--add-repo", repo.repo_url], privileged=True)

        if repo.distro == "rhel":
            status("Installing EPEL repository...")
            # dkms and libvdpau come from EPEL
            self.install_package(EPEL_RELEASE_URL.format(version=repo.version), check=False)

    def install_cuda_driver(self, repo: CudaRepo) -> None:
        status("Installing NVIDIA repository...")
        self.install_cuda_repo(repo)
        status("Installing CUDA driver...")
        if repo.name == "rhel7":
            self.install_package("nvidia-driver-latest-dkms")
        self.install_package(CUDA_DRIVER_PACKAGE)

    def install_package(self, name: str, check: bool = True) -> None:
        self.runner.run([self._manager, "-y", "install", name], privileged=True, check=check)

    def kernel_header_packages(self, os_id: str, kernel_release: str) -> List[str]:
        if os_id == "rocky":
            return ["kernel-devel", "kernel-headers"]
        if os_id == "fedora":
            return [f"kernel-devel-{kernel_release}"]
        return [f"kernel-devel-{kernel_release}", f"kernel-headers-{kernel_release}"]


def installer_for(
    package_manager: str, runner: CommandRunner, work_dir: Path, **kwargs
) -> DriverInstaller:
    """Return the DriverInstaller for a package manager executable.

    Raises:
        UnsupportedDistroError: If the package manager has no installer.
    """
    if package_manager == "apt-get":
        return AptInstaller(runner, work_dir, **kwargs)
    if package_manager in ("yum", "dnf"):
        return YumDnfInstaller(runner, work_dir, manager=package_manager, **kwargs)
    raise UnsupportedDistroError(f"Unknown package manager {package_manager!r}. Skipping CUDA installation.")


class RocmRuntimeInstaller:
    """Downloads the bundled ROCm runtime and copies it into /opt/rocm."""

    def __init__(
        self,
        runner: CommandRunner,
        work_dir: Path,
        download: Callable[[str, Path], Path] = download_file,
        target: str = DEFAULT_ROCM_PATH,
    ) -> None:
        self.runner = runner
        self.work_dir = work_dir
        self.download = download
        self.target = target

    def install(self, url: str) -> Path:
        status("Downloading AMD GPU dependencies...")
        archive = self.download(url, self.work_dir / "rocm.tgz")

        staging = self.work_dir / "rocm"
        if staging.exists():
            shutil.rmtree(staging)
        staging.mkdir(parents=True)
        check_archive_members(archive, staging)
        try:
            with tarfile.open(archive, "r:gz") as tar:
                if hasattr(tarfile, "data_filter"):
                    tar.extractall(staging, filter="tar")
                else:
                    # Interpreters before 3.10.12 / 3.11.4 have no extraction filters
                    tar.extractall(staging)
        except (tarfile.TarError, EOFError) as e:
            raise InstallerError(f"Could not extract {archive.name}: {e}") from e

        status(f"Installing AMD GPU dependencies to {self.target}...")
        self.runner.run(["install", "-o0", "-g0", "-m755", "-d", self.target], privileged=True)
        entries = sorted(str(p) for p in staging.iterdir())
        if entries:
            self.runner.run(["cp", "-r", *entries, self.target + "/"], privileged=True)
        status("AMD GPU dependencies installed.")
        return Path(self.target)
