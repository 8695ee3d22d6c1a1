"""Optional GPU driver phase of an install run.

Runs after the base CLI is installed. Nothing here aborts the run: callers
log failures as warnings and keep the exit code at 0.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from kuzcoinstall.bootstrap.download import download_file
from kuzcoinstall.bootstrap.plan import InstallPlan, with_rocm_runtime
from kuzcoinstall.bootstrap.platform import PlatformDescriptor
from kuzcoinstall.config.models import InstallerConfig
from kuzcoinstall.core.logging import get_logger, status
from kuzcoinstall.core.subprocess_runner import CommandRunner
from kuzcoinstall.gpu.detect import GPUKind, detect_cuda_version, detect_gpu
from kuzcoinstall.gpu.distro import OSRelease, detect_package_manager, read_os_release
from kuzcoinstall.gpu.drivers import DriverAction, DriverActionKind, plan_driver_install
from kuzcoinstall.gpu.installers import RocmRuntimeInstaller, installer_for

LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class DriverPlan:
    """Detected GPU, host identity and the chosen action."""

    gpu: GPUKind
    action: DriverAction
    package_manager: Optional[str] = None
    os_release: Optional[OSRelease] = None


def plan_drivers(
    config: InstallerConfig,
    platform: PlatformDescriptor,
    runner: CommandRunner,
) -> DriverPlan:
    """Detect the GPU and decide on a driver action.

    Raises:
        UnsupportedDistroError: NVIDIA GPU on a host without /etc/os-release.
    """
    if not platform.is_linux:
        return DriverPlan(
            GPUKind.NONE, DriverAction(DriverActionKind.SKIP, "GPU drivers are managed by macOS.")
        )

    gpu = detect_gpu(runner)
    os_release = None
    package_manager = None
    if gpu == GPUKind.NVIDIA:
        os_release = read_os_release()
        package_manager = detect_package_manager()

    action = plan_driver_install(
        gpu,
        package_manager,
        os_release.id if os_release else "",
        os_release.version_id if os_release else "",
        machine=platform.arch_raw,
        rocm_search_paths=config.rocm_search_paths,
        cuda_probe=lambda: detect_cuda_version(runner),
    )
    LOGGER.debug(f"GPU {gpu.value}: {action.kind.value} ({action.reason})")
    return DriverPlan(gpu, action, package_manager, os_release)


def apply_driver_plan(
    driver_plan: DriverPlan,
    config: InstallerConfig,
    plan: InstallPlan,
    runner: CommandRunner,
    work_dir: Path,
    download: Callable[[str, Path], Path] = download_file,
) -> None:
    """Execute a driver plan.

    ``download`` fetches the ROCm bundle and the CUDA keyring package.

    Raises:
        InstallerError, subprocess.CalledProcessError: On failed steps; the
            caller downgrades these to warnings.
    """
    action = driver_plan.action

    if action.kind == DriverActionKind.SKIP:
        if driver_plan.gpu == GPUKind.NONE:
            LOGGER.warning(action.reason)
        else:
            status(action.reason)
        return

    if action.kind == DriverActionKind.UNSUPPORTED:
        LOGGER.warning(action.reason)
        return

    if action.kind == DriverActionKind.DOWNLOAD_AND_EXTRACT_ROCM:
        rocm_plan = with_rocm_runtime(plan, config.bucket_url)
        RocmRuntimeInstaller(runner, work_dir, download=download).install(rocm_plan.gpu_runtime_url)
        return

    assert action.repo is not None and driver_plan.package_manager is not None
    installer = installer_for(driver_plan.package_manager, runner, work_dir, download=download)
    installer.install_cuda_driver(action.repo)
    if installer.load_kernel_module(action.repo.os_id) != "reboot_required":
        status("NVIDIA CUDA drivers installed.")
