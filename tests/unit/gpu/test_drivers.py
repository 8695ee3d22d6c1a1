"""Tests for GPU driver planning."""

from __future__ import annotations

import pytest

from kuzcoinstall.gpu.detect import GPUKind
from kuzcoinstall.gpu.drivers import (
    CUDA_MANUAL_INSTALL_MSG,
    CudaRepo,
    DriverActionKind,
    find_rocm,
    plan_driver_install,
    resolve_cuda_repo,
)


class TestResolveCudaRepo:
    @pytest.mark.parametrize(
        "os_id, version, expected",
        [
            ("rhel", "9.3", "rhel9"),
            ("centos", "7", "rhel7"),
            ("rocky", "8.9", "rhel8"),
            ("fedora", "36", "fedora36"),
            ("fedora", "37", "fedora37"),
            ("fedora", "40", "fedora37"),
            ("amzn", "2023", "fedora37"),
            ("debian", "12", "debian12"),
            ("ubuntu", "22.04", "ubuntu2204"),
            ("ubuntu", "20.04", "ubuntu2004"),
        ],
    )
    def test_repository_names(self, os_id: str, version: str, expected: str) -> None:
        repo = resolve_cuda_repo(os_id, version)
        assert repo is not None
        assert repo.name == expected

    @pytest.mark.parametrize("os_id, version", [("arch", ""), ("opensuse-leap", "15.5"), ("ubuntu", "")])
    def test_unknown_returns_none(self, os_id: str, version: str) -> None:
        assert resolve_cuda_repo(os_id, version) is None

    def test_families(self) -> None:
        assert resolve_cuda_repo("rocky", "9.3").family == "yum"
        assert resolve_cuda_repo("debian", "12").family == "apt"

    def test_urls(self) -> None:
        repo = CudaRepo("ubuntu", "ubuntu", "2204", "apt", "x86_64")
        assert repo.keyring_url == (
            "https://developer.download.nvidia.com/compute/cuda/repos/ubuntu2204/x86_64/"
            "cuda-keyring_1.1-1_all.deb"
        )
        rhel = CudaRepo("rhel", "rhel", "9", "yum", "aarch64")
        assert rhel.repo_url == (
            "https://developer.download.nvidia.com/compute/cuda/repos/rhel9/aarch64/cuda-rhel9.repo"
        )


class TestFindRocm:
    def test_first_prefix_with_marker(self) -> None:
        present = {"/usr/rocm/lib/libhipblas.so.2", "/opt/rocm/lib/libhipblas.so.2"}
        assert find_rocm(("/opt/hip", "/usr/rocm", "/opt/rocm"), present.__contains__) == "/usr/rocm"

    def test_none_without_marker(self) -> None:
        assert find_rocm(("/opt/rocm",), lambda p: False) is None


class TestPlanDriverInstall:
    def test_no_gpu_skips(self) -> None:
        action = plan_driver_install(GPUKind.NONE, None, "", "")
        assert action.kind == DriverActionKind.SKIP
        assert "CPU-only" in action.reason

    def test_amd_with_rocm_skips(self) -> None:
        present = {"/srv/rocm/lib/libhipblas.so.2"}
        action = plan_driver_install(
            GPUKind.AMD, None, "ubuntu", "22.04",
            rocm_search_paths=("/srv/rocm", "/opt/rocm"),
            path_exists=present.__contains__,
        )
        assert action.kind == DriverActionKind.SKIP
        assert action.rocm_path == "/srv/rocm"

    def test_amd_without_rocm_downloads(self) -> None:
        action = plan_driver_install(
            GPUKind.AMD, None, "ubuntu", "22.04", path_exists=lambda p: False
        )
        assert action.kind == DriverActionKind.DOWNLOAD_AND_EXTRACT_ROCM
        assert action.rocm_path == "/opt/rocm"

    def test_nvidia_with_cuda_skips(self) -> None:
        action = plan_driver_install(
            GPUKind.NVIDIA, "apt-get", "ubuntu", "22.04", cuda_probe=lambda: "12.2"
        )
        assert action.kind == DriverActionKind.SKIP
        assert "12.2" in action.reason

    def test_nvidia_on_ubuntu_installs(self) -> None:
        action = plan_driver_install(GPUKind.NVIDIA, "apt-get", "ubuntu", "22.04", machine="x86_64")
        assert action.kind == DriverActionKind.INSTALL_CUDA_DRIVER
        assert action.repo == CudaRepo("ubuntu", "ubuntu", "2204", "apt", "x86_64")

    def test_nvidia_on_rocky_with_dnf(self) -> None:
        action = plan_driver_install(GPUKind.NVIDIA, "dnf", "rocky", "9.3", machine="aarch64")
        assert action.kind == DriverActionKind.INSTALL_CUDA_DRIVER
        assert action.repo.name == "rhel9"
        assert action.repo.machine == "aarch64"

    def test_nvidia_on_unknown_distro(self) -> None:
        action = plan_driver_install(GPUKind.NVIDIA, "zypper", "opensuse-leap", "15.5")
        assert action.kind == DriverActionKind.UNSUPPORTED
        assert action.reason == CUDA_MANUAL_INSTALL_MSG

    def test_package_manager_family_mismatch(self) -> None:
        action = plan_driver_install(GPUKind.NVIDIA, "apt-get", "fedora", "39")
        assert action.kind == DriverActionKind.UNSUPPORTED
        assert "yum" in action.reason
