"""Tests for the install command."""

from __future__ import annotations

import io
import logging
import tarfile
from argparse import Namespace
from pathlib import Path
from typing import Dict, List, Optional
from unittest.mock import MagicMock, patch

import pytest

from kuzcoinstall.bootstrap.installer import LIB_ARCHIVE_NAME
from kuzcoinstall.bootstrap.platform import Arch, OperatingSystem, PlatformDescriptor
from kuzcoinstall.cli.commands.install import SUCCESS_MESSAGE, InstallCommand, resolve_bin_dir
from kuzcoinstall.cli.exit_codes import EXIT_SUCCESS
from kuzcoinstall.config.models import InstallerConfig
from kuzcoinstall.core.errors import DownloadError, NoBinDirError, UnsupportedDistroError
from kuzcoinstall.gpu.detect import GPUKind
from kuzcoinstall.gpu.drivers import DriverAction, DriverActionKind
from kuzcoinstall.gpu.phase import DriverPlan

LINUX = PlatformDescriptor(os=OperatingSystem.LINUX, arch_raw="x86_64", arch=Arch.AMD64)
DARWIN = PlatformDescriptor(os=OperatingSystem.DARWIN, arch_raw="arm64", arch=Arch.DARWIN_AARCH64)


class FakeDownloads:
    """Records requested URLs and writes placeholder files."""

    def __init__(self, bodies: Optional[Dict[str, bytes]] = None) -> None:
        self.urls: List[str] = []
        self.dirs: List[Path] = []
        self.bodies = bodies or {}

    def __call__(self, url: str, dest: Path) -> Path:
        self.urls.append(url)
        self.dirs.append(dest.parent)
        if dest.name == LIB_ARCHIVE_NAME:
            with tarfile.open(dest, "w:gz") as tar:
                info = tarfile.TarInfo("libkuzco.so")
                info.size = 3
                tar.addfile(info, io.BytesIO(b"lib"))
        else:
            dest.write_bytes(self.bodies.get(dest.name, b"bin"))
        return dest


@pytest.fixture(autouse=True)
def tools_present():
    with patch("shutil.which", side_effect=lambda tool: f"/usr/bin/{tool}"):
        yield


def _command(platform: PlatformDescriptor, downloads: FakeDownloads, runner: MagicMock) -> InstallCommand:
    return InstallCommand(detect=lambda: platform, runner_factory=lambda: runner, download=downloads)


class TestResolveBinDir:
    def test_explicit(self) -> None:
        assert resolve_bin_dir(InstallerConfig(bin_dir="/opt/bin", path="")) == "/opt/bin"

    def test_from_path(self) -> None:
        assert resolve_bin_dir(InstallerConfig(path="/usr/bin:/bin")) == "/usr/bin"

    def test_none_on_path(self) -> None:
        with pytest.raises(NoBinDirError):
            resolve_bin_dir(InstallerConfig(path="/opt/tools"))


class TestInstallCommand:
    def test_linux_install(self, capsys) -> None:
        downloads = FakeDownloads()
        runner = MagicMock()
        config = InstallerConfig(cli_version="1.2.3", path="/usr/local/bin:/usr/bin", skip_drivers=True)

        result = _command(LINUX, downloads, runner).execute(Namespace(), config)

        assert result == EXIT_SUCCESS
        assert len(downloads.urls) == 3
        assert all("1.2.3" in url and "amd64" in url for url in downloads.urls)
        argvs = [c.args[0] for c in runner.run.call_args_list]
        assert argvs[0] == ["install", "-o0", "-g0", "-m755", "-d", "/usr/local/bin"]
        assert argvs[-1][0] == "tar"

        out = capsys.readouterr().out
        assert "CLI_VERSION: 1.2.3" in out
        assert "Getting versions.json" not in out
        assert out.strip().splitlines()[-1] == f">>> {SUCCESS_MESSAGE}"

    def test_fetches_manifest_when_unpinned(self, capsys) -> None:
        downloads = FakeDownloads()
        config = InstallerConfig(path="/usr/bin", skip_drivers=True)

        with patch(
            "kuzcoinstall.cli.commands.install.resolve_cli_version", return_value="2.0.0"
        ) as mock_version:
            _command(LINUX, downloads, MagicMock()).execute(Namespace(), config)

        mock_version.assert_called_once_with(config)
        assert "Getting versions.json..." in capsys.readouterr().out
        assert all("2.0.0" in url for url in downloads.urls)

    def test_darwin_install_skips_library_and_gpu(self) -> None:
        downloads = FakeDownloads()
        runner = MagicMock()
        config = InstallerConfig(cli_version="1.2.3", path="/usr/local/bin")

        with patch("kuzcoinstall.cli.commands.install.plan_drivers") as mock_plan:
            _command(DARWIN, downloads, runner).execute(Namespace(), config)

        mock_plan.assert_not_called()
        assert len(downloads.urls) == 2
        assert all("darwin-aarch64" in url for url in downloads.urls)
        assert all(c.args[0][0] != "tar" for c in runner.run.call_args_list)

    def test_scratch_directory_removed(self) -> None:
        downloads = FakeDownloads()
        config = InstallerConfig(cli_version="1.2.3", path="/usr/bin", skip_drivers=True)

        _command(LINUX, downloads, MagicMock()).execute(Namespace(), config)

        assert downloads.dirs
        assert not downloads.dirs[0].exists()

    def test_download_failure_removes_scratch_and_skips_banner(self, capsys) -> None:
        seen: List[Path] = []

        def failing(url: str, dest: Path) -> Path:
            seen.append(dest.parent)
            raise DownloadError(url, "HTTP 404 - Not Found")

        config = InstallerConfig(cli_version="0.0.0", path="/usr/bin")
        command = InstallCommand(detect=lambda: LINUX, runner_factory=MagicMock, download=failing)

        with pytest.raises(DownloadError):
            command.execute(Namespace(), config)

        assert not seen[0].exists()
        assert SUCCESS_MESSAGE not in capsys.readouterr().out

    def test_gpu_failure_is_a_warning(self, caplog, capsys) -> None:
        config = InstallerConfig(cli_version="1.2.3", path="/usr/bin")

        with caplog.at_level(logging.WARNING), patch(
            "kuzcoinstall.cli.commands.install.plan_drivers",
            side_effect=UnsupportedDistroError("Unknown distribution. Skipping CUDA installation."),
        ):
            result = _command(LINUX, FakeDownloads(), MagicMock()).execute(Namespace(), config)

        assert result == EXIT_SUCCESS
        assert "Unknown distribution" in caplog.text
        assert SUCCESS_MESSAGE in capsys.readouterr().out

    def test_gpu_phase_runs_after_binaries(self) -> None:
        config = InstallerConfig(cli_version="1.2.3", path="/usr/bin")
        runner = MagicMock()

        with patch("kuzcoinstall.cli.commands.install.plan_drivers") as mock_plan, \
                patch("kuzcoinstall.cli.commands.install.apply_driver_plan") as mock_apply:
            _command(LINUX, FakeDownloads(), runner).execute(Namespace(), config)

        mock_plan.assert_called_once_with(config, LINUX, runner)
        assert mock_apply.call_args[0][0] is mock_plan.return_value

    def test_corrupt_rocm_bundle_is_a_warning(self, caplog, capsys) -> None:
        downloads = FakeDownloads({"rocm.tgz": b"<html>not a tarball</html>"})
        runner = MagicMock()
        config = InstallerConfig(cli_version="1.2.3", path="/usr/bin")
        driver_plan = DriverPlan(
            GPUKind.AMD, DriverAction(DriverActionKind.DOWNLOAD_AND_EXTRACT_ROCM)
        )

        with caplog.at_level(logging.WARNING), patch(
            "kuzcoinstall.cli.commands.install.plan_drivers", return_value=driver_plan
        ):
            result = _command(LINUX, downloads, runner).execute(Namespace(), config)

        assert result == EXIT_SUCCESS
        assert downloads.urls[-1].endswith("/kuzco-runtime-linux-amd64-rocm-1.2.3.tgz")
        assert "rocm.tgz" in caplog.text
        assert all("/opt/rocm" not in c.args[0] for c in runner.run.call_args_list)
        assert SUCCESS_MESSAGE in capsys.readouterr().out

    def test_unexpected_gpu_error_is_a_warning(self, caplog) -> None:
        config = InstallerConfig(cli_version="1.2.3", path="/usr/bin")
        error = UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")

        with caplog.at_level(logging.WARNING), patch(
            "kuzcoinstall.cli.commands.install.apply_driver_plan", side_effect=error
        ), patch("kuzcoinstall.cli.commands.install.plan_drivers"):
            result = _command(LINUX, FakeDownloads(), MagicMock()).execute(Namespace(), config)

        assert result == EXIT_SUCCESS
        assert "GPU driver setup failed" in caplog.text
