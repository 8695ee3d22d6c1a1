"""Tests for CLI runner."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from kuzcoinstall.cli import main
from kuzcoinstall.cli.exit_codes import EXIT_FAILURE, EXIT_SUCCESS
from kuzcoinstall.cli.runner import CLIRunner, get_version
from kuzcoinstall.core.errors import DownloadError


@pytest.fixture(autouse=True)
def no_user_config(tmp_path: Path):
    with patch("kuzcoinstall.config.loader.DEFAULT_CONFIG_PATH", tmp_path / "absent.yml"):
        yield


class TestGetVersion:
    """Tests for get_version function."""

    def test_get_version_from_metadata(self) -> None:
        with patch("kuzcoinstall.cli.runner.version", return_value="1.2.3"):
            assert get_version() == "1.2.3"

    def test_get_version_fallback(self) -> None:
        from importlib.metadata import PackageNotFoundError

        from kuzcoinstall import __version__

        with patch(
            "kuzcoinstall.cli.runner.version",
            side_effect=PackageNotFoundError("not found"),
        ):
            assert get_version() == __version__


class TestCLIRunner:
    """Tests for CLIRunner class."""

    def test_initialization(self) -> None:
        runner = CLIRunner()
        assert runner.parser is not None
        assert runner.install_cmd.name == "install"
        assert runner.plan_cmd.name == "plan"

    def test_help_exits(self, capsys) -> None:
        with pytest.raises(SystemExit) as exc_info:
            CLIRunner().run(["--help"])
        assert exc_info.value.code == 0
        assert "usage:" in capsys.readouterr().out.lower()

    def test_version(self, capsys) -> None:
        with patch("kuzcoinstall.cli.runner.version", return_value="9.8.7"):
            result = CLIRunner().run(["--version"])
        assert result == EXIT_SUCCESS
        assert capsys.readouterr().out.strip() == "9.8.7"

    def test_default_command_is_install(self) -> None:
        runner = CLIRunner()
        runner.install_cmd = MagicMock()
        runner.install_cmd.execute.return_value = EXIT_SUCCESS

        assert runner.run([]) == EXIT_SUCCESS
        runner.install_cmd.execute.assert_called_once()

    def test_plan_dispatch_with_overrides(self) -> None:
        runner = CLIRunner()
        runner.plan_cmd = MagicMock()
        runner.plan_cmd.execute.return_value = EXIT_SUCCESS

        runner.run(["plan", "--cli-version", "1.0.0", "--bin-dir", "/opt/bin", "--skip-drivers"])

        config = runner.plan_cmd.execute.call_args[0][1]
        assert config.cli_version == "1.0.0"
        assert config.bin_dir == "/opt/bin"
        assert config.skip_drivers is True

    def test_installer_error_exits_one(self) -> None:
        runner = CLIRunner()
        runner.install_cmd = MagicMock()
        runner.install_cmd.execute.side_effect = DownloadError("https://x", "HTTP 404 - Not Found")

        assert runner.run(["install"]) == EXIT_FAILURE

    def test_keyboard_interrupt_exits_one(self) -> None:
        runner = CLIRunner()
        runner.install_cmd = MagicMock()
        runner.install_cmd.execute.side_effect = KeyboardInterrupt

        assert runner.run(["install"]) == EXIT_FAILURE

    def test_unexpected_error_exits_one(self) -> None:
        runner = CLIRunner()
        runner.install_cmd = MagicMock()
        runner.install_cmd.execute.side_effect = RuntimeError("boom")

        assert runner.run(["--debug", "install"]) == EXIT_FAILURE

    def test_missing_config_file_exits_one(self, tmp_path: Path) -> None:
        assert CLIRunner().run(["--config", str(tmp_path / "nope.yml"), "plan"]) == EXIT_FAILURE


class TestUnsupportedHost:
    """End-to-end failures that happen before any download."""

    def test_riscv64_exits_one_and_names_arch(self, capsys) -> None:
        with patch("platform.system", return_value="Linux"), \
                patch("platform.machine", return_value="riscv64"), \
                patch("platform.release", return_value="6.8.0"), \
                patch("kuzcoinstall.cli.commands.install.resolve_cli_version") as mock_version:
            result = main(["install"])

        assert result == EXIT_FAILURE
        assert "riscv64" in capsys.readouterr().err
        mock_version.assert_not_called()

    def test_wsl1_exits_one(self, capsys) -> None:
        with patch("platform.system", return_value="Linux"), \
                patch("platform.machine", return_value="x86_64"), \
                patch("platform.release", return_value="4.4.0-19041-Microsoft"):
            result = main(["install"])

        assert result == EXIT_FAILURE
        assert "WSL2" in capsys.readouterr().err
