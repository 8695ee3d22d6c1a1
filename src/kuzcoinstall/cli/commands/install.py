"""Install command implementation."""

from __future__ import annotations

import tempfile
from argparse import Namespace
from contextlib import ExitStack
from pathlib import Path
from typing import Callable

from kuzcoinstall.bootstrap.download import download_file
from kuzcoinstall.bootstrap.installer import BinaryInstaller
from kuzcoinstall.bootstrap.manifest import resolve_cli_version
from kuzcoinstall.bootstrap.paths import select_bin_dir
from kuzcoinstall.bootstrap.plan import InstallPlan, build_install_plan
from kuzcoinstall.bootstrap.platform import PlatformDescriptor, detect_platform
from kuzcoinstall.cli.commands import Command
from kuzcoinstall.cli.exit_codes import EXIT_SUCCESS
from kuzcoinstall.config.models import InstallerConfig
from kuzcoinstall.core.errors import InstallerError
from kuzcoinstall.core.logging import get_logger, status
from kuzcoinstall.core.subprocess_runner import CommandRunner
from kuzcoinstall.gpu.phase import apply_driver_plan, plan_drivers

LOGGER = get_logger(__name__)

SUCCESS_MESSAGE = (
    'Installation complete! Use "kuzco worker start --worker <worker-id> '
    '--code <registration-code>" to start your worker.'
)


def resolve_bin_dir(config: InstallerConfig) -> str:
    """Return the configured install directory or the first one on PATH."""
    if config.bin_dir:
        return config.bin_dir
    return select_bin_dir(config.path, config.bin_dir_candidates)


class InstallCommand(Command):
    """Downloads and installs kuzco, then attempts GPU driver setup."""

    def __init__(
        self,
        detect: Callable[[], PlatformDescriptor] = detect_platform,
        runner_factory: Callable[[], CommandRunner] = CommandRunner.for_current_user,
        download: Callable[[str, Path], Path] = download_file,
    ) -> None:
        self._detect = detect
        self._runner_factory = runner_factory
        self._download = download

    @property
    def name(self) -> str:
        """Command identifier."""
        return "install"

    def execute(self, args: Namespace, config: InstallerConfig) -> int:
        """Execute the install.

        Deferred actions run in reverse registration order on every exit
        path: the success banner (registered once the binaries are in place)
        prints before the scratch directory is removed.

        Raises:
            InstallerError: On any failure of the base install.
        """
        with ExitStack() as stack:
            work_dir = Path(stack.enter_context(tempfile.TemporaryDirectory(prefix="kuzco-install-")))

            platform = self._detect()
            LOGGER.debug(f"Platform: {platform.describe()} (machine {platform.arch_raw})")

            runner = self._runner_factory()
            installer = BinaryInstaller(runner=runner, work_dir=work_dir, download=self._download)
            installer.check_prerequisites(platform)

            if not config.cli_version:
                status("Getting versions.json...")
            version = resolve_cli_version(config)
            status(f"CLI_VERSION: {version}")

            plan = build_install_plan(platform, version, config.bucket_url)
            for url in plan.urls():
                LOGGER.debug(f"Artifact: {url}")

            bin_dir = resolve_bin_dir(config)
            installer.run(plan, bin_dir)
            stack.callback(status, SUCCESS_MESSAGE)

            if config.skip_drivers:
                LOGGER.info("Skipping GPU driver setup")
            elif not platform.is_linux:
                LOGGER.info("GPU drivers are managed by macOS")
            else:
                self._install_drivers(config, platform, plan, runner, work_dir)

        return EXIT_SUCCESS

    def _install_drivers(
        self,
        config: InstallerConfig,
        platform: PlatformDescriptor,
        plan: InstallPlan,
        runner: CommandRunner,
        work_dir: Path,
    ) -> None:
        """Run the optional GPU phase; failures are reported as warnings."""
        try:
            driver_plan = plan_drivers(config, platform, runner)
            apply_driver_plan(driver_plan, config, plan, runner, work_dir, download=self._download)
        except InstallerError as e:
            LOGGER.warning(f"GPU driver setup skipped: {e}")
        except Exception as e:
            # Failures after the binaries are installed never change the exit code
            LOGGER.warning(f"GPU driver setup failed: {e}")
            LOGGER.debug("GPU driver setup traceback", exc_info=True)
