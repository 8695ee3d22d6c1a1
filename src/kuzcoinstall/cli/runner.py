"""CLI runner orchestration.

This module handles command dispatch and execution for the kuzco-install CLI.
"""

from __future__ import annotations

from typing import Iterable, Optional

from importlib.metadata import version, PackageNotFoundError

from kuzcoinstall.cli.arguments import build_parser
from kuzcoinstall.cli.commands import InstallCommand, PlanCommand
from kuzcoinstall.cli.exit_codes import EXIT_FAILURE, EXIT_SUCCESS
from kuzcoinstall.config import load_config
from kuzcoinstall.core.errors import InstallerError
from kuzcoinstall.core.logging import configure_logging, get_logger

LOGGER = get_logger(__name__)

# Target options shared by install and plan, copied into InstallerConfig
_OVERRIDE_FIELDS = ("cli_version", "bucket_url", "bin_dir", "skip_drivers")


def get_version() -> str:
    """Get kuzcoinstall version.

    Returns:
        Version string from package metadata or fallback.
    """
    try:
        return version("kuzcoinstall")
    except PackageNotFoundError:
        # Fallback for editable installs that have not yet built metadata.
        from kuzcoinstall import __version__
        return __version__


class CLIRunner:
    """Orchestrates CLI execution with subcommand dispatch."""

    def __init__(self) -> None:
        """Initialize CLIRunner with parser and commands."""
        self.parser = build_parser()
        self._version = get_version()
        self.install_cmd = InstallCommand()
        self.plan_cmd = PlanCommand()

    def run(self, argv: Optional[Iterable[str]] = None) -> int:
        """Run the CLI.

        Args:
            argv: Command-line arguments (defaults to sys.argv).

        Returns:
            Exit code.
        """
        argv_list = list(argv) if argv is not None else None
        args = self.parser.parse_args(argv_list)

        # Configure logging as early as possible; DEBUG_MODE is applied once config loads
        configure_logging(
            debug=args.debug,
            verbose=args.verbose,
            quiet=args.quiet,
        )

        if args.version:
            print(self._version)
            return EXIT_SUCCESS

        overrides = {name: getattr(args, name, None) for name in _OVERRIDE_FIELDS}

        try:
            config = load_config(config_path=args.config, cli_overrides=overrides)
            if config.debug_mode and not args.quiet:
                configure_logging(debug=True)

            command = getattr(args, "command", None) or "install"
            if command == "plan":
                return self.plan_cmd.execute(args, config)
            return self.install_cmd.execute(args, config)
        except InstallerError as e:
            LOGGER.error(str(e))
            return EXIT_FAILURE
        except KeyboardInterrupt:
            LOGGER.error("Interrupted")
            return EXIT_FAILURE
        except Exception as e:
            if args.debug:
                import traceback
                traceback.print_exc()
            LOGGER.error(f"Install failed: {e}")
            return EXIT_FAILURE
