"""Argument parser construction for the kuzco-install CLI.

This module builds the argument parser with subcommands:
- kuzco-install install - Download and install kuzco (default)
- kuzco-install plan    - Show what would be installed, without installing
"""

from __future__ import annotations

import argparse
from pathlib import Path


def _add_global_options(parser: argparse.ArgumentParser) -> None:
    """Add global options available to all commands."""
    parser.add_argument(
        "--version",
        action="store_true",
        help="Show kuzco-install version and exit.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging (same as DEBUG_MODE=true).",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (info-level) logging.",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Reduce logging output to errors only.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to a YAML config file (default: ~/.kuzco/install.yml if present).",
    )


def _add_target_options(parser: argparse.ArgumentParser) -> None:
    """Options shared by install and plan."""
    parser.add_argument(
        "--cli-version",
        dest="cli_version",
        help="Install this version instead of the manifest's cli-latest.",
    )
    parser.add_argument(
        "--bucket-url",
        dest="bucket_url",
        help="Host serving cli-versions.json and the binaries.",
    )
    parser.add_argument(
        "--bin-dir",
        dest="bin_dir",
        help="Install into this directory instead of the first of "
        "/usr/local/bin, /usr/bin, /bin found on PATH.",
    )
    parser.add_argument(
        "--skip-drivers",
        dest="skip_drivers",
        action="store_true",
        default=None,
        help="Do not detect GPUs or install GPU drivers.",
    )


def _build_install_parser(subparsers: argparse._SubParsersAction) -> None:
    """Build the 'install' subcommand parser."""
    install_parser = subparsers.add_parser(
        "install",
        help="Download and install kuzco (default command).",
        description=(
            "Detect the platform, download the kuzco CLI, runtime and libraries, "
            "install them, then try to set up NVIDIA or AMD GPU drivers."
        ),
    )
    _add_target_options(install_parser)


def _build_plan_parser(subparsers: argparse._SubParsersAction) -> None:
    """Build the 'plan' subcommand parser."""
    plan_parser = subparsers.add_parser(
        "plan",
        help="Show the resolved platform, artifacts and GPU action.",
        description="Resolve everything an install would do and print it without installing.",
    )
    _add_target_options(plan_parser)
    plan_parser.add_argument(
        "--format",
        choices=["text", "json"],
        default="text",
        help="Output format (default: text).",
    )
    plan_parser.add_argument(
        "--no-gpu",
        action="store_true",
        help="Skip GPU detection.",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the complete argument parser."""
    parser = argparse.ArgumentParser(
        prog="kuzco-install",
        description="Install the Kuzco CLI and runtime on Linux or macOS.",
    )
    _add_global_options(parser)

    subparsers = parser.add_subparsers(dest="command")
    _build_install_parser(subparsers)
    _build_plan_parser(subparsers)

    return parser
