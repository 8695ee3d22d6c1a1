"""Subprocess execution for installer steps.

Wraps subprocess.run with logging, optional privilege escalation through
sudo, and tool availability checks.
"""

from __future__ import annotations

import os
import shutil
import subprocess
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from kuzcoinstall.core.errors import MissingDependencyError
from kuzcoinstall.core.logging import get_logger

LOGGER = get_logger(__name__)


def available(tool: str) -> bool:
    """Return True if an executable named ``tool`` is on PATH."""
    return shutil.which(tool) is not None


def missing_tools(tools: Sequence[str]) -> List[str]:
    """Return the subset of ``tools`` that are not on PATH, in order."""
    return [tool for tool in tools if not available(tool)]


def require_tools(tools: Sequence[str]) -> None:
    """Raise MissingDependencyError naming every absent tool."""
    missing = missing_tools(tools)
    if missing:
        raise MissingDependencyError(missing)


@dataclass
class CommandRunner:
    """Runs external commands, prefixing privileged ones with sudo.

    Attributes:
        sudo: Whether privileged commands are prefixed with ``sudo``.
        timeout: Default timeout in seconds for each command.
    """

    sudo: bool = False
    timeout: int = 1800
    extra_env: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def for_current_user(cls) -> "CommandRunner":
        """Create a runner that escalates through sudo unless already root.

        Raises:
            MissingDependencyError: If not root and sudo is unavailable.
        """
        if os.geteuid() == 0:
            return cls(sudo=False)
        if not available("sudo"):
            raise MissingDependencyError(
                ["sudo"],
                hint="This installer requires superuser permissions. Please re-run as root.",
            )
        return cls(sudo=True)

    def build_argv(
        self,
        cmd: Sequence[str],
        privileged: bool = False,
        preserve_env: bool = False,
    ) -> List[str]:
        argv = list(cmd)
        if privileged and self.sudo:
            return ["sudo", "-E", *argv] if preserve_env else ["sudo", *argv]
        return argv

    def run(
        self,
        cmd: Sequence[str],
        privileged: bool = False,
        check: bool = True,
        input_text: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
        timeout: Optional[int] = None,
    ) -> subprocess.CompletedProcess:
        """Run a command and capture its output.

        Args:
            cmd: Command and arguments.
            privileged: Prefix with sudo when not running as root.
            check: Raise CalledProcessError on a non-zero exit.
            input_text: Text passed on stdin.
            env: Extra environment variables; sudo is told to preserve them.
            timeout: Override of the default timeout.

        Returns:
            CompletedProcess with text stdout/stderr.
        """
        argv = self.build_argv(cmd, privileged=privileged, preserve_env=bool(env))
        run_env = None
        if env or self.extra_env:
            run_env = {**os.environ, **self.extra_env, **(env or {})}

        LOGGER.debug(f"Running: {' '.join(argv)}")
        result = subprocess.run(
            argv,
            input=input_text,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            env=run_env,
            timeout=timeout or self.timeout,
        )
        if result.returncode != 0:
            LOGGER.debug(f"{argv[0]} exited with {result.returncode}: {result.stderr.strip()}")
            if check:
                raise subprocess.CalledProcessError(
                    result.returncode, argv, output=result.stdout, stderr=result.stderr
                )
        return result

    def output(self, cmd: Sequence[str], privileged: bool = False) -> str:
        """Run a command that may fail and return its stdout ('' on failure)."""
        try:
            result = self.run(cmd, privileged=privileged, check=False)
        except (OSError, subprocess.SubprocessError) as e:
            LOGGER.debug(f"Could not run {cmd[0]}: {e}")
            return ""
        if result.returncode != 0:
            return ""
        return result.stdout
