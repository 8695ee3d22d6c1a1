"""Download and installation of the Kuzco binaries."""

from __future__ import annotations

import tarfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List

from kuzcoinstall.bootstrap.download import download_file
from kuzcoinstall.bootstrap.plan import InstallPlan
from kuzcoinstall.bootstrap.platform import PlatformDescriptor
from kuzcoinstall.core.errors import InstallerError
from kuzcoinstall.core.logging import get_logger, status
from kuzcoinstall.core.subprocess_runner import CommandRunner, require_tools

LOGGER = get_logger(__name__)

BINARY_NAME = "kuzco"
RUNTIME_NAME = "kuzco-runtime"
LIB_ARCHIVE_NAME = "lib.tar.gz"

Downloader = Callable[[str, Path], Path]


def required_tools(platform: PlatformDescriptor) -> List[str]:
    """External tools the install step shells out to."""
    tools = ["install"]
    if platform.is_linux:
        tools.append("tar")
    return tools


def check_archive_members(archive_path: Path, dest_dir: Path) -> List[str]:
    """Validate a .tar.gz before extraction and return its member names.

    Hard links are accepted when their target stays inside ``dest_dir``.

    Raises:
        InstallerError: If the archive cannot be read, or a member would
            land outside ``dest_dir`` or is a device/special file.
    """
    dest = dest_dir.resolve()
    names = []
    try:
        with tarfile.open(archive_path, "r:gz") as tar:
            for member in tar.getmembers():
                member_path = (dest / member.name).resolve()
                if not member_path.is_relative_to(dest):
                    raise InstallerError(
                        f"Unsafe path in archive {archive_path.name}: {member.name}"
                    )
                if member.islnk():
                    link_target = (dest / member.linkname).resolve()
                    if not link_target.is_relative_to(dest):
                        raise InstallerError(
                            f"Unsafe hard link in archive {archive_path.name}: "
                            f"{member.name} -> {member.linkname}"
                        )
                elif not (member.isfile() or member.isdir() or member.issym()):
                    raise InstallerError(
                        f"Unsupported member type in archive {archive_path.name}: {member.name}"
                    )
                names.append(member.name)
    except (tarfile.TarError, EOFError, OSError) as e:
        raise InstallerError(f"Could not read archive {archive_path.name}: {e}") from e
    return names



@dataclass
class BinaryInstaller:
    """Fetches a plan's artifacts and installs them into a bin directory.

    Attributes:
        runner: Command runner used for privileged install steps.
        work_dir: Scratch directory for downloads (removed by the caller).
        download: Download function, replaceable in tests.
    """

    runner: CommandRunner
    work_dir: Path
    download: Downloader = download_file

    def fetch(self, plan: InstallPlan) -> Dict[str, Path]:
        """Download the CLI, runtime and (on Linux) library archive.

        Returns:
            Mapping of artifact role to local path.
        """
        status("Downloading kuzco...")
        fetched = {
            BINARY_NAME: self.download(plan.binary_url, self.work_dir / BINARY_NAME),
            RUNTIME_NAME: self.download(plan.runtime_url, self.work_dir / RUNTIME_NAME),
        }
        if plan.lib_archive_url:
            fetched[LIB_ARCHIVE_NAME] = self.download(
                plan.lib_archive_url, self.work_dir / LIB_ARCHIVE_NAME
            )
        LOGGER.debug(f"Downloaded {', '.join(sorted(fetched))}")
        return fetched

    def install(self, fetched: Dict[str, Path], bin_dir: str) -> List[Path]:
        """Install fetched artifacts into ``bin_dir`` owned by root, mode 755.

        Returns:
            Paths of the installed binaries.
        """
        status(f"Installing kuzco to {bin_dir}...")
        self.runner.run(["install", "-o0", "-g0", "-m755", "-d", bin_dir], privileged=True)

        installed = []
        for name in (BINARY_NAME, RUNTIME_NAME):
            target = Path(bin_dir) / name
            self.runner.run(
                ["install", "-o0", "-g0", "-m755", str(fetched[name]), str(target)],
                privileged=True,
            )
            installed.append(target)

        archive = fetched.get(LIB_ARCHIVE_NAME)
        if archive is not None:
            status("Extracting lib files...")
            members = check_archive_members(archive, Path(bin_dir))
            LOGGER.debug(f"Extracting {len(members)} library entries to {bin_dir}")
            self.runner.run(["tar", "-xzf", str(archive), "-C", bin_dir], privileged=True)

        return installed

    def check_prerequisites(self, platform: PlatformDescriptor) -> None:
        """Raise MissingDependencyError unless every required tool is on PATH."""
        require_tools(required_tools(platform))

    def run(self, plan: InstallPlan, bin_dir: str) -> List[Path]:
        """Fetch and install the plan."""
        fetched = self.fetch(plan)
        return self.install(fetched, bin_dir)
