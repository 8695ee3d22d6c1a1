"""Error types raised by the installer.

Every error aborting the base install derives from InstallerError and names
the offending value in its message. The CLI maps all of them to exit code 1.
"""

from __future__ import annotations

from typing import Iterable


class InstallerError(Exception):
    """Base class for installer failures."""

    pass


class UnsupportedOSError(InstallerError):
    """The reported kernel name is neither Linux nor Darwin."""

    def __init__(self, os_name: str) -> None:
        self.os_name = os_name
        super().__init__(
            f"Unsupported operating system: {os_name!r}. "
            "This installer is intended to run on Linux or macOS only."
        )


class UnsupportedArchError(InstallerError):
    """The CPU architecture has no published build."""

    def __init__(self, arch_raw: str) -> None:
        self.arch_raw = arch_raw
        super().__init__(f"Unsupported architecture: {arch_raw}")


class UnsupportedPlatformError(InstallerError):
    """No artifact set exists for an (os, arch) combination."""

    def __init__(self, os_name: str, arch: str) -> None:
        self.os_name = os_name
        self.arch = arch
        super().__init__(
            f"Unsupported architecture and platform combination: {arch} + {os_name}"
        )


class WSL1UnsupportedError(InstallerError):
    """Running under WSL1, which lacks required kernel features."""

    def __init__(self, kernel_release: str) -> None:
        self.kernel_release = kernel_release
        super().__init__(
            f"Microsoft WSL1 is not currently supported (kernel {kernel_release}). "
            "Please upgrade to WSL2 with 'wsl --set-version <distro> 2'"
        )


class MissingDependencyError(InstallerError):
    """One or more required external tools are not on PATH."""

    def __init__(self, tools: Iterable[str], hint: str = "") -> None:
        self.tools = list(tools)
        message = "The following tools are required but missing: " + ", ".join(self.tools)
        if hint:
            message = f"{message}. {hint}"
        super().__init__(message)


class DownloadError(InstallerError):
    """A fetch failed with a non-2xx status or a transport error."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to download {url}: {reason}")


class ManifestError(InstallerError):
    """The version manifest does not contain a usable cli-latest entry."""

    pass


class NoBinDirError(InstallerError):
    """None of the candidate binary directories is on PATH."""

    def __init__(self, candidates: Iterable[str]) -> None:
        self.candidates = list(candidates)
        super().__init__(
            "None of the install directories is on PATH: " + ", ".join(self.candidates)
        )


class UnsupportedDistroError(InstallerError):
    """No package-manager branch matches the host distribution."""

    pass
