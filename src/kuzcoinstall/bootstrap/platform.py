"""Platform detection for the Kuzco installer.

Resolves the kernel name, CPU architecture and kernel release into the
canonical install target used to address release artifacts.
"""

from __future__ import annotations

import platform
from dataclasses import dataclass
from enum import Enum

from kuzcoinstall.core.errors import (
    UnsupportedArchError,
    UnsupportedOSError,
    WSL1UnsupportedError,
)


class OperatingSystem(str, Enum):
    """Kernel names with published builds (as reported by uname -s)."""

    LINUX = "Linux"
    DARWIN = "Darwin"


class Arch(str, Enum):
    """Canonical architecture tokens used in artifact paths."""

    AMD64 = "amd64"
    ARM64 = "arm64"
    DARWIN_AARCH64 = "darwin-aarch64"


class KernelVariant(str, Enum):
    """Linux kernel flavour."""

    NATIVE = "native"
    WSL2 = "wsl2"
    WSL1_UNSUPPORTED = "wsl1"


_ARM_NAMES = frozenset({"aarch64", "arm64"})


def resolve_os(os_name: str) -> OperatingSystem:
    """Map a kernel name to a supported OS.

    Matching is exact and case-sensitive.

    Raises:
        UnsupportedOSError: For anything but "Linux" or "Darwin".
    """
    for candidate in OperatingSystem:
        if candidate.value == os_name:
            return candidate
    raise UnsupportedOSError(os_name)


def resolve_arch(os: OperatingSystem, arch_raw: str) -> Arch:
    """Map a raw machine string to the canonical architecture.

    Args:
        os: Resolved operating system.
        arch_raw: Raw architecture string from uname -m.

    Raises:
        UnsupportedArchError: If there is no build for ``arch_raw``.
    """
    if arch_raw == "x86_64":
        return Arch.AMD64
    if arch_raw in _ARM_NAMES:
        return Arch.DARWIN_AARCH64 if os == OperatingSystem.DARWIN else Arch.ARM64
    raise UnsupportedArchError(arch_raw)


def classify_kernel(kernel_release: str) -> KernelVariant:
    """Classify a Linux kernel release string.

    WSL kernels carry "microsoft" (any capitalisation) in the release;
    WSL2 kernels additionally carry a "WSL2" marker.
    """
    release = kernel_release.lower()
    if "icrosoft" not in release:
        return KernelVariant.NATIVE
    if "wsl2" in release:
        return KernelVariant.WSL2
    return KernelVariant.WSL1_UNSUPPORTED


@dataclass(frozen=True)
class PlatformDescriptor:
    """Resolved install target.

    Attributes:
        os: Operating system.
        arch_raw: Architecture as reported by the host.
        arch: Canonical architecture token.
        kernel_variant: Kernel flavour (always NATIVE on Darwin).
    """

    os: OperatingSystem
    arch_raw: str
    arch: Arch
    kernel_variant: KernelVariant = KernelVariant.NATIVE

    @property
    def is_linux(self) -> bool:
        return self.os == OperatingSystem.LINUX

    @property
    def is_wsl(self) -> bool:
        return self.kernel_variant == KernelVariant.WSL2

    def describe(self) -> str:
        """Return a short label such as ``Linux/amd64 (wsl2)``."""
        label = f"{self.os.value}/{self.arch.value}"
        if self.kernel_variant != KernelVariant.NATIVE:
            label = f"{label} ({self.kernel_variant.value})"
        return label


def resolve_platform(os_name: str, arch_raw: str, kernel_release: str = "") -> PlatformDescriptor:
    """Resolve raw host identifiers into a PlatformDescriptor.

    Raises:
        UnsupportedOSError: Unknown kernel name.
        UnsupportedArchError: Unknown architecture.
        WSL1UnsupportedError: Linux kernel from WSL1.
    """
    os = resolve_os(os_name)
    arch = resolve_arch(os, arch_raw)

    variant = KernelVariant.NATIVE
    if os == OperatingSystem.LINUX:
        variant = classify_kernel(kernel_release)
        if variant == KernelVariant.WSL1_UNSUPPORTED:
            raise WSL1UnsupportedError(kernel_release)

    return PlatformDescriptor(os=os, arch_raw=arch_raw, arch=arch, kernel_variant=variant)


def detect_platform() -> PlatformDescriptor:
    """Detect and resolve the current host platform."""
    return resolve_platform(platform.system(), platform.machine(), platform.release())
