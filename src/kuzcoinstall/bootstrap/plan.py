"""Install plan construction.

Maps a resolved platform and CLI version to the artifact URLs in the bucket:

    {bucket}/cli/release/{arch}/kuzco-linux-{arch}-{version}
    {bucket}/cli/runtime/{arch}/kuzco-runtime-linux-{arch}-{version}
    {bucket}/cli/runtime/{arch}/kuzco-linux-{arch}-lib-{version}.tar.gz
    {bucket}/cli/release/macos/kuzco-darwin-aarch64-{version}
    {bucket}/cli/runtime/macos/kuzco-runtime-darwin-aarch64-{version}
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import List, Optional

from kuzcoinstall.bootstrap.platform import Arch, OperatingSystem, PlatformDescriptor
from kuzcoinstall.core.errors import UnsupportedPlatformError


def bucket_base(bucket_url: str) -> str:
    """Return the bucket URL with an https scheme and no trailing slash."""
    base = bucket_url.rstrip("/")
    if "://" not in base:
        base = f"https://{base}"
    return base


@dataclass(frozen=True)
class InstallPlan:
    """Remote artifacts to fetch for one platform and version."""

    version: str
    binary_url: str
    runtime_url: str
    lib_archive_url: Optional[str] = None
    gpu_runtime_url: Optional[str] = None

    def urls(self) -> List[str]:
        """All artifact URLs, in fetch order."""
        candidates = [
            self.binary_url,
            self.runtime_url,
            self.lib_archive_url,
            self.gpu_runtime_url,
        ]
        return [url for url in candidates if url]


def build_install_plan(
    platform: PlatformDescriptor, cli_version: str, bucket_url: str
) -> InstallPlan:
    """Build the artifact plan for a platform.

    Raises:
        UnsupportedPlatformError: For combinations without a release, e.g.
            Darwin on Intel.
    """
    base = bucket_base(bucket_url)

    if platform.os == OperatingSystem.LINUX:
        arch = platform.arch.value
        return InstallPlan(
            version=cli_version,
            binary_url=f"{base}/cli/release/{arch}/kuzco-linux-{arch}-{cli_version}",
            runtime_url=f"{base}/cli/runtime/{arch}/kuzco-runtime-linux-{arch}-{cli_version}",
            lib_archive_url=f"{base}/cli/runtime/{arch}/kuzco-linux-{arch}-lib-{cli_version}.tar.gz",
        )

    if platform.os == OperatingSystem.DARWIN and platform.arch == Arch.DARWIN_AARCH64:
        return InstallPlan(
            version=cli_version,
            binary_url=f"{base}/cli/release/macos/kuzco-darwin-aarch64-{cli_version}",
            runtime_url=f"{base}/cli/runtime/macos/kuzco-runtime-darwin-aarch64-{cli_version}",
        )

    raise UnsupportedPlatformError(platform.os.value, platform.arch.value)


def rocm_runtime_url(bucket_url: str, cli_version: str) -> str:
    return (
        f"{bucket_base(bucket_url)}/cli/runtime/amd64-rocm/"
        f"kuzco-runtime-linux-amd64-rocm-{cli_version}.tgz"
    )


def with_rocm_runtime(plan: InstallPlan, bucket_url: str) -> InstallPlan:
    """Return a copy of ``plan`` that also fetches the ROCm runtime bundle."""
    return replace(plan, gpu_runtime_url=rocm_runtime_url(bucket_url, plan.version))
