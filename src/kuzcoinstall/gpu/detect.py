"""GPU detection.

NVIDIA's monitoring tool wins outright when it can list a device. Otherwise
the PCI bus is scanned for the AMD (1002) vendor ID and then the NVIDIA
(10de) one, each with lspci and then with the heavier lshw.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Optional

from kuzcoinstall.core.logging import get_logger
from kuzcoinstall.core.subprocess_runner import CommandRunner, available

LOGGER = get_logger(__name__)

NVIDIA_VENDOR_ID = "10de"
AMD_VENDOR_ID = "1002"

_CUDA_VERSION_PATTERN = re.compile(r"CUDA Version: ([0-9]+\.[0-9]+)")


class GPUKind(str, Enum):
    NONE = "none"
    NVIDIA = "nvidia"
    AMD = "amd"


# An AMD device anywhere on the bus selects the ROCm path, even next to NVIDIA
PCI_PROBE_ORDER = (GPUKind.AMD, GPUKind.NVIDIA)

_VENDORS = {
    GPUKind.NVIDIA: (NVIDIA_VENDOR_ID, "NVIDIA"),
    GPUKind.AMD: (AMD_VENDOR_ID, "AMD"),
}


def _lshw_vendor_pattern(vendor_id: str) -> re.Pattern:
    return re.compile(r"vendor: .* \[" + vendor_id + r"\]", re.IGNORECASE)


def nvidia_smi_reports_device(runner: CommandRunner) -> bool:
    """Return True if nvidia-smi is installed and lists at least one GPU."""
    if not available("nvidia-smi"):
        return False
    return "GPU" in runner.output(["nvidia-smi", "-L"])


def detect_cuda_version(runner: CommandRunner) -> Optional[str]:
    """Return the CUDA version reported by nvidia-smi, if any."""
    if not available("nvidia-smi"):
        return None
    match = _CUDA_VERSION_PATTERN.search(runner.output(["nvidia-smi"]))
    return match.group(1) if match else None


def lspci_reports(runner: CommandRunner, kind: GPUKind) -> bool:
    """Return True if lspci lists a device of ``kind``'s vendor."""
    if not available("lspci"):
        return False
    vendor_id, vendor_name = _VENDORS[kind]
    return vendor_name in runner.output(["lspci", "-d", f"{vendor_id}:"])


def lshw_reports(runner: CommandRunner, kind: GPUKind) -> bool:
    """Return True if lshw lists a display device of ``kind``'s vendor."""
    if not available("lshw"):
        return False
    vendor_id, _ = _VENDORS[kind]
    listing = runner.output(["lshw", "-c", "display", "-numeric"], privileged=True)
    return _lshw_vendor_pattern(vendor_id).search(listing) is not None


def detect_gpu(runner: CommandRunner) -> GPUKind:
    """Detect the host's GPU vendor.

    Returns GPUKind.NONE when nothing is found or neither PCI lister is
    installed; the caller treats that as "skip drivers", not an error.
    """
    if nvidia_smi_reports_device(runner):
        LOGGER.debug("nvidia-smi reports an NVIDIA device")
        return GPUKind.NVIDIA

    if not available("lspci") and not available("lshw"):
        LOGGER.warning(
            "Unable to detect a GPU. Install lspci or lshw to automatically "
            "detect and install GPU drivers."
        )
        return GPUKind.NONE

    for kind in PCI_PROBE_ORDER:
        if lspci_reports(runner, kind) or lshw_reports(runner, kind):
            LOGGER.debug(f"PCI scan matched {kind.value}")
            return kind
    LOGGER.debug("PCI scan found no supported GPU")
    return GPUKind.NONE
