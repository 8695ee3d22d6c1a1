"""
GPU support for the Kuzco installer.

This module handles:
- GPU vendor detection (nvidia-smi, lspci, lshw)
- Driver planning (existing ROCm/CUDA, NVIDIA repository lookup)
- Driver installation through apt-get, yum or dnf
"""

from kuzcoinstall.gpu.detect import GPUKind, detect_gpu
from kuzcoinstall.gpu.drivers import DriverAction, DriverActionKind, plan_driver_install

__all__ = [
    "DriverAction",
    "DriverActionKind",
    "GPUKind",
    "detect_gpu",
    "plan_driver_install",
]
