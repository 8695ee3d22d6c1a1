"""
Bootstrap module for the Kuzco CLI install.

This module handles:
- Platform detection (OS, architecture, WSL kernel)
- Version manifest lookup and artifact URL planning
- Install directory selection
- Downloading and installing the binaries
"""

from kuzcoinstall.bootstrap.plan import InstallPlan, build_install_plan
from kuzcoinstall.bootstrap.platform import PlatformDescriptor, detect_platform, resolve_platform

__all__ = [
    "InstallPlan",
    "PlatformDescriptor",
    "build_install_plan",
    "detect_platform",
    "resolve_platform",
]
