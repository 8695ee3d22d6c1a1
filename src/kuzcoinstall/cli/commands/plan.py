"""Plan command implementation."""

from __future__ import annotations

import json
from argparse import Namespace
from typing import Any, Callable, Dict

from kuzcoinstall.bootstrap.manifest import resolve_cli_version
from kuzcoinstall.bootstrap.plan import build_install_plan
from kuzcoinstall.bootstrap.platform import PlatformDescriptor, detect_platform
from kuzcoinstall.cli.commands import Command
from kuzcoinstall.cli.commands.install import resolve_bin_dir
from kuzcoinstall.cli.exit_codes import EXIT_SUCCESS
from kuzcoinstall.config.models import InstallerConfig
from kuzcoinstall.core.errors import InstallerError
from kuzcoinstall.core.logging import get_logger
from kuzcoinstall.core.subprocess_runner import CommandRunner
from kuzcoinstall.gpu.phase import plan_drivers

LOGGER = get_logger(__name__)


class PlanCommand(Command):
    """Shows what an install would do on this host."""

    def __init__(
        self,
        detect: Callable[[], PlatformDescriptor] = detect_platform,
        runner_factory: Callable[[], CommandRunner] = CommandRunner,
    ) -> None:
        self._detect = detect
        self._runner_factory = runner_factory

    @property
    def name(self) -> str:
        """Command identifier."""
        return "plan"

    def execute(self, args: Namespace, config: InstallerConfig) -> int:
        """Resolve the install and print it.

        GPU detection runs unprivileged here, so lshw may see less than an
        actual install does.

        Raises:
            InstallerError: If the platform, version, plan or bin dir cannot
                be resolved.
        """
        platform = self._detect()
        version = resolve_cli_version(config)
        plan = build_install_plan(platform, version, config.bucket_url)

        report: Dict[str, Any] = {
            "platform": {
                "os": platform.os.value,
                "arch_raw": platform.arch_raw,
                "arch": platform.arch.value,
                "kernel": platform.kernel_variant.value,
            },
            "version": version,
            "bin_dir": resolve_bin_dir(config),
            "artifacts": {
                "binary": plan.binary_url,
                "runtime": plan.runtime_url,
                "lib_archive": plan.lib_archive_url,
            },
            "endpoints": {
                "bucket": config.bucket_url,
                "web": config.web_url,
                "api": config.api_url,
            },
        }

        if not (config.skip_drivers or getattr(args, "no_gpu", False)):
            try:
                driver_plan = plan_drivers(config, platform, self._runner_factory())
                report["gpu"] = {
                    "kind": driver_plan.gpu.value,
                    "action": driver_plan.action.kind.value,
                    "reason": driver_plan.action.reason,
                    "package_manager": driver_plan.package_manager,
                }
                if driver_plan.action.repo is not None:
                    report["gpu"]["repo"] = driver_plan.action.repo.name
            except InstallerError as e:
                report["gpu"] = {"error": str(e)}

        if getattr(args, "format", "text") == "json":
            print(json.dumps(report, indent=2))
        else:
            self._print_text(report)
        return EXIT_SUCCESS

    def _print_text(self, report: Dict[str, Any]) -> None:
        platform = report["platform"]
        print(f"Platform: {platform['os']}/{platform['arch']} (machine {platform['arch_raw']}, "
              f"kernel {platform['kernel']})")
        print(f"Version: {report['version']}")
        print(f"Install directory: {report['bin_dir']}")
        print()
        print("Artifacts:")
        for role, url in report["artifacts"].items():
            if url:
                print(f"  {role}: {url}")

        gpu = report.get("gpu")
        if gpu is None:
            return
        print()
        if "error" in gpu:
            print(f"GPU: {gpu['error']}")
            return
        print(f"GPU: {gpu['kind']}")
        print(f"Driver action: {gpu['action']}")
        if gpu.get("repo"):
            print(f"CUDA repository: {gpu['repo']}")
        if gpu["reason"]:
            print(f"  {gpu['reason']}")
