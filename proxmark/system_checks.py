"""System environment checks for benchmarking."""

from __future__ import annotations

import os
import platform
import sys
import textwrap
from pathlib import Path
from typing import TYPE_CHECKING

from .console import get_logger
from .utils import read_text


if TYPE_CHECKING:
    from .context import RunContext


logger = get_logger(__name__)


def check_cpu_governor(sys_root: Path = Path("/sys")) -> list[str]:
    """Check CPU frequency scaling governor settings.

    Returns a list of warning messages if issues are detected.
    """
    warnings_list: list[str] = []
    cpu_dir = sys_root / "devices" / "system" / "cpu"

    if not cpu_dir.exists():
        return warnings_list

    governors = set()
    for cpu_path in sorted(cpu_dir.glob("cpu[0-9]*")):
        governor = read_text(cpu_path / "cpufreq" / "scaling_governor")
        if governor:
            governors.add(governor)

    if not governors:
        # No cpufreq support detected
        return warnings_list

    if "performance" not in governors:
        gov_list = ", ".join(f"'{g}'" for g in sorted(governors))
        warnings_list.append(
            f"CPU frequency scaling governor is {gov_list} (not 'performance'). "
            f"Results may vary significantly between runs due to dynamic CPU frequency scaling."
        )

    return warnings_list


def check_proxmox(context: RunContext, etc_root: Path = Path("/etc")) -> list[str]:
    """Warn when the host does not look like a Proxmox VE node."""
    if (etc_root / "pve").is_dir() or context.which("pveversion"):
        logger.verbose("Proxmox VE detected")
        return []
    return [
        "Proxmox VE not detected - this tool is designed for Proxmox hosts. "
        "Results may not be accurate on non-Proxmox systems."
    ]


def check_system_environment(context: RunContext, sys_root: Path = Path("/sys"), etc_root: Path = Path("/etc")) -> list[str]:
    """Run all system environment checks.

    Returns a list of warning messages.
    """
    warnings_list = []
    warnings_list.extend(check_proxmox(context, etc_root))
    warnings_list.extend(check_cpu_governor(sys_root))
    return warnings_list


def log_system_warnings(warnings_list: list[str]) -> None:
    """Emit each environment warning, wrapped for the terminal."""
    for warning in warnings_list:
        for line in textwrap.wrap(warning, width=76):
            logger.warning(line)


def collect_environment_dump(context: RunContext, argv: list[str]) -> None:
    """Record interpreter, platform and tool details for the debug file."""
    if not context.config.debug:
        return
    lines = [
        f"argv: {' '.join(argv)}",
        f"python: {sys.version.split()[0]} ({sys.executable})",
        f"platform: {platform.platform()}",
        f"uid: {os.geteuid()}",
        f"PATH: {os.environ.get('PATH', '')}",
        f"package manager: {context.package_manager}",
    ]
    for tool in ("sysbench", "fio", "iperf3", "lshw", "dmidecode", "lsblk", "pveversion"):
        lines.append(f"{tool}: {'found' if context.which(tool) else 'missing'}")
    context.add_debug("environment", "\n".join(lines))
