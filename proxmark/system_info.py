"""System information gathering."""

from __future__ import annotations

import os
import platform
import re
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .benchmarks.power import find_energy_counter
from .console import get_logger
from .models import CpuInfo, MemoryInfo, ProxmoxInfo, SystemInventory
from .parsers import (
    parse_cpuinfo,
    parse_dmidecode_memory,
    parse_dmidecode_processor,
    parse_lscpu,
    parse_lshw_processor,
    parse_meminfo_total_mb,
    parse_model_frequency_mhz,
    parse_os_release,
    parse_pvecm_status,
    parse_pvesm_status,
    parse_pvesubscription,
    parse_pveversion,
)
from .parsers.system_parsers import count_table_rows
from .utils import as_root, read_text, safe_float


if TYPE_CHECKING:
    from .context import RunContext


logger = get_logger(__name__)


def fill_missing(target: object, values: Mapping[str, Any], filled: set[str]) -> None:
    """Copy non-empty values onto fields no earlier tier has set."""
    for key, value in values.items():
        if key in filled or value in (None, "", 0, 0.0):
            continue
        setattr(target, key, value)
        filled.add(key)


def _cache_size(value: str) -> str:
    """``"512 KiB (8 instances)"`` -> ``"512 KiB"``."""
    return value.split("(")[0].strip()


def _lscpu_values(output: str) -> dict[str, Any]:
    fields = parse_lscpu(output)
    if not fields:
        return {}
    sockets = int(safe_float(fields.get("Socket(s)")))
    cores_per_socket = int(safe_float(fields.get("Core(s) per socket")))
    op_modes = fields.get("CPU op-mode(s)", "")
    return {
        "model": fields.get("Model name", ""),
        "vendor": fields.get("Vendor ID", ""),
        "architecture": op_modes.split(",")[-1].strip() if op_modes else "",
        "sockets": sockets,
        "cores": cores_per_socket * (sockets or 1),
        "threads": int(safe_float(fields.get("CPU(s)"))),
        "max_mhz": int(safe_float(fields.get("CPU max MHz"))),
        "l1_cache": _cache_size(fields.get("L1d cache", "")),
        "l2_cache": _cache_size(fields.get("L2 cache", "")),
        "l3_cache": _cache_size(fields.get("L3 cache", "")),
    }


def _sysfs_cpu_values(sys_root: Path) -> dict[str, Any]:
    cpu0 = sys_root / "devices" / "system" / "cpu" / "cpu0"
    values: dict[str, Any] = {}
    max_khz = safe_float(read_text(cpu0 / "cpufreq" / "cpuinfo_max_freq", "0"))
    if max_khz:
        values["max_mhz"] = int(max_khz // 1000)
    base_khz = safe_float(read_text(cpu0 / "cpufreq" / "base_frequency", "0"))
    if base_khz:
        values["base_mhz"] = int(base_khz // 1000)
    for index in sorted((cpu0 / "cache").glob("index*")):
        level = read_text(index / "level")
        cache_type = read_text(index / "type")
        size = read_text(index / "size")
        if not size or cache_type == "Instruction":
            continue
        key = f"l{level}_cache"
        if key in ("l1_cache", "l2_cache", "l3_cache") and key not in values:
            values[key] = size
    return values


def _rapl_tdp_watts(sys_root: Path) -> float:
    counter = find_energy_counter(sys_root)
    if counter is None:
        return 0.0
    zone = counter.parent
    for name in ("constraint_0_max_power_uw", "constraint_0_power_limit_uw"):
        microwatts = safe_float(read_text(zone / name, "0"))
        if microwatts > 0:
            return round(microwatts / 1_000_000, 1)
    return 0.0


def collect_cpu_info(
    context: RunContext,
    proc_root: Path = Path("/proc"),
    sys_root: Path = Path("/sys"),
) -> CpuInfo:
    """CPU descriptor, most detailed source first."""
    cpu = CpuInfo()
    filled: set[str] = set()

    lshw = parse_lshw_processor(context.output(as_root(["lshw", "-json", "-class", "processor"]), timeout=30))
    if lshw:
        width = lshw.pop("width", 0)
        lshw.pop("cores", None)
        lshw.pop("threads", None)
        lshw["architecture"] = f"{width}-bit" if width else ""
        fill_missing(cpu, lshw, filled)

    fill_missing(cpu, parse_dmidecode_processor(context.output(as_root(["dmidecode", "-t", "processor"]))), filled)
    fill_missing(cpu, _lscpu_values(context.output(["lscpu"])), filled)
    fill_missing(cpu, _sysfs_cpu_values(sys_root), filled)

    cpuinfo_text = read_text(proc_root / "cpuinfo")
    context.add_debug("/proc/cpuinfo", cpuinfo_text)
    cpuinfo = parse_cpuinfo(cpuinfo_text)
    cpuinfo.pop("mhz", None)
    fill_missing(cpu, cpuinfo, filled)

    fill_missing(
        cpu,
        {
            "threads": os.cpu_count() or 1,
            "architecture": platform.architecture()[0].replace("bit", "-bit"),
            "base_mhz": parse_model_frequency_mhz(cpu.model),
            "tdp_watts": _rapl_tdp_watts(sys_root),
        },
        filled,
    )
    if not cpu.cores:
        cpu.cores = cpu.threads
    cpu.model = " ".join(cpu.model.split()) or "Unknown"
    return cpu


def collect_memory_info(context: RunContext, proc_root: Path = Path("/proc")) -> MemoryInfo:
    meminfo_text = read_text(proc_root / "meminfo")
    context.add_debug("/proc/meminfo", meminfo_text)
    dmi_output = context.output(as_root(["dmidecode", "-t", "memory"]))
    memory = parse_dmidecode_memory(dmi_output) if dmi_output else MemoryInfo()
    memory.total_mb = parse_meminfo_total_mb(meminfo_text)
    if not memory.total_mb and memory.banks:
        memory.total_mb = sum(bank.size_mb for bank in memory.banks)
    return memory


def collect_proxmox_info(context: RunContext, hostname: str) -> ProxmoxInfo:
    """Proxmox descriptor; empty when the Proxmox tools are absent."""
    version_output = context.output(["pveversion"])
    if not version_output:
        return ProxmoxInfo()
    info = ProxmoxInfo(version=parse_pveversion(version_output), node_name=hostname.split(".")[0])
    info.cluster_name, info.cluster_nodes = parse_pvecm_status(context.output(["pvecm", "status"]))
    if not info.cluster_nodes:
        info.cluster_nodes = 1
    info.subscription = parse_pvesubscription(context.output(["pvesubscription", "get"])) or "unknown"
    info.vm_count = count_table_rows(context.output(["qm", "list"]))
    info.ct_count = count_table_rows(context.output(["pct", "list"]))
    info.storage_pools = parse_pvesm_status(context.output(["pvesm", "status"]))
    return info


def detect_os_name(etc_root: Path = Path("/etc")) -> str:
    """Best-effort OS pretty name."""
    info = parse_os_release(read_text(etc_root / "os-release"))
    return info.get("PRETTY_NAME") or info.get("NAME") or platform.system()


def detect_virtualization(context: RunContext) -> str:
    virt = context.output(["systemd-detect-virt"])
    if not virt or virt == "none":
        return "bare-metal"
    return virt


def gather_system_info(
    context: RunContext,
    proc_root: Path = Path("/proc"),
    sys_root: Path = Path("/sys"),
    etc_root: Path = Path("/etc"),
) -> SystemInventory:
    """Gather system information for the benchmark report (disk is filled later)."""
    logger.info("Collecting system information...")
    hostname = platform.node()
    inventory = SystemInventory(
        hostname=hostname,
        cpu=collect_cpu_info(context, proc_root, sys_root),
        memory=collect_memory_info(context, proc_root),
        kernel=platform.release(),
        os=detect_os_name(etc_root),
        virtualization=detect_virtualization(context),
        proxmox=collect_proxmox_info(context, hostname),
    )
    cpu = inventory.cpu
    logger.verbose(
        "Host: %s, CPU: %s (%d cores / %d threads), RAM: %d MB %s",
        hostname,
        cpu.model,
        cpu.cores,
        cpu.threads,
        inventory.memory.total_mb,
        inventory.memory.type,
    )
    if inventory.proxmox.detected:
        logger.verbose("Proxmox VE %s on node %s", inventory.proxmox.version, inventory.proxmox.node_name)
    context.inventory = inventory
    return inventory


def short_memory_label(memory: MemoryInfo) -> str:
    parts = [f"{memory.total_mb // 1024} GB"]
    if memory.type and memory.type != "unknown":
        parts.append(memory.type)
    if memory.speed:
        parts.append(re.sub(r"\s+", " ", memory.speed))
    return " ".join(parts)
