"""Parsers for hardware-inspection and Proxmox tool output."""
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any

from ..models import MemoryBank, MemoryInfo, StoragePool
from ..utils import safe_float


def parse_key_value_lines(text: str, separator: str = ":") -> dict[str, str]:
    """First value for each ``key: value`` line."""
    values: dict[str, str] = {}
    for line in text.splitlines():
        if separator not in line:
            continue
        key, value = line.split(separator, 1)
        key = key.strip()
        if key and key not in values:
            values[key] = value.strip()
    return values


def parse_os_release(text: str) -> dict[str, str]:
    values = {}
    for line in text.splitlines():
        if "=" not in line or line.startswith("#"):
            continue
        key, value = line.split("=", 1)
        values[key.strip()] = value.strip().strip('"').strip("'")
    return values


def parse_meminfo_total_mb(text: str) -> int:
    match = re.search(r"^MemTotal:\s+(\d+)\s*kB", text, flags=re.MULTILINE)
    return int(match.group(1)) // 1024 if match else 0


def parse_cpuinfo(text: str) -> dict[str, Any]:
    """Summarise /proc/cpuinfo."""
    model = ""
    vendor = ""
    mhz = 0.0
    processors = 0
    physical_ids: set[str] = set()
    core_keys: set[tuple[str, str]] = set()
    cores_per_socket = 0
    physical_id = "0"
    for line in text.splitlines():
        if ":" not in line:
            continue
        key, value = (part.strip() for part in line.split(":", 1))
        if key == "processor":
            processors += 1
        elif key == "model name" and not model:
            model = value
        elif key in ("vendor_id", "CPU implementer") and not vendor:
            vendor = value
        elif key == "cpu MHz" and not mhz:
            mhz = safe_float(value)
        elif key == "physical id":
            physical_id = value
            physical_ids.add(value)
        elif key == "core id":
            core_keys.add((physical_id, value))
        elif key == "cpu cores" and not cores_per_socket:
            cores_per_socket = int(safe_float(value))
    sockets = len(physical_ids) or 1
    cores = len(core_keys) or cores_per_socket * sockets or processors
    return {
        "model": model,
        "vendor": vendor,
        "threads": processors,
        "sockets": sockets,
        "cores": cores,
        "mhz": int(round(mhz)),
    }


def parse_model_frequency_mhz(model: str) -> int:
    """Base clock from a model string such as ``... @ 3.50GHz``."""
    match = re.search(r"@\s*([\d.]+)\s*([GM])Hz", model, flags=re.IGNORECASE)
    if not match:
        return 0
    value = safe_float(match.group(1))
    if match.group(2).upper() == "G":
        value *= 1000
    return int(round(value))


def parse_lscpu(text: str) -> dict[str, str]:
    return parse_key_value_lines(text)


def parse_lshw_processor(output: str) -> dict[str, Any]:
    """First processor node from ``lshw -json -class processor``."""
    try:
        data = json.loads(output)
    except json.JSONDecodeError:
        return {}
    nodes = data if isinstance(data, list) else [data]
    for node in nodes:
        if not isinstance(node, dict) or node.get("class") != "processor":
            continue
        if node.get("disabled"):
            continue
        configuration = node.get("configuration", {}) or {}
        return {
            "model": node.get("product", ""),
            "vendor": node.get("vendor", ""),
            "socket_type": node.get("slot", ""),
            "width": int(safe_float(node.get("width"))),
            "max_mhz": int(safe_float(node.get("capacity")) / 1_000_000),
            "base_mhz": int(safe_float(node.get("size")) / 1_000_000),
            "cores": int(safe_float(configuration.get("cores"))),
            "threads": int(safe_float(configuration.get("threads"))),
        }
    return {}


def _dmidecode_blocks(output: str, title: str) -> list[dict[str, str]]:
    """Key/value dicts for every block whose header line equals ``title``."""
    blocks: list[dict[str, str]] = []
    for chunk in re.split(r"\n\s*\n", output):
        lines = [line for line in chunk.splitlines() if line.strip()]
        if len(lines) < 2:
            continue
        header_index = 1 if lines[0].startswith("Handle ") else 0
        if header_index >= len(lines) or lines[header_index].strip() != title:
            continue
        blocks.append(parse_key_value_lines("\n".join(lines[header_index + 1 :])))
    return blocks


def _mhz(value: str) -> int:
    match = re.search(r"(\d+)\s*(MHz|MT/s)", value or "")
    return int(match.group(1)) if match else 0


def parse_dmidecode_processor(output: str) -> dict[str, Any]:
    """Summarise ``dmidecode -t processor``."""
    blocks = [
        block
        for block in _dmidecode_blocks(output, "Processor Information")
        if "Populated" in block.get("Status", "Populated")
    ]
    if not blocks:
        return {}
    first = blocks[0]
    upgrade = first.get("Upgrade", "")
    socket_type = upgrade if upgrade and upgrade not in ("Other", "Unknown") else ""
    return {
        "model": first.get("Version", ""),
        "vendor": first.get("Manufacturer", ""),
        "socket_type": socket_type or first.get("Socket Designation", ""),
        "sockets": len(blocks),
        "cores": int(safe_float(first.get("Core Count"))) * len(blocks),
        "threads": int(safe_float(first.get("Thread Count"))) * len(blocks),
        "base_mhz": _mhz(first.get("Current Speed", "")),
        "max_mhz": _mhz(first.get("Max Speed", "")),
    }


def _size_mb(value: str) -> int:
    match = re.match(r"\s*(\d+)\s*(kB|KB|MB|GB|TB)", value or "")
    if not match:
        return 0
    size = int(match.group(1))
    factor = {"kB": 1 / 1024, "KB": 1 / 1024, "MB": 1, "GB": 1024, "TB": 1024 * 1024}[match.group(2)]
    return int(size * factor)


CHANNEL_LABELS = {1: "single", 2: "dual", 3: "triple", 4: "quad", 6: "hexa", 8: "octa", 12: "12-channel"}


def channel_label(populated: int) -> str:
    if populated <= 0:
        return ""
    return CHANNEL_LABELS.get(populated, f"{populated}-slot")


def parse_dmidecode_memory(output: str) -> MemoryInfo:
    """Build a partial :class:`MemoryInfo` from ``dmidecode -t memory``.

    ``total_mb`` is left at zero; it comes from /proc/meminfo.
    """
    info = MemoryInfo()
    arrays = _dmidecode_blocks(output, "Physical Memory Array")
    ecc_type = ""
    for array in arrays:
        ecc_type = ecc_type or array.get("Error Correction Type", "")

    devices = _dmidecode_blocks(output, "Memory Device")
    info.slots_total = len(devices)
    wide_bus = False
    for device in devices:
        size_mb = _size_mb(device.get("Size", ""))
        if not size_mb:
            continue
        speed = device.get("Configured Memory Speed") or device.get("Speed", "")
        if speed.lower().startswith("unknown"):
            speed = device.get("Speed", "")
        bank = MemoryBank(
            locator=device.get("Locator", ""),
            size_mb=size_mb,
            type=device.get("Type", ""),
            speed=speed if not speed.lower().startswith("unknown") else "",
            form_factor=device.get("Form Factor", ""),
            manufacturer=device.get("Manufacturer", ""),
            part_number=device.get("Part Number", "").strip(),
        )
        info.banks.append(bank)
        total_width = safe_float(re.sub(r"[^\d.]", "", device.get("Total Width", "")))
        data_width = safe_float(re.sub(r"[^\d.]", "", device.get("Data Width", "")))
        if total_width and data_width and total_width > data_width:
            wide_bus = True

    info.slots_used = len(info.banks)
    info.channels = channel_label(info.slots_used)
    info.ecc = wide_bus or (bool(ecc_type) and ecc_type not in ("None", "Unknown"))
    if info.banks:
        first = info.banks[0]
        if first.type and first.type not in ("Unknown", "Other"):
            info.type = first.type
        info.form_factor = first.form_factor
        info.speed = first.speed
    return info


def parse_pveversion(output: str) -> str:
    """``pve-manager/8.1.3/...`` -> ``8.1.3``."""
    match = re.search(r"pve-manager/([\w.\-]+?)/", output)
    if match:
        return match.group(1)
    return output.strip().splitlines()[0] if output.strip() else ""


def parse_pvecm_status(output: str) -> tuple[str, int]:
    """Cluster name and node count from ``pvecm status``."""
    name = ""
    nodes = 0
    for line in output.splitlines():
        key, _, value = line.partition(":")
        key = key.strip()
        if key == "Name" and not name:
            name = value.strip()
        elif key == "Nodes" and not nodes:
            nodes = int(safe_float(value.strip()))
    return name, nodes


def parse_pvesubscription(output: str) -> str:
    values = parse_key_value_lines(output)
    return values.get("status", "")


def count_table_rows(output: str) -> int:
    """Rows in a ``qm list`` / ``pct list`` table, excluding the header."""
    lines = [line for line in output.splitlines() if line.strip()]
    return max(len(lines) - 1, 0)


def parse_pvesm_status(output: str) -> list[StoragePool]:
    """Storage pools from ``pvesm status`` (sizes in KiB)."""
    pools: list[StoragePool] = []
    for line in output.splitlines():
        parts = line.split()
        if len(parts) < 3 or parts[0] == "Name":
            continue
        kib = [safe_float(value) for value in parts[3:6]]
        kib += [0.0] * (3 - len(kib))
        pools.append(
            StoragePool(
                name=parts[0],
                type=parts[1],
                status=parts[2],
                total_gb=round(kib[0] / 1024 / 1024, 1),
                used_gb=round(kib[1] / 1024 / 1024, 1),
                available_gb=round(kib[2] / 1024 / 1024, 1),
            )
        )
    return pools


def parse_storage_cfg(text: str) -> dict[str, dict[str, str]]:
    """Parse /etc/pve/storage.cfg into ``{storage_id: {type, option: value}}``."""
    storages: dict[str, dict[str, str]] = {}
    current: dict[str, str] | None = None
    for raw in text.splitlines():
        if not raw.strip() or raw.lstrip().startswith("#"):
            continue
        if not raw[0].isspace():
            storage_type, _, storage_id = raw.partition(":")
            current = {"type": storage_type.strip()}
            storages[storage_id.strip()] = current
            continue
        if current is None:
            continue
        key, _, value = raw.strip().partition(" ")
        current[key] = value.strip()
    return storages


@dataclass(frozen=True)
class MountEntry:
    source: str
    mountpoint: str
    fstype: str


def _unescape_mount(value: str) -> str:
    return re.sub(r"\\([0-7]{3})", lambda m: chr(int(m.group(1), 8)), value)


def parse_proc_mounts(text: str) -> list[MountEntry]:
    entries = []
    for line in text.splitlines():
        parts = line.split()
        if len(parts) < 3:
            continue
        entries.append(MountEntry(_unescape_mount(parts[0]), _unescape_mount(parts[1]), parts[2]))
    return entries


def parse_zpool_devices(output: str) -> list[str]:
    """Device paths listed by ``zpool list -v -H -P``."""
    devices = []
    for line in output.splitlines():
        first = line.strip().split("\t")[0].split()
        if first and first[0].startswith("/dev/"):
            devices.append(first[0])
    return devices


def parse_dmsetup_deps(output: str) -> list[str]:
    """Device names from ``dmsetup deps -o devname``."""
    return re.findall(r"\(([A-Za-z][\w\-]*)\)", output)
