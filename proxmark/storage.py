"""Storage path resolution, discovery and selection."""

from __future__ import annotations

import os
import re
import select
import shutil
import sys
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

from .console import get_logger
from .models import DiskInfo
from .parsers import (
    MountEntry,
    parse_dmsetup_deps,
    parse_proc_mounts,
    parse_pvesm_status,
    parse_storage_cfg,
    parse_zpool_devices,
)
from .utils import format_bytes, read_text, safe_float


if TYPE_CHECKING:
    from .context import RunContext


logger = get_logger(__name__)

RAM_FILESYSTEMS = frozenset({"tmpfs", "ramfs", "devtmpfs"})
MIN_FREE_BYTES = 2 * 1024**3
PROMPT_TIMEOUT = 30
MAX_SLAVE_DEPTH = 32
PROXMOX_DEFAULT_STORAGE = "/var/lib/vz"
EXTERNAL_MOUNT_PREFIXES = ("/mnt/", "/media/", "/srv/", "/data")
PATH_STORAGE_TYPES = ("dir", "nfs", "cifs", "cephfs", "glusterfs", "btrfs")
NETWORK_STORAGE_TYPES = ("nfs", "cifs", "cephfs", "glusterfs")


def read_mounts(mounts_file: str | Path = "/proc/mounts") -> list[MountEntry]:
    return parse_proc_mounts(read_text(mounts_file))


def find_mount(path: str | Path, mounts: Iterable[MountEntry]) -> MountEntry | None:
    """Mount entry with the longest mount point containing ``path``."""
    target = os.path.realpath(str(path))
    best: MountEntry | None = None
    for entry in mounts:
        mountpoint = entry.mountpoint.rstrip("/") or "/"
        if mountpoint == "/" or target == mountpoint or target.startswith(mountpoint + "/"):
            if best is None or len(mountpoint) >= len(best.mountpoint.rstrip("/") or "/"):
                best = entry
    return best


def is_ram_backed(path: str | Path, mounts: Iterable[MountEntry] | None = None) -> bool:
    entry = find_mount(path, read_mounts() if mounts is None else mounts)
    return entry is not None and entry.fstype in RAM_FILESYSTEMS


def free_bytes(path: str | Path) -> int:
    try:
        return shutil.disk_usage(path).free
    except OSError:
        return 0


# --- physical device resolution -------------------------------------------


def resolve_one_layer(name: str, sys_root: Path = Path("/sys")) -> str | None:
    """First underlying device of ``name``, or None when it has no slaves."""
    slaves_dir = sys_root / "class" / "block" / name / "slaves"
    try:
        slaves = sorted(entry.name for entry in slaves_dir.iterdir())
    except OSError:
        return None
    return slaves[0] if slaves else None


def walk_slaves(name: str, sys_root: Path = Path("/sys")) -> str | None:
    """Follow the slave chain down to a device with no further slaves.

    Returns None when ``name`` is unknown to sysfs. A device seen twice ends
    the walk and is treated as physical.
    """
    if not (sys_root / "class" / "block" / name).exists():
        return None
    visited = {name}
    current = name
    for _ in range(MAX_SLAVE_DEPTH):
        below = resolve_one_layer(current, sys_root)
        if below is None:
            return current
        if below in visited:
            logger.verbose("Device chain loops at %s; stopping", below)
            return below
        visited.add(below)
        current = below
    return current


def strip_partition(name: str) -> str:
    """Base device for a partition name (nvme0n1p2 -> nvme0n1, sda3 -> sda)."""
    if re.match(r"(nvme\d+n\d+|mmcblk\d+|md\d+|loop\d+|nbd\d+|zd\d+)p\d+$", name):
        return re.sub(r"p\d+$", "", name)
    if re.match(r"(nvme\d+n\d+|mmcblk\d+|md\d+|loop\d+|nbd\d+|dm-\d+|zd\d+)$", name):
        return name
    return re.sub(r"\d+$", "", name) or name


def _lsblk_parent_disk(context: RunContext, device: str) -> str | None:
    output = context.output(["lsblk", "-s", "-n", "-r", "-o", "NAME,TYPE", device])
    for line in output.splitlines():
        parts = line.split()
        if len(parts) >= 2 and parts[1] == "disk":
            return parts[0]
    return None


def _dmsetup_parent(context: RunContext, device: str) -> str | None:
    names = parse_dmsetup_deps(context.output(["dmsetup", "deps", "-o", "devname", device]))
    return names[0] if names else None


def _zfs_pool_device(context: RunContext, dataset: str) -> str | None:
    pool = dataset.split("/")[0]
    devices = parse_zpool_devices(context.output(["zpool", "list", "-v", "-H", "-P", pool]))
    if not devices:
        return None
    return os.path.basename(os.path.realpath(devices[0]))


def resolve_physical_device(
    context: RunContext,
    mount: MountEntry | None,
    sys_root: Path = Path("/sys"),
) -> str | None:
    """Name of the physical block device (possibly a partition) behind a mount."""
    if mount is None:
        return None
    source = mount.source

    if mount.fstype == "zfs":
        return _zfs_pool_device(context, source)

    physical = None
    if source.startswith("/dev/"):
        node = os.path.basename(os.path.realpath(source))
        physical = walk_slaves(node, sys_root)

    if physical is None:
        physical = _lsblk_parent_disk(context, source)
    if physical is None:
        physical = _dmsetup_parent(context, source)
    return physical


def describe_disk(
    context: RunContext,
    path: str,
    mounts: list[MountEntry] | None = None,
    sys_root: Path = Path("/sys"),
) -> DiskInfo:
    """DiskInfo for the storage behind ``path``."""
    mounts = read_mounts() if mounts is None else mounts
    mount = find_mount(path, mounts)
    disk = DiskInfo(path=path)
    if mount is None:
        logger.warning("Could not find the mount for %s", path)
        return disk
    disk.root_device = mount.source
    disk.filesystem = mount.fstype
    if mount.fstype in RAM_FILESYSTEMS:
        return disk

    physical = resolve_physical_device(context, mount, sys_root)
    if not physical:
        logger.verbose("No physical device found behind %s", mount.source)
        return disk

    base = strip_partition(physical)
    disk.physical_device = f"/dev/{base}"
    block_dir = sys_root / "block" / base
    disk.model = " ".join(read_text(block_dir / "device" / "model").split())
    sectors = safe_float(read_text(block_dir / "size", "0"))
    disk.size_gb = int(sectors * 512 // 1024**3)

    if base.startswith("nvme"):
        disk.set_type("nvme")
    rotational = read_text(block_dir / "queue" / "rotational")
    if rotational == "0":
        disk.set_type("ssd")
    elif rotational == "1":
        disk.set_type("hdd")
    logger.verbose("Resolved %s -> %s (%s)", mount.source, disk.physical_device, disk.type)
    return disk


# --- discovery ------------------------------------------------------------


@dataclass
class StorageCandidate:
    path: str
    label: str
    fstype: str = ""
    free_bytes: int = 0


def choose_primary_path(context: RunContext, mounts: list[MountEntry] | None = None) -> str:
    """Prefer Proxmox VM storage over the default /tmp."""
    config = context.config
    if config.disk_path_explicit or not context.inventory.proxmox.detected:
        return config.disk_path
    if Path(PROXMOX_DEFAULT_STORAGE).is_dir() and not is_ram_backed(PROXMOX_DEFAULT_STORAGE, mounts):
        logger.verbose("Auto-detected Proxmox storage: %s", PROXMOX_DEFAULT_STORAGE)
        return PROXMOX_DEFAULT_STORAGE
    return config.disk_path


def proxmox_storage_paths(
    context: RunContext,
    mounts: list[MountEntry],
    storage_cfg: str | Path = "/etc/pve/storage.cfg",
) -> list[tuple[str, str]]:
    """(path, label) for each active Proxmox storage with a filesystem path."""
    pools = [pool for pool in parse_pvesm_status(context.output(["pvesm", "status"])) if pool.status == "active"]
    if not pools:
        return []
    cfg = parse_storage_cfg(read_text(storage_cfg))
    paths: list[tuple[str, str]] = []
    for pool in pools:
        options = cfg.get(pool.name, {"type": pool.type})
        storage_type = options.get("type", pool.type)
        label = f"{pool.name} ({storage_type})"
        if storage_type in PATH_STORAGE_TYPES:
            path = options.get("path") or (f"/mnt/pve/{pool.name}" if storage_type in NETWORK_STORAGE_TYPES else "")
            if path:
                paths.append((path, label))
        elif storage_type == "zfspool":
            dataset = options.get("pool", "")
            mountpoint = context.output(["zfs", "get", "-H", "-o", "value", "mountpoint", dataset]) if dataset else ""
            if mountpoint.startswith("/"):
                paths.append((mountpoint, label))
        elif storage_type in ("lvm", "lvmthin"):
            vg = options.get("vgname", "")
            if not vg:
                continue
            prefixes = (f"/dev/mapper/{vg.replace('-', '--')}-", f"/dev/{vg}/")
            for entry in mounts:
                if entry.source.startswith(prefixes):
                    paths.append((entry.mountpoint, f"{label} {os.path.basename(entry.source)}"))
        else:
            logger.verbose("Skipping storage %s: type %s has no filesystem path", pool.name, storage_type)
    return paths


def discover_candidates(
    context: RunContext,
    primary: str,
    mounts: list[MountEntry] | None = None,
    storage_cfg: str | Path = "/etc/pve/storage.cfg",
    free_space: Callable[[str], int] = free_bytes,
) -> list[StorageCandidate]:
    """Additional benchmarkable locations on other filesystems than ``primary``."""
    mounts = read_mounts() if mounts is None else mounts
    raw: list[tuple[str, str]] = []
    if context.inventory.proxmox.detected:
        raw.extend(proxmox_storage_paths(context, mounts, storage_cfg))
    for entry in mounts:
        if entry.mountpoint.startswith(EXTERNAL_MOUNT_PREFIXES):
            raw.append((entry.mountpoint, f"mount {entry.source}"))

    primary_mount = find_mount(primary, mounts)
    seen_sources = {primary_mount.source} if primary_mount else set()
    seen_paths = {os.path.realpath(primary)}
    candidates: list[StorageCandidate] = []
    for path, label in raw:
        real = os.path.realpath(path)
        if real in seen_paths or not os.path.isdir(real):
            continue
        seen_paths.add(real)
        mount = find_mount(real, mounts)
        if mount is None:
            continue
        if mount.fstype in RAM_FILESYSTEMS:
            logger.verbose("Skipping %s: RAM-backed (%s)", path, mount.fstype)
            continue
        if mount.source in seen_sources:
            continue
        available = free_space(real)
        if available < MIN_FREE_BYTES:
            logger.verbose("Skipping %s: only %s free", path, format_bytes(available))
            continue
        seen_sources.add(mount.source)
        candidates.append(StorageCandidate(path=path, label=label, fstype=mount.fstype, free_bytes=available))
    return candidates


# --- selection ------------------------------------------------------------


def parse_selection(answer: str, count: int) -> list[int]:
    """Zero-based indices chosen by a prompt answer like ``1,3`` or ``all``."""
    answer = answer.strip().lower()
    if not answer or answer in ("n", "no", "none"):
        return []
    if answer in ("a", "all"):
        return list(range(count))
    chosen: list[int] = []
    for token in re.split(r"[,\s]+", answer):
        if not token:
            continue
        if not token.isdigit() or not 1 <= int(token) <= count:
            logger.warning("Ignoring invalid selection %r", token)
            continue
        index = int(token) - 1
        if index not in chosen:
            chosen.append(index)
    return chosen


def read_line_with_timeout(stream: TextIO, timeout: float) -> str:
    """One line from ``stream``, or "" if nothing arrives within ``timeout``."""
    try:
        ready, _, _ = select.select([stream], [], [], timeout)
    except (OSError, ValueError):
        return ""
    if not ready:
        return ""
    return stream.readline()


def select_additional_paths(
    context: RunContext,
    candidates: list[StorageCandidate],
    stream: TextIO | None = None,
    reader: Callable[[TextIO, float], str] = read_line_with_timeout,
    timeout: float = PROMPT_TIMEOUT,
) -> list[str]:
    """Ask which discovered locations to benchmark in addition to the primary."""
    if not candidates:
        return []
    config = context.config
    if config.all_disks:
        return [candidate.path for candidate in candidates]
    if not config.interactive:
        logger.verbose("Found %d additional storage location(s); use --all-disks to benchmark them", len(candidates))
        return []

    colors = context.colors
    print(f"\n{colors.BOLD}Additional storage found:{colors.NC}", file=sys.stderr)
    for number, candidate in enumerate(candidates, start=1):
        print(
            f"  {colors.CYAN}{number}){colors.NC} {candidate.path} "
            f"{colors.DIM}[{candidate.label}, {candidate.fstype}, {format_bytes(candidate.free_bytes)} free]{colors.NC}",
            file=sys.stderr,
        )
    print(
        f"Benchmark which? (e.g. 1,3 / all / Enter for none, {int(timeout)}s timeout): ",
        end="",
        file=sys.stderr,
        flush=True,
    )
    answer = reader(stream or sys.stdin, timeout)
    if not answer:
        print(file=sys.stderr)
        logger.verbose("No additional storage selected")
    return [candidates[index].path for index in parse_selection(answer, len(candidates))]
