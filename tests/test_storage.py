# ruff: noqa: S101
"""Mount lookup, device resolution and storage discovery."""

from __future__ import annotations

import io
import os
from pathlib import Path

import pytest

from proxmark import storage
from proxmark.config import RunConfig
from proxmark.models import DiskInfo, ProxmoxInfo
from proxmark.parsers import MountEntry
from proxmark.storage import (
    MIN_FREE_BYTES,
    StorageCandidate,
    choose_primary_path,
    describe_disk,
    discover_candidates,
    find_mount,
    is_ram_backed,
    parse_selection,
    select_additional_paths,
    strip_partition,
    walk_slaves,
)


def make_block(sys_root: Path, name: str, slaves=(), model="", sectors=0, rotational=None):
    """Create a fake /sys/class/block entry (and /sys/block for whole disks)."""
    node = sys_root / "class" / "block" / name
    (node / "slaves").mkdir(parents=True, exist_ok=True)
    for slave in slaves:
        (node / "slaves" / slave).mkdir(exist_ok=True)
    block = sys_root / "block" / name
    if model:
        (block / "device").mkdir(parents=True, exist_ok=True)
        (block / "device" / "model").write_text(model + "\n")
    if sectors:
        block.mkdir(parents=True, exist_ok=True)
        (block / "size").write_text(f"{sectors}\n")
    if rotational is not None:
        (block / "queue").mkdir(parents=True, exist_ok=True)
        (block / "queue" / "rotational").write_text(f"{rotational}\n")
    return node


class TestFindMount:
    """longest mount point wins"""

    MOUNTS = [
        MountEntry("/dev/mapper/pve-root", "/", "ext4"),
        MountEntry("tmpfs", "/tmp", "tmpfs"),
        MountEntry("/dev/sdb1", "/mnt/data", "xfs"),
    ]

    def test_nested_path(self):
        assert find_mount("/mnt/data/images", self.MOUNTS).source == "/dev/sdb1"

    def test_prefix_is_not_a_parent(self):
        """/mnt/database is not inside /mnt/data"""
        assert find_mount("/mnt/database", self.MOUNTS).source == "/dev/mapper/pve-root"

    def test_ram_backed(self):
        assert is_ram_backed("/tmp", self.MOUNTS) is True
        assert is_ram_backed("/var/lib/vz", self.MOUNTS) is False


class TestStripPartition:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("nvme0n1p2", "nvme0n1"),
            ("nvme0n1", "nvme0n1"),
            ("mmcblk0p1", "mmcblk0"),
            ("sda3", "sda"),
            ("sda", "sda"),
            ("dm-0", "dm-0"),
            ("zd0", "zd0"),
            ("zd16p1", "zd16"),
        ],
    )
    def test_names(self, name, expected):
        assert strip_partition(name) == expected


class TestWalkSlaves:
    """device-mapper chain walk"""

    def test_three_layer_chain(self, tmp_path):
        """LUKS on LVM on a partition resolves to the partition"""
        make_block(tmp_path, "dm-2", slaves=["dm-1"])
        make_block(tmp_path, "dm-1", slaves=["dm-0"])
        make_block(tmp_path, "dm-0", slaves=["nvme0n1p3"])
        make_block(tmp_path, "nvme0n1p3")
        assert walk_slaves("dm-2", tmp_path) == "nvme0n1p3"

    def test_plain_device(self, tmp_path):
        """a device without slaves is its own physical device"""
        make_block(tmp_path, "sda1")
        assert walk_slaves("sda1", tmp_path) == "sda1"

    def test_unknown_device(self, tmp_path):
        assert walk_slaves("sdz9", tmp_path) is None

    def test_cycle_terminates(self, tmp_path):
        """a looping slave chain stops instead of spinning"""
        make_block(tmp_path, "dm-0", slaves=["dm-1"])
        make_block(tmp_path, "dm-1", slaves=["dm-0"])
        assert walk_slaves("dm-0", tmp_path) == "dm-0"


class TestDescribeDisk:
    """DiskInfo from mounts and sysfs"""

    def test_nvme_behind_lvm(self, tmp_path, make_context, fake_runner, monkeypatch):
        """LVM root on NVMe is reported as the NVMe disk"""
        real_realpath = os.path.realpath
        monkeypatch.setattr(
            storage.os.path,
            "realpath",
            lambda path, **kwargs: "/dev/dm-1" if path == "/dev/mapper/pve-root" else real_realpath(path, **kwargs),
        )
        make_block(tmp_path, "dm-1", slaves=["nvme0n1p3"])
        make_block(tmp_path, "nvme0n1p3")
        make_block(tmp_path, "nvme0n1", model="Samsung SSD 980 PRO 1TB", sectors=1953525168, rotational=0)
        mounts = [MountEntry("/dev/mapper/pve-root", "/", "ext4")]

        disk = describe_disk(make_context(), "/var/lib/vz", mounts, sys_root=tmp_path)

        assert disk.physical_device == "/dev/nvme0n1"
        assert disk.type == "nvme"
        assert disk.model == "Samsung SSD 980 PRO 1TB"
        assert disk.size_gb == 931
        assert disk.filesystem == "ext4"

    def test_rotational_hdd(self, tmp_path, make_context):
        make_block(tmp_path, "sdb1")
        make_block(tmp_path, "sdb", rotational=1)
        disk = describe_disk(make_context(), "/mnt/backup", [MountEntry("/dev/sdb1", "/mnt/backup", "xfs")], sys_root=tmp_path)
        assert disk.type == "hdd"

    def test_tmpfs_has_no_device(self, tmp_path, make_context):
        disk = describe_disk(make_context(), "/tmp", [MountEntry("tmpfs", "/tmp", "tmpfs")], sys_root=tmp_path)
        assert disk.physical_device == ""
        assert disk.type == "unknown"

    def test_lsblk_fallback(self, tmp_path, make_context, fake_runner):
        """without sysfs entries lsblk names the parent disk"""
        fake_runner.add(["lsblk"], "vg-data lvm\nsdc1 part\nsdc disk\n")
        make_block(tmp_path, "sdc", rotational=0)
        mounts = [MountEntry("/dev/mapper/vg-data", "/srv", "ext4")]
        disk = describe_disk(make_context(), "/srv", mounts, sys_root=tmp_path)
        assert disk.physical_device == "/dev/sdc"
        assert disk.type == "ssd"


class TestDiskType:
    """detected disk types are never downgraded"""

    def test_unknown_is_replaced(self):
        disk = DiskInfo()
        disk.set_type("ssd")
        assert disk.type == "ssd"

    def test_known_is_kept(self):
        disk = DiskInfo()
        disk.set_type("nvme")
        disk.set_type("ssd")
        disk.set_type("unknown")
        assert disk.type == "nvme"

    def test_invalid_value_ignored(self):
        disk = DiskInfo()
        disk.set_type("floppy")
        assert disk.type == "unknown"


class TestChoosePrimaryPath:
    def test_explicit_path_wins(self, make_context):
        context = make_context(RunConfig(disk_path="/srv/bench", disk_path_explicit=True))
        context.inventory.proxmox = ProxmoxInfo(version="8.1.3")
        assert choose_primary_path(context, []) == "/srv/bench"

    def test_default_without_proxmox(self, make_context):
        assert choose_primary_path(make_context(), []) == "/tmp"


class TestDiscoverCandidates:
    """additional storage discovery"""

    def test_exclusions(self, tmp_path, make_context, monkeypatch):
        """RAM-backed, small and same-device locations are dropped"""
        root = tmp_path.resolve()
        paths = {name: root / name for name in ("fast", "ram", "small", "twin")}
        for path in paths.values():
            path.mkdir()
        mounts = [
            MountEntry("/dev/sda1", "/", "ext4"),
            MountEntry("/dev/sdb1", str(paths["fast"]), "xfs"),
            MountEntry("tmpfs", str(paths["ram"]), "tmpfs"),
            MountEntry("/dev/sdc1", str(paths["small"]), "ext4"),
            MountEntry("/dev/sdb1", str(paths["twin"]), "xfs"),
        ]
        free = {str(paths["small"]): MIN_FREE_BYTES - 1}
        monkeypatch.setattr(storage, "EXTERNAL_MOUNT_PREFIXES", (str(root) + "/",))

        candidates = discover_candidates(
            make_context(), "/", mounts, free_space=lambda path: free.get(path, 100 * 1024**3)
        )

        assert [candidate.path for candidate in candidates] == [str(paths["fast"])]
        assert candidates[0].fstype == "xfs"
        assert candidates[0].label == "mount /dev/sdb1"

    def test_outside_external_prefixes(self, tmp_path, make_context):
        """mounts outside the usual external locations are not offered"""
        mounts = [MountEntry("/dev/sda1", "/", "ext4"), MountEntry("/dev/sdb1", str(tmp_path), "xfs")]
        assert discover_candidates(make_context(), "/", mounts, free_space=lambda path: 10 * 1024**3) == []

    def test_primary_device_excluded(self, tmp_path, make_context, monkeypatch):
        """a mount of the primary's device is not offered again"""
        data = tmp_path.resolve() / "data"
        data.mkdir()
        monkeypatch.setattr(storage, "EXTERNAL_MOUNT_PREFIXES", (str(data.parent) + "/",))
        mounts = [MountEntry("/dev/sda1", "/", "ext4"), MountEntry("/dev/sda1", str(data), "ext4")]
        assert discover_candidates(make_context(), "/", mounts, free_space=lambda path: 10 * 1024**3) == []


class TestParseSelection:
    @pytest.mark.parametrize(
        ("answer", "expected"),
        [
            ("", []),
            ("none", []),
            ("all", [0, 1, 2]),
            ("1,3", [0, 2]),
            ("3 1 3", [2, 0]),
            ("2, 9, x", [1]),
        ],
    )
    def test_answers(self, answer, expected):
        assert parse_selection(answer, 3) == expected


class TestSelectAdditionalPaths:
    CANDIDATES = [
        StorageCandidate("/mnt/a", "mount /dev/sdb1", "xfs", 10 * 1024**3),
        StorageCandidate("/mnt/b", "mount /dev/sdc1", "ext4", 20 * 1024**3),
    ]

    def test_all_disks(self, make_context):
        context = make_context(RunConfig(all_disks=True, interactive=False))
        assert select_additional_paths(context, self.CANDIDATES) == ["/mnt/a", "/mnt/b"]

    def test_non_interactive_selects_nothing(self, make_context):
        assert select_additional_paths(make_context(), self.CANDIDATES) == []

    def test_prompt_answer(self, make_context, capsys):
        context = make_context(RunConfig(interactive=True))
        chosen = select_additional_paths(
            context, self.CANDIDATES, stream=io.StringIO("2\n"), reader=lambda stream, timeout: stream.readline()
        )
        assert chosen == ["/mnt/b"]
        assert "/mnt/a" in capsys.readouterr().err

    def test_prompt_timeout(self, make_context):
        """a timed-out prompt counts as an empty answer"""
        context = make_context(RunConfig(interactive=True))
        chosen = select_additional_paths(context, self.CANDIDATES, reader=lambda stream, timeout: "")
        assert chosen == []
