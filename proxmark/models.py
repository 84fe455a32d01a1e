"""Data models for benchmark results, system inventory and reports."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from .benchmarks.types import BenchmarkType
from .utils import safe_float


if TYPE_CHECKING:
    from .config import RunConfig


@dataclass
class BenchmarkMetrics:
    """Type-safe container for benchmark-specific metrics."""

    data: dict[str, float | str | int]

    def __getitem__(self, key: str) -> float | str | int:
        return self.data[key]

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def number(self, key: str) -> float:
        """Numeric metric, zero when missing or unparseable."""
        return safe_float(self.data.get(key), 0.0)

    def to_dict(self) -> dict[str, float | str | int]:
        """Convert to dict for JSON serialization."""
        return self.data.copy()


@dataclass
class BenchmarkParameters:
    """Type-safe container for benchmark parameters."""

    data: dict[str, Any]

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return self.data.copy()


@dataclass
class BenchmarkResult:
    """Complete benchmark result - use throughout entire lifecycle."""

    benchmark_type: BenchmarkType
    status: str  # "ok" | "skipped" | "error"
    metrics: BenchmarkMetrics
    parameters: BenchmarkParameters
    duration_seconds: float = 0.0
    command: str = ""
    message: str = ""  # For skipped/error cases
    raw_output: str = ""
    version: str = ""

    @property
    def name(self) -> str:
        return self.benchmark_type.value

    def metric(self, key: str) -> float:
        return self.metrics.number(key)

    def to_dict(self) -> dict[str, object]:
        """Convert to dict only when serializing to JSON."""
        return {
            "name": self.benchmark_type.value,
            "status": self.status,
            "metrics": self.metrics.to_dict(),
            "parameters": self.parameters.to_dict(),
            "duration_seconds": self.duration_seconds,
            "command": self.command,
            "message": self.message,
            "version": self.version,
        }

    @classmethod
    def empty(cls, benchmark_type: BenchmarkType, status: str, message: str = "") -> BenchmarkResult:
        """Result with no metrics, used for skipped or failed runs."""
        return cls(
            benchmark_type=benchmark_type,
            status=status,
            metrics=BenchmarkMetrics({}),
            parameters=BenchmarkParameters({}),
            message=message,
        )


@dataclass
class CpuInfo:
    model: str = "Unknown"
    vendor: str = ""
    socket_type: str = ""
    architecture: str = ""
    cores: int = 0
    threads: int = 0
    sockets: int = 1
    base_mhz: int = 0
    max_mhz: int = 0
    tdp_watts: float = 0.0
    l1_cache: str = ""
    l2_cache: str = ""
    l3_cache: str = ""

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass
class MemoryBank:
    locator: str
    size_mb: int = 0
    type: str = ""
    speed: str = ""
    form_factor: str = ""
    manufacturer: str = ""
    part_number: str = ""

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass
class MemoryInfo:
    total_mb: int = 0
    type: str = "unknown"
    form_factor: str = ""
    speed: str = ""
    channels: str = ""
    slots_used: int = 0
    slots_total: int = 0
    ecc: bool = False
    banks: list[MemoryBank] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        data = asdict(self)
        data["banks"] = [bank.to_dict() for bank in self.banks]
        return data


@dataclass
class StoragePool:
    name: str
    type: str
    status: str
    total_gb: float = 0.0
    used_gb: float = 0.0
    available_gb: float = 0.0

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass
class ProxmoxInfo:
    version: str = ""
    node_name: str = ""
    cluster_name: str = ""
    cluster_nodes: int = 0
    subscription: str = ""
    vm_count: int = 0
    ct_count: int = 0
    storage_pools: list[StoragePool] = field(default_factory=list)

    @property
    def detected(self) -> bool:
        return bool(self.version)

    def to_dict(self) -> dict[str, object]:
        data = asdict(self)
        data["storage_pools"] = [pool.to_dict() for pool in self.storage_pools]
        data["detected"] = self.detected
        return data


DISK_TYPES = ("nvme", "ssd", "hdd", "unknown")


@dataclass
class DiskInfo:
    """Storage behind a benchmark path.

    ``type`` starts as ``unknown``; use :meth:`set_type` so a detected value is
    never replaced by ``unknown`` again.
    """

    path: str = ""
    root_device: str = ""
    physical_device: str = ""
    model: str = ""
    type: str = "unknown"
    size_gb: int = 0
    filesystem: str = ""

    def set_type(self, value: str) -> None:
        if value not in DISK_TYPES or value == "unknown":
            return
        if self.type == "unknown":
            self.type = value

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass
class SystemInventory:
    hostname: str = ""
    cpu: CpuInfo = field(default_factory=CpuInfo)
    memory: MemoryInfo = field(default_factory=MemoryInfo)
    kernel: str = ""
    os: str = ""
    virtualization: str = "bare-metal"
    proxmox: ProxmoxInfo = field(default_factory=ProxmoxInfo)
    disk: DiskInfo = field(default_factory=DiskInfo)

    def to_dict(self) -> dict[str, object]:
        return {
            "hostname": self.hostname,
            "cpu": self.cpu.to_dict(),
            "memory": self.memory.to_dict(),
            "kernel": self.kernel,
            "os": self.os,
            "virtualization": self.virtualization,
            "proxmox": self.proxmox.to_dict(),
            "disk": self.disk.to_dict(),
        }


@dataclass(frozen=True)
class ScoreSet:
    cpu_multi: int = 0
    cpu_single: int = 0
    memory_write: int = 0
    memory_read: int = 0
    memory_latency: int = 0
    disk_iops: int = 0
    disk_seq_read: int = 0
    disk_seq_write: int = 0
    network_bandwidth: int = 0
    network_latency: int = 0
    cpu_total: int = 0
    memory_total: int = 0
    disk_total: int = 0
    total: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class PowerSummary:
    load_watts: float = 0.0
    samples: int = 0
    source: str = ""

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass
class DiskRun:
    """Disk benchmark results for one storage path."""

    disk: DiskInfo
    results: dict[BenchmarkType, BenchmarkResult]
    ram_backed: bool = False
    ioengine: str = ""

    def result(self, benchmark_type: BenchmarkType) -> BenchmarkResult:
        return self.results.get(benchmark_type) or BenchmarkResult.empty(benchmark_type, "skipped")

    def to_dict(self) -> dict[str, object]:
        randrw = self.result(BenchmarkType.DISK_RANDRW)
        seq_read = self.result(BenchmarkType.DISK_SEQ_READ)
        seq_write = self.result(BenchmarkType.DISK_SEQ_WRITE)
        return {
            "path": self.disk.path,
            "device": self.disk.physical_device or self.disk.root_device,
            "type": self.disk.type,
            "ram_backed": self.ram_backed,
            "ioengine": self.ioengine,
            "randrw": {
                "iops_read": round(randrw.metric("iops_read")),
                "iops_write": round(randrw.metric("iops_write")),
                "iops_total": round(randrw.metric("iops_total")),
                "bw_read_mb": round(randrw.metric("bw_read_mb"), 2),
                "bw_write_mb": round(randrw.metric("bw_write_mb"), 2),
                "latency_avg_us": round(randrw.metric("latency_avg_us")),
                "status": randrw.status,
            },
            "seq_read": {
                "iops": round(seq_read.metric("iops")),
                "bw_mb": round(seq_read.metric("bw_mb"), 2),
                "status": seq_read.status,
            },
            "seq_write": {
                "iops": round(seq_write.metric("iops")),
                "bw_mb": round(seq_write.metric("bw_mb"), 2),
                "status": seq_write.status,
            },
        }


@dataclass
class RunReport:
    """Complete report - top-level data structure."""

    version: str
    run_id: str
    generated_at: datetime
    config: RunConfig
    system: SystemInventory
    results: dict[BenchmarkType, BenchmarkResult]
    disk_runs: list[DiskRun]
    scores: ScoreSet
    power: PowerSummary = field(default_factory=PowerSummary)

    def result(self, benchmark_type: BenchmarkType) -> BenchmarkResult:
        return self.results.get(benchmark_type) or BenchmarkResult.empty(benchmark_type, "skipped")

    def _benchmarks_dict(self) -> dict[str, object]:
        multi = self.result(BenchmarkType.CPU_MULTI)
        single = self.result(BenchmarkType.CPU_SINGLE)
        write = self.result(BenchmarkType.MEMORY_WRITE)
        read = self.result(BenchmarkType.MEMORY_READ)
        latency = self.result(BenchmarkType.MEMORY_LATENCY)
        network = self.result(BenchmarkType.NETWORK)
        primary = self.disk_runs[0].to_dict() if self.disk_runs else DiskRun(DiskInfo(), {}).to_dict()
        return {
            "cpu": {
                "multi_thread": {
                    "events_per_sec": multi.metric("events_per_sec"),
                    "total_events": multi.metric("total_events"),
                    "latency_avg_ms": multi.metric("latency_avg_ms"),
                    "latency_p95_ms": multi.metric("latency_p95_ms"),
                    "threads": int(multi.parameters.get("threads", self.system.cpu.threads)),
                    "status": multi.status,
                },
                "single_thread": {
                    "events_per_sec": single.metric("events_per_sec"),
                    "latency_avg_ms": single.metric("latency_avg_ms"),
                    "status": single.status,
                },
                "power": self.power.to_dict(),
            },
            "memory": {
                "write": {
                    "mb_per_sec": write.metric("mb_per_sec"),
                    "total_ops": write.metric("total_ops"),
                    "status": write.status,
                },
                "read": {
                    "mb_per_sec": read.metric("mb_per_sec"),
                    "total_ops": read.metric("total_ops"),
                    "status": read.status,
                },
                "latency": {
                    "latency_ns": latency.metric("latency_ns"),
                    "status": latency.status,
                },
            },
            "disk": primary,
            "additional_disks": [run.to_dict() for run in self.disk_runs[1:]],
            "network": {
                "target": network.parameters.get("target", ""),
                "bandwidth_mbps": network.metric("bandwidth_mbps"),
                "latency_ms": network.metric("latency_ms"),
                "retransmits": network.metric("retransmits"),
                "status": network.status,
            },
        }

    def to_dict(self) -> dict[str, object]:
        """Only convert to dict for JSON serialization."""
        return {
            "version": self.version,
            "run_id": self.run_id,
            "timestamp_utc": self.generated_at.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "system": self.system.to_dict(),
            "config": self.config.to_dict(),
            "benchmarks": self._benchmarks_dict(),
            "scores": self.scores.to_dict(),
            "tags": list(self.config.tags),
            "notes": self.config.notes,
        }
