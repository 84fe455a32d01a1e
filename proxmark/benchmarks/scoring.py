"""Score rules and the composite score calculation."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass

from ..models import BenchmarkResult, DiskRun, ScoreSet
from .types import BenchmarkType


MEMORY_LATENCY_FACTOR = 10_000_000
NETWORK_LATENCY_FACTOR = 10_000
SEQUENTIAL_SCORE_FACTOR = 10

CPU_WEIGHT = 0.20
MEMORY_WEIGHT = 0.20
DISK_WEIGHT = 0.60


def _inverse(factor: float, value: float) -> float:
    """``factor / value``, zero when the value was not measured."""
    if value <= 0:
        return 0.0
    return factor / value


@dataclass(frozen=True)
class ScoreInputs:
    """Raw metrics the scores are derived from."""

    cpu_multi_events: float = 0.0
    cpu_single_events: float = 0.0
    memory_write_mbs: float = 0.0
    memory_read_mbs: float = 0.0
    memory_latency_ns: float = 0.0
    disk_iops_read: float = 0.0
    disk_iops_write: float = 0.0
    disk_seq_read_mbs: float = 0.0
    disk_seq_write_mbs: float = 0.0
    network_mbps: float = 0.0
    network_latency_ms: float = 0.0

    @classmethod
    def from_results(
        cls,
        results: Mapping[BenchmarkType, BenchmarkResult],
        disk_run: DiskRun | None = None,
    ) -> ScoreInputs:
        def metric(benchmark_type: BenchmarkType, key: str) -> float:
            result = results.get(benchmark_type)
            if disk_run is not None and benchmark_type in disk_run.results:
                result = disk_run.results[benchmark_type]
            return result.metric(key) if result is not None else 0.0

        return cls(
            cpu_multi_events=metric(BenchmarkType.CPU_MULTI, "events_per_sec"),
            cpu_single_events=metric(BenchmarkType.CPU_SINGLE, "events_per_sec"),
            memory_write_mbs=metric(BenchmarkType.MEMORY_WRITE, "mb_per_sec"),
            memory_read_mbs=metric(BenchmarkType.MEMORY_READ, "mb_per_sec"),
            memory_latency_ns=metric(BenchmarkType.MEMORY_LATENCY, "latency_ns"),
            disk_iops_read=metric(BenchmarkType.DISK_RANDRW, "iops_read"),
            disk_iops_write=metric(BenchmarkType.DISK_RANDRW, "iops_write"),
            disk_seq_read_mbs=metric(BenchmarkType.DISK_SEQ_READ, "bw_mb"),
            disk_seq_write_mbs=metric(BenchmarkType.DISK_SEQ_WRITE, "bw_mb"),
            network_mbps=metric(BenchmarkType.NETWORK, "bandwidth_mbps"),
            network_latency_ms=metric(BenchmarkType.NETWORK, "latency_ms"),
        )


def calculate_scores(inputs: ScoreInputs) -> ScoreSet:
    """Per-category scores, subtotals and the composite.

    Subtotals and the composite are computed from unrounded category scores.
    The disk term of the composite halves the sequential contribution
    compared to the disk subtotal (``/20`` instead of ``/10``).
    """
    cpu_multi = inputs.cpu_multi_events
    cpu_single = inputs.cpu_single_events
    memory_write = inputs.memory_write_mbs
    memory_read = inputs.memory_read_mbs
    memory_latency = _inverse(MEMORY_LATENCY_FACTOR, inputs.memory_latency_ns)
    disk_iops = inputs.disk_iops_read + inputs.disk_iops_write
    disk_seq_read = inputs.disk_seq_read_mbs * SEQUENTIAL_SCORE_FACTOR
    disk_seq_write = inputs.disk_seq_write_mbs * SEQUENTIAL_SCORE_FACTOR
    network_latency = _inverse(NETWORK_LATENCY_FACTOR, inputs.network_latency_ms)

    cpu_total = cpu_multi + cpu_single
    memory_total = (memory_write + memory_read) / 100 + memory_latency
    disk_total = disk_iops + (disk_seq_read + disk_seq_write) / 10
    composite = (
        CPU_WEIGHT * cpu_total
        + MEMORY_WEIGHT * memory_total
        + DISK_WEIGHT * (disk_iops + (disk_seq_read + disk_seq_write) / 20)
    )

    return ScoreSet(
        cpu_multi=round(cpu_multi),
        cpu_single=round(cpu_single),
        memory_write=round(memory_write),
        memory_read=round(memory_read),
        memory_latency=round(memory_latency),
        disk_iops=round(disk_iops),
        disk_seq_read=round(disk_seq_read),
        disk_seq_write=round(disk_seq_write),
        network_bandwidth=round(inputs.network_mbps),
        network_latency=round(network_latency),
        cpu_total=round(cpu_total),
        memory_total=round(memory_total),
        disk_total=round(disk_total),
        total=round(composite),
    )


def score_results(
    results: Mapping[BenchmarkType, BenchmarkResult],
    disk_run: DiskRun | None = None,
) -> ScoreSet:
    return calculate_scores(ScoreInputs.from_results(results, disk_run))


@dataclass(frozen=True)
class ScoreRule:
    """How one benchmark category is shown in the terminal summary."""

    metric: str
    label: str
    score_field: str
    formatter: Callable[[float], str] | None = None

    def extract(self, result: BenchmarkResult) -> float | None:
        if result.status != "ok":
            return None
        return result.metric(self.metric)

    def format_value(self, value: float) -> str:
        if self.formatter:
            return self.formatter(value)
        return f"{value:,.2f}"


SCORE_RULES: dict[BenchmarkType, ScoreRule] = {
    BenchmarkType.CPU_MULTI: ScoreRule(
        metric="events_per_sec",
        label="CPU multi-thread",
        score_field="cpu_multi",
        formatter=lambda value: f"{value:,.1f} events/s",
    ),
    BenchmarkType.CPU_SINGLE: ScoreRule(
        metric="events_per_sec",
        label="CPU single-thread",
        score_field="cpu_single",
        formatter=lambda value: f"{value:,.1f} events/s",
    ),
    BenchmarkType.MEMORY_WRITE: ScoreRule(
        metric="mb_per_sec",
        label="Memory write",
        score_field="memory_write",
        formatter=lambda value: f"{value:,.1f} MB/s",
    ),
    BenchmarkType.MEMORY_READ: ScoreRule(
        metric="mb_per_sec",
        label="Memory read",
        score_field="memory_read",
        formatter=lambda value: f"{value:,.1f} MB/s",
    ),
    BenchmarkType.MEMORY_LATENCY: ScoreRule(
        metric="latency_ns",
        label="Memory latency",
        score_field="memory_latency",
        formatter=lambda value: f"{value:.1f} ns",
    ),
    BenchmarkType.DISK_RANDRW: ScoreRule(
        metric="iops_total",
        label="Disk random 4K r/w",
        score_field="disk_iops",
        formatter=lambda value: f"{value:,.0f} IOPS",
    ),
    BenchmarkType.DISK_SEQ_READ: ScoreRule(
        metric="bw_mb",
        label="Disk sequential read",
        score_field="disk_seq_read",
        formatter=lambda value: f"{value:,.1f} MB/s",
    ),
    BenchmarkType.DISK_SEQ_WRITE: ScoreRule(
        metric="bw_mb",
        label="Disk sequential write",
        score_field="disk_seq_write",
        formatter=lambda value: f"{value:,.1f} MB/s",
    ),
    BenchmarkType.NETWORK: ScoreRule(
        metric="bandwidth_mbps",
        label="Network (iperf3)",
        score_field="network_bandwidth",
        formatter=lambda value: f"{value:,.1f} Mbps",
    ),
}
