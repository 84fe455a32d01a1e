"""Benchmark modules - runners, power sampling and scoring."""

from __future__ import annotations

from .base import BenchmarkBase
from .fio import FioBenchmark, FioTarget, run_disk_suite
from .iperf3 import IPerf3Benchmark
from .power import PowerSampler, find_energy_counter
from .scoring import SCORE_RULES, ScoreInputs, ScoreRule, calculate_scores, score_results
from .sysbench_cpu import SysbenchCPUBenchmark, SysbenchCPUSingleBenchmark
from .sysbench_memory import SysbenchMemoryBenchmark, SysbenchMemoryLatencyBenchmark
from .types import DISK_BENCHMARK_TYPES, BenchmarkType


def host_benchmarks(energy_counter=None) -> list[BenchmarkBase]:
    """CPU and memory runners in execution order."""
    return [
        SysbenchCPUBenchmark(energy_counter),
        SysbenchCPUSingleBenchmark(),
        SysbenchMemoryBenchmark("write"),
        SysbenchMemoryBenchmark("read"),
        SysbenchMemoryLatencyBenchmark(),
    ]


__all__ = [
    "SCORE_RULES",
    "BenchmarkBase",
    "DISK_BENCHMARK_TYPES",
    "BenchmarkType",
    "FioBenchmark",
    "FioTarget",
    "IPerf3Benchmark",
    "PowerSampler",
    "ScoreInputs",
    "ScoreRule",
    "SysbenchCPUBenchmark",
    "SysbenchCPUSingleBenchmark",
    "SysbenchMemoryBenchmark",
    "SysbenchMemoryLatencyBenchmark",
    "calculate_scores",
    "find_energy_counter",
    "host_benchmarks",
    "run_disk_suite",
    "score_results",
]
