"""Benchmark category identifiers."""

from __future__ import annotations

from enum import Enum


class BenchmarkType(str, Enum):
    CPU_MULTI = "cpu-multi"
    CPU_SINGLE = "cpu-single"
    MEMORY_WRITE = "memory-write"
    MEMORY_READ = "memory-read"
    MEMORY_LATENCY = "memory-latency"
    DISK_RANDRW = "disk-randrw"
    DISK_SEQ_READ = "disk-seq-read"
    DISK_SEQ_WRITE = "disk-seq-write"
    NETWORK = "network"


DISK_BENCHMARK_TYPES = (
    BenchmarkType.DISK_RANDRW,
    BenchmarkType.DISK_SEQ_READ,
    BenchmarkType.DISK_SEQ_WRITE,
)
