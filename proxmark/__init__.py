"""Proxmark - a benchmark suite for Proxmox VE hosts."""

__version__ = "1.1.0"

from .cli import main  # noqa: E402
from .models import (  # noqa: E402
    BenchmarkMetrics,
    BenchmarkParameters,
    BenchmarkResult,
    RunReport,
    ScoreSet,
    SystemInventory,
)


__all__ = [
    "BenchmarkMetrics",
    "BenchmarkParameters",
    "BenchmarkResult",
    "RunReport",
    "ScoreSet",
    "SystemInventory",
    "main",
]
