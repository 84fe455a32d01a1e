from __future__ import annotations

import subprocess
from typing import TYPE_CHECKING

from ..console import get_logger
from ..models import BenchmarkResult
from ..parsers import parse_sysbench_memory_latency, parse_sysbench_memory_output
from .base import (
    DEFAULT_SYSBENCH_LATENCY_BLOCK_SIZE,
    DEFAULT_SYSBENCH_MEMORY_BLOCK_SIZE,
    DEFAULT_SYSBENCH_MEMORY_TOTAL_SIZE,
    BenchmarkBase,
)
from .types import BenchmarkType


if TYPE_CHECKING:
    from ..context import RunContext


logger = get_logger(__name__)


class SysbenchMemoryBenchmark(BenchmarkBase):
    """Sequential memory throughput, one instance per operation."""

    description = "Memory"
    _required_commands = ("sysbench",)

    def __init__(self, operation: str):
        if operation not in ("write", "read"):
            raise ValueError(f"Unknown memory operation: {operation}")
        self.operation = operation
        self.benchmark_type = BenchmarkType.MEMORY_WRITE if operation == "write" else BenchmarkType.MEMORY_READ
        self.description = f"Memory {operation}"

    def command(self, context: RunContext, threads: int) -> list[str]:
        return [
            "sysbench",
            "memory",
            f"--memory-block-size={DEFAULT_SYSBENCH_MEMORY_BLOCK_SIZE}",
            f"--memory-total-size={DEFAULT_SYSBENCH_MEMORY_TOTAL_SIZE}",
            f"--memory-oper={self.operation}",
            f"--time={context.config.mem_time}",
            f"--threads={threads}",
            "run",
        ]

    def execute(self, context: RunContext) -> BenchmarkResult:
        threads = max(context.inventory.cpu.threads, 1)
        command = self.command(context, threads)
        logger.info("Running %s benchmark (%ds)...", self.description.lower(), context.config.mem_time)
        stdout, duration, returncode = context.run(command, timeout=context.config.mem_time + 120)
        if returncode != 0:
            raise subprocess.CalledProcessError(returncode, command, stdout)

        metrics = parse_sysbench_memory_output(stdout)
        result = self.build_result(
            dict(metrics),
            {
                "threads": threads,
                "block_size": DEFAULT_SYSBENCH_MEMORY_BLOCK_SIZE,
                "total_size": DEFAULT_SYSBENCH_MEMORY_TOTAL_SIZE,
                "operation": self.operation,
                "runtime_secs": context.config.mem_time,
            },
            command,
            stdout,
            duration,
        )
        logger.success("%s: %s", self.description, self.format_result(result))
        return result

    def format_result(self, result: BenchmarkResult) -> str:
        """Format result for display."""
        status_message = self.format_status_message(result)
        if status_message:
            return status_message

        throughput = result.metrics.get("mb_per_sec")
        if throughput is not None:
            return f"{throughput:,.1f} MB/s"
        return ""


class SysbenchMemoryLatencyBenchmark(BenchmarkBase):
    """Single-threaded random access; the mean time per operation approximates latency."""

    benchmark_type = BenchmarkType.MEMORY_LATENCY
    description = "Memory latency"
    _required_commands = ("sysbench",)

    def execute(self, context: RunContext) -> BenchmarkResult:
        threads = 1
        command = [
            "sysbench",
            "memory",
            f"--memory-block-size={DEFAULT_SYSBENCH_LATENCY_BLOCK_SIZE}",
            f"--memory-total-size={DEFAULT_SYSBENCH_MEMORY_TOTAL_SIZE}",
            "--memory-oper=read",
            "--memory-access-mode=rnd",
            f"--time={context.config.mem_time}",
            f"--threads={threads}",
            "run",
        ]
        logger.info("Running memory latency benchmark (%ds)...", context.config.mem_time)
        stdout, duration, returncode = context.run(command, timeout=context.config.mem_time + 120)
        if returncode != 0:
            raise subprocess.CalledProcessError(returncode, command, stdout)

        metrics = parse_sysbench_memory_latency(stdout, threads=threads)
        result = self.build_result(
            dict(metrics),
            {"threads": threads, "access_mode": "rnd", "runtime_secs": context.config.mem_time},
            command,
            stdout,
            duration,
        )
        logger.success("%s: %s", self.description, self.format_result(result))
        return result

    def format_result(self, result: BenchmarkResult) -> str:
        status_message = self.format_status_message(result)
        if status_message:
            return status_message

        latency = result.metrics.get("latency_ns")
        if latency is not None:
            return f"{latency:.1f} ns"
        return ""
