from __future__ import annotations

import subprocess
from pathlib import Path
from typing import TYPE_CHECKING

from ..console import get_logger
from ..models import BenchmarkResult
from ..parsers import parse_sysbench_cpu_output
from .base import DEFAULT_SYSBENCH_CPU_MAX_PRIME, BenchmarkBase
from .power import PowerSampler
from .types import BenchmarkType


if TYPE_CHECKING:
    from ..context import RunContext


logger = get_logger(__name__)


class SysbenchCPUBenchmark(BenchmarkBase):
    """Multi-threaded sysbench CPU run across every logical CPU."""

    benchmark_type = BenchmarkType.CPU_MULTI
    description = "CPU multi-thread"
    _required_commands = ("sysbench",)

    def __init__(self, energy_counter: Path | None = None):
        self.energy_counter = energy_counter

    def thread_count(self, context: RunContext) -> int:
        return max(context.inventory.cpu.threads, 1)

    def runtime(self, context: RunContext) -> int:
        return context.config.cpu_time

    def execute(self, context: RunContext) -> BenchmarkResult:
        threads = self.thread_count(context)
        runtime_secs = self.runtime(context)
        command = [
            "sysbench",
            "cpu",
            f"--cpu-max-prime={DEFAULT_SYSBENCH_CPU_MAX_PRIME}",
            f"--threads={threads}",
            f"--time={runtime_secs}",
            "run",
        ]
        logger.info("Running %s benchmark (%ds, %d threads)...", self.description, runtime_secs, threads)

        sampler = PowerSampler(self.energy_counter) if self.energy_counter else None
        if sampler:
            sampler.start()
        try:
            stdout, duration, returncode = context.run(command, timeout=runtime_secs + 120)
        finally:
            if sampler:
                context.power = sampler.stop()
        if returncode != 0:
            raise subprocess.CalledProcessError(returncode, command, stdout)

        metrics = parse_sysbench_cpu_output(stdout)
        result = self.build_result(
            dict(metrics),
            {"threads": threads, "cpu_max_prime": DEFAULT_SYSBENCH_CPU_MAX_PRIME, "runtime_secs": runtime_secs},
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

        events = result.metrics.get("events_per_sec")
        if events is not None:
            return f"{events:,.1f} events/s"
        return ""


class SysbenchCPUSingleBenchmark(SysbenchCPUBenchmark):
    benchmark_type = BenchmarkType.CPU_SINGLE
    description = "CPU single-thread"

    def __init__(self):
        super().__init__(energy_counter=None)

    def thread_count(self, context: RunContext) -> int:
        return 1

    def runtime(self, context: RunContext) -> int:
        return context.config.cpu_single_time
