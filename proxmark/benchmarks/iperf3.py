from __future__ import annotations

import subprocess
from typing import TYPE_CHECKING

from ..console import get_logger
from ..dependencies import ensure_optional
from ..models import BenchmarkResult
from ..parsers import parse_iperf3_output
from .base import BenchmarkBase
from .types import BenchmarkType


if TYPE_CHECKING:
    from ..context import RunContext


logger = get_logger(__name__)

DEFAULT_IPERF_DURATION = 10


class IPerf3Benchmark(BenchmarkBase):
    benchmark_type = BenchmarkType.NETWORK
    description = "Network (iperf3)"
    _required_commands = ("iperf3",)

    def __init__(self, duration: int = DEFAULT_IPERF_DURATION):
        self.duration = duration

    def validate(self, context: RunContext) -> tuple[bool, str]:
        if not context.config.iperf_host:
            return False, "no --iperf target given"
        if not ensure_optional(context, "iperf3"):
            return False, "iperf3 is not installed"
        return super().validate(context)

    def run(self, context: RunContext) -> BenchmarkResult:
        if not context.config.iperf_host:
            # not requested, so not worth a warning
            logger.verbose("Network benchmark skipped (use --iperf HOST[:PORT])")
            return BenchmarkResult.empty(self.benchmark_type, "skipped", "no --iperf target given")
        return super().run(context)

    def execute(self, context: RunContext) -> BenchmarkResult:
        config = context.config
        command = [
            "iperf3",
            "-c",
            config.iperf_host,
            "-p",
            str(config.iperf_port),
            "-t",
            str(self.duration),
            "-J",
        ]
        logger.info("Running network benchmark against %s (%ds)...", config.iperf_target, self.duration)
        stdout, duration, returncode = context.run(command, timeout=self.duration + 60)
        if returncode != 0 and not stdout.lstrip().startswith("{"):
            raise subprocess.CalledProcessError(returncode, command, stdout)

        metrics = parse_iperf3_output(stdout)
        result = self.build_result(
            dict(metrics),
            {"target": config.iperf_target, "duration_s": self.duration},
            command,
            stdout,
            duration,
        )
        logger.success("Network: %s", self.format_result(result))
        return result

    def format_result(self, result: BenchmarkResult) -> str:
        """Format result for display."""
        status_message = self.format_status_message(result)
        if status_message:
            return status_message

        bandwidth = result.metric("bandwidth_mbps")
        latency = result.metric("latency_ms")
        return f"{bandwidth:,.1f} Mbps, {latency:.2f} ms"
