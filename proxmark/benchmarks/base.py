"""Base definitions for benchmarks."""

from __future__ import annotations

import shlex
import subprocess
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import TYPE_CHECKING, ClassVar

from ..console import get_logger
from ..errors import ParseError
from ..models import BenchmarkMetrics, BenchmarkParameters, BenchmarkResult
from ..utils import check_requirements
from .types import BenchmarkType


if TYPE_CHECKING:
    from ..context import RunContext


logger = get_logger(__name__)

DEFAULT_SYSBENCH_CPU_MAX_PRIME = 20000
DEFAULT_SYSBENCH_MEMORY_BLOCK_SIZE = "1K"
DEFAULT_SYSBENCH_MEMORY_TOTAL_SIZE = "1000G"
DEFAULT_SYSBENCH_LATENCY_BLOCK_SIZE = "4K"


class BenchmarkBase(ABC):
    """Base class for all benchmarks."""

    benchmark_type: BenchmarkType
    description: str
    version_command: ClassVar[tuple[str, ...] | None] = None
    _required_commands: tuple[str, ...] = ()

    @property
    def name(self) -> str:
        return self.benchmark_type.value

    @staticmethod
    def format_command(command: Sequence[str] | str) -> str:
        """Render the executed command safely for logging and reports."""
        if isinstance(command, str):
            return command
        return shlex.join([str(part) for part in command])

    @staticmethod
    def format_status_message(result: BenchmarkResult) -> str | None:
        """Common status prefix for skipped/error cases."""
        if result.status == "ok":
            return None
        prefix = "Skipped" if result.status == "skipped" else "Error"
        message = result.message.strip()
        return f"{prefix}: {message}" if message else prefix

    def get_version(self, context: RunContext) -> str:
        """Best-effort version string for the benchmark tool."""
        candidates: list[tuple[str, ...]] = []
        if self.version_command:
            candidates.append(self.version_command)
        if self._required_commands:
            candidates.append((self._required_commands[0], "--version"))

        for candidate in dict.fromkeys(candidates):
            output = context.output(candidate)
            if output:
                # first line, whitespace collapsed
                return " ".join(output.splitlines()[0].split())
        return ""

    def validate(self, context: RunContext) -> tuple[bool, str]:
        """Check if benchmark can run."""
        return check_requirements(self._required_commands, context.which)

    @abstractmethod
    def execute(self, context: RunContext) -> BenchmarkResult:
        """Execute the benchmark."""

    def format_result(self, result: BenchmarkResult) -> str:
        """Format result for display."""
        return self.format_status_message(result) or ""

    def build_result(
        self,
        metrics: dict[str, float | str | int],
        parameters: dict[str, object],
        command: Sequence[str],
        stdout: str,
        duration: float,
    ) -> BenchmarkResult:
        return BenchmarkResult(
            benchmark_type=self.benchmark_type,
            status="ok",
            metrics=BenchmarkMetrics(metrics),
            parameters=BenchmarkParameters(parameters),
            duration_seconds=duration,
            command=self.format_command(command),
            raw_output=stdout,
        )

    def run(self, context: RunContext) -> BenchmarkResult:
        """Execute with validation; failures degrade to an empty result.

        Only interruption propagates. Anything else is logged as a warning
        and reported through the result's status and message.
        """
        ok, reason = self.validate(context)
        if not ok:
            logger.warning("%s skipped: %s", self.description, reason)
            return BenchmarkResult.empty(self.benchmark_type, "skipped", reason)

        version = self.get_version(context)
        try:
            result = self.execute(context)
        except subprocess.CalledProcessError as exc:
            command = self.format_command(exc.cmd) if not isinstance(exc.cmd, str) else exc.cmd
            message = f"Command failed with exit code {exc.returncode}"
            logger.warning("%s: %s", self.description, message)
            logger.verbose("Output of %s:\n%s", command, exc.output or "")
            result = BenchmarkResult.empty(self.benchmark_type, "error", message)
            result.command = command
            result.raw_output = exc.output or ""
        except (ParseError, ValueError, OSError) as exc:
            logger.warning("%s: %s (metrics set to 0)", self.description, exc)
            result = BenchmarkResult.empty(self.benchmark_type, "error", str(exc))
        result.version = result.version or version
        context.add_debug(f"{self.name} output", result.raw_output)
        return result
