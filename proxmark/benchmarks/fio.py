from __future__ import annotations

import subprocess
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from ..console import get_logger
from ..errors import ParseError
from ..models import BenchmarkResult, DiskInfo, DiskRun
from ..parsers import parse_fio_engines, parse_fio_output
from ..storage import MIN_FREE_BYTES, free_bytes, is_ram_backed, read_mounts
from ..utils import format_bytes
from .base import BenchmarkBase
from .types import DISK_BENCHMARK_TYPES, BenchmarkType


if TYPE_CHECKING:
    from ..context import RunContext


logger = get_logger(__name__)

TEST_FILE_NAME = "proxmark-fio-testfile"
LOW_SPACE_SIZE = "256M"
RANDOM_IODEPTH = 32
SEQUENTIAL_IODEPTH = 16


@dataclass
class FioTarget:
    """Where and how the fio jobs for one storage path run."""

    filename: Path
    size: str
    ioengine: str = "libaio"
    ram_backed: bool = False

    def iodepth(self, requested: int) -> int:
        # the sync engine only ever has one request in flight
        return 1 if self.ioengine == "sync" else requested


class FioBenchmark(BenchmarkBase):
    _required_commands = ("fio",)

    def __init__(
        self,
        benchmark_type: BenchmarkType,
        description: str,
        rw: str,
        block_size: str,
        iodepth: int,
        target: FioTarget,
    ):
        self.benchmark_type = benchmark_type
        self.description = description
        self.rw = rw
        self.block_size = block_size
        self.requested_iodepth = iodepth
        self.target = target

    def command(self, context: RunContext) -> list[str]:
        return [
            "fio",
            f"--name=proxmark-{self.rw}",
            f"--filename={self.target.filename}",
            f"--rw={self.rw}",
            f"--bs={self.block_size}",
            f"--iodepth={self.target.iodepth(self.requested_iodepth)}",
            f"--size={self.target.size}",
            "--time_based",
            f"--runtime={context.config.disk_runtime}",
            "--group_reporting",
            f"--ioengine={self.target.ioengine}",
            "--output-format=json",
        ]

    def metrics(self, parsed: dict[str, float]) -> dict[str, float | str | int]:
        if self.rw == "randrw":
            latencies = [value for value in (parsed["read_latency_us"], parsed["write_latency_us"]) if value]
            return {
                "iops_read": parsed["read_iops"],
                "iops_write": parsed["write_iops"],
                "iops_total": parsed["read_iops"] + parsed["write_iops"],
                "bw_read_mb": parsed["read_bw_mb"],
                "bw_write_mb": parsed["write_bw_mb"],
                "latency_avg_us": sum(latencies) / len(latencies) if latencies else 0.0,
            }
        side = "read" if self.rw == "read" else "write"
        return {
            "iops": parsed[f"{side}_iops"],
            "bw_mb": parsed[f"{side}_bw_mb"],
            "latency_avg_us": parsed[f"{side}_latency_us"],
        }

    def execute(self, context: RunContext) -> BenchmarkResult:
        command = self.command(context)
        logger.info("Running disk benchmark (%s, %ds)...", self.description, context.config.disk_runtime)
        stdout, duration, returncode = context.run(command, timeout=context.config.disk_runtime + 300)
        try:
            parsed = parse_fio_output(stdout)
        except ParseError:
            if returncode != 0:
                raise subprocess.CalledProcessError(returncode, command, stdout) from None
            raise

        result = self.build_result(
            self.metrics(parsed),
            {
                "rw": self.rw,
                "block_size": self.block_size,
                "iodepth": self.target.iodepth(self.requested_iodepth),
                "ioengine": self.target.ioengine,
                "size": self.target.size,
                "runtime_secs": context.config.disk_runtime,
            },
            command,
            stdout,
            duration,
        )
        logger.success("Disk %s: %s", self.description, self.format_result(result))
        return result

    def format_result(self, result: BenchmarkResult) -> str:
        """Format result for display."""
        status_message = self.format_status_message(result)
        if status_message:
            return status_message
        if self.rw == "randrw":
            return f"{result.metric('iops_total'):,.0f} IOPS"
        return f"{result.metric('bw_mb'):,.1f} MB/s"


def detect_ioengine(context: RunContext, ram_backed: bool) -> str:
    """``libaio`` when fio supports it and the path is not RAM-backed."""
    if ram_backed:
        logger.verbose("Using sync engine for RAM-backed path")
        return "sync"
    engines = parse_fio_engines(context.output(["fio", "--enghelp"]))
    if engines and "libaio" not in engines:
        logger.verbose("libaio not available, falling back to sync engine")
        return "sync"
    return "libaio"


def warn_ram_backed(path: str) -> None:
    rule = "━" * 62
    logger.warning(rule)
    logger.warning("Disk path '%s' is RAM-backed (tmpfs)", path)
    logger.warning("Disk results will measure RAM speed, not actual storage!")
    logger.warning("For accurate results, use: --disk-path /var/lib/vz")
    logger.warning(rule)


def prepare_target(
    context: RunContext,
    path: str,
    *,
    ram_backed: bool,
    free_space: Callable[[str], int] = free_bytes,
) -> FioTarget:
    size = context.config.disk_size
    available = free_space(path)
    if available < MIN_FREE_BYTES:
        logger.warning("Low disk space on %s (%s free). Using smaller test file.", path, format_bytes(available))
        size = LOW_SPACE_SIZE
    return FioTarget(
        filename=Path(path) / TEST_FILE_NAME,
        size=size,
        ioengine=detect_ioengine(context, ram_backed),
        ram_backed=ram_backed,
    )


def disk_benchmarks(target: FioTarget) -> list[FioBenchmark]:
    return [
        FioBenchmark(BenchmarkType.DISK_RANDRW, "random r/w", "randrw", "4k", RANDOM_IODEPTH, target),
        FioBenchmark(BenchmarkType.DISK_SEQ_READ, "sequential read", "read", "1M", SEQUENTIAL_IODEPTH, target),
        FioBenchmark(BenchmarkType.DISK_SEQ_WRITE, "sequential write", "write", "1M", SEQUENTIAL_IODEPTH, target),
    ]


def run_disk_suite(
    context: RunContext,
    disk: DiskInfo,
    *,
    ram_backed: bool | None = None,
    free_space: Callable[[str], int] = free_bytes,
) -> DiskRun:
    """Run the three fio jobs against ``disk.path``; the test file never outlives the call."""
    path = disk.path
    if ram_backed is None:
        ram_backed = is_ram_backed(path, read_mounts())
    if ram_backed:
        warn_ram_backed(path)

    results: dict[BenchmarkType, BenchmarkResult] = {}
    try:
        Path(path).mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.warning("Cannot use disk path %s: %s", path, exc)
        for benchmark_type in DISK_BENCHMARK_TYPES:
            results[benchmark_type] = BenchmarkResult.empty(benchmark_type, "error", str(exc))
        return DiskRun(disk=disk, results=results, ram_backed=ram_backed)

    target = prepare_target(context, path, ram_backed=ram_backed, free_space=free_space)
    logger.debug("fio engine=%s, file=%s, size=%s", target.ioengine, target.filename, target.size)
    context.register_cleanup(target.filename)
    try:
        for benchmark in disk_benchmarks(target):
            results[benchmark.benchmark_type] = benchmark.run(context)
    finally:
        try:
            target.filename.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not remove %s: %s", target.filename, exc)
        context.unregister_cleanup(target.filename)
    return DiskRun(disk=disk, results=results, ram_backed=ram_backed, ioengine=target.ioengine)
