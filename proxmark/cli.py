"""Command-line interface for proxmark."""

from __future__ import annotations

import argparse
import os
import signal
import sys
import time
import uuid
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path

from . import __version__
from .benchmarks import (
    BenchmarkType,
    IPerf3Benchmark,
    find_energy_counter,
    host_benchmarks,
    run_disk_suite,
    score_results,
)
from .config import resolve_config
from .console import (
    Colors,
    attach_log_file,
    color_supported,
    configure_logging,
    console_level,
    get_logger,
)
from .context import RunContext
from .dependencies import check_dependencies
from .errors import BenchmarkInterrupted, ProxmarkError
from .models import BenchmarkResult, DiskRun, RunReport
from .output import (
    append_log_summary,
    print_banner,
    print_summary,
    write_debug_dump,
    write_json_report,
)
from .storage import (
    choose_primary_path,
    describe_disk,
    discover_candidates,
    read_mounts,
    select_additional_paths,
)
from .system_checks import check_system_environment, collect_environment_dump, log_system_warnings
from .system_info import gather_system_info
from .utils import command_exists, read_text, run_command


logger = get_logger(__name__)

KERNEL_UUID = Path("/proc/sys/kernel/random/uuid")


class ProxmarkArgumentParser(argparse.ArgumentParser):
    """Argument parser that reports usage errors with exit status 1."""

    def error(self, message: str):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


class CommaSeparatedListAction(argparse.Action):
    """Parse comma-separated values and accumulate across repeated flags."""

    def __call__(self, parser, namespace, values, option_string=None) -> None:
        option_string = option_string or self.option_strings[0]
        current = list(getattr(namespace, self.dest, []) or [])
        raw_values = values if isinstance(values, list) else [values]
        tokens = [part.strip() for token in raw_values for part in token.split(",") if part.strip()]
        if not tokens:
            parser.error(f"{option_string} requires at least one value.")
        current.extend(token for token in tokens if token not in current)
        setattr(namespace, self.dest, current)


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid positive integer: {value!r}") from None
    if number <= 0:
        raise argparse.ArgumentTypeError(f"invalid positive integer: {value!r}")
    return number


def build_argument_parser() -> argparse.ArgumentParser:
    """Build and configure the argument parser."""
    parser = ProxmarkArgumentParser(
        prog="proxmark",
        description="Benchmark a Proxmox VE host (CPU, memory, disk, optional network).",
    )
    parser.add_argument("-V", "--version", action="version", version=f"proxmark v{__version__}")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only print the final score line.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show detailed progress.")
    parser.add_argument("--debug", action="store_true", help="Debug logging and a .debug dump with raw tool output.")
    parser.add_argument("--json", action="store_true", help="Print only the JSON result on stdout.")
    parser.add_argument("--quick", action="store_true", help="Shorter run (20/10/10/20 seconds).")
    parser.add_argument("--no-color", action="store_true", help="Disable coloured output.")
    parser.add_argument("--no-upload", action="store_true", help="Never upload results.")
    parser.add_argument("--upload", action="store_true", help="Upload results without asking.")
    parser.add_argument("--no-install", action="store_true", help="Fail instead of installing missing tools.")
    parser.add_argument("--non-interactive", action="store_true", help="Never prompt.")
    parser.add_argument("--disk-path", default="", metavar="PATH", help="Directory to benchmark (default: /tmp).")
    parser.add_argument("--all-disks", action="store_true", help="Benchmark every discovered storage location.")
    parser.add_argument("--output", default="", metavar="FILE", help="Where to write the JSON result.")
    parser.add_argument(
        "--tag",
        dest="tags",
        action=CommaSeparatedListAction,
        default=[],
        metavar="TAG",
        help="Tag stored in the result (repeatable, comma-separated).",
    )
    parser.add_argument("--notes", default="", metavar="TEXT", help="Free-text notes stored in the result.")
    parser.add_argument("--iperf", default="", metavar="HOST[:PORT]", help="Run the network benchmark against an iperf3 server.")
    parser.add_argument("--cpu-time", type=positive_int, metavar="SECONDS", help="CPU multi-thread duration.")
    parser.add_argument("--cpu-single-time", type=positive_int, metavar="SECONDS", help="CPU single-thread duration.")
    parser.add_argument("--mem-time", type=positive_int, metavar="SECONDS", help="Duration of each memory test.")
    parser.add_argument("--disk-runtime", type=positive_int, metavar="SECONDS", help="Duration of each fio job.")
    parser.add_argument("--disk-size", default="", metavar="SIZE", help="fio test file size (e.g. 1G, 512M).")
    return parser


def read_run_id(source: Path = KERNEL_UUID) -> str:
    """Kernel-provided UUID, falling back to uuid4 and finally the epoch."""
    run_id = read_text(source)
    if run_id:
        return run_id
    try:
        return str(uuid.uuid4())
    except (OSError, NotImplementedError):
        return f"unknown-{int(time.time())}"


def install_signal_handlers() -> dict[int, object]:
    def handler(signum, frame):
        raise BenchmarkInterrupted(signum)

    return {signum: signal.signal(signum, handler) for signum in (signal.SIGINT, signal.SIGTERM)}


def restore_signal_handlers(previous: dict[int, object]) -> None:
    for signum, handler in previous.items():
        signal.signal(signum, handler)


def upload_results(context: RunContext) -> None:
    if context.config.upload is False:
        return
    logger.verbose("Upload to %s is not implemented yet", context.config.api_url)


def run_benchmarks(context: RunContext) -> tuple[dict[BenchmarkType, BenchmarkResult], list[DiskRun]]:
    """Inventory, storage selection and every benchmark, in order."""
    config = context.config
    inventory = gather_system_info(context)
    log_system_warnings(check_system_environment(context))

    mounts = read_mounts()
    config.disk_path = choose_primary_path(context, mounts)
    inventory.disk = describe_disk(context, config.disk_path, mounts)
    candidates = discover_candidates(context, config.disk_path, mounts)
    config.extra_disk_paths = select_additional_paths(context, candidates)

    results: dict[BenchmarkType, BenchmarkResult] = {}
    for benchmark in host_benchmarks(find_energy_counter()):
        results[benchmark.benchmark_type] = benchmark.run(context)

    disk_runs = [run_disk_suite(context, inventory.disk)]
    for path in config.extra_disk_paths:
        logger.info("Benchmarking additional storage %s...", path)
        disk_runs.append(run_disk_suite(context, describe_disk(context, path, mounts)))

    results[BenchmarkType.NETWORK] = IPerf3Benchmark().run(context)
    return results, disk_runs


def run(context: RunContext, argv: Sequence[str]) -> int:
    config = context.config
    if not (config.quiet or config.json_only):
        print_banner(__version__, context.colors)

    generated_at = datetime.now(UTC)
    json_path, log_path, debug_path = config.result_paths(generated_at)

    check_dependencies(context)
    collect_environment_dump(context, list(argv))
    log_handler = attach_log_file(log_path)
    try:
        results, disk_runs = run_benchmarks(context)
        logger.verbose("Calculating scores...")
        scores = score_results(results, disk_runs[0])
        report = RunReport(
            version=__version__,
            run_id=read_run_id(),
            generated_at=generated_at,
            config=config,
            system=context.inventory,
            results=results,
            disk_runs=disk_runs,
            scores=scores,
            power=context.power,
        )
        write_json_report(report, json_path)
        print_summary(report, json_path, context)
        log_handler.flush()
        append_log_summary(report, json_path, log_path)
        write_debug_dump(context, debug_path)
        upload_results(context)
    finally:
        log_handler.close()
        get_logger("proxmark").removeHandler(log_handler)

    logger.success("Benchmark complete!")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point for the benchmark suite."""
    argv = list(sys.argv[1:] if argv is None else argv)
    parser = build_argument_parser()
    args = parser.parse_args(argv)

    try:
        config = resolve_config(args, os.environ, stdin_isatty=sys.stdin.isatty())
    except ProxmarkError as exc:
        parser.print_usage(sys.stderr)
        print(f"{parser.prog}: error: {exc}", file=sys.stderr)
        return exc.exit_code

    configure_logging(
        console_level(quiet=config.quiet, json_only=config.json_only, verbose=config.verbose, debug=config.debug),
        Colors(enabled=config.color and color_supported(sys.stderr)),
    )
    context = RunContext(
        config=config,
        colors=Colors(enabled=config.color and not config.json_only and color_supported(sys.stdout)),
        runner=run_command,
        which=command_exists,
    )

    previous_handlers = install_signal_handlers()
    try:
        return run(context, argv)
    except BenchmarkInterrupted as exc:
        logger.error("Interrupted by signal %d, cleaning up", exc.signum)
        return exc.exit_code
    except ProxmarkError as exc:
        logger.error("%s", exc)
        return exc.exit_code
    finally:
        context.cleanup()
        restore_signal_handlers(previous_handlers)
