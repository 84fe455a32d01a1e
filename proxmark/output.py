"""Output generation: JSON report, terminal summary, log and debug files."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

from tabulate import tabulate

from .benchmarks import DISK_BENCHMARK_TYPES, SCORE_RULES, BenchmarkBase, BenchmarkType
from .console import Colors, get_logger
from .models import BenchmarkResult, DiskRun, RunReport
from .system_info import short_memory_label


if TYPE_CHECKING:
    from .context import RunContext


logger = get_logger(__name__)

RESULT_URL_NOTICE = "(coming soon - proxmark.io)"

BANNER = r"""
  ____                                      _
 |  _ \ _ __ _____  ___ __ ___   __ _ _ __| | __
 | |_) | '__/ _ \ \/ / '_ ` _ \ / _` | '__| |/ /
 |  __/| | | (_) >  <| | | | | | (_| | |  |   <
 |_|   |_|  \___/_/\_\_| |_| |_|\__,_|_|  |_|\_\
"""

COMPONENTS = {
    BenchmarkType.CPU_MULTI: "CPU",
    BenchmarkType.CPU_SINGLE: "CPU",
    BenchmarkType.MEMORY_WRITE: "Memory",
    BenchmarkType.MEMORY_READ: "Memory",
    BenchmarkType.MEMORY_LATENCY: "Memory",
    BenchmarkType.DISK_RANDRW: "Disk",
    BenchmarkType.DISK_SEQ_READ: "Disk",
    BenchmarkType.DISK_SEQ_WRITE: "Disk",
    BenchmarkType.NETWORK: "Network",
}


def print_banner(version: str, colors: Colors, stream: TextIO | None = None) -> None:
    stream = stream or sys.stdout
    print(colors.wrap(BANNER.rstrip("\n"), colors.CYAN), file=stream)
    print(colors.wrap(f"  Proxmox VE Benchmark Suite v{version}", colors.BOLD), file=stream)
    print(file=stream)


def write_json_report(report: RunReport, output_path: Path) -> None:
    """Write benchmark report to JSON file."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(report.to_dict(), indent=2) + "\n", encoding="utf-8")


def describe_result(result: BenchmarkResult) -> str:
    """Human-readable value column for one result."""
    status_message = BenchmarkBase.format_status_message(result)
    if status_message:
        return status_message
    rule = SCORE_RULES[result.benchmark_type]
    value = rule.extract(result)
    return rule.format_value(value) if value is not None else ""


def _section(title: str, rows: list[tuple[str, str]], colors: Colors) -> str:
    body = tabulate([(colors.wrap(f"{label}:", colors.BOLD), value) for label, value in rows], tablefmt="plain")
    indented = "\n".join(f"  {line}" for line in body.splitlines())
    return f"{colors.wrap(title, colors.BOLD, colors.YELLOW)}\n{indented}"


def _system_sections(report: RunReport, colors: Colors) -> list[str]:
    system = report.system
    cpu = system.cpu
    memory = system.memory
    disk = report.disk_runs[0].disk if report.disk_runs else system.disk

    host_rows = [("Hostname", system.hostname), ("OS", system.os), ("Kernel", system.kernel)]
    if system.proxmox.detected:
        host_rows.append(("Proxmox", system.proxmox.version))
    if system.virtualization != "bare-metal":
        host_rows.append(("Virtualized", system.virtualization))

    cpu_rows = [
        ("Model", cpu.model),
        ("Cores", f"{cpu.cores} cores / {cpu.threads} threads"),
        ("Sockets", str(cpu.sockets)),
    ]
    if cpu.max_mhz:
        cpu_rows.append(("Max Freq", f"{cpu.max_mhz} MHz"))
    if report.power.samples:
        cpu_rows.append(("Load power", f"{report.power.load_watts:.1f} W"))

    memory_rows = [("Total", short_memory_label(memory))]
    if memory.channels:
        memory_rows.append(("Channels", memory.channels))
    if memory.slots_total:
        memory_rows.append(("Slots", f"{memory.slots_used}/{memory.slots_total}"))

    storage_rows = [("Test Path", disk.path), ("Device", disk.physical_device or disk.root_device or "Unknown")]
    if disk.model:
        storage_rows.append(("Model", disk.model))
    storage_rows.append(("Type", disk.type.upper()))
    if disk.size_gb:
        storage_rows.append(("Size", f"{disk.size_gb} GB"))

    return [
        _section("SYSTEM INFORMATION", host_rows, colors),
        _section("CPU", cpu_rows, colors),
        _section("MEMORY", memory_rows, colors),
        _section("STORAGE", storage_rows, colors),
    ]


def _result_rows(report: RunReport, colors: Colors) -> list[list[str]]:
    rows: list[list[str]] = []
    for benchmark_type in BenchmarkType:
        if benchmark_type.value.startswith("disk-"):
            continue
        result = report.result(benchmark_type)
        if benchmark_type is BenchmarkType.NETWORK and not report.config.iperf_host:
            continue
        rule = SCORE_RULES[benchmark_type]
        score = getattr(report.scores, rule.score_field)
        rows.append([COMPONENTS[benchmark_type], rule.label, describe_result(result), colors.wrap(str(score), colors.GREEN)])
        if benchmark_type is BenchmarkType.MEMORY_LATENCY:
            rows.extend(_disk_rows(report.disk_runs[0] if report.disk_runs else None, report, colors))
    return rows


def _disk_rows(run: DiskRun | None, report: RunReport, colors: Colors) -> list[list[str]]:
    rows: list[list[str]] = []
    for benchmark_type in DISK_BENCHMARK_TYPES:
        result = run.result(benchmark_type) if run else BenchmarkResult.empty(benchmark_type, "skipped")
        rule = SCORE_RULES[benchmark_type]
        score = getattr(report.scores, rule.score_field)
        rows.append(["Disk", rule.label, describe_result(result), colors.wrap(str(score), colors.GREEN)])
    return rows


def _additional_disk_rows(report: RunReport) -> list[list[str]]:
    rows: list[list[str]] = []
    for run in report.disk_runs[1:]:
        for benchmark_type in DISK_BENCHMARK_TYPES:
            rows.append([run.disk.path, SCORE_RULES[benchmark_type].label, describe_result(run.result(benchmark_type))])
    return rows


def build_summary(report: RunReport, json_path: Path, colors: Colors) -> str:
    """Full terminal summary of a finished run."""
    title = colors.wrap("BENCHMARK RESULTS", colors.BOLD, colors.CYAN)
    parts = [title, ""]
    parts.append("\n\n".join(_system_sections(report, colors)))
    parts.append("")
    parts.append(
        tabulate(
            _result_rows(report, colors),
            headers=["Component", "Metric", "Value", "Score"],
            tablefmt="rounded_outline",
            colalign=("left", "left", "right", "right"),
        )
    )
    extra = _additional_disk_rows(report)
    if extra:
        parts.append("")
        parts.append(colors.wrap("ADDITIONAL STORAGE", colors.BOLD, colors.YELLOW))
        parts.append(tabulate(extra, headers=["Path", "Metric", "Value"], tablefmt="rounded_outline"))

    scores = report.scores
    subtotal = f"CPU {scores.cpu_total} | Memory {scores.memory_total} | Disk {scores.disk_total}"
    parts.append("")
    parts.append(f"{colors.wrap('TOTAL SCORE:', colors.BOLD)} {colors.wrap(str(scores.total), colors.BOLD, colors.GREEN)}")
    parts.append(colors.wrap(subtotal, colors.DIM))
    parts.append("")
    parts.append(f"{colors.wrap('JSON saved:', colors.DIM)} {json_path}")
    parts.append(f"{colors.wrap('Result URL:', colors.DIM)} {colors.wrap(RESULT_URL_NOTICE, colors.YELLOW)}")
    return "\n".join(parts)


def quiet_summary(report: RunReport, json_path: Path) -> str:
    return f"Score: {report.scores.total} | JSON: {json_path}"


def print_summary(
    report: RunReport,
    json_path: Path,
    context: RunContext,
    stream: TextIO | None = None,
) -> None:
    """Write the run's final output to stdout according to the output mode."""
    stream = stream or sys.stdout
    config = context.config
    if config.json_only:
        stream.write(json.dumps(report.to_dict(), indent=2) + "\n")
    elif config.quiet:
        print(quiet_summary(report, json_path), file=stream)
    else:
        print(file=stream)
        print(build_summary(report, json_path, context.colors), file=stream)
        print(file=stream)
    stream.flush()


def append_log_summary(report: RunReport, json_path: Path, log_path: Path) -> None:
    """Append an uncoloured copy of the summary to the plaintext log."""
    log_path.parent.mkdir(parents=True, exist_ok=True)
    with log_path.open("a", encoding="utf-8") as handle:
        handle.write("\n" + build_summary(report, json_path, Colors(enabled=False)) + "\n")


def write_debug_dump(context: RunContext, debug_path: Path) -> None:
    """Raw tool outputs and system files captured during a ``--debug`` run."""
    if not context.config.debug:
        return
    debug_path.parent.mkdir(parents=True, exist_ok=True)
    with debug_path.open("w", encoding="utf-8") as handle:
        for title, body in context.debug_sections:
            handle.write(f"===== {title} =====\n")
            handle.write(body.rstrip("\n") + "\n\n")
    logger.verbose("Debug output saved to %s", debug_path)
