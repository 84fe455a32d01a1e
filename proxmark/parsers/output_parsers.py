"""Output parsers for the benchmark tools.

Each parser takes the raw tool output and returns a flat metrics dict, or
raises :class:`ParseError` when the fields it needs are absent.
"""
from __future__ import annotations

import json
import re
from typing import Any, Dict

from ..errors import ParseError
from ..utils import parse_float, safe_float


def _search_float(pattern: str, output: str) -> float | None:
    match = re.search(pattern, output)
    if not match:
        return None
    try:
        return parse_float(match.group(1))
    except ValueError:
        return None


def parse_sysbench_cpu_output(output: str) -> Dict[str, float]:
    """Parse sysbench CPU benchmark output."""
    events_per_sec = _search_float(r"events per second:\s+([\d.,]+)", output)
    if events_per_sec is None:
        raise ParseError("Unable to parse sysbench CPU output")

    metrics: Dict[str, float] = {"events_per_sec": events_per_sec}
    optional = {
        "total_time_secs": r"total time:\s+([\d.,]+)s",
        "total_events": r"total number of events:\s+([\d.,]+)",
        "latency_avg_ms": r"avg:\s+([\d.,]+)",
        "latency_p95_ms": r"95th percentile:\s+([\d.,]+)",
    }
    for key, pattern in optional.items():
        value = _search_float(pattern, output)
        metrics[key] = value if value is not None else 0.0
    return metrics


def parse_sysbench_memory_output(output: str) -> Dict[str, float]:
    """Parse sysbench memory benchmark output."""
    metrics: Dict[str, float] = {}
    operations = re.search(r"Total operations:\s+([\d.]+)\s+\(([\d.]+)\s+per second\)", output)
    throughput = re.search(r"([\d.]+)\s+Mi?B transferred\s+\(([\d.]+)\s+Mi?B/sec\)", output)
    total_time = _search_float(r"total time:\s+([\d.]+)s", output)
    if operations:
        metrics["total_ops"] = float(operations.group(1))
        metrics["ops_per_sec"] = float(operations.group(2))
    if throughput:
        metrics["transferred_mib"] = float(throughput.group(1))
        metrics["mb_per_sec"] = float(throughput.group(2))
    if total_time is not None:
        metrics["total_time_secs"] = total_time
    if "mb_per_sec" not in metrics:
        raise ParseError("Unable to parse sysbench memory output")
    return metrics


def parse_sysbench_memory_latency(output: str, threads: int = 1) -> Dict[str, float]:
    """Derive the mean time per memory operation in nanoseconds.

    ``latency_ns = total_time * threads / total_operations`` for a random
    access run.
    """
    metrics = parse_sysbench_memory_output(output)
    total_ops = metrics.get("total_ops", 0.0)
    total_time = metrics.get("total_time_secs", 0.0)
    if total_ops <= 0 or total_time <= 0:
        raise ParseError("sysbench memory output lacks operation count or total time")
    metrics["latency_ns"] = total_time * max(threads, 1) * 1e9 / total_ops
    return metrics


def _load_json_document(output: str, tool: str) -> dict[str, Any]:
    """Decode a JSON object, skipping warning lines printed before or after it."""
    start = output.find("{")
    if start < 0:
        raise ParseError(f"{tool} output contains no JSON document")
    try:
        data, _ = json.JSONDecoder().raw_decode(output, start)
    except json.JSONDecodeError as exc:
        raise ParseError(f"{tool} output is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ParseError(f"{tool} output is not a JSON object")
    return data


def _json_object(node: Any, tool: str, what: str) -> dict[str, Any]:
    """A nested JSON node that must be an object; missing (null) counts as empty."""
    if node is None:
        return {}
    if not isinstance(node, dict):
        raise ParseError(f"{tool} output has malformed {what}")
    return node


def _fio_latency_us(stats: dict[str, Any]) -> float:
    for key in ("lat_ns", "clat_ns"):
        block = stats.get(key)
        if isinstance(block, dict) and block.get("mean"):
            return safe_float(block.get("mean")) / 1000
    return 0.0


def parse_fio_output(output: str) -> Dict[str, float]:
    """Parse ``fio --output-format=json`` for the first (grouped) job."""
    data = _load_json_document(output, "fio")
    jobs = data.get("jobs")
    if not isinstance(jobs, list) or not jobs:
        raise ParseError("fio output missing job data")

    job = jobs[0]
    if not isinstance(job, dict):
        raise ParseError("fio output has malformed job data")
    if job.get("error"):
        raise ParseError(f"fio job reported error {job.get('error')}")
    read_stats = _json_object(job.get("read"), "fio", "read statistics")
    write_stats = _json_object(job.get("write"), "fio", "write statistics")

    return {
        "read_iops": safe_float(read_stats.get("iops")),
        "write_iops": safe_float(write_stats.get("iops")),
        "read_bw_mb": safe_float(read_stats.get("bw_bytes")) / 1024 / 1024,
        "write_bw_mb": safe_float(write_stats.get("bw_bytes")) / 1024 / 1024,
        "read_latency_us": _fio_latency_us(read_stats),
        "write_latency_us": _fio_latency_us(write_stats),
    }


def parse_fio_engines(output: str) -> set[str]:
    """Engine names listed by ``fio --enghelp``."""
    engines: set[str] = set()
    for line in output.splitlines():
        stripped = line.strip()
        if not stripped or stripped.endswith(":"):
            continue
        engines.add(stripped.split()[0])
    return engines


def parse_iperf3_output(output: str) -> Dict[str, float]:
    """Parse ``iperf3 -J`` client output."""
    data = _load_json_document(output, "iperf3")
    if data.get("error"):
        raise ParseError(f"iperf3: {data['error']}")

    end = _json_object(data.get("end"), "iperf3", "end summary")
    received = _json_object(end.get("sum_received") or end.get("sum"), "iperf3", "received summary")
    sent = _json_object(end.get("sum_sent"), "iperf3", "sent summary")
    bits_per_second = safe_float(received.get("bits_per_second")) or safe_float(sent.get("bits_per_second"))
    if bits_per_second <= 0:
        raise ParseError("iperf3 output missing throughput")

    latency_ms = 0.0
    streams = end.get("streams") or []
    if not isinstance(streams, list):
        raise ParseError("iperf3 output has malformed streams")
    if streams:
        stream = _json_object(streams[0], "iperf3", "stream")
        sender = _json_object(stream.get("sender"), "iperf3", "stream sender")
        # mean_rtt is reported in microseconds
        latency_ms = safe_float(sender.get("mean_rtt")) / 1000

    return {
        "bandwidth_mbps": bits_per_second / 1_000_000,
        "retransmits": safe_float(sent.get("retransmits")),
        "latency_ms": latency_ms,
    }
