# ruff: noqa: S101
"""Benchmark runners against faked tools."""

from __future__ import annotations

import logging

import pytest

from proxmark.benchmarks import (
    BenchmarkType,
    IPerf3Benchmark,
    SysbenchCPUBenchmark,
    SysbenchCPUSingleBenchmark,
    SysbenchMemoryBenchmark,
    SysbenchMemoryLatencyBenchmark,
    host_benchmarks,
    run_disk_suite,
)
from proxmark.benchmarks.fio import LOW_SPACE_SIZE, TEST_FILE_NAME, FioTarget, detect_ioengine
from proxmark.config import RunConfig
from proxmark.models import DiskInfo

from .conftest import IPERF3_OUTPUT, SYSBENCH_CPU_OUTPUT


PLENTY = 100 * 1024**3


class TestSysbenchCPU:
    """sysbench cpu"""

    def test_multi_thread(self, make_context, benchmark_runner):
        context = make_context(threads=16)
        result = SysbenchCPUBenchmark().run(context)
        assert result.status == "ok"
        assert result.metric("events_per_sec") == 10000.5
        assert result.parameters["threads"] == 16
        assert result.parameters["runtime_secs"] == 60
        assert result.version == "sysbench 1.0.20"
        assert benchmark_runner.called("sysbench", "cpu", "--threads=16", "--time=60", "--cpu-max-prime=20000")

    def test_single_thread(self, make_context, benchmark_runner):
        result = SysbenchCPUSingleBenchmark().run(make_context(threads=16))
        assert result.parameters["threads"] == 1
        assert benchmark_runner.called("sysbench", "cpu", "--threads=1", "--time=30")

    def test_unparseable_output(self, make_context, fake_runner, caplog):
        """garbage output yields an error result with no metrics"""
        fake_runner.add(["sysbench", "cpu"], "Segmentation fault")
        with caplog.at_level(logging.WARNING):
            result = SysbenchCPUBenchmark().run(make_context())
        assert result.status == "error"
        assert result.metric("events_per_sec") == 0.0
        assert "metrics set to 0" in caplog.text

    def test_nonzero_exit(self, make_context, fake_runner):
        fake_runner.add(["sysbench", "cpu"], SYSBENCH_CPU_OUTPUT, returncode=2)
        result = SysbenchCPUBenchmark().run(make_context())
        assert result.status == "error"
        assert result.message == "Command failed with exit code 2"

    def test_missing_tool(self, make_context, fake_runner):
        """without sysbench on PATH the benchmark is skipped and never run"""
        result = SysbenchCPUBenchmark().run(make_context(tools=("fio",)))
        assert result.status == "skipped"
        assert "sysbench" in result.message
        assert not fake_runner.called("sysbench", "cpu")


class TestSysbenchMemory:
    @pytest.mark.parametrize("operation", ["write", "read"])
    def test_throughput(self, make_context, benchmark_runner, operation):
        benchmark = SysbenchMemoryBenchmark(operation)
        result = benchmark.run(make_context(threads=4))
        assert benchmark.benchmark_type == BenchmarkType(f"memory-{operation}")
        assert result.status == "ok"
        assert result.metric("mb_per_sec") == 4999.5
        assert benchmark_runner.called("sysbench", "memory", f"--memory-oper={operation}", "--threads=4")

    def test_latency(self, make_context, benchmark_runner):
        """random 4K reads on one thread: 10 s over 1e8 operations is 100 ns"""
        result = SysbenchMemoryLatencyBenchmark().run(make_context())
        assert result.status == "ok"
        assert result.metric("latency_ns") == pytest.approx(100.0)
        assert benchmark_runner.called("--memory-block-size=4K", "--memory-access-mode=rnd", "--threads=1")

    def test_host_benchmark_order(self):
        types = [benchmark.benchmark_type for benchmark in host_benchmarks()]
        assert types == [
            BenchmarkType.CPU_MULTI,
            BenchmarkType.CPU_SINGLE,
            BenchmarkType.MEMORY_WRITE,
            BenchmarkType.MEMORY_READ,
            BenchmarkType.MEMORY_LATENCY,
        ]


class TestDiskSuite:
    """fio disk suite"""

    def test_results(self, tmp_path, make_context, benchmark_runner):
        disk = DiskInfo(path=str(tmp_path))
        context = make_context()
        disk_run = run_disk_suite(context, disk, ram_backed=False, free_space=lambda path: PLENTY)

        assert disk_run.ioengine == "libaio"
        randrw = disk_run.result(BenchmarkType.DISK_RANDRW)
        assert randrw.metric("iops_total") == 50000
        assert randrw.metric("latency_avg_us") == pytest.approx(640)
        assert disk_run.result(BenchmarkType.DISK_SEQ_READ).metric("bw_mb") == pytest.approx(1000, rel=1e-3)
        assert disk_run.result(BenchmarkType.DISK_SEQ_WRITE).metric("bw_mb") == pytest.approx(1000, rel=1e-3)
        assert benchmark_runner.called("--rw=randrw", "--bs=4k", "--iodepth=32", "--ioengine=libaio")
        assert benchmark_runner.called("--rw=read", "--bs=1M", "--iodepth=16")
        assert context.cleanup_paths == []

    def test_ram_backed(self, tmp_path, make_context, benchmark_runner, caplog):
        """a tmpfs path warns and uses the sync engine at depth 1"""
        with caplog.at_level(logging.WARNING):
            disk_run = run_disk_suite(make_context(), DiskInfo(path=str(tmp_path)), ram_backed=True, free_space=lambda path: PLENTY)
        assert disk_run.ram_backed is True
        assert disk_run.ioengine == "sync"
        assert benchmark_runner.called("--rw=randrw", "--iodepth=1", "--ioengine=sync")
        assert not benchmark_runner.called("--iodepth=32")
        assert "RAM-backed" in caplog.text

    def test_test_file_removed(self, tmp_path, make_context, fake_runner):
        """the fio file is deleted even when fio fails"""
        test_file = tmp_path / TEST_FILE_NAME
        test_file.write_bytes(b"\0" * 1024)
        fake_runner.add(["fio", "--output-format=json"], "fio: engine libaio not loadable", returncode=1)
        context = make_context()
        disk_run = run_disk_suite(context, DiskInfo(path=str(tmp_path)), ram_backed=False, free_space=lambda path: PLENTY)
        assert disk_run.result(BenchmarkType.DISK_RANDRW).status == "error"
        assert not test_file.exists()
        assert context.cleanup_paths == []

    def test_low_space(self, tmp_path, make_context, benchmark_runner):
        run_disk_suite(make_context(), DiskInfo(path=str(tmp_path)), ram_backed=False, free_space=lambda path: 1024**3)
        assert benchmark_runner.called(f"--size={LOW_SPACE_SIZE}")

    def test_configured_size(self, tmp_path, make_context, benchmark_runner):
        context = make_context(RunConfig(disk_size="4G", disk_runtime=15, interactive=False))
        run_disk_suite(context, DiskInfo(path=str(tmp_path)), ram_backed=False, free_space=lambda path: PLENTY)
        assert benchmark_runner.called("--size=4G", "--runtime=15")

    def test_unusable_path(self, tmp_path, make_context, benchmark_runner):
        """a path that cannot be created gives error results without running fio"""
        blocker = tmp_path / "file"
        blocker.write_text("")
        disk_run = run_disk_suite(make_context(), DiskInfo(path=str(blocker / "sub")), ram_backed=False)
        assert disk_run.result(BenchmarkType.DISK_SEQ_WRITE).status == "error"
        assert not benchmark_runner.called("--rw=randrw")


class TestIoEngine:
    def test_libaio_available(self, make_context, benchmark_runner):
        assert detect_ioengine(make_context(), ram_backed=False) == "libaio"

    def test_libaio_missing(self, make_context, fake_runner):
        fake_runner.add(["fio", "--enghelp"], "Available IO engines:\n\tsync\n\tpsync\n")
        assert detect_ioengine(make_context(), ram_backed=False) == "sync"

    def test_unknown_engines(self, make_context, fake_runner):
        """no engine list keeps libaio"""
        assert detect_ioengine(make_context(), ram_backed=False) == "libaio"

    def test_sync_depth(self, tmp_path):
        assert FioTarget(tmp_path, "1G", ioengine="sync").iodepth(32) == 1
        assert FioTarget(tmp_path, "1G").iodepth(32) == 32


class TestIPerf3:
    """iperf3 network benchmark"""

    def test_skipped_without_target(self, make_context, fake_runner):
        result = IPerf3Benchmark().run(make_context(tools=("sysbench", "fio", "iperf3")))
        assert result.status == "skipped"
        assert fake_runner.calls == []

    def test_target(self, make_context, fake_runner):
        fake_runner.add(["iperf3", "-c"], IPERF3_OUTPUT)
        context = make_context(RunConfig(iperf_host="10.0.0.2", iperf_port=5202, interactive=False), tools=("iperf3",))
        result = IPerf3Benchmark(duration=5).run(context)
        assert result.status == "ok"
        assert result.metric("bandwidth_mbps") == pytest.approx(9400)
        assert result.metric("latency_ms") == pytest.approx(0.45)
        assert result.parameters["target"] == "10.0.0.2:5202"
        assert fake_runner.called("iperf3", "-c", "10.0.0.2", "-p", "5202", "-t", "5", "-J")

    def test_connection_refused(self, make_context, fake_runner):
        """iperf3 reports errors as JSON with a non-zero exit"""
        fake_runner.add(["iperf3", "-c"], '{"start": {}, "end": {}, "error": "unable to connect to server"}', returncode=1)
        context = make_context(RunConfig(iperf_host="10.0.0.9", interactive=False), tools=("iperf3",))
        result = IPerf3Benchmark().run(context)
        assert result.status == "error"
        assert "unable to connect" in result.message

    def test_not_installable(self, make_context, fake_runner):
        context = make_context(RunConfig(iperf_host="10.0.0.2", auto_install=False, interactive=False))
        result = IPerf3Benchmark().run(context)
        assert result.status == "skipped"
        assert not fake_runner.called("iperf3", "-c")
