"""Shared fixtures: canned tool output and a fake command runner."""

from __future__ import annotations

import json
import logging
import unittest.mock

import pytest

from proxmark.config import RunConfig
from proxmark.console import LOGGER_NAME
from proxmark.context import RunContext
from proxmark.models import CpuInfo, SystemInventory


SYSBENCH_CPU_OUTPUT = """\
sysbench 1.0.20 (using system LuaJIT 2.1.0-beta3)

Running the test with following options:
Number of threads: 8
Initializing random number generator from current time

Prime numbers limit: 20000

Initializing worker threads...

Threads started!

CPU speed:
    events per second: 10000.50

General statistics:
    total time:                          60.0005s
    total number of events:              600030

Latency (ms):
         min:                                    0.78
         avg:                                    0.80
         max:                                    5.12
         95th percentile:                        0.83
         sum:                               479980.12

Threads fairness:
    events (avg/stddev):           75003.7500/120.33
    execution time (avg/stddev):   59.9975/0.00
"""

SYSBENCH_MEMORY_OUTPUT = """\
sysbench 1.0.20 (using system LuaJIT 2.1.0-beta3)

Running memory speed test with the following options:
  block size: 1KiB
  total size: 1024000MiB
  operation: write
  scope: global

Total operations: 51194870 (5119487.25 per second)

49995.00 MiB transferred (4999.50 MiB/sec)


General statistics:
    total time:                          10.0001s
    total number of events:              51194870
"""

SYSBENCH_LATENCY_OUTPUT = """\
Running memory speed test with the following options:
  block size: 4KiB
  operation: read
  scope: global

Total operations: 100000000 (10000000.00 per second)

390625.00 MiB transferred (39062.50 MiB/sec)


General statistics:
    total time:                          10.0000s
    total number of events:              100000000
"""


def fio_output(read_iops=0.0, write_iops=0.0, read_bw_mb=0.0, write_bw_mb=0.0, lat_us=0.0, name="proxmark"):
    """Minimal ``fio --output-format=json`` document."""

    def side(iops, bw_mb):
        return {
            "iops": iops,
            "bw_bytes": int(bw_mb * 1024 * 1024),
            "lat_ns": {"mean": lat_us * 1000 if iops else 0.0},
        }

    return json.dumps(
        {
            "fio version": "fio-3.33",
            "jobs": [
                {
                    "jobname": name,
                    "error": 0,
                    "read": side(read_iops, read_bw_mb),
                    "write": side(write_iops, write_bw_mb),
                }
            ],
        }
    )


IPERF3_OUTPUT = json.dumps(
    {
        "start": {"connected": [{"remote_host": "10.0.0.2", "remote_port": 5201}]},
        "end": {
            "streams": [{"sender": {"bytes": 11760000000, "mean_rtt": 450, "retransmits": 12}}],
            "sum_sent": {"bits_per_second": 9410000000.0, "retransmits": 12},
            "sum_received": {"bits_per_second": 9400000000.0},
        },
    }
)

FIO_ENGINES_OUTPUT = """\
Available IO engines:
\tcpuio
\tmmap
\tsync
\tpsync
\tlibaio
\tnull
"""


class FakeRunner:
    """Stands in for ``run_command``.

    Responses are keyed by tokens that must all appear in the command; the
    entry with the most matching tokens wins. Unknown commands look missing.
    """

    def __init__(self):
        self.responses: list[tuple[tuple[str, ...], str, int]] = []
        self.calls: list[list[str]] = []

    def add(self, tokens, stdout: str, returncode: int = 0) -> FakeRunner:
        self.responses.append((tuple(tokens), stdout, returncode))
        return self

    def __call__(self, command, **kwargs):
        self.calls.append(list(command))
        best = None
        for tokens, stdout, returncode in self.responses:
            if all(token in command for token in tokens):
                if best is None or len(tokens) > len(best[0]):
                    best = (tokens, stdout, returncode)
        if best is None:
            return "", 0.01, 127
        return best[1], 0.01, best[2]

    def called(self, *tokens) -> bool:
        return any(all(token in call for token in tokens) for call in self.calls)


@pytest.fixture(scope="session", autouse=True)
def env_mock():
    """Keep the host's terminal settings out of the tests."""
    with unittest.mock.patch.dict("os.environ", {"NO_COLOR": "1"}) as fixture:
        yield fixture


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def benchmark_runner(fake_runner):
    """Runner answering every benchmark command with healthy output."""
    fake_runner.add(["sysbench", "--version"], "sysbench 1.0.20")
    fake_runner.add(["fio", "--version"], "fio-3.33")
    fake_runner.add(["fio", "--enghelp"], FIO_ENGINES_OUTPUT)
    fake_runner.add(["sysbench", "cpu"], SYSBENCH_CPU_OUTPUT)
    fake_runner.add(["sysbench", "memory"], SYSBENCH_MEMORY_OUTPUT)
    fake_runner.add(["sysbench", "memory", "--memory-access-mode=rnd"], SYSBENCH_LATENCY_OUTPUT)
    fake_runner.add(["fio", "--rw=randrw"], fio_output(25000, 25000, 97.7, 97.7, 640))
    fake_runner.add(["fio", "--rw=read"], fio_output(read_iops=1000, read_bw_mb=1000))
    fake_runner.add(["fio", "--rw=write"], fio_output(write_iops=1000, write_bw_mb=1000))
    fake_runner.add(["iperf3", "-c"], IPERF3_OUTPUT)
    return fake_runner


@pytest.fixture
def make_context(fake_runner):
    """Factory for a RunContext wired to the fake runner."""

    def factory(config: RunConfig | None = None, tools=("sysbench", "fio"), threads: int = 8, runner=None):
        available = set(tools)
        context = RunContext(
            config=config or RunConfig(interactive=False),
            runner=runner or fake_runner,
            which=lambda command: command in available,
        )
        context.inventory = SystemInventory(hostname="pve1", cpu=CpuInfo(model="Test CPU", cores=threads, threads=threads))
        return context

    return factory


@pytest.fixture(autouse=True)
def reset_logger():
    """Undo handlers a CLI run installed so caplog keeps seeing records."""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
