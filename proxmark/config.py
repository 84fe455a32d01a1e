"""Run configuration resolved from command-line flags and environment."""

from __future__ import annotations

import argparse
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from .console import get_logger
from .errors import UsageError
from .utils import parse_size


logger = get_logger(__name__)

ENV_PREFIX = "PROXMARK_"

DEFAULT_CPU_TIME = 60
DEFAULT_CPU_SINGLE_TIME = 30
DEFAULT_MEM_TIME = 30
DEFAULT_DISK_RUNTIME = 60
DEFAULT_DISK_SIZE = "1G"
DEFAULT_DISK_PATH = "/tmp"
DEFAULT_RESULT_DIR = "/tmp"
DEFAULT_API_URL = "https://proxmark.io/api/v1"
DEFAULT_IPERF_PORT = 5201

QUICK_CPU_TIME = 20
QUICK_CPU_SINGLE_TIME = 10
QUICK_MEM_TIME = 10
QUICK_DISK_RUNTIME = 20


@dataclass
class RunConfig:
    cpu_time: int = DEFAULT_CPU_TIME
    cpu_single_time: int = DEFAULT_CPU_SINGLE_TIME
    mem_time: int = DEFAULT_MEM_TIME
    disk_runtime: int = DEFAULT_DISK_RUNTIME
    disk_size: str = DEFAULT_DISK_SIZE
    disk_path: str = DEFAULT_DISK_PATH
    disk_path_explicit: bool = False
    extra_disk_paths: list[str] = field(default_factory=list)
    all_disks: bool = False
    quick_mode: bool = False
    quiet: bool = False
    verbose: bool = False
    debug: bool = False
    json_only: bool = False
    color: bool = True
    upload: bool | None = None  # None = ask, True = force, False = never
    auto_install: bool = True
    interactive: bool = True
    output_path: str = ""
    result_dir: str = DEFAULT_RESULT_DIR
    tags: list[str] = field(default_factory=list)
    notes: str = ""
    iperf_host: str = ""
    iperf_port: int = DEFAULT_IPERF_PORT
    api_url: str = DEFAULT_API_URL

    @property
    def iperf_target(self) -> str:
        if not self.iperf_host:
            return ""
        return f"{self.iperf_host}:{self.iperf_port}"

    def finalize(self) -> RunConfig:
        """Apply settings that override everything else.

        Quick mode replaces the four durations regardless of how they were
        set; calling this more than once has no further effect.
        """
        if self.quick_mode:
            self.cpu_time = QUICK_CPU_TIME
            self.cpu_single_time = QUICK_CPU_SINGLE_TIME
            self.mem_time = QUICK_MEM_TIME
            self.disk_runtime = QUICK_DISK_RUNTIME
        if self.debug:
            self.verbose = True
        return self

    def result_paths(self, generated_at: datetime) -> tuple[Path, Path, Path]:
        """JSON, log and debug paths for this run."""
        if self.output_path:
            json_path = Path(self.output_path)
        else:
            timestamp = generated_at.strftime("%Y%m%dT%H%M%SZ")
            json_path = Path(self.result_dir) / f"proxmark-result-{timestamp}.json"
        stem = json_path.with_suffix("") if json_path.suffix == ".json" else json_path
        return json_path, Path(f"{stem}.log"), Path(f"{stem}.debug")

    def to_dict(self) -> dict[str, object]:
        return {
            "cpu_time": self.cpu_time,
            "cpu_single_time": self.cpu_single_time,
            "mem_time": self.mem_time,
            "disk_runtime": self.disk_runtime,
            "disk_size": self.disk_size,
            "disk_path": self.disk_path,
            "extra_disk_paths": list(self.extra_disk_paths),
            "quick_mode": self.quick_mode,
            "iperf_target": self.iperf_target,
        }


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(ENV_PREFIX + name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring %s%s=%r (not an integer)", ENV_PREFIX, name, raw)
        return default
    if value <= 0:
        logger.warning("Ignoring %s%s=%r (must be positive)", ENV_PREFIX, name, raw)
        return default
    return value


def config_from_env(environ: Mapping[str, str] | None = None) -> RunConfig:
    """Base configuration from ``PROXMARK_*`` environment variables."""
    environ = os.environ if environ is None else environ
    disk_size = environ.get(ENV_PREFIX + "DISK_SIZE") or DEFAULT_DISK_SIZE
    try:
        parse_size(disk_size)
    except ValueError:
        logger.warning("Ignoring %sDISK_SIZE=%r", ENV_PREFIX, disk_size)
        disk_size = DEFAULT_DISK_SIZE
    disk_path = environ.get(ENV_PREFIX + "DISK_PATH") or ""
    return RunConfig(
        cpu_time=_env_int(environ, "CPU_TIME", DEFAULT_CPU_TIME),
        cpu_single_time=_env_int(environ, "CPU_SINGLE_TIME", DEFAULT_CPU_SINGLE_TIME),
        mem_time=_env_int(environ, "MEM_TIME", DEFAULT_MEM_TIME),
        disk_runtime=_env_int(environ, "DISK_RUNTIME", DEFAULT_DISK_RUNTIME),
        disk_size=disk_size,
        disk_path=disk_path or DEFAULT_DISK_PATH,
        disk_path_explicit=bool(disk_path),
        result_dir=environ.get(ENV_PREFIX + "RESULT_DIR") or DEFAULT_RESULT_DIR,
        api_url=environ.get(ENV_PREFIX + "API_URL") or DEFAULT_API_URL,
    )


def parse_iperf_target(value: str) -> tuple[str, int]:
    """Split ``HOST[:PORT]``; IPv6 literals use ``[addr]:port``."""
    value = value.strip()
    if not value:
        raise UsageError("--iperf requires HOST[:PORT]")
    if value.startswith("["):
        host, _, rest = value[1:].partition("]")
        port_text = rest[1:] if rest.startswith(":") else ""
    elif value.count(":") == 1:
        host, _, port_text = value.partition(":")
    else:
        host, port_text = value, ""
    if not host:
        raise UsageError(f"Invalid iperf target: {value!r}")
    if not port_text:
        return host, DEFAULT_IPERF_PORT
    try:
        port = int(port_text)
    except ValueError as exc:
        raise UsageError(f"Invalid iperf port: {port_text!r}") from exc
    if not 0 < port < 65536:
        raise UsageError(f"Invalid iperf port: {port}")
    return host, port


def resolve_config(
    args: argparse.Namespace,
    environ: Mapping[str, str] | None = None,
    stdin_isatty: bool = True,
) -> RunConfig:
    """Merge parsed flags over the environment and finalise."""
    config = config_from_env(environ)

    for name in ("cpu_time", "cpu_single_time", "mem_time", "disk_runtime"):
        value = getattr(args, name, None)
        if value is not None:
            setattr(config, name, value)
    if args.disk_size:
        try:
            parse_size(args.disk_size)
        except ValueError as exc:
            raise UsageError(str(exc)) from exc
        config.disk_size = args.disk_size
    if args.disk_path:
        config.disk_path = args.disk_path
        config.disk_path_explicit = True

    config.all_disks = args.all_disks
    config.quick_mode = args.quick
    config.quiet = args.quiet
    config.verbose = args.verbose
    config.debug = args.debug
    config.json_only = args.json
    config.color = not args.no_color
    if args.no_upload:
        config.upload = False
    elif args.upload:
        config.upload = True
    config.auto_install = not args.no_install
    config.interactive = not args.non_interactive and stdin_isatty
    config.output_path = args.output or ""
    config.tags = list(args.tags)
    config.notes = args.notes or ""
    if args.iperf:
        config.iperf_host, config.iperf_port = parse_iperf_target(args.iperf)

    return config.finalize()
