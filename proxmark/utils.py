"""Utility functions for running tools and reading system files."""

from __future__ import annotations

import os
import re
import shutil
import subprocess
import time
from collections.abc import Callable, Sequence
from pathlib import Path


COMMAND_NOT_FOUND = 127

_SIZE_UNITS = {"": 1, "K": 1024, "M": 1024**2, "G": 1024**3, "T": 1024**4}


def parse_float(token: str) -> float:
    """Parse float, handling European decimal separator."""
    return float(token.replace(",", "."))


def safe_float(value: object, default: float = 0.0) -> float:
    """Convert to float, falling back to ``default``."""
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default


def command_exists(command: str) -> bool:
    """Check if a command exists in PATH."""
    return shutil.which(command) is not None


def check_requirements(
    commands: Sequence[str], exists: Callable[[str], bool] = command_exists
) -> tuple[bool, str]:
    """Check if all required commands are available."""
    for cmd in commands:
        if not exists(cmd):
            return False, f"Command {cmd!r} was not found in PATH"
    return True, ""


def is_root() -> bool:
    return os.geteuid() == 0


def as_root(command: Sequence[str], *, prompt: bool = False) -> list[str]:
    """Prefix a command with sudo unless already running as root.

    Without ``prompt`` sudo runs with ``-n`` so a missing password fails
    instead of blocking.
    """
    if is_root() or not command_exists("sudo"):
        return list(command)
    return ["sudo", *command] if prompt else ["sudo", "-n", *command]


def run_command(
    command: Sequence[str],
    *,
    env: dict[str, str] | None = None,
    timeout: float | None = None,
) -> tuple[str, float, int]:
    """Run a command and return its output, duration, and return code.

    Never raises for a failing or missing command: a missing binary is
    reported as return code 127, a timeout as -1.
    """
    start = time.perf_counter()

    # Force English locale to ensure parseable output
    run_env = os.environ.copy()
    run_env["LC_ALL"] = "C"
    run_env["LANGUAGE"] = "C"

    if env:
        run_env.update(env)

    try:
        completed = subprocess.run(
            list(command),
            check=False,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            env=run_env,
            timeout=timeout,
        )
    except FileNotFoundError:
        return "", time.perf_counter() - start, COMMAND_NOT_FOUND
    except subprocess.TimeoutExpired as exc:
        output = exc.stdout if isinstance(exc.stdout, str) else ""
        return output, time.perf_counter() - start, -1
    duration = time.perf_counter() - start
    return completed.stdout, duration, completed.returncode


def read_text(path: str | Path, default: str = "") -> str:
    """Read a small pseudo-filesystem file, returning ``default`` on error."""
    try:
        return Path(path).read_text(encoding="utf-8", errors="replace").strip()
    except OSError:
        return default


def parse_size(value: str) -> int:
    """Convert a fio-style size (``1G``, ``256M``, ``4096``) to bytes."""
    match = re.fullmatch(r"\s*(\d+(?:\.\d+)?)\s*([KMGT]?)(?:i?B)?\s*", value.upper())
    if not match:
        raise ValueError(f"Invalid size: {value!r}")
    return int(float(match.group(1)) * _SIZE_UNITS[match.group(2)])


def format_bytes(num_bytes: float) -> str:
    """Human readable size with binary units."""
    value = float(num_bytes)
    for unit in ("B", "KiB", "MiB", "GiB", "TiB"):
        if abs(value) < 1024 or unit == "TiB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} TiB"
