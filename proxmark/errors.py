"""Exception types raised across proxmark."""

from __future__ import annotations


class ProxmarkError(Exception):
    """Base class for errors that end a run."""

    exit_code = 1


class UsageError(ProxmarkError):
    """Invalid command-line usage."""


class DependencyError(ProxmarkError):
    """A required tool is missing and could not be installed."""


class ParseError(ProxmarkError, ValueError):
    """Tool output did not contain the expected fields."""


class BenchmarkInterrupted(ProxmarkError):
    """Run stopped by SIGINT/SIGTERM."""

    def __init__(self, signum: int):
        super().__init__(f"Interrupted by signal {signum}")
        self.signum = signum
        self.exit_code = 128 + signum
