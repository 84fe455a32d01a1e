"""Per-run context passed to every pipeline stage."""

from __future__ import annotations

import contextlib
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from .config import RunConfig
from .console import Colors, get_logger
from .models import PowerSummary, SystemInventory
from .utils import command_exists, run_command


logger = get_logger(__name__)

CommandRunner = Callable[..., tuple[str, float, int]]


@dataclass
class RunContext:
    """Everything a stage needs to know about the current run."""

    config: RunConfig
    colors: Colors = field(default_factory=lambda: Colors(enabled=False))
    runner: CommandRunner = run_command
    which: Callable[[str], bool] = command_exists
    inventory: SystemInventory = field(default_factory=SystemInventory)
    package_manager: str = "unknown"
    debug_sections: list[tuple[str, str]] = field(default_factory=list)
    cleanup_paths: list[Path] = field(default_factory=list)
    power: PowerSummary = field(default_factory=PowerSummary)

    def run(self, command: Sequence[str], **kwargs) -> tuple[str, float, int]:
        """Run a command through the configured runner, recording it in debug mode."""
        logger.debug("Running: %s", " ".join(str(part) for part in command))
        stdout, duration, returncode = self.runner(list(command), **kwargs)
        if self.config.debug:
            self.add_debug(" ".join(str(part) for part in command), f"exit={returncode}\n{stdout}")
        return stdout, duration, returncode

    def output(self, command: Sequence[str], timeout: float | None = 15) -> str:
        """Stdout of a successful inspection command, "" otherwise."""
        stdout, _, returncode = self.run(command, timeout=timeout)
        return stdout.strip() if returncode == 0 else ""

    def add_debug(self, title: str, body: str) -> None:
        if self.config.debug:
            self.debug_sections.append((title, body))

    def register_cleanup(self, path: Path) -> None:
        if path not in self.cleanup_paths:
            self.cleanup_paths.append(path)

    def unregister_cleanup(self, path: Path) -> None:
        with contextlib.suppress(ValueError):
            self.cleanup_paths.remove(path)

    def cleanup(self) -> None:
        """Remove leftover benchmark files."""
        for path in list(self.cleanup_paths):
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("Could not remove %s: %s", path, exc)
            else:
                logger.verbose("Removed %s", path)
            self.cleanup_paths.remove(path)
