"""Locate benchmark tools and install the missing ones."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .console import get_logger
from .errors import DependencyError
from .utils import as_root


if TYPE_CHECKING:
    from .context import RunContext


logger = get_logger(__name__)

INSTALL_TIMEOUT = 600


@dataclass(frozen=True)
class PackageManager:
    name: str
    binary: str
    install: tuple[str, ...]
    update: tuple[str, ...] | None = None

    def install_command(self, package: str) -> list[str]:
        return as_root([*self.install, package], prompt=True)

    def update_command(self) -> list[str] | None:
        return as_root(list(self.update), prompt=True) if self.update else None


# Checked in order; the first binary found on PATH wins.
PACKAGE_MANAGERS: tuple[PackageManager, ...] = (
    PackageManager("apt", "apt-get", ("apt-get", "install", "-y"), ("apt-get", "update")),
    PackageManager("dnf", "dnf", ("dnf", "install", "-y", "-q")),
    PackageManager("yum", "yum", ("yum", "install", "-y", "-q")),
    PackageManager("pacman", "pacman", ("pacman", "-S", "--noconfirm")),
    PackageManager("zypper", "zypper", ("zypper", "--non-interactive", "install")),
)

REQUIRED_TOOLS: tuple[tuple[str, str], ...] = (
    ("sysbench", "sysbench"),
    ("fio", "fio"),
)

LIBAIO_PACKAGES: tuple[str, ...] = ("libaio1", "libaio-dev")


def detect_package_manager(context: RunContext) -> PackageManager | None:
    for manager in PACKAGE_MANAGERS:
        if context.which(manager.binary):
            context.package_manager = manager.name
            return manager
    context.package_manager = "unknown"
    return None


def install_package(context: RunContext, manager: PackageManager | None, package: str) -> bool:
    """Install one package; True when the package manager reported success."""
    if manager is None:
        logger.error("Package manager not supported. Please install %s manually.", package)
        return False

    update = manager.update_command()
    if update:
        # Update failures are common on Proxmox without an enterprise subscription
        _, _, returncode = context.run(update, timeout=INSTALL_TIMEOUT)
        if returncode != 0:
            logger.verbose("%s exited with %d, continuing", " ".join(update), returncode)

    command = manager.install_command(package)
    stdout, _, returncode = context.run(command, timeout=INSTALL_TIMEOUT)
    if returncode != 0:
        logger.error("Failed to install %s", package)
        logger.verbose(stdout.strip())
        return False
    return True


def require_command(
    context: RunContext,
    command: str,
    package: str,
    manager: PackageManager | None,
) -> None:
    """Ensure ``command`` is on PATH, installing ``package`` when allowed."""
    if context.which(command):
        logger.verbose("Found %s", command)
        return

    if not context.config.auto_install:
        raise DependencyError(
            f"Missing required command: {command} (package: {package}). "
            "Run without --no-install or install it manually."
        )

    logger.info("Installing %s...", package)
    if not install_package(context, manager, package):
        hint = f" Try running: {' '.join(manager.install)} {package}" if manager else ""
        raise DependencyError(f"Failed to install {package}.{hint}")
    if not context.which(command):
        raise DependencyError(f"Failed to install {package} - command '{command}' still not found")
    logger.success("Installed %s", package)


def ensure_optional(context: RunContext, command: str, package: str | None = None) -> bool:
    """Best-effort install for tools only some runs need."""
    if context.which(command):
        return True
    if not context.config.auto_install:
        logger.warning("%s not found and --no-install given", command)
        return False
    manager = detect_package_manager(context)
    logger.info("Installing %s...", package or command)
    if install_package(context, manager, package or command) and context.which(command):
        logger.success("Installed %s", package or command)
        return True
    logger.warning("Could not install %s", package or command)
    return False


def ensure_libaio(context: RunContext, manager: PackageManager | None) -> None:
    if manager is None or manager.name != "apt" or not context.config.auto_install:
        return
    if context.output(["dpkg", "-s", LIBAIO_PACKAGES[0]]):
        return
    logger.verbose("Installing libaio for fio...")
    for package in LIBAIO_PACKAGES:
        _, _, returncode = context.run(manager.install_command(package), timeout=INSTALL_TIMEOUT)
        if returncode != 0:
            logger.debug("Installing %s failed with %d", package, returncode)


def check_dependencies(
    context: RunContext,
    tools: Sequence[tuple[str, str]] = REQUIRED_TOOLS,
) -> PackageManager | None:
    """Make sure every required benchmark tool is available."""
    logger.info("Checking dependencies...")
    manager = detect_package_manager(context)
    logger.verbose("Package manager: %s", context.package_manager)
    for command, package in tools:
        require_command(context, command, package, manager)
    ensure_libaio(context, manager)
    logger.success("All dependencies satisfied")
    return manager
