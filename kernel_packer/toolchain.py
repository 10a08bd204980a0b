"""Toolchain and path resolution.

This module handles:
- Resolving the home, toolchain and clang directories
- Building the child-process environment with clang's bin on PATH
- Checking that the required commands are installed
"""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kernel_packer.config import Settings
    from kernel_packer.profiles.schema import DeviceProfile

logger = logging.getLogger(__name__)

DEFAULT_PYTHON = "python3"


def required_commands(python: str = DEFAULT_PYTHON) -> tuple[str, ...]:
    """Commands a run needs, with ``python`` as the mkdtboimg.py interpreter."""
    return ("make", python, "git")


REQUIRED_COMMANDS = required_commands()


class MissingCommandError(Exception):
    """Raised when a required command is not on PATH."""

    def __init__(self, command: str, code: str = "missing_command") -> None:
        super().__init__(f"'{command}' is not installed.")
        self.command = command
        self.code = code


@dataclass
class BuildPaths:
    """Resolved filesystem locations for one run.

    Attributes:
        home_dir: Home directory.
        toolchain_dir: Root of the toolchain tree.
        clang_dir: Clang release directory.
        source_dir: Kernel source tree.
        out_dir: Out-of-tree build directory.
        anykernel_dir: Packaging repository checkout.
        log_path: Compile log file.
    """

    home_dir: Path
    toolchain_dir: Path
    clang_dir: Path
    source_dir: Path
    out_dir: Path
    anykernel_dir: Path
    log_path: Path

    @property
    def clang_bin_dir(self) -> Path:
        return self.clang_dir / "bin"


def resolve_home_dir(home_dir: Path | None = None) -> Path:
    """Return ``home_dir`` or the user's home directory."""
    if home_dir is None:
        return Path.home()
    return Path(home_dir).expanduser()


def resolve_toolchain_dir(home_dir: Path, tc_dir: Path | None = None) -> Path:
    """Resolve the toolchain directory.

    The default is ``<home>/tc``. An override is taken relative to the home
    directory; an absolute override is used as given.
    """
    if tc_dir is None:
        return home_dir / "tc"
    return home_dir / tc_dir


def resolve_paths(settings: Settings, profile: DeviceProfile) -> BuildPaths:
    """Resolve every path a run needs.

    Args:
        settings: Effective settings.
        profile: Device profile.

    Returns:
        BuildPaths instance.
    """
    home_dir = resolve_home_dir(settings.home_dir)
    toolchain_dir = resolve_toolchain_dir(home_dir, settings.tc_dir)
    source_dir = Path(settings.source_dir)
    paths = BuildPaths(
        home_dir=home_dir,
        toolchain_dir=toolchain_dir,
        clang_dir=toolchain_dir / "linux-x86" / profile.clang_version,
        source_dir=source_dir,
        out_dir=source_dir / "out",
        anykernel_dir=source_dir / profile.anykernel.directory,
        log_path=source_dir / settings.log_file,
    )
    logger.info("HOME directory is set to: %s", paths.home_dir)
    logger.info("Toolchain directory is set to: %s", paths.toolchain_dir)
    return paths


def compose_env(
    clang_bin_dir: Path,
    base_env: dict[str, str] | None = None,
) -> dict[str, str]:
    """Return a copy of the environment with clang's bin prepended to PATH.

    Args:
        clang_bin_dir: Directory holding clang and the LLVM binutils.
        base_env: Environment to extend (defaults to os.environ).

    Returns:
        New environment dictionary.
    """
    env = dict(os.environ if base_env is None else base_env)
    parts = [str(clang_bin_dir)]
    if env.get("PATH"):
        parts.append(env["PATH"])
    env["PATH"] = os.pathsep.join(parts)
    return env


def check_required_commands(
    env: dict[str, str],
    commands: tuple[str, ...] = REQUIRED_COMMANDS,
) -> None:
    """Ensure every command is found on the environment's PATH.

    Args:
        env: Environment whose PATH is searched.
        commands: Command names to look up.

    Raises:
        MissingCommandError: For the first command not found.
    """
    search_path = env.get("PATH")
    for command in commands:
        found = shutil.which(command, path=search_path)
        if found is None:
            raise MissingCommandError(command)
        logger.debug("Found %s at %s", command, found)


__all__ = [
    "DEFAULT_PYTHON",
    "REQUIRED_COMMANDS",
    "BuildPaths",
    "MissingCommandError",
    "check_required_commands",
    "compose_env",
    "required_commands",
    "resolve_home_dir",
    "resolve_paths",
    "resolve_toolchain_dir",
]
