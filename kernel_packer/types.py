"""Shared type definitions for kernel_packer.

This module contains dataclasses and enums shared across subpackages to
avoid circular imports.
"""

from dataclasses import dataclass, field
from enum import Enum


class ArtifactKind(str, Enum):
    """Kind of a file packed into the flashable zip."""

    KERNEL = "kernel"
    DTB = "dtb"
    DTBO = "dtbo"
    MODULE = "module"
    MODULE_METADATA = "module_metadata"
    OTHER = "other"


class RepoAction(str, Enum):
    """What happened to the packaging repository."""

    CLONED = "cloned"
    UPDATED = "updated"
    STALE = "stale"


@dataclass
class ArtifactInfo:
    """Information about a packaged file."""

    filename: str
    relative_path: str
    size_bytes: int
    sha256: str
    kind: str | None = None


@dataclass
class PackageResult:
    """Result of a full build-and-pack run."""

    zip_path: str
    size_bytes: int
    sha256: str
    kernel_version: str
    commit: str | None = None
    modules_count: int = 0
    repo_action: RepoAction | None = None
    elapsed_seconds: float = 0.0
    manifest_path: str | None = None
    warnings: list[str] = field(default_factory=list)


__all__ = [
    "ArtifactInfo",
    "ArtifactKind",
    "PackageResult",
    "RepoAction",
]
