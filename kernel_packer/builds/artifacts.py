"""Build output discovery and manifest generation.

This module handles:
- Validating that the compile produced a kernel image and DTB directory
- Locating DTBs, DTBO sources, kernel modules and module metadata
- Classifying and hashing packed files
- Generating package manifests
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from kernel_packer.builds.runner import MODULES_INSTALL_DIR
from kernel_packer.types import ArtifactInfo, ArtifactKind

if TYPE_CHECKING:
    from kernel_packer.profiles.schema import DeviceProfile

logger = logging.getLogger(__name__)

# Default chunk size for hashing
HASH_CHUNK_SIZE = 64 * 1024  # 64KB

MODULE_METADATA_GLOB = "modules.*"


class ArtifactValidationError(Exception):
    """Raised when expected build outputs are missing."""

    def __init__(self, message: str, code: str = "missing_outputs") -> None:
        super().__init__(message)
        self.code = code


@dataclass
class KernelOutputs:
    """Validated compile outputs.

    Attributes:
        image: Kernel Image file.
        dts_dir: Directory holding the device's .dtb and .dtbo files.
    """

    image: Path
    dts_dir: Path


def boot_dir(out_dir: Path, arch: str) -> Path:
    """Return out/arch/<arch>/boot."""
    return out_dir / "arch" / arch / "boot"


def validate_outputs(out_dir: Path, profile: DeviceProfile) -> KernelOutputs:
    """Check the kernel image and DTB directory exist after a build.

    Args:
        out_dir: Out-of-tree build directory.
        profile: Device profile.

    Returns:
        KernelOutputs with both paths.

    Raises:
        ArtifactValidationError: If either output is missing.
    """
    boot = boot_dir(out_dir, profile.arch)
    image = boot / "Image"
    dts_dir = boot / "dts" / profile.dts_subdir

    if not image.is_file() or not dts_dir.is_dir():
        logger.debug(
            "Image exists: %s, DTB directory exists: %s",
            image.is_file(),
            dts_dir.is_dir(),
        )
        raise ArtifactValidationError(
            "Kernel or DTB files not found. Compilation may have failed."
        )

    logger.info("Kernel compiled successfully! Preparing to zip...")
    return KernelOutputs(image=image, dts_dir=dts_dir)


def find_dtbs(dts_dir: Path) -> list[Path]:
    """Return the directory's .dtb files sorted by name."""
    return sorted(p for p in dts_dir.glob("*.dtb") if p.is_file())


def find_dtbos(dts_dir: Path) -> list[Path]:
    """Return the directory's .dtbo files sorted by name."""
    return sorted(p for p in dts_dir.glob("*.dtbo") if p.is_file())


def concat_files(sources: list[Path], dest: Path) -> int:
    """Concatenate ``sources`` into ``dest``.

    Returns:
        Number of bytes written.
    """
    written = 0
    with dest.open("wb") as out:
        for src in sources:
            data = src.read_bytes()
            out.write(data)
            written += len(data)
    return written


def find_kernel_modules(out_dir: Path) -> list[Path]:
    """Return every .ko file under the build directory.

    Stripped copies from modules_install sort last so they win when the
    list is copied flat.
    """
    install_dir = out_dir / MODULES_INSTALL_DIR
    modules = (p for p in out_dir.rglob("*.ko") if p.is_file())
    return sorted(modules, key=lambda p: (p.is_relative_to(install_dir), p))


def find_module_metadata(out_dir: Path) -> list[Path]:
    """Return modules.* metadata written by modules_install.

    The installed tree is out/modules/lib/modules/<version>/. Older trees
    leave the files directly in out/lib.
    """
    candidates = sorted(
        (out_dir / MODULES_INSTALL_DIR / "lib" / "modules").glob(
            f"*/{MODULE_METADATA_GLOB}"
        )
    )
    candidates.extend(sorted((out_dir / "lib").glob(MODULE_METADATA_GLOB)))
    return [p for p in candidates if p.is_file()]


def classify_artifact(relative_path: str) -> str:
    """Classify a packed file by its path inside the zip.

    Args:
        relative_path: POSIX path relative to the packaging repository.

    Returns:
        Artifact kind value.
    """
    name = relative_path.rsplit("/", 1)[-1]
    if relative_path == "Image":
        return ArtifactKind.KERNEL.value
    if relative_path == "dtb":
        return ArtifactKind.DTB.value
    if relative_path == "dtbo.img":
        return ArtifactKind.DTBO.value
    if name.endswith(".ko"):
        return ArtifactKind.MODULE.value
    if name.startswith("modules."):
        return ArtifactKind.MODULE_METADATA.value
    return ArtifactKind.OTHER.value


def compute_file_hash(
    file_path: Path,
    chunk_size: int = HASH_CHUNK_SIZE,
) -> str:
    """Compute SHA-256 hash of a file.

    Args:
        file_path: Path to the file.
        chunk_size: Size of chunks for streaming hash.

    Returns:
        SHA-256 hex digest.
    """
    sha256 = hashlib.sha256()
    with file_path.open("rb") as f:
        while chunk := f.read(chunk_size):
            sha256.update(chunk)
    return sha256.hexdigest()


def describe_files(root: Path, files: list[Path]) -> list[ArtifactInfo]:
    """Build ArtifactInfo entries for files below ``root``."""
    artifacts: list[ArtifactInfo] = []
    for path in files:
        relative_path = path.relative_to(root).as_posix()
        artifacts.append(
            ArtifactInfo(
                filename=path.name,
                relative_path=relative_path,
                size_bytes=path.stat().st_size,
                sha256=compute_file_hash(path),
                kind=classify_artifact(relative_path),
            )
        )
    return artifacts


def generate_manifest(
    artifacts: list[ArtifactInfo],
    zip_name: str,
    zip_sha256: str,
    zip_size_bytes: int,
    kernel_version: str | None = None,
    commit: str | None = None,
    profile: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Generate a package manifest.

    Args:
        artifacts: Files packed into the zip.
        zip_name: File name of the zip.
        zip_sha256: SHA-256 of the zip.
        zip_size_bytes: Size of the zip.
        kernel_version: Output of make kernelversion.
        commit: Source tree commit the kernel was built from.
        profile: Device profile as a dictionary.

    Returns:
        Manifest dictionary suitable for JSON serialization.
    """
    manifest: dict[str, Any] = {
        "version": "1.0",
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "zip": {
            "filename": zip_name,
            "sha256": zip_sha256,
            "size_bytes": zip_size_bytes,
        },
        "artifacts": [asdict(a) for a in artifacts],
    }
    if kernel_version:
        manifest["kernel_version"] = kernel_version
    if commit:
        manifest["commit"] = commit
    if profile:
        manifest["profile"] = profile

    manifest["summary"] = {
        "total_artifacts": len(artifacts),
        "total_size_bytes": sum(a.size_bytes for a in artifacts),
        "modules": sum(1 for a in artifacts if a.kind == ArtifactKind.MODULE.value),
    }
    return manifest


def write_manifest(manifest: dict[str, Any], output_path: Path) -> Path:
    """Write manifest to a JSON file.

    Args:
        manifest: Manifest dictionary.
        output_path: Output file path.

    Returns:
        Path to written manifest file.
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", encoding="utf-8") as f:
        json.dump(manifest, f, indent=2, sort_keys=True)
    logger.info("Wrote manifest to %s", output_path)
    return output_path


__all__ = [
    "HASH_CHUNK_SIZE",
    "ArtifactValidationError",
    "KernelOutputs",
    "boot_dir",
    "classify_artifact",
    "compute_file_hash",
    "concat_files",
    "describe_files",
    "find_dtbos",
    "find_dtbs",
    "find_kernel_modules",
    "find_module_metadata",
    "generate_manifest",
    "validate_outputs",
    "write_manifest",
]
