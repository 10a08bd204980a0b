"""Kernel payload staging for the packaging repository.

The AnyKernel3 installer expects the kernel at ``Image``, the concatenated
device tree blobs at ``dtb`` and the overlay image at ``dtbo.img``, all at
the repository root.
"""

from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
from pathlib import Path

from kernel_packer.builds.artifacts import concat_files, find_dtbos, find_dtbs
from kernel_packer.packaging.modules import clear_payload_modules

logger = logging.getLogger(__name__)

IMAGE_NAME = "Image"
DTB_NAME = "dtb"
DTBO_NAME = "dtbo.img"
MKDTBOIMG_SCRIPT = Path("scripts") / "mkdtboimg.py"


def reset_payload(repo_dir: Path) -> None:
    """Remove payload files left by an earlier run."""
    logger.info("Cleaning up old %s build files...", repo_dir.name)
    for name in (IMAGE_NAME, DTB_NAME, DTBO_NAME):
        (repo_dir / name).unlink(missing_ok=True)
    clear_payload_modules(repo_dir)


def stage_image(image: Path, repo_dir: Path) -> Path:
    """Copy the kernel image into the repository."""
    dest = repo_dir / IMAGE_NAME
    shutil.copyfile(image, dest)
    return dest


def stage_dtb(dts_dir: Path, repo_dir: Path) -> int:
    """Concatenate the device's DTBs into the repository's dtb file.

    Returns:
        Number of DTBs concatenated.
    """
    dtbs = find_dtbs(dts_dir)
    if not dtbs:
        logger.warning("No .dtb files found in %s", dts_dir)
    concat_files(dtbs, repo_dir / DTB_NAME)
    return len(dtbs)


def compose_mkdtboimg_command(
    python: str,
    output: Path,
    dtbos: list[Path],
    page_size: int = 4096,
) -> list[str]:
    """Compose the mkdtboimg.py create command."""
    return [
        python,
        str(MKDTBOIMG_SCRIPT),
        "create",
        str(output),
        f"--page_size={page_size}",
        *(str(p) for p in dtbos),
    ]


def create_dtbo(
    dts_dir: Path,
    repo_dir: Path,
    source_dir: Path,
    python: str = "python3",
    page_size: int = 4096,
    env: dict[str, str] | None = None,
) -> bool:
    """Pack the device's .dtbo overlays into dtbo.img.

    Args:
        dts_dir: Directory holding the .dtbo files.
        repo_dir: Packaging repository.
        source_dir: Kernel source tree providing scripts/mkdtboimg.py.
        python: Interpreter used to run the script.
        page_size: Page size recorded in the image header.
        env: Environment for the child process.

    Returns:
        True if dtbo.img was written.
    """
    dtbos = find_dtbos(dts_dir)
    if not dtbos:
        logger.warning("No .dtbo files found in %s; skipping %s", dts_dir, DTBO_NAME)
        return False

    cmd = compose_mkdtboimg_command(python, repo_dir / DTBO_NAME, dtbos, page_size)
    logger.debug("Executing: %s", shlex.join(cmd))
    try:
        result = subprocess.run(cmd, cwd=source_dir, env=env, check=False)
    except OSError as e:
        logger.warning("Failed to run mkdtboimg.py: %s", e)
        return False
    if result.returncode != 0:
        logger.warning("mkdtboimg.py exited with code %d", result.returncode)
        return False
    return True


__all__ = [
    "DTBO_NAME",
    "DTB_NAME",
    "IMAGE_NAME",
    "MKDTBOIMG_SCRIPT",
    "compose_mkdtboimg_command",
    "create_dtbo",
    "reset_payload",
    "stage_dtb",
    "stage_image",
]
