"""Kernel module staging for the packaging repository.

modules_install records modules under kernel/<subsystem>/... paths, but
the device loads them flat from its vendor module directory. The helpers
here copy modules into the payload and rewrite modules.dep and
modules.load so their entries point at the flat runtime location.
"""

from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)

PAYLOAD_MODULES_DIR = Path("modules") / "vendor" / "lib" / "modules"

# kernel/<dirs>/<name>.ko, the last path component captured
_DEP_ENTRY = re.compile(r"kernel/[^: ]*/([^: ]*\.ko)")
# everything up to and including the last / on a line
_LOAD_PREFIX = re.compile(r".*/")


def modules_dir_name(kernel_version: str, suffix: str) -> str:
    """Return the payload module directory name, e.g. ``5.4.289-NetHunter``."""
    return f"{kernel_version}{suffix}"


def clear_payload_modules(repo_dir: Path) -> None:
    """Remove everything below the repository's module directory."""
    modules_root = repo_dir / PAYLOAD_MODULES_DIR
    if not modules_root.is_dir():
        return
    for entry in modules_root.iterdir():
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
        else:
            entry.unlink()


def copy_flat(files: list[Path], dest_dir: Path) -> int:
    """Copy ``files`` into ``dest_dir`` without their directory structure.

    Later files overwrite earlier ones with the same name.

    Returns:
        Number of distinct file names in dest_dir after copying.
    """
    dest_dir.mkdir(parents=True, exist_ok=True)
    names: set[str] = set()
    for src in files:
        shutil.copy2(src, dest_dir / src.name)
        names.add(src.name)
    return len(names)


def rewrite_modules_dep(text: str, runtime_dir: str = "/vendor/lib/modules") -> str:
    """Point every kernel/.../<name>.ko reference at ``runtime_dir``.

    >>> rewrite_modules_dep("kernel/fs/foo.ko: kernel/lib/bar.ko")
    '/vendor/lib/modules/foo.ko: /vendor/lib/modules/bar.ko'
    """
    replacement = runtime_dir.rstrip("/").replace("\\", r"\\")
    return _DEP_ENTRY.sub(replacement + r"/\1", text)


def rewrite_modules_load(text: str) -> str:
    """Strip the directory part from every line.

    >>> rewrite_modules_load("kernel/fs/foo.ko\\nbar.ko\\n")
    'foo.ko\\nbar.ko\\n'
    """
    return _LOAD_PREFIX.sub("", text)


def _rewrite_file(path: Path, transform) -> bool:
    try:
        text = path.read_text(encoding="utf-8")
        path.write_text(transform(text), encoding="utf-8")
    except (OSError, UnicodeError) as e:
        logger.warning("Could not rewrite %s: %s", path.name, e)
        return False
    return True


def rewrite_metadata(modules_dir: Path, runtime_dir: str) -> list[str]:
    """Rewrite modules.dep and modules.load in place, best effort.

    Args:
        modules_dir: Staged module directory.
        runtime_dir: Module directory on the device.

    Returns:
        Names of the files that could not be rewritten.
    """
    failed: list[str] = []
    rewrites = (
        ("modules.dep", lambda text: rewrite_modules_dep(text, runtime_dir)),
        ("modules.load", rewrite_modules_load),
    )
    for name, transform in rewrites:
        if not _rewrite_file(modules_dir / name, transform):
            failed.append(name)
    return failed


__all__ = [
    "PAYLOAD_MODULES_DIR",
    "clear_payload_modules",
    "copy_flat",
    "modules_dir_name",
    "rewrite_metadata",
    "rewrite_modules_dep",
    "rewrite_modules_load",
]
