"""Flashable zip creation.

This module handles:
- Composing the timestamped zip file name
- Selecting packaging repository files, honouring exclusion patterns
- Writing the zip at maximum deflate compression
"""

from __future__ import annotations

import fnmatch
import logging
import zipfile
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y%m%d-%H%M"
COMPRESS_LEVEL = 9


def compose_zip_name(
    product_name: str,
    now: datetime | None = None,
    commit: str | None = None,
) -> str:
    """Compose ``<product>-<YYYYMMDD-HHMM>[-<commit>].zip``.

    Args:
        product_name: Product tag from the device profile.
        now: Timestamp (local time now if None).
        commit: Abbreviated source commit, omitted if None.

    Returns:
        Zip file name.
    """
    stamp = (now or datetime.now()).strftime(TIMESTAMP_FORMAT)
    stem = f"{product_name}-{stamp}"
    if commit:
        stem = f"{stem}-{commit}"
    return f"{stem}.zip"


def is_excluded(relative_path: str, patterns: list[str]) -> bool:
    """Return True if ``relative_path`` matches any exclusion pattern.

    Patterns follow zip -x semantics: ``*`` also matches ``/``.
    """
    return any(fnmatch.fnmatchcase(relative_path, p) for p in patterns)


def collect_entries(src_dir: Path, excludes: list[str]) -> list[Path]:
    """List the files and directories under ``src_dir`` that belong in the zip.

    Hidden entries at the top level are skipped, as is anything matching
    ``excludes``. Directories are kept even when every file inside them is
    excluded.

    Returns:
        Sorted list of paths; a directory precedes its contents.
    """
    entries: list[Path] = []
    for path in sorted(src_dir.rglob("*")):
        if not (path.is_file() or path.is_dir()):
            continue
        relative = path.relative_to(src_dir)
        if relative.parts[0].startswith("."):
            continue
        if is_excluded(relative.as_posix(), excludes):
            logger.debug("Excluding %s", relative)
            continue
        entries.append(path)
    return entries


def create_zip(
    src_dir: Path,
    zip_path: Path,
    excludes: list[str] | None = None,
) -> list[Path]:
    """Archive the contents of ``src_dir`` into ``zip_path``.

    Entries are stored relative to src_dir, with a ``<dir>/`` entry for
    every directory as ``zip -r`` records them.

    Args:
        src_dir: Directory whose contents are archived.
        zip_path: Output file; replaced if it exists.
        excludes: Glob patterns to leave out.

    Returns:
        Files written into the zip.
    """
    entries = collect_entries(src_dir, excludes or [])
    files = [p for p in entries if p.is_file()]
    logger.info("Zipping %d files to %s...", len(files), zip_path.name)
    zip_path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(
        zip_path, "w", zipfile.ZIP_DEFLATED, compresslevel=COMPRESS_LEVEL
    ) as zf:
        for path in entries:
            arcname = path.relative_to(src_dir).as_posix()
            if path.is_dir():
                arcname += "/"
            zf.write(path, arcname)
    return files


__all__ = [
    "COMPRESS_LEVEL",
    "TIMESTAMP_FORMAT",
    "collect_entries",
    "compose_zip_name",
    "create_zip",
    "is_excluded",
]
