"""Packaging module.

This module handles:
- Obtaining the AnyKernel3 packaging repository
- Staging kernel modules and rewriting their metadata
- Creating the flashable zip
"""

from kernel_packer.packaging.archive import compose_zip_name, create_zip
from kernel_packer.packaging.repo import RepositoryError, ensure_repo, get_head_commit

__all__ = [
    "RepositoryError",
    "compose_zip_name",
    "create_zip",
    "ensure_repo",
    "get_head_commit",
]
