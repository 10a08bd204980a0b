"""Build orchestration module.

This module handles:
- Running the kernel's make build (defconfig, compile, modules_install)
- Validating and locating build outputs
- Sequencing the build-and-pack pipeline
"""

from kernel_packer.builds.artifacts import ArtifactValidationError
from kernel_packer.builds.runner import BuildExecutionError

__all__ = ["ArtifactValidationError", "BuildExecutionError"]

# Lazy imports for submodules to avoid circular imports
# Access via kernel_packer.builds.service, etc.
