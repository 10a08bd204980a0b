"""Device profile module.

This module handles:
- Validation of device profiles (pydantic)
- Loading profiles from YAML/JSON files
- The built-in default profile
"""

from kernel_packer.profiles.io import (
    get_profile,
    load_json,
    load_profile,
    load_yaml,
)
from kernel_packer.profiles.schema import (
    AnyKernelSchema,
    CompilerSchema,
    DeviceProfile,
)

__all__ = [
    "AnyKernelSchema",
    "CompilerSchema",
    "DeviceProfile",
    "get_profile",
    "load_json",
    "load_profile",
    "load_yaml",
]
