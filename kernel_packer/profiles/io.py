"""Device profile loading.

Profiles are YAML or JSON mappings validated against DeviceProfile. Any
field left out keeps its built-in default, so a profile file only has to
list what differs from the stock device.
"""

import json
from pathlib import Path
from typing import Any

import yaml

from kernel_packer.profiles.schema import DeviceProfile


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its contents as a dict.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML content as a dictionary.

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        ValueError: If the document is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a YAML mapping, got {type(data).__name__}")
    return data


def load_json(path: Path) -> dict[str, Any]:
    """Load a JSON file and return its contents as a dict.

    Args:
        path: Path to the JSON file.

    Returns:
        Parsed JSON content as a dictionary.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
        ValueError: If the document is not an object.
    """
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def load_profile(path: Path) -> DeviceProfile:
    """Load and validate a device profile, choosing the parser by extension.

    Args:
        path: Path to a .yaml, .yml or .json file.

    Returns:
        Validated DeviceProfile instance.

    Raises:
        ValueError: If the extension is not supported.
        pydantic.ValidationError: If data does not match schema.
    """
    suffix = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = load_yaml(path)
    elif suffix == ".json":
        data = load_json(path)
    else:
        raise ValueError(f"Unsupported profile format: {suffix}")
    return DeviceProfile.model_validate(data)


def get_profile(path: Path | None = None) -> DeviceProfile:
    """Return the profile at ``path``, or the built-in profile."""
    if path is None:
        return DeviceProfile()
    return load_profile(path)


__all__ = [
    "get_profile",
    "load_json",
    "load_profile",
    "load_yaml",
]
