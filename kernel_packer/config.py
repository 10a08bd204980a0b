"""Configuration settings for kernel_packer.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the KPACK_ prefix.
    The home and toolchain directories also honour the bare ``HOME_DIR`` and
    ``TC_DIR`` variables. CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="KPACK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Paths
    home_dir: Path | None = Field(
        default=None,
        validation_alias=AliasChoices("KPACK_HOME_DIR", "HOME_DIR"),
        description="Home directory (uses $HOME if not set)",
    )
    tc_dir: Path | None = Field(
        default=None,
        validation_alias=AliasChoices("KPACK_TC_DIR", "TC_DIR"),
        description="Toolchain directory, relative to the home directory",
    )
    source_dir: Path = Field(
        default_factory=Path.cwd,
        description="Kernel source tree the build runs in",
    )
    profile_path: Path | None = Field(
        default=None,
        description="YAML/JSON device profile (uses the built-in profile if not set)",
    )
    log_file: str = Field(
        default="build.log",
        description="Compile log file name, written in the source directory",
    )

    # Tools
    python: str = Field(
        default="python3",
        description="Python interpreter used to run mkdtboimg.py",
    )
    jobs: int | None = Field(
        default=None,
        ge=1,
        description="Parallel make jobs (uses all CPU cores if not set)",
    )

    # Operational modes
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )


def get_settings() -> Settings:
    """Get the application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
