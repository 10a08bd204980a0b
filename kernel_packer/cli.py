"""Thin CLI wrapper for kernel_packer.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Annotated

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from kernel_packer import __version__
from kernel_packer.builds.artifacts import ArtifactValidationError
from kernel_packer.builds.runner import BuildExecutionError
from kernel_packer.config import Settings, get_settings
from kernel_packer.packaging.repo import RepositoryError
from kernel_packer.profiles.io import get_profile
from kernel_packer.profiles.schema import DeviceProfile
from kernel_packer.toolchain import MissingCommandError

app = typer.Typer(
    name="kernel-packer",
    help="Kernel Packer - build the kernel and pack it into an AnyKernel3 zip",
    add_completion=False,
    # -h is the home directory override
    context_settings={"help_option_names": ["--help"]},
)
console = Console()

FATAL_ERRORS = (
    MissingCommandError,
    BuildExecutionError,
    ArtifactValidationError,
    RepositoryError,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"kernel-packer version {__version__}")
        raise typer.Exit()


def configure_logging(level: str) -> None:
    """Route log records through rich at ``level``."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, markup=False)],
        force=True,
    )


def apply_overrides(
    settings: Settings,
    homedir: Path | None,
    tcdir: Path | None,
    profile_path: Path | None,
    jobs: int | None,
) -> Settings:
    """Return settings with CLI flags taking precedence over env and defaults."""
    overrides = {
        "home_dir": homedir,
        "tc_dir": tcdir,
        "profile_path": profile_path,
        "jobs": jobs,
    }
    return settings.model_copy(
        update={k: v for k, v in overrides.items() if v is not None}
    )


def load_device_profile(path: Path | None) -> DeviceProfile:
    """Load the device profile, exiting 1 with a message on bad input."""
    try:
        return get_profile(path)
    except FileNotFoundError:
        console.print(f"[red]Profile not found: {path}[/red]")
        raise typer.Exit(code=1) from None
    except yaml.YAMLError as e:
        console.print(f"[red]Invalid profile YAML: {e}[/red]")
        raise typer.Exit(code=1) from None
    except ValueError as e:
        console.print("[red]Invalid profile:[/red]")
        console.print(str(e), markup=False)
        raise typer.Exit(code=1) from None


@app.command()
def main(
    regen: Annotated[
        bool,
        typer.Option("--regen", "-r", help="Regenerate the defconfig."),
    ] = False,
    clean: Annotated[
        bool,
        typer.Option("--clean", "-c", help="Clean the output folder before building."),
    ] = False,
    homedir: Annotated[
        Path | None,
        typer.Option(
            "--homedir", "-h", metavar="DIR", help="Specify the home directory."
        ),
    ] = None,
    tcdir: Annotated[
        Path | None,
        typer.Option(
            "--tcdir", "-t", metavar="DIR", help="Specify the toolchain directory."
        ),
    ] = None,
    profile_path: Annotated[
        Path | None,
        typer.Option(
            "--profile", "-p", metavar="FILE", help="Device profile (YAML or JSON)."
        ),
    ] = None,
    jobs: Annotated[
        int | None,
        typer.Option("--jobs", "-j", min=1, help="Parallel make jobs."),
    ] = None,
    manifest: Annotated[
        bool,
        typer.Option("--manifest", help="Write a JSON manifest next to the zip."),
    ] = False,
    show_config: Annotated[
        bool,
        typer.Option("--show-config", help="Show effective configuration and exit."),
    ] = False,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Build the kernel and pack Image, DTBs, DTBO and modules into a zip."""
    from kernel_packer.builds.service import (
        BuildOptions,
        RegenResult,
        format_elapsed,
        run,
    )

    settings = apply_overrides(get_settings(), homedir, tcdir, profile_path, jobs)
    configure_logging(settings.log_level)
    profile = load_device_profile(settings.profile_path)

    if show_config:
        output = {
            "settings": json.loads(settings.model_dump_json()),
            "profile": profile.model_dump(mode="json"),
        }
        console.print_json(json.dumps(output))
        return

    options = BuildOptions(
        regen=regen,
        clean=clean,
        jobs=settings.jobs,
        manifest=manifest,
        echo=sys.stdout,
    )

    try:
        result = run(settings, profile, options)
    except FATAL_ERRORS as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from None

    if isinstance(result, RegenResult):
        console.print(
            f"[green]Successfully regenerated defconfig at {result.defconfig_path}[/green]"
        )
        return

    if result.warnings:
        console.print(f"[yellow]Finished with {len(result.warnings)} warning(s):[/yellow]")
        for warning in result.warnings:
            console.print(f"  - {warning}")
    console.print()
    console.print(
        f"[green]Completed in {format_elapsed(result.elapsed_seconds)}![/green]"
    )
    console.print(f"Zip created: {Path(result.zip_path).name}")
    console.print(f"  SHA-256: {result.sha256}")
    if result.manifest_path:
        console.print(f"  Manifest: {result.manifest_path}")


if __name__ == "__main__":
    app()
