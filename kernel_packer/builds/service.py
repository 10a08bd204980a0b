"""Build service module.

This module provides the high-level API:
- prepare(): resolve paths, build the environment, check required commands
- regenerate(): refresh the stored defconfig and stop
- build_and_pack(): compile, stage the AnyKernel3 payload and zip it
- run(): dispatch between the two from BuildOptions

Every step runs in sequence. Fatal failures raise; tolerated ones are
logged and collected in PackageResult.warnings.
"""

from __future__ import annotations

import logging
import shutil
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

from kernel_packer.builds.artifacts import (
    boot_dir,
    compute_file_hash,
    describe_files,
    find_kernel_modules,
    find_module_metadata,
    generate_manifest,
    validate_outputs,
    write_manifest,
)
from kernel_packer.builds.runner import (
    MODULES_INSTALL_DIR,
    BuildExecutionError,
    compile_kernel,
    configure,
    get_kernel_version,
    install_modules,
    regenerate_defconfig,
)
from kernel_packer.packaging.archive import compose_zip_name, create_zip
from kernel_packer.packaging.modules import (
    PAYLOAD_MODULES_DIR,
    copy_flat,
    modules_dir_name,
    rewrite_metadata,
)
from kernel_packer.packaging.payload import (
    create_dtbo,
    reset_payload,
    stage_dtb,
    stage_image,
)
from kernel_packer.packaging.repo import ensure_repo, get_head_commit
from kernel_packer.toolchain import (
    BuildPaths,
    check_required_commands,
    compose_env,
    required_commands,
    resolve_paths,
)
from kernel_packer.types import PackageResult, RepoAction

if TYPE_CHECKING:
    from kernel_packer.config import Settings
    from kernel_packer.profiles.schema import DeviceProfile

logger = logging.getLogger(__name__)


@dataclass
class BuildOptions:
    """Per-run options taken from the command line.

    Attributes:
        regen: Regenerate the defconfig and stop.
        clean: Remove the build directory before configuring.
        jobs: Parallel make jobs (all CPU cores if None).
        manifest: Write a JSON manifest next to the zip.
        echo: Stream that receives the compiler output.
    """

    regen: bool = False
    clean: bool = False
    jobs: int | None = None
    manifest: bool = False
    echo: TextIO | None = None


@dataclass
class RegenResult:
    """Result of a defconfig regeneration run."""

    defconfig_path: Path
    elapsed_seconds: float


@dataclass
class BuildContext:
    """Everything resolved before the first make call."""

    paths: BuildPaths
    env: dict[str, str]


def prepare(settings: Settings, profile: DeviceProfile) -> BuildContext:
    """Resolve paths and check that make, python and git are installed.

    Raises:
        MissingCommandError: If a required command is missing.
    """
    paths = resolve_paths(settings, profile)
    env = compose_env(paths.clang_bin_dir)
    check_required_commands(env, required_commands(settings.python))
    return BuildContext(paths=paths, env=env)


def regenerate(
    context: BuildContext,
    profile: DeviceProfile,
    started: float | None = None,
) -> RegenResult:
    """Regenerate the defconfig into arch/<arch>/configs.

    Raises:
        BuildExecutionError: If make fails.
    """
    started = time.monotonic() if started is None else started
    path = regenerate_defconfig(profile, context.paths.source_dir, context.env)
    return RegenResult(defconfig_path=path, elapsed_seconds=time.monotonic() - started)


def clean_output(out_dir: Path) -> bool:
    """Remove the build directory.

    Returns:
        True if a directory was removed.
    """
    if out_dir.is_symlink():
        logger.info("Cleaning output folder...")
        out_dir.unlink()
        return True
    if not out_dir.exists():
        return False
    logger.info("Cleaning output folder...")
    shutil.rmtree(out_dir)
    return True


def _warn(warnings: list[str], message: str) -> None:
    logger.warning(message)
    warnings.append(message)


def build_and_pack(
    context: BuildContext,
    profile: DeviceProfile,
    settings: Settings,
    options: BuildOptions,
    zip_name: str,
    commit: str | None = None,
    started: float | None = None,
) -> PackageResult:
    """Compile the kernel and pack it into ``zip_name``.

    Args:
        context: Resolved paths and environment.
        profile: Device profile.
        settings: Effective settings.
        options: Per-run options.
        zip_name: Output zip file name, written in the source directory.
        commit: Source commit recorded in the result and manifest.
        started: Monotonic start time for the elapsed report.

    Returns:
        PackageResult describing the zip.

    Raises:
        BuildExecutionError: If configure, compile or kernelversion fails.
        ArtifactValidationError: If the Image or DTB directory is missing.
        RepositoryError: If the packaging repository cannot be cloned.
    """
    started = time.monotonic() if started is None else started
    paths = context.paths
    env = context.env
    warnings: list[str] = []

    if options.clean:
        clean_output(paths.out_dir)

    configure(profile, paths.source_dir, env)

    build = compile_kernel(
        profile,
        paths.source_dir,
        paths.log_path,
        env=env,
        jobs=options.jobs,
        echo=options.echo,
    )
    if not build.success:
        raise BuildExecutionError(
            build.error_message or "Kernel build failed.",
            exit_code=build.exit_code,
            code="compile_failed",
        )

    install_code = install_modules(profile, paths.source_dir, env, jobs=options.jobs)
    if install_code != 0:
        _warn(warnings, f"modules_install exited with code {install_code}")

    outputs = validate_outputs(paths.out_dir, profile)

    repo_dir = paths.anykernel_dir
    repo_action = ensure_repo(
        profile.anykernel.url, profile.anykernel.branch, repo_dir, env
    )
    if repo_action is RepoAction.STALE:
        warnings.append(f"Using stale {repo_dir.name} repository")

    reset_payload(repo_dir)
    stage_image(outputs.image, repo_dir)
    if stage_dtb(outputs.dts_dir, repo_dir) == 0:
        warnings.append("No .dtb files found")
    if not create_dtbo(
        outputs.dts_dir,
        repo_dir,
        paths.source_dir,
        python=settings.python,
        page_size=profile.dtbo_page_size,
        env=env,
    ):
        warnings.append("dtbo.img was not created")

    kernel_version = get_kernel_version(paths.source_dir, env)
    modules_dir = repo_dir / PAYLOAD_MODULES_DIR / modules_dir_name(
        kernel_version, profile.module_suffix
    )
    modules_dir.mkdir(parents=True, exist_ok=True)

    modules = find_kernel_modules(paths.out_dir)
    modules_count = copy_flat(modules, modules_dir) if modules else 0
    if not modules:
        _warn(warnings, "No driver modules found.")

    metadata = find_module_metadata(paths.out_dir)
    if metadata:
        copy_flat(metadata, modules_dir)
        for name in rewrite_metadata(modules_dir, profile.modules_runtime_dir):
            warnings.append(f"{name} was not rewritten")
    else:
        _warn(warnings, "No module metadata found.")

    shutil.rmtree(boot_dir(paths.out_dir, profile.arch), ignore_errors=True)
    shutil.rmtree(paths.out_dir / MODULES_INSTALL_DIR, ignore_errors=True)

    zip_path = paths.source_dir / zip_name
    packed = create_zip(repo_dir, zip_path, profile.zip_excludes)
    zip_sha256 = compute_file_hash(zip_path)
    zip_size = zip_path.stat().st_size

    manifest_path: Path | None = None
    if options.manifest:
        manifest = generate_manifest(
            describe_files(repo_dir, packed),
            zip_name=zip_name,
            zip_sha256=zip_sha256,
            zip_size_bytes=zip_size,
            kernel_version=kernel_version,
            commit=commit,
            profile=profile.model_dump(mode="json"),
        )
        manifest_path = write_manifest(manifest, zip_path.with_suffix(".json"))

    shutil.rmtree(repo_dir)

    return PackageResult(
        zip_path=str(zip_path),
        size_bytes=zip_size,
        sha256=zip_sha256,
        kernel_version=kernel_version,
        commit=commit,
        modules_count=modules_count,
        repo_action=repo_action,
        elapsed_seconds=time.monotonic() - started,
        manifest_path=str(manifest_path) if manifest_path else None,
        warnings=warnings,
    )


def run(
    settings: Settings,
    profile: DeviceProfile,
    options: BuildOptions,
    now: datetime | None = None,
) -> PackageResult | RegenResult:
    """Run the whole pipeline.

    Args:
        settings: Effective settings.
        profile: Device profile.
        options: Per-run options.
        now: Timestamp for the zip name (local time now if None).

    Returns:
        RegenResult when options.regen is set, else PackageResult.

    Raises:
        MissingCommandError: If a required command is missing.
        BuildExecutionError: If a make step fails, or a file cannot be
            copied, removed or archived (code "filesystem_error").
        ArtifactValidationError: If the Image or DTB directory is missing.
        RepositoryError: If the packaging repository cannot be cloned.
    """
    started = time.monotonic()
    context = prepare(settings, profile)

    commit = get_head_commit(context.paths.source_dir, context.env)
    zip_name = compose_zip_name(profile.product_name, now=now, commit=commit)

    try:
        if options.regen:
            return regenerate(context, profile, started=started)

        return build_and_pack(
            context,
            profile,
            settings,
            options,
            zip_name=zip_name,
            commit=commit,
            started=started,
        )
    except OSError as e:
        raise BuildExecutionError(str(e), code="filesystem_error") from e


def format_elapsed(seconds: float) -> str:
    """Render seconds as ``<m> minute(s) and <s> second(s)``."""
    total = int(seconds)
    return f"{total // 60} minute(s) and {total % 60} second(s)"


__all__ = [
    "BuildContext",
    "BuildOptions",
    "RegenResult",
    "build_and_pack",
    "clean_output",
    "format_elapsed",
    "prepare",
    "regenerate",
    "run",
]
