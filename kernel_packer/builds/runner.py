"""Build runner for executing kernel make commands.

This module handles:
- Composing the cross-compile make parameters from a device profile
- Regenerating the defconfig
- Configuring, compiling and installing modules with subprocess
- Streaming compiler output to the console and a log file
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

if TYPE_CHECKING:
    from kernel_packer.profiles.schema import DeviceProfile

logger = logging.getLogger(__name__)

OUT_DIR_NAME = "out"
MODULES_INSTALL_DIR = "modules"


class BuildExecutionError(Exception):
    """Raised when a make invocation fails."""

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        code: str = "build_error",
    ) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.code = code


@dataclass
class BuildResult:
    """Result of the compile step.

    Attributes:
        success: Whether make exited 0.
        exit_code: Process exit code.
        log_path: Path to the build log file.
        started_at: Build start time.
        finished_at: Build finish time.
        command: The command that was executed.
        error_message: Error message if build failed.
    """

    success: bool
    exit_code: int
    log_path: Path
    started_at: datetime
    finished_at: datetime
    command: str
    error_message: str | None = None


def default_jobs() -> int:
    """Return the number of CPU cores available to make -j."""
    return os.cpu_count() or 1


def compose_make_params(
    profile: DeviceProfile,
    out_dir: str = OUT_DIR_NAME,
) -> list[str]:
    """Compose the fixed make variables shared by every invocation.

    Args:
        profile: Device profile.
        out_dir: Out-of-tree build directory, relative to the source tree.

    Returns:
        List of VAR=value arguments.
    """
    compiler = profile.compiler
    params = [f"O={out_dir}", f"ARCH={profile.arch}", f"CC={compiler.cc}"]
    if compiler.clang_triple:
        params.append(f"CLANG_TRIPLE={compiler.clang_triple}")
    if compiler.llvm:
        params.append("LLVM=1")
    if compiler.llvm_ias:
        params.append("LLVM_IAS=1")
    params.append(f"CROSS_COMPILE={compiler.cross_compile}")
    return params


def compose_make_command(
    profile: DeviceProfile,
    targets: list[str] | None = None,
    jobs: int | None = None,
    extra_vars: list[str] | None = None,
) -> list[str]:
    """Compose a full make command line.

    Args:
        profile: Device profile.
        targets: Make targets (none builds the default target).
        jobs: Value for -j, omitted if None.
        extra_vars: Additional VAR=value arguments.

    Returns:
        Command as list of strings suitable for subprocess.
    """
    cmd = ["make"]
    if jobs is not None:
        cmd.append(f"-j{jobs}")
    cmd.extend(compose_make_params(profile))
    if extra_vars:
        cmd.extend(extra_vars)
    if targets:
        cmd.extend(targets)
    return cmd


def run_make(
    cmd: list[str],
    source_dir: Path,
    env: dict[str, str] | None = None,
) -> int:
    """Run a make command with output inherited from this process.

    Args:
        cmd: Command to run.
        source_dir: Kernel source tree (working directory).
        env: Environment for the child process.

    Returns:
        Process exit code.

    Raises:
        BuildExecutionError: If make could not be started.
    """
    logger.debug("Executing: %s", shlex.join(cmd))
    try:
        result = subprocess.run(cmd, cwd=source_dir, env=env, check=False)
    except OSError as e:
        raise BuildExecutionError(
            f"Failed to execute make: {e}",
            code="execution_error",
        ) from e
    return result.returncode


def regenerate_defconfig(
    profile: DeviceProfile,
    source_dir: Path,
    env: dict[str, str] | None = None,
) -> Path:
    """Regenerate the minimized defconfig and store it in the source tree.

    Args:
        profile: Device profile.
        source_dir: Kernel source tree.
        env: Environment for make.

    Returns:
        Path of the written defconfig.

    Raises:
        BuildExecutionError: If make fails or produces no defconfig.
    """
    logger.info("Regenerating defconfig...")
    cmd = compose_make_command(profile, targets=[profile.defconfig, "savedefconfig"])
    exit_code = run_make(cmd, source_dir, env)
    if exit_code != 0:
        raise BuildExecutionError(
            "Failed to regenerate defconfig.",
            exit_code=exit_code,
            code="regen_failed",
        )

    generated = source_dir / OUT_DIR_NAME / "defconfig"
    if not generated.is_file():
        raise BuildExecutionError(
            f"savedefconfig did not produce {generated}",
            exit_code=exit_code,
            code="regen_failed",
        )

    target = source_dir / "arch" / profile.arch / "configs" / profile.defconfig
    target.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(generated, target)
    logger.info("Successfully regenerated defconfig at %s", profile.defconfig)
    return target


def configure(
    profile: DeviceProfile,
    source_dir: Path,
    env: dict[str, str] | None = None,
) -> None:
    """Materialize the kernel .config from the profile's defconfig.

    Raises:
        BuildExecutionError: If make fails.
    """
    (source_dir / OUT_DIR_NAME).mkdir(parents=True, exist_ok=True)
    cmd = compose_make_command(profile, targets=[profile.defconfig])
    exit_code = run_make(cmd, source_dir, env)
    if exit_code != 0:
        raise BuildExecutionError(
            "Failed to configure build.",
            exit_code=exit_code,
            code="configure_failed",
        )


def _tee(stream: TextIO, log_file: TextIO, echo: TextIO | None) -> None:
    for line in stream:
        log_file.write(line)
        if echo is not None:
            echo.write(line)
            echo.flush()


def compile_kernel(
    profile: DeviceProfile,
    source_dir: Path,
    log_path: Path,
    env: dict[str, str] | None = None,
    jobs: int | None = None,
    echo: TextIO | None = None,
) -> BuildResult:
    """Compile the kernel, writing stdout/stderr to both echo and log_path.

    Args:
        profile: Device profile.
        source_dir: Kernel source tree.
        log_path: Build log file; kept on failure.
        env: Environment for make.
        jobs: Parallel jobs (all CPU cores if None).
        echo: Stream that receives a copy of the output, or None.

    Returns:
        BuildResult with execution details.

    Raises:
        BuildExecutionError: If make could not be started.
    """
    cmd = compose_make_command(profile, jobs=jobs or default_jobs())
    cmd_str = shlex.join(cmd)
    logger.info("Starting compilation...")
    logger.debug("Executing: %s", cmd_str)

    started_at = datetime.now(timezone.utc)
    error_message: str | None = None

    try:
        with log_path.open("w", encoding="utf-8") as log_file:
            proc = subprocess.Popen(
                cmd,
                cwd=source_dir,
                env=env,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
            )
            if proc.stdout is not None:
                with proc.stdout:
                    _tee(proc.stdout, log_file, echo)
            exit_code = proc.wait()
    except OSError as e:
        error_message = f"Failed to execute build: {e}"
        logger.error(error_message)
        raise BuildExecutionError(
            error_message,
            exit_code=None,
            code="execution_error",
        ) from e

    finished_at = datetime.now(timezone.utc)
    success = exit_code == 0
    if not success:
        error_message = (
            f"Kernel build failed. Check '{log_path.name}' for details."
        )
        logger.error("Build exited with code %d. See log: %s", exit_code, log_path)

    return BuildResult(
        success=success,
        exit_code=exit_code,
        log_path=log_path,
        started_at=started_at,
        finished_at=finished_at,
        command=cmd_str,
        error_message=error_message,
    )


def install_modules(
    profile: DeviceProfile,
    source_dir: Path,
    env: dict[str, str] | None = None,
    jobs: int | None = None,
) -> int:
    """Install stripped modules into out/modules.

    Returns:
        make's exit code; the caller decides whether failure matters.
    """
    cmd = compose_make_command(
        profile,
        targets=["modules_install"],
        jobs=jobs or default_jobs(),
        extra_vars=[f"INSTALL_MOD_PATH={MODULES_INSTALL_DIR}", "INSTALL_MOD_STRIP=1"],
    )
    return run_make(cmd, source_dir, env)


def get_kernel_version(
    source_dir: Path,
    env: dict[str, str] | None = None,
    timeout: int = 60,
) -> str:
    """Return the output of ``make kernelversion``.

    Raises:
        BuildExecutionError: If the command fails or prints nothing.
    """
    try:
        result = subprocess.run(
            ["make", "-s", "kernelversion"],
            cwd=source_dir,
            env=env,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=True,
        )
    except subprocess.TimeoutExpired as e:
        raise BuildExecutionError(
            f"make kernelversion timed out after {timeout}s",
            exit_code=-1,
            code="timeout",
        ) from e
    except subprocess.CalledProcessError as e:
        raise BuildExecutionError(
            f"make kernelversion failed: {e.stderr}",
            exit_code=e.returncode,
            code="kernelversion_failed",
        ) from e
    except OSError as e:
        raise BuildExecutionError(
            f"Failed to run make kernelversion: {e}",
            code="execution_error",
        ) from e

    lines = result.stdout.strip().splitlines()
    if not lines:
        raise BuildExecutionError(
            "make kernelversion printed nothing",
            exit_code=0,
            code="kernelversion_failed",
        )
    return lines[-1].strip()


__all__ = [
    "MODULES_INSTALL_DIR",
    "OUT_DIR_NAME",
    "BuildExecutionError",
    "BuildResult",
    "compile_kernel",
    "compose_make_command",
    "compose_make_params",
    "configure",
    "default_jobs",
    "get_kernel_version",
    "install_modules",
    "regenerate_defconfig",
    "run_make",
]
