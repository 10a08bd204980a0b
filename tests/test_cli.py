"""Smoke tests for the CLI.

These tests verify CLI option handling and exit codes without running
make or git; the build service is mocked where a run would start.
"""

import json
from unittest.mock import patch

from typer.testing import CliRunner

from kernel_packer import __version__
from kernel_packer.builds.artifacts import ArtifactValidationError
from kernel_packer.builds.service import RegenResult
from kernel_packer.cli import app
from kernel_packer.toolchain import MissingCommandError
from kernel_packer.types import PackageResult

runner = CliRunner()


class TestCLIHelp:
    """Test CLI help and version options."""

    def test_help_returns_zero(self) -> None:
        """--help should print usage and exit 0."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "Usage:" in result.stdout
        assert "--regen" in result.stdout
        assert "--clean" in result.stdout
        assert "--homedir" in result.stdout
        assert "--tcdir" in result.stdout

    def test_help_has_no_side_effects(self, tmp_path, monkeypatch) -> None:
        """--help with other flags should not touch the filesystem."""
        monkeypatch.chdir(tmp_path)
        with patch("kernel_packer.builds.service.run") as mock_run:
            result = runner.invoke(app, ["--clean", "--regen", "--help"])
        assert result.exit_code == 0
        assert list(tmp_path.iterdir()) == []
        mock_run.assert_not_called()

    def test_version_flag(self) -> None:
        """--version should print version and exit 0."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_short_version_flag(self) -> None:
        """-V should print version and exit 0."""
        result = runner.invoke(app, ["-V"])
        assert result.exit_code == 0
        assert __version__ in result.stdout


class TestCLIShowConfig:
    """Test --show-config."""

    def test_show_config(self, tmp_path) -> None:
        """Should print settings and profile as JSON."""
        result = runner.invoke(app, ["--show-config", "--homedir", str(tmp_path)])
        assert result.exit_code == 0
        output = json.loads(result.stdout)
        assert output["settings"]["home_dir"] == str(tmp_path)
        assert output["profile"]["product_name"] == "nethunter-spacewar"

    def test_short_h_is_homedir(self, tmp_path) -> None:
        """-h should set the home directory, not show help."""
        result = runner.invoke(
            app, ["-h", str(tmp_path), "-t", "prebuilts", "--show-config"]
        )
        assert result.exit_code == 0
        output = json.loads(result.stdout)
        assert output["settings"]["home_dir"] == str(tmp_path)
        assert output["settings"]["tc_dir"] == "prebuilts"

    def test_profile_file(self, tmp_path) -> None:
        """--profile should load the device profile."""
        profile = tmp_path / "lynx.yaml"
        profile.write_text("product_name: kernel-lynx\n")
        result = runner.invoke(app, ["--show-config", "--profile", str(profile)])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["profile"]["product_name"] == "kernel-lynx"

    def test_missing_profile(self, tmp_path) -> None:
        """A missing profile file should exit 1."""
        result = runner.invoke(app, ["--profile", str(tmp_path / "missing.yaml")])
        assert result.exit_code == 1
        assert "Profile not found" in result.stdout

    def test_invalid_profile(self, tmp_path) -> None:
        """An invalid profile should exit 1."""
        profile = tmp_path / "bad.yaml"
        profile.write_text("product_name: bad/name\n")
        result = runner.invoke(app, ["--profile", str(profile)])
        assert result.exit_code == 1
        assert "Invalid profile" in result.stdout


class TestCLIRun:
    """Test build invocations with the service mocked."""

    def test_missing_command_exits_one(self, tmp_path) -> None:
        """A missing dependency should exit 1 with its name."""
        with patch(
            "kernel_packer.builds.service.check_required_commands",
            side_effect=MissingCommandError("git"),
        ):
            result = runner.invoke(app, ["--homedir", str(tmp_path)])
        assert result.exit_code == 1
        assert "'git' is not installed." in result.stdout

    def test_missing_outputs_exits_one(self) -> None:
        """A fatal pipeline error should exit 1."""
        error = ArtifactValidationError(
            "Kernel or DTB files not found. Compilation may have failed."
        )
        with patch("kernel_packer.builds.service.run", side_effect=error):
            result = runner.invoke(app, [])
        assert result.exit_code == 1
        assert "Kernel or DTB files not found" in result.stdout

    def test_regen(self, tmp_path) -> None:
        """--regen should report the defconfig and exit 0."""
        regen = RegenResult(
            defconfig_path=tmp_path / "spacewar_defconfig", elapsed_seconds=1.0
        )
        with patch("kernel_packer.builds.service.run", return_value=regen) as mock_run:
            result = runner.invoke(app, ["--regen"])
        assert result.exit_code == 0
        assert "Successfully regenerated defconfig" in result.stdout
        options = mock_run.call_args.args[2]
        assert options.regen is True
        assert options.clean is False

    def test_full_run(self, tmp_path) -> None:
        """A successful run should report the zip and elapsed time."""
        package = PackageResult(
            zip_path=str(tmp_path / "nethunter-spacewar-20261019-1200-abc12345.zip"),
            size_bytes=1024,
            sha256="f" * 64,
            kernel_version="5.4.289",
            commit="abc12345",
            elapsed_seconds=125,
            warnings=["No driver modules found."],
        )
        with patch("kernel_packer.builds.service.run", return_value=package) as mock_run:
            result = runner.invoke(app, ["-c", "-j", "4", "--manifest"])

        assert result.exit_code == 0
        assert "Completed in 2 minute(s) and 5 second(s)!" in result.stdout
        assert "Zip created: nethunter-spacewar-20261019-1200-abc12345.zip" in result.stdout
        assert "No driver modules found." in result.stdout
        options = mock_run.call_args.args[2]
        assert options.clean is True
        assert options.jobs == 4
        assert options.manifest is True
