"""
Tests for the command-line entry point.
"""
from __future__ import annotations

from pathlib import Path

from click.testing import CliRunner

from swipesort.cli import main


class TestCLI:
    """Argument handling that fails before the server starts."""

    def test_missing_directory(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(main, [str(tmp_path / "missing")])

        assert result.exit_code == 2

    def test_threshold_below_picker_threshold(self, temp_library_dir: Path) -> None:
        result = CliRunner().invoke(main, [str(temp_library_dir), "--threshold", "5"])

        assert result.exit_code == 1
        assert "Invalid configuration" in result.output

    def test_help_lists_destination_option(self) -> None:
        result = CliRunner().invoke(main, ["--help"])

        assert result.exit_code == 0
        assert "--destination" in result.output
