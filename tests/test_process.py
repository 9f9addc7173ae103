"""
Tests for clipack.process module.
"""

from __future__ import annotations

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from clipack.exceptions import PackagingError
from clipack.process import run_command

pytestmark = pytest.mark.unit


class TestRunCommand:
    """Tests for run_command()."""

    def test_returns_stdout(self, tmp_path):
        """Test stdout is returned without trailing whitespace."""
        completed = MagicMock(stdout="line1\nline2\n\n")

        with patch("subprocess.run", return_value=completed) as mock_run:
            out = run_command(["npm", "pack"], tmp_path)

        assert out == "line1\nline2"
        assert mock_run.call_args.kwargs["cwd"] == tmp_path
        assert mock_run.call_args.kwargs["check"] is True

    def test_missing_executable(self, tmp_path):
        """Test a missing tool is reported by name."""
        with patch("subprocess.run", side_effect=FileNotFoundError()):
            with pytest.raises(PackagingError, match="pkgbuild not found on PATH"):
                run_command(["pkgbuild", "--version"], tmp_path)

    def test_nonzero_exit(self, tmp_path):
        """Test a failing command includes its exit code and stderr."""
        err = subprocess.CalledProcessError(2, ["yarn"], stderr="lockfile out of date\n")

        with patch("subprocess.run", side_effect=err):
            with pytest.raises(PackagingError) as exc_info:
                run_command(["yarn", "--production"], tmp_path)

        assert "exit code 2" in str(exc_info.value)
        assert "lockfile out of date" in str(exc_info.value)
        assert exc_info.value.__cause__ is err

    def test_timeout(self, tmp_path):
        """Test a timeout is reported as a packaging error."""
        with patch(
            "subprocess.run", side_effect=subprocess.TimeoutExpired(["npm"], 5)
        ):
            with pytest.raises(PackagingError, match="timed out after 5"):
                run_command(["npm", "install"], tmp_path, timeout=5)
