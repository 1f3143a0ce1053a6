"""
Tests for county_health_db.cli module.

Tests cover:
- Script dispatch and exit codes
- Stopping the pipeline at the first failing step
"""

import subprocess
import sys
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest

from county_health_db import cli


def _completed(code):
    return subprocess.CompletedProcess(args=[], returncode=code)


class TestRunScript:
    """Tests for single-step commands."""

    def test_runs_script_from_project_root(self, project_root):
        """The script should run with the current interpreter from the root."""
        with patch("county_health_db.cli.subprocess.run", return_value=_completed(0)) as run:
            assert cli.run_01_database() == 0
        args, kwargs = run.call_args
        assert args[0] == [sys.executable, str(project_root / "scripts" / "01_build_county_database.py")]
        assert kwargs["cwd"] == project_root

    def test_missing_script(self):
        """A missing script should return 1 without starting a process."""
        with patch("county_health_db.cli.subprocess.run") as run:
            assert cli._run_script("99_missing.py") == 1
        run.assert_not_called()


class TestRunSteps:
    """Tests for multi-step commands."""

    def test_run_all_order(self):
        """Fetch, build and regression should run in order."""
        with patch("county_health_db.cli.subprocess.run", return_value=_completed(0)) as run:
            assert cli.run_all() == 0
        scripts = [Path(c.args[0][1]).name for c in run.call_args_list]
        assert scripts == [
            "00_fetch_raw_sources.py", "01_build_county_database.py", "02_utilization_regression.py",
        ]

    def test_run_local_skips_fetch(self):
        """The local run should not fetch."""
        with patch("county_health_db.cli.subprocess.run", return_value=_completed(0)) as run:
            assert cli.run_local() == 0
        assert [Path(c.args[0][1]).name for c in run.call_args_list][0] == "01_build_county_database.py"

    def test_stops_at_first_failure(self):
        """A failing step should stop the run and return its exit code."""
        with patch("county_health_db.cli.subprocess.run", side_effect=[_completed(0), _completed(3)]) as run:
            assert cli.run_all() == 3
        assert run.call_count == 2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
