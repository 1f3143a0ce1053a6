"""
Installed commands for the numbered pipeline scripts.

    county-db-fetch         00_fetch_raw_sources.py
    county-db-build         01_build_county_database.py
    county-db-regression    02_utilization_regression.py
    county-db-run-local     01 then 02, on raw files already in data/raw/
    county-db-run-all       00, 01, 02

Each script runs in its own interpreter with the project root as working
directory, exactly as `python scripts/<name>.py` would.
"""

import subprocess
import sys

from county_health_db.paths import get_project_root


FETCH_STEP = ("00_fetch_raw_sources.py", "Fetching raw sources")
LOCAL_STEPS = [
    ("01_build_county_database.py", "Building county population database"),
    ("02_utilization_regression.py", "Fitting utilization models"),
]


def _run_script(script_name: str) -> int:
    """Exit code of scripts/<script_name>; 1 if the script is missing."""
    root = get_project_root()
    script = root / "scripts" / script_name
    if not script.is_file():
        print(f"Error: Script not found: {script}", file=sys.stderr)
        return 1
    return subprocess.run([sys.executable, str(script)], cwd=root).returncode


def _run_steps(title: str, steps: list[tuple[str, str]]) -> int:
    """Run steps in order, stopping at the first failure and returning its exit code."""
    print("=" * 60)
    print(title)
    print("=" * 60)

    for script_name, label in steps:
        print(f"\n[{label}]")
        print("-" * 40)
        code = _run_script(script_name)
        if code != 0:
            print(f"\n❌ Pipeline stopped at {script_name} (exit code {code})")
            return code

    print("\n" + "=" * 60)
    print(f"✅ {len(steps)} steps completed")
    print("=" * 60)
    return 0


def run_00_fetch() -> int:
    return _run_script(FETCH_STEP[0])


def run_01_database() -> int:
    return _run_script(LOCAL_STEPS[0][0])


def run_02_regression() -> int:
    return _run_script(LOCAL_STEPS[1][0])


def run_local() -> int:
    """Rebuild the database and models without network access."""
    return _run_steps("County Health Database - Build and Model", LOCAL_STEPS)


def run_all() -> int:
    return _run_steps("County Health Database - Full Pipeline", [FETCH_STEP, *LOCAL_STEPS])


if __name__ == "__main__":
    sys.exit(run_all())
