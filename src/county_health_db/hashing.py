"""
Provenance sidecars for pipeline outputs.

county_population_database.csv gets a county_population_database_metadata.json
beside it recording what the table was built from: digests of the raw
extracts and configs, the run ID, git commit and library versions.
"""

import hashlib
import json
import subprocess
import sys
from datetime import datetime, timezone
from importlib import metadata as importlib_metadata
from pathlib import Path
from typing import Any

import yaml

from county_health_db.io_utils import atomic_write_json
from county_health_db.paths import get_project_root


# Distribution names as published on the package index
TRACKED_DISTRIBUTIONS = (
    "pandas",
    "numpy",
    "scipy",
    "statsmodels",
    "requests",
    "PyYAML",
    "openpyxl",
)

_CHUNK_SIZE = 1 << 16


def hash_file(file_path: Path | str, algorithm: str = "sha256") -> str:
    """
    Hex digest of a file's bytes.

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    file_path = Path(file_path)
    if not file_path.is_file():
        raise FileNotFoundError(f"Cannot hash missing file: {file_path}")

    digest = hashlib.new(algorithm)
    with file_path.open("rb") as handle:
        while chunk := handle.read(_CHUNK_SIZE):
            digest.update(chunk)
    return digest.hexdigest()


def hash_dict(data: dict, algorithm: str = "sha256") -> str:
    """Digest of a mapping, independent of key order."""
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.new(algorithm, canonical.encode("utf-8")).hexdigest()


def hash_config(config_path: Path | str) -> str:
    """
    Digest of a config file's parsed content.

    YAML and JSON configs are parsed first, so comments, whitespace and
    key order leave the digest unchanged. Other files are hashed as bytes.
    """
    config_path = Path(config_path)
    suffix = config_path.suffix.lower()
    if suffix in (".yml", ".yaml"):
        parsed = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    elif suffix == ".json":
        parsed = json.loads(config_path.read_text(encoding="utf-8"))
    else:
        return hash_file(config_path)
    return hash_dict({"config": parsed})


def get_git_commit() -> str | None:
    """Short HEAD commit of the project checkout, if there is one."""
    try:
        completed = subprocess.run(
            ["git", "rev-parse", "--short=8", "HEAD"],
            cwd=get_project_root(),
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (OSError, subprocess.TimeoutExpired):
        return None
    commit = completed.stdout.strip()
    return commit if completed.returncode == 0 and commit else None


def get_library_versions() -> dict[str, str]:
    """Installed versions of the interpreter and the tracked distributions."""
    versions = {"python": sys.version.split()[0]}
    for dist in TRACKED_DISTRIBUTIONS:
        try:
            versions[dist.lower()] = importlib_metadata.version(dist)
        except importlib_metadata.PackageNotFoundError:
            versions[dist.lower()] = "not installed"
    return versions


def _digests(files: list[Path | str] | None, hasher) -> dict[str, str]:
    """Name -> digest for the files that exist; absent inputs are left out."""
    return {Path(f).name: hasher(f) for f in files or () if Path(f).is_file()}


def create_metadata_sidecar(
    output_path: Path | str,
    run_id: str,
    input_files: list[Path | str] | None = None,
    config_files: list[Path | str] | None = None,
    parameters: dict[str, Any] | None = None,
    row_count: int | None = None,
) -> dict[str, Any]:
    """
    Build the provenance record for an output file.

    Args:
        output_path: The output the record describes.
        run_id: Run that produced it.
        input_files: Raw extracts it was built from.
        config_files: Configs in effect for the run.
        parameters: Runtime parameters worth recording (state, year, ...).
        row_count: Rows in the output.

    Returns:
        JSON-serializable dict.
    """
    output_path = Path(output_path)
    record: dict[str, Any] = {
        "output_file": output_path.name,
        "run_id": run_id,
        "created_at": datetime.now(timezone.utc).isoformat(),
        "git_commit": get_git_commit(),
        "library_versions": get_library_versions(),
    }

    optional = {
        "input_file_hashes": _digests(input_files, hash_file) if input_files else None,
        "config_hashes": _digests(config_files, hash_config) if config_files else None,
        "parameters": parameters or None,
        "row_count": row_count,
        "output_hash": hash_file(output_path) if output_path.is_file() else None,
    }
    record.update({key: value for key, value in optional.items() if value is not None})
    return record


def write_metadata_sidecar(
    output_path: Path | str,
    run_id: str,
    input_files: list[Path | str] | None = None,
    config_files: list[Path | str] | None = None,
    parameters: dict[str, Any] | None = None,
    row_count: int | None = None,
) -> Path:
    """Write the provenance record to <output stem>_metadata.json beside the output."""
    output_path = Path(output_path)
    record = create_metadata_sidecar(
        output_path, run_id,
        input_files=input_files,
        config_files=config_files,
        parameters=parameters,
        row_count=row_count,
    )
    return atomic_write_json(output_path.with_name(f"{output_path.stem}_metadata.json"), record)
