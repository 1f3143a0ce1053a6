"""
Reading and atomically writing pipeline tables, reports and configs.

Every output goes to a sibling <stem>_XXXX.tmp file first and is renamed
over the target only after the writer returns, so a crashed run leaves
either the previous output or nothing. A .tmp file found in an output
directory therefore marks a failed run.

CSVs are written without an index and with "\n" line endings; the same
table written twice gives the same bytes.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Callable

import pandas as pd
import yaml

from county_health_db.paths import ensure_dir


# Row-number columns written by R's write.csv ("X") and pandas' to_csv(index=True)
AUTO_INDEX_COLUMNS = ("Unnamed: 0", "X", "X.x")


def atomic_write(
    target_path: Path | str,
    write_func: Callable,
    *args,
    **kwargs
) -> Path:
    """
    Run write_func(temp_path, *args, **kwargs) and move the result onto target_path.

    The temp file is created in the target's directory. On any exception it
    is removed and the exception re-raised; an existing target is untouched.
    """
    target = Path(target_path)
    ensure_dir(target.parent)

    fd, name = tempfile.mkstemp(prefix=f"{target.stem}_", suffix=".tmp", dir=target.parent)
    os.close(fd)
    staging = Path(name)
    try:
        write_func(staging, *args, **kwargs)
        os.replace(staging, target)
    except Exception:
        staging.unlink(missing_ok=True)
        raise
    return target


def _dump_json(path: Path, data: Any, indent: int) -> None:
    path.write_text(json.dumps(data, indent=indent, default=str), encoding="utf-8")


def _dump_text(path: Path, content: str) -> None:
    path.write_text(content, encoding="utf-8")


def _dump_csv(path: Path, df: pd.DataFrame) -> None:
    df.to_csv(path, index=False, lineterminator="\n")


def atomic_write_json(target_path: Path | str, data: Any, indent: int = 2) -> Path:
    """JSON dump; values json cannot encode (Paths, timestamps) are written with str()."""
    return atomic_write(target_path, _dump_json, data, indent)


def atomic_write_text(target_path: Path | str, content: str) -> Path:
    return atomic_write(target_path, _dump_text, content)


def atomic_write_csv(target_path: Path | str, df: pd.DataFrame) -> Path:
    """Write a table as CSV with no index column."""
    return atomic_write(target_path, _dump_csv, df)


def _existing(file_path: Path | str, kind: str) -> Path:
    file_path = Path(file_path)
    if not file_path.is_file():
        raise FileNotFoundError(f"{kind} file not found: {file_path}")
    return file_path


def read_csv_table(
    file_path: Path | str,
    string_columns: list[str] | tuple[str, ...] = (),
) -> pd.DataFrame:
    """
    Read a county table written by this pipeline or by older R scripts.

    Args:
        file_path: CSV to read.
        string_columns: Identifier columns (county names, FIPS/GEOIDs) to
            keep as text so codes like "01001" keep their leading zeros.

    Returns:
        The table, minus any auto-generated row-number column.

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    df = pd.read_csv(
        _existing(file_path, "CSV"),
        dtype={column: str for column in string_columns},
        float_precision="round_trip",
    )
    return df.loc[:, [c for c in df.columns if c not in AUTO_INDEX_COLUMNS]]


def read_yaml(file_path: Path | str) -> Any:
    """Parse a YAML file with yaml.safe_load."""
    with _existing(file_path, "YAML").open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle)
