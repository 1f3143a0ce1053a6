"""
Project root discovery and the canonical directory layout.

The repository root is the nearest ancestor of this package holding a
.project-root marker. Scripts and library code build every data, config,
log and report location from `paths`, never from relative ../ segments.

    configs/            params.yml, sources.yml, models.yml
    data/raw/<source>/  fetched or hand-placed extracts
    data/clean/         county_population_database.csv (+ metadata)
    logs/               JSONL run logs
    reports/tables/     model summaries
"""

from functools import lru_cache
from pathlib import Path
from typing import Union

ROOT_MARKER = ".project-root"
MAX_SEARCH_DEPTH = 10


@lru_cache(maxsize=None)
def get_project_root() -> Path:
    """
    Directory holding the .project-root marker (cached after the first call).

    Raises:
        FileNotFoundError: If no ancestor within MAX_SEARCH_DEPTH has the marker.
    """
    here = Path(__file__).resolve().parent
    for candidate in [here, *here.parents][:MAX_SEARCH_DEPTH]:
        if (candidate / ROOT_MARKER).is_file():
            return candidate
    raise FileNotFoundError(
        f"No {ROOT_MARKER} marker above {here}; "
        "run from a checkout of the county health database repository."
    )


def get_path(*parts: str) -> Path:
    """Absolute path under the project root, e.g. get_path("data", "raw", "acs")."""
    return get_project_root().joinpath(*parts)


def _under(*parts: str) -> property:
    return property(lambda self: get_path(*parts))


class Paths:
    """Named locations in the repository, resolved against the project root."""

    @property
    def root(self) -> Path:
        return get_project_root()

    configs = _under("configs")
    params_yml = _under("configs", "params.yml")
    sources_yml = _under("configs", "sources.yml")
    models_yml = _under("configs", "models.yml")

    # One raw directory per upstream source
    data_raw = _under("data", "raw")
    raw_places = _under("data", "raw", "places")
    raw_rucc = _under("data", "raw", "rucc")
    raw_acs = _under("data", "raw", "acs")
    raw_uns = _under("data", "raw", "uns")
    raw_utilization = _under("data", "raw", "utilization")

    data_clean = _under("data", "clean")

    logs = _under("logs")

    reports = _under("reports")
    reports_tables = _under("reports", "tables")


paths = Paths()


def ensure_dir(path: Union[str, Path]) -> Path:
    """Create `path` (and parents) if needed and return it as a Path."""
    directory = Path(path)
    directory.mkdir(parents=True, exist_ok=True)
    return directory
