"""
Typed access to the YAML configs under configs/.

    params.yml  - study area, ACS/PLACES years, outlier threshold, outputs
    sources.yml - remote URLs and raw file names
    models.yml  - model catalog and stepwise selection specs
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from county_health_db.io_utils import read_yaml
from county_health_db.models import ModelSpec
from county_health_db.outliers import DEFAULT_Z_THRESHOLD
from county_health_db.paths import paths
from county_health_db.stepwise import DIRECTIONS


@dataclass(frozen=True)
class Params:
    """Run parameters from params.yml."""
    state_abbr: str
    state_fips: str
    state_name: str
    acs_year: int
    acs_dataset: str
    acs_tables: tuple[str, ...]
    places_year: int
    z_threshold: float
    outlier_columns: tuple[str, ...]
    database_file: str
    report_file: str


@dataclass(frozen=True)
class StepwiseSpec:
    """A stepwise selection run: candidate model plus directions to try."""
    spec: ModelSpec
    directions: tuple[str, ...]


def _require(section: dict, key: str, where: str) -> Any:
    if key not in section:
        raise ValueError(f"Missing '{key}' in {where}")
    return section[key]


def load_params(path: Path | str | None = None) -> Params:
    """
    Load params.yml.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If a required key is missing.
    """
    path = Path(path) if path else paths.params_yml
    raw = read_yaml(path) or {}
    where = path.name

    area = _require(raw, "study_area", where)
    acs = _require(raw, "acs", where)
    places = _require(raw, "places", where)
    outliers = raw.get("outliers", {})
    outputs = raw.get("outputs", {})

    return Params(
        state_abbr=str(_require(area, "state_abbr", where)),
        state_fips=str(_require(area, "state_fips", where)).zfill(2),
        state_name=str(area.get("state_name", "")),
        acs_year=int(_require(acs, "year", where)),
        acs_dataset=str(acs.get("dataset", "acs/acs5")),
        acs_tables=tuple(acs.get("tables", ())),
        places_year=int(_require(places, "year", where)),
        z_threshold=float(outliers.get("z_threshold", DEFAULT_Z_THRESHOLD)),
        outlier_columns=tuple(outliers.get("columns", ())),
        database_file=str(outputs.get("county_database", "county_population_database.csv")),
        report_file=str(outputs.get("model_report", "model_summary.md")),
    )


def load_sources(path: Path | str | None = None) -> dict[str, dict]:
    """Load sources.yml as a mapping of source name to its settings."""
    path = Path(path) if path else paths.sources_yml
    raw = read_yaml(path) or {}
    for name, section in raw.items():
        if not isinstance(section, dict):
            raise ValueError(f"Source '{name}' in {path.name} must be a mapping")
    return raw


def _model_spec(entry: dict, predictors_key: str, where: str) -> ModelSpec:
    name = _require(entry, "name", where)
    return ModelSpec(
        name=name,
        response=_require(entry, "response", f"{where} model '{name}'"),
        predictors=tuple(entry.get(predictors_key) or ()),
        family=entry.get("family", "quasipoisson"),
        categorical=tuple(entry.get("categorical") or ()),
        description=entry.get("description", ""),
    )


def load_model_specs(path: Path | str | None = None) -> list[ModelSpec]:
    """
    Load the model catalog from models.yml.

    Raises:
        ValueError: On a missing key, unknown family or duplicate model name.
    """
    path = Path(path) if path else paths.models_yml
    raw = read_yaml(path) or {}
    specs = [_model_spec(entry, "predictors", path.name) for entry in raw.get("models", [])]

    names = [s.name for s in specs]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ValueError(f"Duplicate model names in {path.name}: {duplicates}")
    return specs


def load_stepwise_specs(path: Path | str | None = None) -> list[StepwiseSpec]:
    """Load the stepwise selection specs from models.yml."""
    path = Path(path) if path else paths.models_yml
    raw = read_yaml(path) or {}

    out = []
    for entry in raw.get("stepwise", []):
        spec = _model_spec(entry, "candidates", path.name)
        directions = tuple(entry.get("directions") or ("forward",))
        unknown = [d for d in directions if d not in DIRECTIONS]
        if unknown:
            raise ValueError(f"Stepwise '{spec.name}': unknown directions {unknown}. Use {DIRECTIONS}")
        out.append(StepwiseSpec(spec=spec, directions=directions))
    return out
