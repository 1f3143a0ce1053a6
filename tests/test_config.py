"""
Tests for county_health_db.config module.

Tests cover:
- Shipped configs load and reference known columns
- Missing keys and invalid entries in hand-written YAML
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest

from county_health_db.config import (
    Params,
    load_model_specs,
    load_params,
    load_sources,
    load_stepwise_specs,
)
from county_health_db.field_maps import ACS_TABLE_MAPPINGS
from county_health_db.metrics import DATABASE_METRICS, UTILIZATION_METRICS, metric_names


def _write(tmp_path, text, name="c.yml"):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


class TestShippedConfigs:
    """The configs under configs/ should load and agree with the code."""

    def test_params(self):
        """params.yml should describe North Carolina."""
        params = load_params()
        assert isinstance(params, Params)
        assert params.state_abbr == "NC"
        assert params.state_fips == "37"
        assert params.z_threshold == 3.0
        assert set(params.acs_tables) == set(ACS_TABLE_MAPPINGS)

    def test_sources(self):
        """sources.yml should list every raw input."""
        sources = load_sources()
        for name in ["places", "rucc", "acs", "hud_crosswalk", "uns", "utilization"]:
            assert name in sources
        assert "{table}" in sources["acs"]["raw_file"]

    def test_model_catalog_uses_known_columns(self):
        """Every model column should be a derived metric or a raw database column."""
        known = set(metric_names(DATABASE_METRICS + UTILIZATION_METRICS)) | {"RUCC_2023", "weighted_uns"}
        specs = load_model_specs()
        assert len(specs) == 8
        for spec in specs:
            assert spec.response in known, spec.name
            assert set(spec.predictors) <= known, spec.name

    def test_stepwise_specs(self):
        """The shipped selection run should try both directions."""
        (selection,) = load_stepwise_specs()
        assert selection.spec.response == "HOSP_ADMIT"
        assert selection.directions == ("forward", "backward")
        assert "RUCC_2023" in selection.spec.categorical


class TestLoadParams:
    """Tests for load_params() on hand-written files."""

    def test_missing_key_raises(self, tmp_path):
        """A missing required key should name the key."""
        path = _write(tmp_path, "study_area:\n  state_abbr: NC\nacs:\n  year: 2023\nplaces:\n  year: 2022\n")
        with pytest.raises(ValueError, match="state_fips"):
            load_params(path)

    def test_defaults_and_zero_padding(self, tmp_path):
        """Optional sections should fall back to defaults; FIPS is padded."""
        path = _write(tmp_path, (
            "study_area:\n  state_abbr: AL\n  state_fips: 1\n"
            "acs:\n  year: 2022\nplaces:\n  year: 2021\n"
        ))
        params = load_params(path)
        assert params.state_fips == "01"
        assert params.z_threshold == 3.0
        assert params.outlier_columns == ()
        assert params.database_file == "county_population_database.csv"

    def test_missing_file(self, tmp_path):
        """An absent config should raise FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_params(tmp_path / "nope.yml")


class TestLoadModels:
    """Tests for model and stepwise loaders on hand-written files."""

    def test_duplicate_names_rejected(self, tmp_path):
        """Two models with one name should be rejected."""
        path = _write(tmp_path, (
            "models:\n"
            "  - {name: m, response: Y, predictors: [A]}\n"
            "  - {name: m, response: Y, predictors: [B]}\n"
        ))
        with pytest.raises(ValueError, match="Duplicate model names"):
            load_model_specs(path)

    def test_unknown_family_rejected(self, tmp_path):
        """An unsupported family should be rejected."""
        path = _write(tmp_path, "models:\n  - {name: m, response: Y, predictors: [A], family: probit}\n")
        with pytest.raises(ValueError, match="Unknown family"):
            load_model_specs(path)

    def test_missing_response_rejected(self, tmp_path):
        """A model without a response should be rejected."""
        path = _write(tmp_path, "models:\n  - {name: m, predictors: [A]}\n")
        with pytest.raises(ValueError, match="response"):
            load_model_specs(path)

    def test_defaults(self, tmp_path):
        """Family defaults to quasi-Poisson; categorical to none."""
        path = _write(tmp_path, "models:\n  - {name: m, response: Y, predictors: [A, B]}\n")
        (spec,) = load_model_specs(path)
        assert spec.family == "quasipoisson"
        assert spec.predictors == ("A", "B")
        assert spec.categorical == ()

    def test_stepwise_unknown_direction(self, tmp_path):
        """Only forward and backward are supported."""
        path = _write(tmp_path, "stepwise:\n  - {name: s, response: Y, candidates: [A], directions: [both]}\n")
        with pytest.raises(ValueError, match="unknown directions"):
            load_stepwise_specs(path)

    def test_stepwise_default_direction(self, tmp_path):
        """Directions default to forward only."""
        path = _write(tmp_path, "stepwise:\n  - {name: s, response: Y, candidates: [A, B]}\n")
        (selection,) = load_stepwise_specs(path)
        assert selection.directions == ("forward",)
        assert selection.spec.predictors == ("A", "B")


class TestLoadSources:
    """Tests for load_sources()."""

    def test_non_mapping_rejected(self, tmp_path):
        """Each source entry must be a mapping."""
        path = _write(tmp_path, "places: https://example.org/places.csv\n")
        with pytest.raises(ValueError, match="must be a mapping"):
            load_sources(path)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
