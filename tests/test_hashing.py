"""
Tests for county_health_db.hashing module.

Tests cover:
- File and config hashing
- Metadata sidecar contents and location
"""

import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest

from county_health_db.hashing import (
    create_metadata_sidecar,
    hash_config,
    hash_dict,
    hash_file,
    write_metadata_sidecar,
)


class TestHashing:
    """Tests for hash helpers."""

    def test_hash_file_stable(self, tmp_path):
        """Equal content should give equal hashes."""
        a = tmp_path / "a.csv"
        b = tmp_path / "b.csv"
        a.write_text("county_name\nDARE\n", encoding="utf-8")
        b.write_text("county_name\nDARE\n", encoding="utf-8")
        assert hash_file(a) == hash_file(b)
        assert len(hash_file(a)) == 64

    def test_hash_file_missing(self, tmp_path):
        """Hashing an absent file should raise FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            hash_file(tmp_path / "nope.csv")

    def test_hash_dict_key_order(self):
        """Key order should not affect the digest."""
        assert hash_dict({"a": 1, "b": 2}) == hash_dict({"b": 2, "a": 1})

    def test_hash_config_ignores_comments(self, tmp_path):
        """Comments and key order in YAML should not change the digest."""
        a = tmp_path / "a.yml"
        b = tmp_path / "b.yml"
        a.write_text("# study area\nstate: NC\nyear: 2023\n", encoding="utf-8")
        b.write_text("year: 2023\nstate: NC  # North Carolina\n", encoding="utf-8")
        assert hash_config(a) == hash_config(b)


class TestMetadataSidecar:
    """Tests for create_metadata_sidecar() and write_metadata_sidecar()."""

    def test_contents(self, tmp_path):
        """Sidecar should record inputs, configs, parameters and row count."""
        output = tmp_path / "county_population_database.csv"
        output.write_text("county_name\nDARE\n", encoding="utf-8")
        raw = tmp_path / "rucc_2023.csv"
        raw.write_text("FIPS\n37055\n", encoding="utf-8")
        config = tmp_path / "params.yml"
        config.write_text("state: NC\n", encoding="utf-8")

        meta = create_metadata_sidecar(
            output, "run-1",
            input_files=[raw, tmp_path / "absent.csv"],
            config_files=[config],
            parameters={"state_abbr": "NC"},
            row_count=1,
        )
        assert meta["run_id"] == "run-1"
        assert meta["output_file"] == output.name
        assert list(meta["input_file_hashes"]) == ["rucc_2023.csv"]
        assert "params.yml" in meta["config_hashes"]
        assert meta["parameters"] == {"state_abbr": "NC"}
        assert meta["row_count"] == 1
        assert meta["output_hash"] == hash_file(output)
        assert "pandas" in meta["library_versions"]

    def test_written_next_to_output(self, tmp_path):
        """The sidecar should sit beside the output with a _metadata suffix."""
        output = tmp_path / "county_population_database.csv"
        output.write_text("county_name\nDARE\n", encoding="utf-8")
        sidecar = write_metadata_sidecar(output, "run-2", row_count=1)
        assert sidecar == tmp_path / "county_population_database_metadata.json"
        assert json.loads(sidecar.read_text(encoding="utf-8"))["run_id"] == "run-2"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
