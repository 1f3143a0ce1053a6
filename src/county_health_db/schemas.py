"""
Column contracts for the county database and the model data table.

The database is validated before it is written and again when script 02
reads it back; model data is validated after the utilization joins. Any
violation raises SchemaValidationError listing every problem found.
"""

from dataclasses import dataclass

import pandas as pd

from county_health_db.keys import COUNTY_KEY


class SchemaValidationError(Exception):
    """A table does not match its declared columns."""


@dataclass
class ColumnSpec:
    name: str
    dtype: str  # "object", "float64" or "int64"
    required: bool = True
    nullable: bool = False
    description: str = ""


@dataclass
class TableSchema:
    name: str
    description: str
    columns: list[ColumnSpec]

    def required_columns(self) -> list[str]:
        return [c.name for c in self.columns if c.required]

    def all_columns(self) -> list[str]:
        return [c.name for c in self.columns]


# Actual dtypes accepted for each declared dtype. Integer counts without
# nulls come back from CSV as int64 and are fine where floats are expected.
COMPATIBLE_DTYPES: dict[str, frozenset[str]] = {
    "object": frozenset({"object", "string", "str", "category"}),
    "float64": frozenset({"float64", "float32", "Float64", "int64", "Int64"}),
    "int64": frozenset({"int64", "int32", "Int64", "Int32"}),
}


def _key_column(description: str) -> ColumnSpec:
    return ColumnSpec(COUNTY_KEY, "object", nullable=False, description=description)


def _joined(name: str, dtype: str, description: str) -> ColumnSpec:
    # Null for counties the source does not cover
    return ColumnSpec(name, dtype, nullable=True, description=description)


SCHEMA_COUNTY_DATABASE = TableSchema(
    name="county_database",
    description="One row per RUCC county, left-joined with PLACES, ACS and UNS",
    columns=[
        _key_column("Canonical county key: upper case, no state or 'County' suffix"),
        _joined("RUCC_2023", "float64", "USDA Rural-Urban Continuum Code, 1-9"),
        _joined("geoid", "object", "Five-digit county FIPS code"),
        _joined("totalpop", "float64", "ACS total population"),
        _joined("weighted_uns", "float64", "Unmet need score, residential-ratio weighted over ZIPs"),
        ColumnSpec("RUCC_CAT", "object", nullable=False,
                   description="Urban, Micro, Rural or Missing"),
        _joined("UNINS_PCT", "float64", "Uninsured share of residents aged 19-64"),
        _joined("ABOVE65", "float64", "Share of residents aged 65 and over"),
    ],
)

SCHEMA_MODEL_DATA = TableSchema(
    name="model_data",
    description="County database joined with utilization counts and per-resident rates",
    columns=[
        _key_column("Canonical county key"),
        _joined("HOSP_ADMIT", "float64", "Acute hospital admissions per resident"),
        _joined("HOMEHEALTH", "float64", "Home health visits per resident"),
    ],
)

SCHEMA_REGISTRY: dict[str, TableSchema] = {
    schema.name: schema for schema in (SCHEMA_COUNTY_DATABASE, SCHEMA_MODEL_DATA)
}


def get_schema(name: str) -> TableSchema:
    """
    Look up a registered schema.

    Raises:
        ValueError: If no schema has that name.
    """
    try:
        return SCHEMA_REGISTRY[name]
    except KeyError:
        raise ValueError(f"Unknown schema: {name}. Available: {sorted(SCHEMA_REGISTRY)}") from None


def _column_problems(series: pd.Series, spec: ColumnSpec) -> list[str]:
    problems = []
    nulls = int(series.isna().sum())
    if nulls and not spec.nullable:
        problems.append(f"Column '{spec.name}' has {nulls} null values but is not nullable")
    actual = str(series.dtype)
    if actual not in COMPATIBLE_DTYPES.get(spec.dtype, frozenset({spec.dtype})):
        problems.append(f"Column '{spec.name}' has dtype '{actual}', expected '{spec.dtype}'")
    return problems


def validate_schema(
    df: pd.DataFrame,
    schema: TableSchema | str,
    strict: bool = False,
) -> list[str]:
    """
    Check a table against a schema.

    Args:
        df: Table to check.
        schema: The schema, or its registry name.
        strict: Also reject columns the schema does not declare.

    Returns:
        An empty list when the table conforms.

    Raises:
        SchemaValidationError: Listing every problem, when any is found.
    """
    if isinstance(schema, str):
        schema = get_schema(schema)

    problems = [f"Missing required column: {name}"
                for name in schema.required_columns() if name not in df.columns]

    if strict:
        undeclared = sorted(set(df.columns) - set(schema.all_columns()))
        if undeclared:
            problems.append(f"Unexpected columns: {undeclared}")

    for spec in schema.columns:
        if spec.name in df.columns:
            problems.extend(_column_problems(df[spec.name], spec))

    if problems:
        raise SchemaValidationError(
            f"Schema validation failed for '{schema.name}':\n" + "\n".join(f"  - {p}" for p in problems)
        )
    return problems
