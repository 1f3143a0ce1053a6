"""
Declarative field mappings from raw source columns to named attributes.

Each FieldMapping defines one output attribute as the sum of one or more raw
columns. Sums propagate nulls: if any listed raw value is null the attribute
is null for that county, so downstream ratios never see a silently
zero-filled numerator or denominator.

ACS column names follow the Census API wide layout (<table>_<cell>E).
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class FieldMapping:
    """One output attribute defined as the sum of raw columns."""
    target: str
    sources: tuple[str, ...]

    def __post_init__(self):
        if not self.sources:
            raise ValueError(f"FieldMapping '{self.target}' needs at least one source column")


def acs_var(table: str, cell: int) -> str:
    """Census API estimate column name, e.g. acs_var("B01001", 3) -> "B01001_003E"."""
    return f"{table}_{cell:03d}E"


def _mapping(target: str, table: str, *cells: int) -> FieldMapping:
    return FieldMapping(target, tuple(acs_var(table, c) for c in cells))


# =============================================================================
# Sex by age (B01001, B01001H, B01001I)
# =============================================================================

AGE_BANDS = [
    "under5", "5to9", "10to14", "15to17", "18to19", "20to24", "25to29",
    "30to34", "35to44", "45to54", "55to64", "65to74", "75to84", "85above",
]

# B01001 splits some bands finer than the projection file, so several cells
# roll up into one band. Female cells sit 24 rows below the male cells.
_TOTAL_MALE_CELLS = {
    "under5": (3,),
    "5to9": (4,),
    "10to14": (5,),
    "15to17": (6,),
    "18to19": (7,),
    "20to24": (8, 9, 10),
    "25to29": (11,),
    "30to34": (12,),
    "35to44": (13, 14),
    "45to54": (15, 16),
    "55to64": (17, 18, 19),
    "65to74": (20, 21, 22),
    "75to84": (23, 24),
    "85above": (25,),
}
_TOTAL_FEMALE_OFFSET = 24

# B01001H / B01001I use one cell per band; female cells sit 15 rows below.
_RACE_MALE_FIRST_CELL = 3
_RACE_FEMALE_OFFSET = 15

AGE_GROUPS = ("total", "white", "hispanic")
SEXES = ("m", "f")


def age_column(group: str, sex: str, band: str) -> str:
    """Output column for one group/sex/age band, e.g. total_m_65to74."""
    return f"{group}_{sex}_{band}"


def _total_age_mappings() -> list[FieldMapping]:
    table = "B01001"
    out = [
        _mapping("totalpop", table, 1),
        _mapping("totalpop_m", table, 2),
        _mapping("totalpop_f", table, 26),
    ]
    for sex, offset in (("m", 0), ("f", _TOTAL_FEMALE_OFFSET)):
        for band in AGE_BANDS:
            cells = [c + offset for c in _TOTAL_MALE_CELLS[band]]
            out.append(_mapping(age_column("total", sex, band), table, *cells))
    return out


def _race_age_mappings(group: str, table: str) -> list[FieldMapping]:
    out = []
    for sex, offset in (("m", 0), ("f", _RACE_FEMALE_OFFSET)):
        for i, band in enumerate(AGE_BANDS):
            cell = _RACE_MALE_FIRST_CELL + i + offset
            out.append(_mapping(age_column(group, sex, band), table, cell))
    return out


# =============================================================================
# Household income (B19001)
# =============================================================================

INCOME_MAPPINGS = [
    _mapping("total_hh", "B19001", 1),
    _mapping("hh_income_under10k", "B19001", 2),
    _mapping("hh_income_10to20k", "B19001", 3, 4),
    _mapping("hh_income_20to35k", "B19001", 5, 6, 7),
    _mapping("hh_income_35to50k", "B19001", 8, 9, 10),
    _mapping("hh_income_50to75k", "B19001", 11, 12),
    _mapping("hh_income_75to100k", "B19001", 13),
    _mapping("hh_income_100to150k", "B19001", 14, 15),
    _mapping("hh_income_above150k", "B19001", 16, 17),
    # Cut points used by the household income share metrics
    _mapping("hh_income_under25k", "B19001", 2, 3, 4, 5),
    _mapping("hh_income_over100k", "B19001", 14, 15, 16, 17),
]


# =============================================================================
# Health insurance coverage by age (B27010)
# =============================================================================

INSURANCE_AGE_GROUPS = ("A0018", "A1934", "A3564", "A65p")

# Cell numbers per age group: group population, private only, public only,
# private and public combinations, uninsured.
_INSURANCE_CELLS = {
    "A0018": {
        "POP": (2,),
        "PRIV_INS": (4, 5, 8, 11, 14),
        "PUB_INS": (6, 7, 9, 13, 15),
        "PRIVPUB_INS": (12, 16),
        "UNINS": (17,),
    },
    "A1934": {
        "POP": (18,),
        "PRIV_INS": (20, 21, 24, 27, 30),
        "PUB_INS": (22, 23, 25, 29, 31),
        "PRIVPUB_INS": (28, 32),
        "UNINS": (33,),
    },
    "A3564": {
        "POP": (34,),
        "PRIV_INS": (36, 37, 40, 43, 47),
        "PUB_INS": (38, 39, 41, 46, 48),
        "PRIVPUB_INS": (44, 45, 49),
        "UNINS": (50,),
    },
    "A65p": {
        "POP": (51,),
        "PRIV_INS": (53, 54, 56, 59, 63),
        "PUB_INS": (55, 57, 62, 64),
        "PRIVPUB_INS": (60, 61, 65),
        "UNINS": (66,),
    },
}

INSURANCE_MAPPINGS = [
    _mapping(f"{category}_{group}", "B27010", *cells)
    for group in INSURANCE_AGE_GROUPS
    for category, cells in _INSURANCE_CELLS[group].items()
]


# =============================================================================
# Per-table catalog
# =============================================================================

ACS_TABLE_MAPPINGS: dict[str, list[FieldMapping]] = {
    "B01001": _total_age_mappings(),
    "B01001H": _race_age_mappings("white", "B01001H"),
    "B01001I": _race_age_mappings("hispanic", "B01001I"),
    "B19001": INCOME_MAPPINGS,
    "B27010": INSURANCE_MAPPINGS,
}

ACS_TABLES = tuple(ACS_TABLE_MAPPINGS)


def raw_columns(mappings: list[FieldMapping]) -> list[str]:
    """All raw columns referenced by a mapping list, in first-use order."""
    seen: dict[str, None] = {}
    for m in mappings:
        for s in m.sources:
            seen.setdefault(s, None)
    return list(seen)
