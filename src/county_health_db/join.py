"""
Left-join assembly of normalized county tables.

The anchor table (RUCC in the county database) fixes the row set: every
anchor county appears exactly once in the output whether or not a later
source has data for it. Unmatched counties get nulls for that source's
attributes.
"""

import logging
from typing import Sequence

import pandas as pd

from county_health_db.errors import DuplicateJoinKeyError, MissingFieldError
from county_health_db.keys import COUNTY_KEY, canonicalize_county_names
from county_health_db.logging_utils import log_join


def canonical_keys(
    df: pd.DataFrame,
    table: str,
    key: str = COUNTY_KEY,
    logger: logging.Logger | None = None,
) -> pd.DataFrame:
    """
    Canonicalize a table's key column and check it is unique.

    Rows whose key is null (or blank) after canonicalization name no county
    and are dropped.

    Raises:
        MissingFieldError: If the key column is absent.
        DuplicateJoinKeyError: If canonicalization yields duplicate keys.
    """
    if key not in df.columns:
        raise MissingFieldError(key, table)

    df = df.copy()
    df[key] = canonicalize_county_names(df[key])

    unkeyed = df[key].isna()
    if unkeyed.any():
        if logger:
            logger.warning(f"{table}: dropping {int(unkeyed.sum())} rows with no county key")
        df = df[~unkeyed]

    duplicated = df[key].duplicated(keep=False)
    if duplicated.any():
        raise DuplicateJoinKeyError(table, sorted(df.loc[duplicated, key].unique()))
    return df


def join_sources(
    anchor: pd.DataFrame,
    others: Sequence[tuple[str, pd.DataFrame]],
    key: str = COUNTY_KEY,
    anchor_name: str = "anchor",
    logger: logging.Logger | None = None,
) -> pd.DataFrame:
    """
    Left-join tables onto the anchor in declared order.

    Columns of a later table that already exist in the running result are
    dropped from that table before the join.

    Args:
        anchor: Table whose rows define the output row set.
        others: (name, table) pairs joined in order.
        key: Join key column present in every table.
        anchor_name: Name of the anchor for error messages and logs.
        logger: Optional logger.

    Returns:
        Joined DataFrame with one row per keyed anchor row, in anchor order.

    Raises:
        MissingFieldError: If a table lacks the key column.
        DuplicateJoinKeyError: If any table has duplicate canonical keys.
    """
    out = canonical_keys(anchor, anchor_name, key, logger).reset_index(drop=True)
    n_anchor = len(out)

    for name, table in others:
        right = canonical_keys(table, name, key, logger)

        overlap = [c for c in right.columns if c in out.columns and c != key]
        if overlap:
            if logger:
                logger.warning(f"{name}: dropping columns already present: {overlap}")
            right = right.drop(columns=overlap)

        matched = int(out[key].isin(right[key]).sum())
        out = out.merge(right, on=key, how="left", validate="many_to_one")

        if logger:
            log_join(logger, name, n_anchor, matched)

    if len(out) != n_anchor:
        raise AssertionError(
            f"Left join changed row count: {n_anchor} anchor rows, {len(out)} joined"
        )
    return out
