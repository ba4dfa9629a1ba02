# file: src/climate/transform.py
"""
Row / column transformations.

All functions return a new DataFrame and never mutate their input, so they
chain like a tidyverse pipe:

    (table
        .pipe(filter_rows, lambda d: d["year"] >= 2000)
        .pipe(derive_column, "elev_band", threshold_label("elev", 2000, "low", "high"))
        .pipe(sort_rows, ["site", "doy"]))
"""

from __future__ import annotations

import logging
from typing import Callable, Sequence, Union

import numpy as np
import pandas as pd

from .schema import require_columns

logger = logging.getLogger(__name__)

Predicate = Callable[[pd.DataFrame], pd.Series]
Rule = Callable[[pd.DataFrame], Union[pd.Series, np.ndarray]]


def filter_rows(table: pd.DataFrame, predicate: Predicate) -> pd.DataFrame:
    """
    Keep rows where `predicate(table)` is True, preserving order.

    The predicate must return one boolean per row. Missing values in the
    mask raise ValueError: decide how NA rows are treated in the predicate
    itself (e.g. `d["tavg"].notna() & (d["tavg"] > 0)`).
    """
    mask = predicate(table)
    mask = pd.Series(mask, index=table.index) if not isinstance(mask, pd.Series) else mask

    if len(mask) != len(table):
        raise ValueError(f"Predicate returned {len(mask)} values for {len(table)} rows")
    if mask.isna().any():
        raise ValueError(
            f"Predicate returned {int(mask.isna().sum())} missing values; "
            "handle NA explicitly in the predicate"
        )

    out = table.loc[mask.astype(bool).to_numpy()].copy()
    logger.debug("[filter] kept %d/%d rows", len(out), len(table))
    return out


def select_columns(table: pd.DataFrame, columns: Sequence[str]) -> pd.DataFrame:
    require_columns(table, columns)
    return table[list(columns)].copy()


def derive_column(table: pd.DataFrame, name: str, rule: Rule) -> pd.DataFrame:
    """Add (or replace) column `name` computed row-wise by `rule(table)`."""
    values = rule(table)
    if len(values) != len(table):
        raise ValueError(f"Rule for {name!r} returned {len(values)} values for {len(table)} rows")

    out = table.copy()
    out[name] = values.set_axis(out.index) if isinstance(values, pd.Series) else values
    return out


def sort_rows(
    table: pd.DataFrame,
    by: Union[str, Sequence[str]],
    ascending: Union[bool, Sequence[bool]] = True,
) -> pd.DataFrame:
    """Stable sort; missing values go last."""
    keys = [by] if isinstance(by, str) else list(by)
    require_columns(table, keys)
    return table.sort_values(keys, ascending=ascending, kind="mergesort", na_position="last")


# Derivation rules


def threshold_label(column: str, threshold: float, below: str, above: str) -> Rule:
    """
    Categorical label: `below` when value < threshold, else `above`.

    Missing inputs stay missing.
    """

    def rule(table: pd.DataFrame) -> pd.Series:
        require_columns(table, [column])
        values = table[column]
        is_below = (values < threshold).fillna(False).to_numpy(dtype=bool)
        labels = np.where(is_below, below, above)
        labelled = pd.Series(labels, index=table.index, dtype="object").where(values.notna())
        return labelled.astype(pd.CategoricalDtype([below, above], ordered=True))

    return rule


def celsius_to_fahrenheit(column: str = "tavg") -> Rule:
    def rule(table: pd.DataFrame) -> pd.Series:
        require_columns(table, [column])
        return table[column] * 9.0 / 5.0 + 32.0

    return rule


def meters_to_feet(column: str = "elev") -> Rule:
    def rule(table: pd.DataFrame) -> pd.Series:
        require_columns(table, [column])
        return table[column] / 0.3048

    return rule
