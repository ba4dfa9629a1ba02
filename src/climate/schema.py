# file: src/climate/schema.py
"""
Fixed column schema for the climate table.

Every stage addresses columns by name, so the schema is validated once at
load time and unknown names fail with MissingColumnError instead of
surfacing later as KeyError / NaN.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List

import pandas as pd

from .errors import MissingColumnError

MONTH_LABELS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

MONTH_DTYPE = pd.CategoricalDtype(categories=list(MONTH_LABELS), ordered=True)

CLIMATE_SCHEMA: Dict[str, object] = {
    "year": "Int64",
    "month": MONTH_DTYPE,
    "doy": "Int64",
    "site": "string",
    "elev": "float64",
    "tavg": "float64",
}


@dataclass(frozen=True)
class SchemaReport:
    """Compact description of a table, used for logging."""
    n_rows: int
    columns: List[str]
    dtypes: Dict[str, str]
    null_counts: Dict[str, int]


def require_columns(table: pd.DataFrame, columns: Iterable[str]) -> None:
    """Raise MissingColumnError listing every column absent from `table`."""
    missing = [col for col in columns if col not in table.columns]
    if missing:
        raise MissingColumnError(missing, available=table.columns.tolist())


def _month_label(value: object) -> object:
    if pd.isna(value):
        return None

    if isinstance(value, str):
        text = value.strip()
        if not text.isdigit():
            label = text[:3].title()
            if label not in MONTH_LABELS:
                raise ValueError(f"Unrecognised month value: {value!r}")
            return label
        value = int(text)

    number = int(value)
    if number != value or not 1 <= number <= 12:
        raise ValueError(f"Month number out of range: {value!r}")
    return MONTH_LABELS[number - 1]


def normalize_month(values: pd.Series) -> pd.Series:
    """
    Convert month numbers (1-12) or names to an ordered categorical.

    Accepts "1", 1, 1.0, "jan", "January". Anything else raises ValueError.
    """
    labels = values.astype(object).map(_month_label)
    return pd.Series(
        pd.Categorical(labels, dtype=MONTH_DTYPE),
        index=values.index,
        name=values.name,
    )


def conform_to_schema(table: pd.DataFrame) -> pd.DataFrame:
    """
    Validate and coerce a raw table to CLIMATE_SCHEMA.

    Fail-loud: values that cannot be converted raise instead of turning into
    NaN. Only genuinely missing cells (already NaN) are allowed through.
    Extra columns are kept unchanged after the schema columns.
    """
    require_columns(table, CLIMATE_SCHEMA)

    df = table.copy()
    df["year"] = pd.to_numeric(df["year"], errors="raise").astype("Int64")
    df["doy"] = pd.to_numeric(df["doy"], errors="raise").astype("Int64")
    df["month"] = normalize_month(df["month"])
    df["site"] = df["site"].astype("string")
    df["elev"] = pd.to_numeric(df["elev"], errors="raise").astype("float64")
    df["tavg"] = pd.to_numeric(df["tavg"], errors="raise").astype("float64")

    bad_doy = df["doy"].notna() & ~df["doy"].between(1, 366)
    if bad_doy.any():
        raise ValueError(f"doy outside 1..366 in {int(bad_doy.sum())} rows")

    extra = [col for col in df.columns if col not in CLIMATE_SCHEMA]
    return df[list(CLIMATE_SCHEMA) + extra]


def describe_table(table: pd.DataFrame) -> SchemaReport:
    return SchemaReport(
        n_rows=int(len(table)),
        columns=table.columns.tolist(),
        dtypes={col: str(dtype) for col, dtype in table.dtypes.items()},
        null_counts={col: int(table[col].isna().sum()) for col in table.columns},
    )
