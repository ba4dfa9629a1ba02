# file: src/climate/stats.py
"""
Summary statistics with an explicit missing-value policy.

Every statistic takes `na_policy` as a required keyword:
- "exclude": drop missing values, then compute
- "propagate": any missing value makes the result NaN

Too few usable values raise InsufficientDataError rather than returning a
silently meaningless number.
"""

from __future__ import annotations

from typing import Callable, Dict, Optional

import numpy as np
import pandas as pd

from .errors import InsufficientDataError

NA_POLICIES = ("exclude", "propagate")


def _prepare(values, na_policy: str) -> Optional[np.ndarray]:
    """Return usable float values, or None when a missing value propagates."""
    if na_policy not in NA_POLICIES:
        raise ValueError(f"na_policy must be one of {NA_POLICIES}, got {na_policy!r}")

    series = pd.Series(values)
    if not pd.api.types.is_numeric_dtype(series):
        series = pd.to_numeric(series, errors="raise")
    arr = series.to_numpy(dtype="float64", na_value=np.nan)
    missing = np.isnan(arr)

    if na_policy == "propagate" and missing.any():
        return None
    return arr[~missing]


def _require(arr: np.ndarray, minimum: int, name: str) -> None:
    if arr.size < minimum:
        raise InsufficientDataError(
            f"{name} needs at least {minimum} non-missing values, got {arr.size}"
        )


def mean(values, *, na_policy: str) -> float:
    arr = _prepare(values, na_policy)
    if arr is None:
        return np.nan
    _require(arr, 1, "mean")
    return float(np.mean(arr))


def std(values, *, na_policy: str) -> float:
    """Sample standard deviation (ddof=1)."""
    arr = _prepare(values, na_policy)
    if arr is None:
        return np.nan
    _require(arr, 2, "std")
    return float(np.std(arr, ddof=1))


def median(values, *, na_policy: str) -> float:
    arr = _prepare(values, na_policy)
    if arr is None:
        return np.nan
    _require(arr, 1, "median")
    return float(np.median(arr))


def iqr(values, *, na_policy: str) -> float:
    """Interquartile range, linear interpolation between order statistics."""
    arr = _prepare(values, na_policy)
    if arr is None:
        return np.nan
    _require(arr, 1, "iqr")
    q75, q25 = np.percentile(arr, [75, 25])
    return float(q75 - q25)


def minimum(values, *, na_policy: str) -> float:
    arr = _prepare(values, na_policy)
    if arr is None:
        return np.nan
    _require(arr, 1, "min")
    return float(np.min(arr))


def maximum(values, *, na_policy: str) -> float:
    arr = _prepare(values, na_policy)
    if arr is None:
        return np.nan
    _require(arr, 1, "max")
    return float(np.max(arr))


def count(values, *, na_policy: str) -> float:
    """Number of values that enter the statistic (never raises)."""
    arr = _prepare(values, na_policy)
    if arr is None:
        return np.nan
    return float(arr.size)


STATISTICS: Dict[str, Callable[..., float]] = {
    "mean": mean,
    "std": std,
    "median": median,
    "iqr": iqr,
    "min": minimum,
    "max": maximum,
    "count": count,
}


def get_statistic(name: str) -> Callable[..., float]:
    try:
        return STATISTICS[name]
    except KeyError:
        raise ValueError(
            f"Unknown statistic {name!r}; expected one of {sorted(STATISTICS)}"
        ) from None
