# file: src/climate/fitting.py
"""
Per-group linear fits of temperature on elevation (lapse rates).

fit_linear
    One OLS fit (statsmodels) of `response ~ predictor` on a single frame.
fit_group
    Same, but returns FitResult | FitFailure instead of raising.
fit_groups
    Visits every group of a GroupedTable exactly once, in group order.
    Successes go into one flat results table; failures are recorded with
    their group key. One bad group never aborts the batch.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Union

import numpy as np
import pandas as pd
import statsmodels.api as sm

from .errors import DegenerateFitError, InsufficientDataError, MissingValueError
from .grouping import GroupedTable, GroupKey
from .schema import require_columns
from .stats import NA_POLICIES

logger = logging.getLogger(__name__)

FIT_COLUMNS = [
    "slope",
    "intercept",
    "r_squared",
    "n_obs",
    "lapse_rate",
    "slope_stderr",
    "slope_pvalue",
]


@dataclass(frozen=True)
class FitResult:
    """OLS fit of response = intercept + slope * predictor."""
    slope: float
    intercept: float
    r_squared: float
    n_obs: int
    lapse_rate: float  # slope * scale, e.g. degrees per 1000 m
    slope_stderr: float = np.nan
    slope_pvalue: float = np.nan

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class FitFailure:
    """A group whose fit could not be produced."""
    key: GroupKey
    kind: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"key": list(self.key), "kind": self.kind, "message": self.message}


FitOutcome = Union[FitResult, FitFailure]


def fit_linear(
    frame: pd.DataFrame,
    *,
    response: str = "tavg",
    predictor: str = "elev",
    na_policy: str,
    scale: float = 1000.0,
) -> FitResult:
    """
    Fit `response` as a linear function of `predictor` with OLS.

    na_policy:
        "exclude"   rows missing either column are dropped before fitting
        "propagate" any missing value raises MissingValueError

    Predictor checks run first, so a degenerate group reports the same
    error under either policy.

    Raises:
        MissingColumnError: response or predictor not in frame
        InsufficientDataError: fewer than two usable rows
        DegenerateFitError: predictor has zero variance
        MissingValueError: missing values under na_policy="propagate"
    """
    if na_policy not in NA_POLICIES:
        raise ValueError(f"na_policy must be one of {NA_POLICIES}, got {na_policy!r}")
    require_columns(frame, [response, predictor])

    x = frame[predictor].to_numpy(dtype="float64", na_value=np.nan)
    y = frame[response].to_numpy(dtype="float64", na_value=np.nan)

    x_present = x[~np.isnan(x)]
    if len(x_present) < 2:
        raise InsufficientDataError(
            f"Need at least 2 rows with {predictor} to fit, got {len(x_present)}"
        )
    if np.ptp(x_present) == 0:
        raise DegenerateFitError(
            f"{predictor} is constant ({x_present[0]:g}) across {len(x_present)} rows; slope undefined"
        )

    complete = ~(np.isnan(x) | np.isnan(y))
    if na_policy == "propagate" and not complete.all():
        raise MissingValueError(
            f"{int((~complete).sum())} of {len(frame)} rows miss {response} or {predictor}"
        )

    x, y = x[complete], y[complete]
    n_obs = int(len(x))

    if n_obs < 2:
        raise InsufficientDataError(f"Need at least 2 complete rows to fit, got {n_obs}")
    if np.ptp(x) == 0:
        raise DegenerateFitError(
            f"{predictor} is constant ({x[0]:g}) across {n_obs} rows; slope undefined"
        )

    model = sm.OLS(y, sm.add_constant(x, has_constant="add")).fit()
    intercept, slope = (float(v) for v in model.params)

    # R^2 is 0/0 when the response itself is constant
    if model.centered_tss == 0:
        logger.warning("[fit] %s is constant across %d rows; r_squared undefined", response, n_obs)
        r_squared = np.nan
    else:
        r_squared = float(model.rsquared)

    slope_stderr = np.nan
    slope_pvalue = np.nan
    if model.df_resid > 0:
        with np.errstate(divide="ignore", invalid="ignore"):
            slope_stderr = float(model.bse[1])
            slope_pvalue = float(model.pvalues[1])

    return FitResult(
        slope=slope,
        intercept=intercept,
        r_squared=r_squared,
        n_obs=n_obs,
        lapse_rate=slope * scale,
        slope_stderr=slope_stderr,
        slope_pvalue=slope_pvalue,
    )


def fit_group(key: GroupKey, frame: pd.DataFrame, **fit_kwargs) -> FitOutcome:
    """fit_linear for one group, with data failures returned as FitFailure."""
    try:
        return fit_linear(frame, **fit_kwargs)
    except (InsufficientDataError, MissingValueError) as exc:
        return FitFailure(key=key, kind=type(exc).__name__, message=str(exc))


@dataclass
class GroupFitReport:
    """Flat fit table (one row per successful group) plus recorded failures."""
    keys: List[str]
    results: pd.DataFrame
    failures: List[FitFailure] = field(default_factory=list)

    @property
    def n_groups(self) -> int:
        return len(self.results) + len(self.failures)

    def failures_frame(self) -> pd.DataFrame:
        rows = [
            {**dict(zip(self.keys, failure.key)), "kind": failure.kind, "message": failure.message}
            for failure in self.failures
        ]
        return pd.DataFrame(rows, columns=[*self.keys, "kind", "message"])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "n_groups": self.n_groups,
            "n_fitted": int(len(self.results)),
            "n_failed": len(self.failures),
            "failures": [failure.to_dict() for failure in self.failures],
        }


def fit_groups(
    groups: GroupedTable,
    *,
    response: str = "tavg",
    predictor: str = "elev",
    na_policy: str,
    scale: float = 1000.0,
) -> GroupFitReport:
    """
    Fit every group once, in group order.

    Missing columns are a caller error and raise before any group is fitted.
    """
    require_columns(groups.source, [response, predictor])

    fitted_keys: List[GroupKey] = []
    fitted_rows: List[Dict[str, Any]] = []
    failures: List[FitFailure] = []

    for key, frame in groups.items():
        outcome = fit_group(
            key,
            frame,
            response=response,
            predictor=predictor,
            na_policy=na_policy,
            scale=scale,
        )
        if isinstance(outcome, FitFailure):
            logger.warning("[fit] group %s failed: %s (%s)", key, outcome.kind, outcome.message)
            failures.append(outcome)
            continue
        fitted_keys.append(key)
        fitted_rows.append(outcome.to_dict())

    results = pd.concat(
        [
            groups.keys_table(fitted_keys),
            pd.DataFrame(fitted_rows, columns=FIT_COLUMNS).astype({"n_obs": "int64"}),
        ],
        axis=1,
    )

    logger.info(
        "[fit] %d groups: %d fitted, %d failed",
        len(groups),
        len(fitted_rows),
        len(failures),
    )
    return GroupFitReport(keys=list(groups.by), results=results, failures=failures)
