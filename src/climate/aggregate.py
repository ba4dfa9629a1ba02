# file: src/climate/aggregate.py
"""
Group aggregation in two modes.

- summarize (reduce): one row per group, key columns + statistics
- broadcast (mutate): every source row annotated with its group's statistics

Both modes compute cells through `_group_statistics`, so a given na_policy
excludes exactly the same values whichever mode is used.

Output columns are named `<stat>_<column>` (e.g. `mean_tavg`).

Cells left NaN for lack of data are recorded per group in
`table.attrs["undefined_cells"]` as JSON-ready dicts; `undefined_cells` reads them back as CellFailure
records.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .errors import InsufficientDataError
from .grouping import GroupedTable, GroupKey, group_rows
from .schema import require_columns
from .stats import NA_POLICIES, get_statistic

logger = logging.getLogger(__name__)

StatRequest = Mapping[str, Union[str, Sequence[str]]]

# (output name, source column, statistic name)
PlanItem = Tuple[str, str, str]

UNDEFINED_CELLS = "undefined_cells"


@dataclass(frozen=True)
class CellFailure:
    """A statistic that could not be computed for one group."""
    key: GroupKey
    column: str
    stat: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"key": list(self.key), "column": self.column, "stat": self.stat, "message": self.message}


def undefined_cells(table: pd.DataFrame) -> List[CellFailure]:
    """Cells set to NaN by summarize / broadcast, in group order."""
    return [
        CellFailure(key=tuple(item["key"]), column=item["column"], stat=item["stat"], message=item["message"])
        for item in table.attrs.get(UNDEFINED_CELLS, [])
    ]


def build_plan(requested: StatRequest) -> List[PlanItem]:
    """Expand {column: [stats]} into output columns, validating names."""
    if not requested:
        raise ValueError("At least one column -> statistics entry is required")

    plan: List[PlanItem] = []
    for column, stats in requested.items():
        stats = [stats] if isinstance(stats, str) else list(stats)
        if not stats:
            raise ValueError(f"No statistics requested for column {column!r}")
        for stat in stats:
            get_statistic(stat)
            plan.append((f"{stat}_{column}", column, stat))

    names = [name for name, _, _ in plan]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise ValueError(f"Duplicate output columns: {duplicates}")
    return plan


def _check_inputs(groups: GroupedTable, plan: List[PlanItem], na_policy: str) -> None:
    if na_policy not in NA_POLICIES:
        raise ValueError(f"na_policy must be one of {NA_POLICIES}, got {na_policy!r}")
    require_columns(groups.source, sorted({column for _, column, _ in plan}))


def _group_statistics(
    groups: GroupedTable,
    plan: List[PlanItem],
    na_policy: str,
) -> Tuple[Dict[GroupKey, Dict[str, float]], List[CellFailure]]:
    results: Dict[GroupKey, Dict[str, float]] = {}
    failures: List[CellFailure] = []

    for key, frame in groups.items():
        row: Dict[str, float] = {}
        for name, column, stat in plan:
            try:
                row[name] = get_statistic(stat)(frame[column], na_policy=na_policy)
            except InsufficientDataError as exc:
                failures.append(CellFailure(key=key, column=column, stat=stat, message=str(exc)))
                logger.warning("[aggregate] %s undefined for group %s: %s", name, key, exc)
                row[name] = np.nan
        results[key] = row

    if failures:
        logger.warning("[aggregate] %d cells set to NaN (insufficient data)", len(failures))
    return results, failures


def summarize(groups: GroupedTable, requested: StatRequest, *, na_policy: str) -> pd.DataFrame:
    """
    Reduce mode: exactly one row per group, in group order.

    Example:
        summarize(group_rows(df, ["site", "month"]),
                  {"tavg": ["mean", "std", "median", "iqr"]},
                  na_policy="exclude")
    """
    plan = build_plan(requested)
    _check_inputs(groups, plan, na_policy)

    clashes = sorted({name for name, _, _ in plan} & set(groups.by))
    if clashes:
        raise ValueError(f"Output columns collide with key columns: {clashes}")

    stats, failures = _group_statistics(groups, plan, na_policy)
    keys_df = groups.keys_table()
    values_df = pd.DataFrame(
        [stats[key] for key in groups],
        columns=[name for name, _, _ in plan],
        dtype="float64",
    )

    summary = pd.concat([keys_df, values_df], axis=1)
    summary.attrs[UNDEFINED_CELLS] = [failure.to_dict() for failure in failures]
    logger.info("[summarize] %d groups x %d statistics", len(summary), len(plan))
    return summary


def broadcast(groups: GroupedTable, requested: StatRequest, *, na_policy: str) -> pd.DataFrame:
    """
    Broadcast mode: the source rows (same order, same count), each carrying
    its group's statistics as extra columns.
    """
    plan = build_plan(requested)
    _check_inputs(groups, plan, na_policy)

    clashes = sorted({name for name, _, _ in plan} & set(groups.source.columns))
    if clashes:
        raise ValueError(f"Output columns already exist in the table: {clashes}")

    stats, failures = _group_statistics(groups, plan, na_policy)
    out = groups.source.copy()
    n_rows = len(out)

    for name, _, _ in plan:
        values = np.full(n_rows, np.nan, dtype="float64")
        for key, positions in groups.positions.items():
            values[positions] = stats[key][name]
        out[name] = values
    out.attrs[UNDEFINED_CELLS] = [failure.to_dict() for failure in failures]

    logger.info("[broadcast] %d rows annotated with %d statistics", n_rows, len(plan))
    return out


def add_anomaly(
    table: pd.DataFrame,
    keys: Union[str, Sequence[str]],
    column: str = "tavg",
    *,
    na_policy: str,
) -> pd.DataFrame:
    """Add `mean_<column>` per group and `<column>_anomaly` = value - group mean."""
    annotated = broadcast(group_rows(table, keys), {column: ["mean"]}, na_policy=na_policy)
    annotated[f"{column}_anomaly"] = annotated[column] - annotated[f"mean_{column}"]
    return annotated
