# file: src/climate/grouping.py
"""
Partition a table into groups by one or more key columns.

`group_rows` returns a GroupedTable: an ordered, read-only mapping from key
tuple to the rows sharing that key. Row positions are kept so the
aggregator can broadcast group statistics back onto the source rows.

Ordering:
- "first": groups appear in order of first occurrence (default)
- "sorted": groups sorted by key; categorical keys use category order,
  missing keys sort last

Missing key values are normalised to None and form their own group.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .schema import require_columns

logger = logging.getLogger(__name__)

GROUP_ORDERS = ("first", "sorted")

GroupKey = Tuple[object, ...]


def _clean_key_value(value: object) -> object:
    if pd.isna(value):
        return None
    if isinstance(value, np.generic):
        return value.item()
    return value


def _sort_token(value: object, categories: Optional[pd.Index]) -> tuple:
    if value is None:
        return (1, 0)
    if categories is not None:
        return (0, categories.get_loc(value))
    return (0, value)


@dataclass(frozen=True, eq=False)
class GroupedTable(Mapping):
    """Ordered mapping of key tuple -> row subsequence of `source`."""
    source: pd.DataFrame
    by: Tuple[str, ...]
    order: str
    positions: Dict[GroupKey, np.ndarray]

    def __getitem__(self, key: Union[GroupKey, object]) -> pd.DataFrame:
        if not isinstance(key, tuple):
            key = (key,)
        return self.source.iloc[self.positions[key]]

    def __iter__(self) -> Iterator[GroupKey]:
        return iter(self.positions)

    def __len__(self) -> int:
        return len(self.positions)

    def sizes(self) -> Dict[GroupKey, int]:
        return {key: int(len(pos)) for key, pos in self.positions.items()}

    def keys_table(self, group_keys: Optional[Sequence[GroupKey]] = None) -> pd.DataFrame:
        """
        One row per key tuple, with the key columns typed like the source.

        Defaults to every group, in group order.
        """
        group_keys = list(self) if group_keys is None else list(group_keys)
        frame = pd.DataFrame.from_records(group_keys, columns=list(self.by))
        for col in self.by:
            frame[col] = frame[col].astype(self.source[col].dtype)
        return frame


def group_rows(
    table: pd.DataFrame,
    keys: Union[str, Sequence[str]],
    *,
    order: str = "first",
) -> GroupedTable:
    """
    Partition `table` by `keys`.

    Every row lands in exactly one group; the union of all groups is the
    source table.
    """
    keys = (keys,) if isinstance(keys, str) else tuple(keys)
    if not keys:
        raise ValueError("At least one key column is required")
    if order not in GROUP_ORDERS:
        raise ValueError(f"order must be one of {GROUP_ORDERS}, got {order!r}")
    require_columns(table, keys)

    buckets: Dict[GroupKey, List[int]] = {}
    key_rows = table[list(keys)].itertuples(index=False, name=None)
    for pos, row in enumerate(key_rows):
        key = tuple(_clean_key_value(value) for value in row)
        buckets.setdefault(key, []).append(pos)

    ordered = list(buckets)
    if order == "sorted":
        categories = [
            table[col].cat.categories if isinstance(table[col].dtype, pd.CategoricalDtype) else None
            for col in keys
        ]
        ordered.sort(
            key=lambda k: tuple(_sort_token(v, cats) for v, cats in zip(k, categories))
        )

    positions = {key: np.asarray(buckets[key], dtype=np.intp) for key in ordered}
    logger.debug("[group] %d rows -> %d groups by %s (%s)", len(table), len(positions), keys, order)

    return GroupedTable(source=table, by=keys, order=order, positions=positions)
