"""
Grouper: partition rows by key columns

Properties:
- union of groups == table, groups pairwise disjoint
- "first" order = first occurrence, "sorted" order = key order
- missing keys form their own group
"""

import numpy as np
import pandas as pd
import pytest

from src.climate.errors import MissingColumnError
from src.climate.grouping import group_rows
from src.climate.schema import normalize_month


@pytest.fixture
def table():
    return pd.DataFrame({
        "site": pd.array(["B", "A", "B", "C", "A", None, "C"], dtype="string"),
        "month": normalize_month(pd.Series([3, 1, 1, 2, 3, 1, 2])),
        "tavg": [1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0],
    })


class TestPartition:
    """Grouping neither drops nor duplicates rows"""

    def test_union_equals_table(self, table):
        groups = group_rows(table, ["site", "month"])
        rebuilt = pd.concat(list(groups.values())).sort_index()

        pd.testing.assert_frame_equal(rebuilt, table)

    def test_groups_disjoint(self, table):
        groups = group_rows(table, ["site", "month"])
        seen = set()
        for positions in groups.positions.values():
            as_set = set(positions.tolist())
            assert not (as_set & seen)
            seen |= as_set

        assert seen == set(range(len(table)))

    def test_sizes_sum_to_rows(self, table):
        groups = group_rows(table, "site")

        assert sum(groups.sizes().values()) == len(table)

    def test_rows_within_group_share_key(self, table):
        groups = group_rows(table, ["site", "month"])
        for (site, month), frame in groups.items():
            if site is not None:
                assert (frame["site"] == site).all()
            assert (frame["month"] == month).all()


class TestOrdering:

    def test_first_occurrence_order(self, table):
        groups = group_rows(table, "site")

        assert list(groups) == [("B",), ("A",), ("C",), (None,)]

    def test_sorted_order_missing_last(self, table):
        groups = group_rows(table, "site", order="sorted")

        assert list(groups) == [("A",), ("B",), ("C",), (None,)]

    def test_sorted_uses_category_order(self, table):
        """Months sort Jan, Feb, Mar (not alphabetically)"""
        groups = group_rows(table, "month", order="sorted")

        assert list(groups) == [("Jan",), ("Feb",), ("Mar",)]

    def test_order_is_deterministic(self, table):
        a = list(group_rows(table, ["site", "month"]))
        b = list(group_rows(table, ["site", "month"]))

        assert a == b

    def test_invalid_order(self, table):
        with pytest.raises(ValueError):
            group_rows(table, "site", order="random")


class TestKeys:

    def test_missing_key_forms_group(self, table):
        groups = group_rows(table, "site")

        assert groups[(None,)]["tavg"].tolist() == [6.0]

    def test_scalar_lookup_for_single_key(self, table):
        groups = group_rows(table, "site")

        assert groups["A"]["tavg"].tolist() == [2.0, 5.0]

    def test_numeric_keys_are_python_scalars(self):
        df = pd.DataFrame({"elev": np.array([1000, 2000, 1000]), "tavg": [1.0, 2.0, 3.0]})
        groups = group_rows(df, "elev")

        assert list(groups) == [(1000,), (2000,)]
        assert all(type(key[0]) is int for key in groups)

    def test_nan_float_keys_grouped_together(self):
        df = pd.DataFrame({"elev": [np.nan, 1000.0, np.nan], "tavg": [1.0, 2.0, 3.0]})
        groups = group_rows(df, "elev")

        assert len(groups) == 2
        assert groups[(None,)]["tavg"].tolist() == [1.0, 3.0]

    def test_keys_table_keeps_dtypes(self, table):
        groups = group_rows(table, ["site", "month"])
        keys = groups.keys_table()

        assert len(keys) == len(groups)
        assert str(keys["site"].dtype) == "string"
        assert isinstance(keys["month"].dtype, pd.CategoricalDtype)
        assert keys["month"].cat.ordered

    def test_unknown_key_raises(self, table):
        with pytest.raises(MissingColumnError):
            group_rows(table, ["site", "elev"])

    def test_no_keys_raises(self, table):
        with pytest.raises(ValueError):
            group_rows(table, [])

    def test_empty_table(self, table):
        groups = group_rows(table.iloc[0:0], "site")

        assert len(groups) == 0
        assert groups.keys_table().empty
