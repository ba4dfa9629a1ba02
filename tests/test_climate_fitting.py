"""
Fitter: per-group OLS of temperature on elevation

Properties:
- exact linear data is recovered exactly
- a bad group is recorded as a failure, the batch continues
- every group is visited once, in group order
"""

import numpy as np
import pandas as pd
import pytest

from src.climate import fitting
from src.climate.errors import (DegenerateFitError, InsufficientDataError, MissingColumnError,
                               MissingValueError)
from src.climate.fitting import FitFailure, FitResult, fit_group, fit_groups, fit_linear
from src.climate.grouping import group_rows


@pytest.fixture
def line():
    """tavg = 12 - 0.002 * elev, i.e. -2 degrees per 1000 m"""
    return pd.DataFrame({"elev": [1000.0, 2000.0, 3000.0], "tavg": [10.0, 8.0, 6.0]})


@pytest.fixture
def sites():
    return pd.DataFrame({
        "site": pd.array(["A", "A", "A", "B", "B", "C", "C", "C"], dtype="string"),
        "elev": [0.0, 1000.0, 2000.0, 800.0, 800.0, 100.0, 200.0, 400.0],
        "tavg": [15.0, 9.0, 3.0, 4.0, 5.0, 10.0, 9.0, 7.0],
    })


class TestFitLinear:
    """Single-frame fits"""

    def test_exact_line(self, line):
        result = fit_linear(line, na_policy="exclude")

        assert isinstance(result, FitResult)
        assert result.slope == pytest.approx(-0.002)
        assert result.intercept == pytest.approx(12.0)
        assert result.r_squared == pytest.approx(1.0)
        assert result.n_obs == 3
        assert result.lapse_rate == pytest.approx(-2.0)

    def test_scale(self, line):
        result = fit_linear(line, na_policy="exclude", scale=1.0)

        assert result.lapse_rate == pytest.approx(result.slope)

    def test_noisy_fit_has_stderr(self):
        df = pd.DataFrame({"elev": [0.0, 1.0, 2.0, 3.0], "tavg": [0.1, 0.9, 2.2, 2.8]})
        result = fit_linear(df, na_policy="exclude", scale=1.0)

        assert 0.0 < result.r_squared < 1.0
        assert result.slope_stderr > 0.0
        assert 0.0 <= result.slope_pvalue <= 1.0

    def test_two_points_have_no_stderr(self):
        df = pd.DataFrame({"elev": [0.0, 1000.0], "tavg": [10.0, 4.0]})
        result = fit_linear(df, na_policy="exclude")

        assert result.lapse_rate == pytest.approx(-6.0)
        assert np.isnan(result.slope_stderr)

    def test_constant_response(self):
        df = pd.DataFrame({"elev": [1000.0, 2000.0, 3000.0], "tavg": [5.0, 5.0, 5.0]})
        result = fit_linear(df, na_policy="exclude")

        assert result.slope == pytest.approx(0.0)
        assert np.isnan(result.r_squared)

    def test_exclude_drops_incomplete_rows(self, line):
        df = pd.concat(
            [line, pd.DataFrame({"elev": [4000.0, np.nan], "tavg": [np.nan, 1.0]})],
            ignore_index=True,
        )
        result = fit_linear(df, na_policy="exclude")

        assert result.n_obs == 3
        assert result.lapse_rate == pytest.approx(-2.0)

    def test_propagate_without_missing_matches_exclude(self, line):
        propagated = fit_linear(line, na_policy="propagate")
        excluded = fit_linear(line, na_policy="exclude")

        assert propagated.slope == pytest.approx(excluded.slope)
        assert propagated.intercept == pytest.approx(excluded.intercept)
        assert propagated.n_obs == excluded.n_obs == 3


@pytest.mark.fail_loud
class TestFitLinearErrors:
    """Data that cannot define a line"""

    @pytest.mark.parametrize("na_policy", ["exclude", "propagate"])
    @pytest.mark.parametrize("tavg", [5.0, np.nan])
    def test_single_row(self, na_policy, tavg):
        df = pd.DataFrame({"elev": [1000.0], "tavg": [tavg]})

        with pytest.raises(InsufficientDataError) as excinfo:
            fit_linear(df, na_policy=na_policy)

        assert not isinstance(excinfo.value, DegenerateFitError)

    def test_all_missing_after_exclude(self):
        df = pd.DataFrame({"elev": [1000.0, 2000.0], "tavg": [np.nan, np.nan]})

        with pytest.raises(InsufficientDataError):
            fit_linear(df, na_policy="exclude")

    @pytest.mark.parametrize("na_policy", ["exclude", "propagate"])
    @pytest.mark.parametrize("tavg", [[4.0, 5.0, 6.0], [4.0, np.nan, 6.0]])
    def test_constant_elevation(self, na_policy, tavg):
        """Degenerate elevation wins over missing temperatures under either policy"""
        df = pd.DataFrame({"elev": [800.0, 800.0, 800.0], "tavg": tavg})

        with pytest.raises(DegenerateFitError, match="constant"):
            fit_linear(df, na_policy=na_policy)

    def test_propagate_missing_value(self, line):
        df = line.copy()
        df.loc[1, "tavg"] = np.nan

        with pytest.raises(MissingValueError, match="1 of 3 rows"):
            fit_linear(df, na_policy="propagate")

    def test_missing_column(self, line):
        with pytest.raises(MissingColumnError):
            fit_linear(line.drop(columns=["elev"]), na_policy="exclude")

    def test_policy_is_required(self, line):
        with pytest.raises(TypeError):
            fit_linear(line)

    def test_fit_group_returns_failure(self):
        df = pd.DataFrame({"elev": [800.0, 800.0], "tavg": [4.0, 5.0]})
        outcome = fit_group(("B",), df, na_policy="exclude")

        assert isinstance(outcome, FitFailure)
        assert outcome.key == ("B",)
        assert outcome.kind == "DegenerateFitError"

    def test_fit_group_records_missing_values(self, line):
        df = line.copy()
        df.loc[0, "elev"] = np.nan
        outcome = fit_group(("A",), df, na_policy="propagate")

        assert isinstance(outcome, FitFailure)
        assert outcome.kind == "MissingValueError"


class TestFitGroups:
    """Batch fits over a GroupedTable"""

    @pytest.mark.parametrize("na_policy", ["exclude", "propagate"])
    def test_failed_group_does_not_abort(self, sites, na_policy):
        report = fit_groups(group_rows(sites, "site"), na_policy=na_policy)

        assert report.results["site"].tolist() == ["A", "C"]
        assert len(report.failures) == 1
        assert report.failures[0].key == ("B",)
        assert report.n_groups == 3

    def test_propagate_records_missing_values_as_failures(self, sites):
        """Groups with missing values under propagate are failures, never NaN fits"""
        df = sites.copy()
        df.loc[1, "tavg"] = np.nan
        report = fit_groups(group_rows(df, "site"), na_policy="propagate")

        assert report.results["site"].tolist() == ["C"]
        assert report.results[["slope", "intercept", "lapse_rate"]].notna().all().all()
        assert [(f.key, f.kind) for f in report.failures] == [
            (("A",), "MissingValueError"),
            (("B",), "DegenerateFitError"),
        ]
        assert report.to_dict()["n_fitted"] == 1
        assert report.to_dict()["n_failed"] == 2

    def test_results_table(self, sites):
        report = fit_groups(group_rows(sites, "site"), na_policy="exclude")
        results = report.results

        assert list(results.columns) == ["site", *fitting.FIT_COLUMNS]
        assert results["site"].dtype == sites["site"].dtype
        assert results["n_obs"].dtype == "int64"
        assert results.loc[0, "lapse_rate"] == pytest.approx(-6.0)

    def test_group_order_preserved(self, sites):
        reordered = sites.iloc[[5, 6, 7, 0, 1, 2, 3, 4]].reset_index(drop=True)
        report = fit_groups(group_rows(reordered, "site"), na_policy="exclude")

        assert report.results["site"].tolist() == ["C", "A"]

    def test_each_group_fitted_once(self, sites, monkeypatch):
        calls = []
        real_fit = fitting.fit_linear

        def counting_fit(frame, **kwargs):
            calls.append(frame["site"].iloc[0])
            return real_fit(frame, **kwargs)

        monkeypatch.setattr(fitting, "fit_linear", counting_fit)
        fit_groups(group_rows(sites, "site"), na_policy="exclude")

        assert calls == ["A", "B", "C"]

    def test_missing_column_raises_before_fitting(self, sites, monkeypatch):
        calls = []
        monkeypatch.setattr(fitting, "fit_linear", lambda frame, **kw: calls.append(1))

        with pytest.raises(MissingColumnError):
            fit_groups(group_rows(sites, "site"), predictor="altitude", na_policy="exclude")

        assert calls == []

    def test_all_groups_fail(self, sites):
        one_site = sites[sites["site"] == "B"].reset_index(drop=True)
        report = fit_groups(group_rows(one_site, "site"), na_policy="exclude")

        assert report.results.empty
        assert list(report.results.columns) == ["site", *fitting.FIT_COLUMNS]
        assert len(report.failures) == 1

    def test_failure_reporting(self, sites):
        report = fit_groups(group_rows(sites, "site"), na_policy="exclude")
        failures = report.failures_frame()
        payload = report.to_dict()

        assert list(failures.columns) == ["site", "kind", "message"]
        assert failures.loc[0, "site"] == "B"
        assert payload["n_fitted"] == 2
        assert payload["n_failed"] == 1
        assert payload["failures"][0]["key"] == ["B"]
