"""
Presenter: charts are labelled from the fit configuration
"""

import pandas as pd
import pytest

from src.climate import plotting
from src.climate.fitting import fit_groups
from src.climate.grouping import group_rows


@pytest.fixture
def report():
    df = pd.DataFrame({
        "month": ["Jan", "Jan", "Jul", "Jul"],
        "elev": [0.0, 1000.0, 0.0, 1000.0],
        "tavg": [5.0, -1.0, 20.0, 14.0],
    })
    return fit_groups(group_rows(df, "month"), na_policy="exclude", scale=100.0)


@pytest.fixture
def captured(monkeypatch):
    figures = []

    def keep(fig, output_path):
        figures.append(fig)
        return output_path

    monkeypatch.setattr(plotting, "_save", keep)
    return figures


class TestLapseRatePlot:
    """Bar chart of fitted lapse rates"""

    def test_label_follows_scale(self, report, captured, tmp_path):
        plotting.plot_lapse_rates(report, tmp_path / "lapse.png", scale=100.0)

        assert captured[0].axes[0].get_ylabel() == "Lapse rate (°C per 100 m)"

    def test_default_label(self, report, captured, tmp_path):
        plotting.plot_lapse_rates(report, tmp_path / "lapse.png")

        assert "per 1000 m" in captured[0].axes[0].get_ylabel()

    def test_writes_png(self, report, tmp_path):
        path = plotting.plot_lapse_rates(report, tmp_path / "plots" / "lapse.png", scale=100.0)

        assert path.exists()
