# file: src/climate/plotting.py
"""
Charts for the summary and fit-result tables.

Figures are written to PNG and closed; nothing is shown interactively.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import matplotlib

# Headless backend: plots are only ever saved to disk
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from .fitting import GroupFitReport
from .schema import MONTH_LABELS, require_columns

logger = logging.getLogger(__name__)

plt.rcParams['figure.figsize'] = (12, 6)
plt.rcParams['figure.dpi'] = 100


def _key_label(row: pd.Series, keys) -> str:
    return " / ".join("NA" if pd.isna(row[k]) else str(row[k]) for k in keys)


def _save(fig: plt.Figure, output_path: Path) -> Path:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.tight_layout()
    fig.savefig(output_path, dpi=150, bbox_inches='tight')
    plt.close(fig)
    logger.info("[plot] wrote %s", output_path)
    return output_path


def plot_monthly_climatology(
    summary: pd.DataFrame,
    output_path: Path,
    value: str = "tavg",
    site_col: str = "site",
    month_col: str = "month",
) -> Path:
    """
    Mean monthly temperature per site with a ±1 std band.

    Expects a reduce-mode summary keyed by (site, month) with
    `mean_<value>` and `std_<value>` columns.
    """
    mean_col, std_col = f"mean_{value}", f"std_{value}"
    require_columns(summary, [site_col, month_col, mean_col, std_col])

    fig, ax = plt.subplots()
    for site, site_rows in summary.groupby(site_col, sort=True, dropna=False):
        month_pos = site_rows[month_col].astype(object).map(
            lambda m: MONTH_LABELS.index(m) if m in MONTH_LABELS else np.nan
        ).astype("float64")
        order = np.argsort(month_pos.to_numpy())
        x = month_pos.to_numpy()[order]
        mean = site_rows[mean_col].to_numpy()[order]
        std = site_rows[std_col].to_numpy()[order]

        ax.plot(x, mean, marker='o', label=str(site))
        ax.fill_between(x, mean - std, mean + std, alpha=0.2)

    ax.set_xticks(range(12))
    ax.set_xticklabels(MONTH_LABELS)
    ax.set_xlabel('Month')
    ax.set_ylabel(f'{value} (°C)')
    ax.set_title('Monthly climatology by site')
    ax.legend(title=site_col)
    ax.grid(True, alpha=0.3)

    return _save(fig, output_path)


def plot_temperature_vs_elevation(
    table: pd.DataFrame,
    report: GroupFitReport,
    output_path: Path,
    response: str = "tavg",
    predictor: str = "elev",
    max_points: int = 5000,
    seed: int = 0,
) -> Path:
    """Observed points (sampled) with one fitted line per group."""
    require_columns(table, [response, predictor])

    points = table[[predictor, response]].dropna()
    if len(points) > max_points:
        points = points.sample(max_points, random_state=seed)

    fig, ax = plt.subplots()
    ax.scatter(points[predictor], points[response], s=4, alpha=0.2, color='grey', label='observed')

    x_line = np.linspace(table[predictor].min(), table[predictor].max(), 50)
    for _, row in report.results.iterrows():
        ax.plot(
            x_line,
            row['intercept'] + row['slope'] * x_line,
            linewidth=1.5,
            label=f"{_key_label(row, report.keys)} ({row['lapse_rate']:.2f})",
        )

    ax.set_xlabel(f'{predictor} (m)')
    ax.set_ylabel(f'{response} (°C)')
    ax.set_title('Temperature vs elevation (fitted lapse rates)')
    ax.legend(fontsize='small', ncol=2)
    ax.grid(True, alpha=0.3)

    return _save(fig, output_path)


def plot_lapse_rates(
    report: GroupFitReport,
    output_path: Path,
    title: Optional[str] = None,
    scale: float = 1000.0,
) -> Path:
    """
    Bar chart of lapse rate per group; failed groups are listed in the title.

    `scale` is the elevation span the lapse rates were fitted per.
    """
    results = report.results
    labels = [_key_label(row, report.keys) for _, row in results.iterrows()]

    fig, ax = plt.subplots()
    ax.bar(labels, results['lapse_rate'], alpha=0.7, color='steelblue')
    ax.axhline(0.0, color='black', linewidth=0.8)
    ax.set_xlabel(' / '.join(report.keys))
    ax.set_ylabel(f"Lapse rate (°C per {scale:g} m)")

    title = title or 'Fitted lapse rate by group'
    if report.failures:
        failed = ", ".join(" / ".join(map(str, f.key)) for f in report.failures)
        title = f"{title}\n(no fit: {failed})"
    ax.set_title(title)
    ax.grid(True, axis='y', alpha=0.3)

    return _save(fig, output_path)
