# file: src/climate/tasks.py
"""
Idempotent pipeline tasks.

Each task:
- reads its inputs from the previous task's artifact
- skips work when its artifact exists (unless config.overwrite)
- writes atomically

load_clean -> summarize_sites -> fit_lapse_rates -> render_plots
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, List

import pandas as pd

from .aggregate import summarize, undefined_cells
from .config import ClimateConfig
from .fitting import FitFailure, GroupFitReport, fit_groups
from .grouping import group_rows
from .ingest import load_climate_csv
from .io_utils import atomic_write_json, atomic_write_parquet, read_json, read_parquet
from .schema import conform_to_schema
from .transform import derive_column, filter_rows, threshold_label

logger = logging.getLogger(__name__)


def read_clean(clean_path: str) -> pd.DataFrame:
    """Read clean.parquet back into CLIMATE_SCHEMA dtypes."""
    return conform_to_schema(read_parquet(clean_path))


def _apply_filters(table: pd.DataFrame, config: ClimateConfig) -> pd.DataFrame:
    if config.start_year is not None:
        table = filter_rows(table, lambda d: (d["year"] >= config.start_year).fillna(False))
    if config.end_year is not None:
        table = filter_rows(table, lambda d: (d["year"] <= config.end_year).fillna(False))
    if config.sites:
        table = filter_rows(table, lambda d: d["site"].isin(config.sites).fillna(False))
    return table.reset_index(drop=True)


def load_clean(config: ClimateConfig) -> str:
    """
    Task 1: load + filter the input file, add elev_band, write data/clean.parquet
    """
    clean_path = config.clean_path()

    if clean_path.exists() and not config.overwrite:
        logger.info("[load] clean exists, skipping: %s", clean_path)
        return str(clean_path)

    table = load_climate_csv(
        config.input_path,
        na_values=config.na_values,
        drop=config.drop_columns,
    )
    n_raw = len(table)

    table = _apply_filters(table, config)
    table = derive_column(
        table,
        "elev_band",
        threshold_label("elev", config.elevation_threshold_m, below="low", above="high"),
    )

    atomic_write_parquet(table, clean_path)
    logger.info("[load] wrote clean: %s (%d/%d rows after filters)", clean_path, len(table), n_raw)
    return str(clean_path)


def summarize_sites(clean_path: str, config: ClimateConfig) -> str:
    """
    Task 2: reduce-mode summary by config.summary_keys, write summary.parquet
    """
    summary_path = config.summary_path()

    if summary_path.exists() and not config.overwrite:
        logger.info("[summary] summary exists, skipping: %s", summary_path)
        return str(summary_path)

    table = read_clean(clean_path)
    groups = group_rows(table, config.summary_keys, order=config.group_order)
    summary = summarize(
        groups,
        {config.summary_column: list(config.summary_stats)},
        na_policy=config.na_policy,
    )

    atomic_write_parquet(summary, summary_path)
    logger.info(
        "[summary] wrote %s (%d groups, %d undefined cells)",
        summary_path,
        len(summary),
        len(undefined_cells(summary)),
    )
    return str(summary_path)


def _load_report(config: ClimateConfig) -> GroupFitReport:
    payload = read_json(config.failures_path())
    failures = [
        FitFailure(key=tuple(item["key"]), kind=item["kind"], message=item["message"])
        for item in payload["failures"]
    ]
    return GroupFitReport(
        keys=list(payload["keys"]),
        results=read_parquet(config.fits_path()),
        failures=failures,
    )


def fit_lapse_rates(clean_path: str, config: ClimateConfig) -> GroupFitReport:
    """
    Task 3: per-group OLS of response on predictor.

    Writes fits.parquet (successes) and fit_failures.json (failed groups).
    """
    if config.fits_path().exists() and config.failures_path().exists() and not config.overwrite:
        logger.info("[fit] fits exist, skipping: %s", config.fits_path())
        return _load_report(config)

    table = read_clean(clean_path)
    groups = group_rows(table, config.fit_keys, order=config.group_order)
    report = fit_groups(
        groups,
        response=config.response,
        predictor=config.predictor,
        na_policy=config.na_policy,
        scale=config.lapse_scale,
    )

    atomic_write_parquet(report.results, config.fits_path())
    atomic_write_json({"keys": report.keys, **report.to_dict()}, config.failures_path())
    logger.info(
        "[fit] wrote %s (%d fitted, %d failed)",
        config.fits_path(),
        len(report.results),
        len(report.failures),
    )
    return report


def render_plots(
    clean_path: str,
    summary_path: str,
    report: GroupFitReport,
    config: ClimateConfig,
) -> List[str]:
    """Task 4: PNG charts under artifacts/plots (always regenerated)."""
    from .plotting import plot_lapse_rates, plot_monthly_climatology, plot_temperature_vs_elevation

    plots_dir = config.plots_path()
    written = []

    summary = read_parquet(summary_path)
    stat_cols = {f"mean_{config.summary_column}", f"std_{config.summary_column}"}
    if set(config.summary_keys) == {"site", "month"} and stat_cols.issubset(summary.columns):
        written.append(plot_monthly_climatology(
            summary, plots_dir / "monthly_climatology.png", value=config.summary_column
        ))
    else:
        logger.info("[plots] summary is not keyed by (site, month) with mean/std; skipping climatology")

    table = read_clean(clean_path)
    written.append(plot_temperature_vs_elevation(
        table,
        report,
        plots_dir / "temperature_vs_elevation.png",
        response=config.response,
        predictor=config.predictor,
    ))
    written.append(plot_lapse_rates(report, plots_dir / "lapse_rates.png", scale=config.lapse_scale))

    return [str(path) for path in written]


def run_full_pipeline(config: ClimateConfig) -> Dict:
    """
    Runs tasks in order and returns a summary dict.
    """
    logger.info("=" * 60)
    logger.info("START CLIMATE PIPELINE")
    logger.info("=" * 60)

    run_id = config.run_id()
    logger.info("Pipeline run_id: %s", run_id)

    clean = load_clean(config)
    summary = summarize_sites(clean, config)
    report = fit_lapse_rates(clean, config)
    plots = render_plots(clean, summary, report, config) if config.make_plots else []

    metadata = {
        "run_id": run_id,
        "finished_utc": datetime.now(timezone.utc).isoformat(),
        "input_path": config.input_path,
        "na_policy": config.na_policy,
        "summary_keys": list(config.summary_keys),
        "fit_keys": list(config.fit_keys),
        "lapse_scale": config.lapse_scale,
        **report.to_dict(),
    }
    atomic_write_json(metadata, config.metadata_path())

    results = report.results
    out = {
        "run_id": run_id,
        "clean_path": clean,
        "summary_path": summary,
        "fits_path": str(config.fits_path()),
        "failures_path": str(config.failures_path()),
        "n_groups": report.n_groups,
        "n_fitted": int(len(results)),
        "n_failed": len(report.failures),
        "mean_lapse_rate": float(results["lapse_rate"].mean(skipna=False)) if len(results) else None,
        "plots": plots,
    }

    logger.info("=" * 60)
    logger.info("PIPELINE COMPLETE")
    logger.info("=" * 60)
    return out
