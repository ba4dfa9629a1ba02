# file: src/climate/config.py
"""
Climate pipeline configuration.

Defaults live on a frozen dataclass so every run logs the same config.
`load_config` layers .env / environment overrides on top.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv


@dataclass(frozen=True)
class ClimateConfig:
    # Input
    input_path: str = "data/climate.csv"
    na_values: Tuple[str, ...] = ("NA", "", "NaN", "-9999")
    drop_columns: Tuple[str, ...] = ("dates",)

    # Row filters (None = keep everything)
    start_year: Optional[int] = None
    end_year: Optional[int] = None
    sites: Optional[Tuple[str, ...]] = None

    # Derived columns
    elevation_threshold_m: float = 2000.0

    # Grouping / summary
    summary_keys: Tuple[str, ...] = ("site", "month")
    summary_column: str = "tavg"
    summary_stats: Tuple[str, ...] = ("mean", "std", "median", "iqr", "count")
    na_policy: str = "exclude"
    group_order: str = "first"

    # Lapse-rate fits
    fit_keys: Tuple[str, ...] = ("month",)
    response: str = "tavg"
    predictor: str = "elev"
    lapse_scale: float = 1000.0

    # IO
    data_dir: str = "data"
    artifacts_dir: str = "artifacts"
    overwrite: bool = False
    make_plots: bool = True

    def run_id(self) -> str:
        return datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")

    def data_path(self) -> Path:
        return Path(self.data_dir)

    def artifacts_path(self) -> Path:
        return Path(self.artifacts_dir)

    def clean_path(self) -> Path:
        return self.data_path() / "clean.parquet"

    def summary_path(self) -> Path:
        return self.artifacts_path() / "summary.parquet"

    def fits_path(self) -> Path:
        return self.artifacts_path() / "fits.parquet"

    def failures_path(self) -> Path:
        return self.artifacts_path() / "fit_failures.json"

    def metadata_path(self) -> Path:
        return self.artifacts_path() / "metadata.json"

    def plots_path(self) -> Path:
        return self.artifacts_path() / "plots"


def load_config(**overrides) -> ClimateConfig:
    """
    Build a ClimateConfig from defaults, then environment, then `overrides`.

    Reads CLIMATE_INPUT_PATH, CLIMATE_DATA_DIR, CLIMATE_ARTIFACTS_DIR and
    CLIMATE_LAPSE_SCALE from a .env file or the process environment.
    """
    load_dotenv()

    env = {}
    if os.getenv("CLIMATE_INPUT_PATH"):
        env["input_path"] = os.environ["CLIMATE_INPUT_PATH"]
    if os.getenv("CLIMATE_DATA_DIR"):
        env["data_dir"] = os.environ["CLIMATE_DATA_DIR"]
    if os.getenv("CLIMATE_ARTIFACTS_DIR"):
        env["artifacts_dir"] = os.environ["CLIMATE_ARTIFACTS_DIR"]
    if os.getenv("CLIMATE_LAPSE_SCALE"):
        env["lapse_scale"] = float(os.environ["CLIMATE_LAPSE_SCALE"])

    cfg = replace(ClimateConfig(), **{**env, **overrides})

    if cfg.na_policy not in ("exclude", "propagate"):
        raise ValueError(f"na_policy must be 'exclude' or 'propagate', got {cfg.na_policy!r}")
    if cfg.group_order not in ("first", "sorted"):
        raise ValueError(f"group_order must be 'first' or 'sorted', got {cfg.group_order!r}")
    if cfg.lapse_scale <= 0:
        raise ValueError(f"lapse_scale must be positive, got {cfg.lapse_scale}")

    return cfg
