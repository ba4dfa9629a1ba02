"""
Climate: tidy wrangling + grouped lapse-rate fits

Pipeline, one module per step:
1. ingest - Load the CSV, drop `dates`, conform to the schema
2. transform - Filter / select / derive / sort (never mutates input)
3. grouping - Partition rows by key columns (ordered mapping)
4. aggregate - Reduce (summarize) or broadcast group statistics
5. fitting - Per-group OLS of tavg on elev, failures recorded per group
6. plotting - Charts for summary and fit tables
"""

from .aggregate import CellFailure, add_anomaly, broadcast, summarize, undefined_cells
from .config import ClimateConfig, load_config
from .errors import (DegenerateFitError, InsufficientDataError, MissingColumnError,
                     MissingValueError)
from .fitting import FitFailure, FitResult, GroupFitReport, fit_group, fit_groups, fit_linear
from .grouping import GroupedTable, group_rows
from .ingest import load_climate_csv, make_synthetic_climate
from .schema import CLIMATE_SCHEMA, MONTH_LABELS, conform_to_schema, require_columns
from .transform import (celsius_to_fahrenheit, derive_column, filter_rows,
                        meters_to_feet, select_columns, sort_rows,
                        threshold_label)

__all__ = [
    "ClimateConfig",
    "load_config",
    "MissingColumnError",
    "InsufficientDataError",
    "DegenerateFitError",
    "MissingValueError",
    "CLIMATE_SCHEMA",
    "MONTH_LABELS",
    "conform_to_schema",
    "require_columns",
    "load_climate_csv",
    "make_synthetic_climate",
    "filter_rows",
    "select_columns",
    "derive_column",
    "sort_rows",
    "threshold_label",
    "celsius_to_fahrenheit",
    "meters_to_feet",
    "GroupedTable",
    "group_rows",
    "summarize",
    "broadcast",
    "add_anomaly",
    "CellFailure",
    "undefined_cells",
    "FitResult",
    "FitFailure",
    "GroupFitReport",
    "fit_linear",
    "fit_group",
    "fit_groups",
]
