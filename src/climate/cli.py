# file: src/climate/cli.py
from __future__ import annotations

import logging
import sys
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from src.climate.config import load_config
from src.climate.fitting import fit_groups
from src.climate.grouping import group_rows
from src.climate.ingest import load_climate_csv
from src.climate.tasks import run_full_pipeline

logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(message)s")
app = typer.Typer(add_completion=False)
console = Console()


def _strip_ipykernel_args(argv: list[str]) -> list[str]:
    """Jupyter/ipykernel injects `-f <connection_file>` into sys.argv."""
    out = [argv[0]]
    i = 1
    while i < len(argv):
        a = argv[i]
        if a in ("-f", "--f"):
            i += 2
            continue
        if a.startswith("--f="):
            i += 1
            continue
        out.append(a)
        i += 1
    return out


@app.command()
def run(
    input_path: Optional[str] = None,
    start_year: Optional[int] = None,
    end_year: Optional[int] = None,
    site: Optional[List[str]] = typer.Option(None, help="Repeat to keep several sites"),
    na_policy: str = "exclude",
    lapse_scale: Optional[float] = None,
    overwrite: bool = False,
    plots: bool = True,
):
    """Load, summarize and fit lapse rates; write artifacts."""
    overrides = dict(
        start_year=start_year,
        end_year=end_year,
        sites=tuple(site) if site else None,
        na_policy=na_policy,
        overwrite=overwrite,
        make_plots=plots,
    )
    if input_path:
        overrides["input_path"] = input_path
    if lapse_scale is not None:
        overrides["lapse_scale"] = lapse_scale

    cfg = load_config(**overrides)
    results = run_full_pipeline(cfg)

    table = Table(title="Climate Pipeline Results")
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="green")

    for k, v in results.items():
        table.add_row(str(k), str(v))

    console.print(table)


@app.command()
def fit(
    input_path: str,
    by: List[str] = typer.Option(["month"], help="Group key column (repeatable)"),
    response: str = "tavg",
    predictor: str = "elev",
    na_policy: str = "exclude",
    lapse_scale: float = 1000.0,
):
    """Print per-group lapse-rate fits (and failures) for one file."""
    df = load_climate_csv(input_path)
    report = fit_groups(
        group_rows(df, by),
        response=response,
        predictor=predictor,
        na_policy=na_policy,
        scale=lapse_scale,
    )

    table = Table(title=f"{response} ~ {predictor} by {', '.join(by)}")
    for col in [*by, "slope", "intercept", "r_squared", "n_obs", "lapse_rate"]:
        table.add_column(col, style="green" if col not in by else "cyan")

    for _, row in report.results.iterrows():
        table.add_row(
            *[str(row[k]) for k in by],
            f"{row['slope']:.6f}",
            f"{row['intercept']:.3f}",
            f"{row['r_squared']:.3f}",
            str(row["n_obs"]),
            f"{row['lapse_rate']:.3f}",
        )
    console.print(table)

    if report.failures:
        failed = Table(title="Groups without a fit")
        failed.add_column("Key", style="cyan")
        failed.add_column("Kind", style="red")
        failed.add_column("Message")
        for failure in report.failures:
            failed.add_row(str(failure.key), failure.kind, failure.message)
        console.print(failed)


if __name__ == "__main__":
    sys.argv = _strip_ipykernel_args(sys.argv)
    app(standalone_mode=False)  # <-- prevents SystemExit in Jupyter
