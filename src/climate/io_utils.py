# file: src/climate/io_utils.py
"""
Artifact IO: atomic parquet/json writes and matching readers.

Writes go to `<name>.tmp` in the target directory and are moved into place
with os.replace, so a crashed run never leaves a half-written artifact.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Callable, Dict

import pandas as pd


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def _atomic_write(path: Path, write: Callable[[Path], None]) -> Path:
    path = Path(path)
    ensure_dir(path.parent)
    tmp = path.with_suffix(path.suffix + ".tmp")
    write(tmp)
    os.replace(tmp, path)
    return path


def atomic_write_parquet(df: pd.DataFrame, path: Path) -> Path:
    return _atomic_write(path, lambda tmp: df.to_parquet(tmp, index=False))


def atomic_write_json(payload: Dict[str, Any], path: Path) -> Path:
    def write(tmp: Path) -> None:
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, default=str)

    return _atomic_write(path, write)


def read_parquet(path: Path) -> pd.DataFrame:
    return pd.read_parquet(path)


def read_json(path: Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)
