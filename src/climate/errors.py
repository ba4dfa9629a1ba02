# file: src/climate/errors.py
"""
Error taxonomy for the climate pipeline.

Schema errors are fatal (caller contract violation).
Data-volume errors are recorded per group and never abort a batch.
"""

from __future__ import annotations

from typing import Iterable


class MissingColumnError(ValueError):
    """A referenced column is absent from the table schema."""

    def __init__(self, missing: Iterable[str], available: Iterable[str] = ()):
        self.missing = sorted(missing)
        self.available = list(available)
        super().__init__(
            f"Missing required columns: {self.missing} (available: {self.available})"
        )


class InsufficientDataError(ValueError):
    """A statistic or fit needs more rows / distinct values than it got."""


class DegenerateFitError(InsufficientDataError):
    """The predictor has zero variance, so no slope is identifiable."""


class MissingValueError(ValueError):
    """Missing values present under na_policy="propagate"; the result is undefined."""
