"""
Exceptions and warnings raised by the panel stages.

Stage-fatal conditions (an unknown column, a duplicated key) are
exceptions carrying enough context to locate the problem.  Row-level
conditions never raise; they become missing values and are counted in
:class:`fpanel.diagnostics.RunDiagnostics`.  The one row-level
condition that is also surfaced as a warning is an ambiguous
identifier link, because it silently reduces coverage.
"""

from __future__ import annotations

from typing import Optional, Sequence

import pandas as pd

__all__ = ["SchemaError", "UniquenessViolation", "AmbiguousLinkWarning"]


class SchemaError(KeyError):
    """A stage referenced columns that its input table does not have."""

    def __init__(self, stage: str, missing: Sequence[str]) -> None:
        self.stage = stage
        self.missing = list(missing)
        super().__init__(f"{stage}: missing required columns {self.missing}")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return str(self.args[0])


class UniquenessViolation(ValueError):
    """A key that must identify exactly one row identifies several."""

    def __init__(
        self,
        stage: str,
        key: Sequence[str],
        n_rows: int,
        duplicates: Optional[pd.DataFrame] = None,
    ) -> None:
        self.stage = stage
        self.key = list(key)
        self.n_rows = n_rows
        self.duplicates = duplicates if duplicates is not None else pd.DataFrame()
        n_keys = len(self.duplicates)
        sample = self.duplicates.head(5).to_dict("records")
        super().__init__(
            f"{stage}: {n_keys} duplicated {self.key} key(s) across {n_rows} rows; "
            f"first offenders: {sample}"
        )


class AmbiguousLinkWarning(RuntimeWarning):
    """An identifier maps to several targets and was excluded from the link table."""
