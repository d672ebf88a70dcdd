"""
Firm-year calendar (panel spine).

Every firm contributes one row per calendar year between the first and
the last year in which it is observed, whether or not it reported in the
years in between.  Left-joining per-year data onto this spine yields a
panel with no year gaps: a year without a filing is still a row, with
missing fields.

Example
-------
A firm observed on 2001-12-31 and 2004-12-31 produces years 2001, 2002,
2003 and 2004, each carrying ``year_min=2001`` and ``year_max=2004``.
"""

from __future__ import annotations

from typing import Optional

import numpy as np
import pandas as pd

from ..util.dates import calendar_year
from ..util.logging import get_logger
from ..util.schema import require_columns

__all__ = ["build_calendar"]

log = get_logger("fpanel.calendar")


def build_calendar(
    df: pd.DataFrame,
    *,
    id_col: str = "gvkey",
    date_col: str = "datadate",
    start_year: Optional[int] = None,
    end_year: Optional[int] = None,
) -> pd.DataFrame:
    """
    Expand each firm's observed year span into a contiguous calendar.

    Parameters
    ----------
    df : DataFrame
        Observations with at least ``id_col`` and ``date_col``; several
        rows per firm are allowed.  Rows with a missing id or date are
        ignored.
    id_col : str, default "gvkey"
        Firm identifier.
    date_col : str, default "datadate"
        Observation date; only its calendar year is used.
    start_year, end_year : int, optional
        Clip the emitted years to the sample period.  ``year_min`` and
        ``year_max`` still describe the observed span.

    Returns
    -------
    DataFrame
        Columns ``[id_col, "year_min", "year_max", "year"]`` sorted by
        ``id_col`` and ``year``; exactly ``year_max - year_min + 1`` rows
        per firm before clipping.
    """
    require_columns(df, [id_col, date_col], "calendar")

    obs = pd.DataFrame({id_col: df[id_col], "_year": calendar_year(df[date_col])})
    obs = obs.dropna(subset=[id_col, "_year"])
    cols = [id_col, "year_min", "year_max", "year"]
    if obs.empty:
        return pd.DataFrame(columns=cols)

    spans = (
        obs.groupby(id_col, sort=True)["_year"]
        .agg(year_min="min", year_max="max")
        .reset_index()
    )
    spans["year_min"] = spans["year_min"].astype("int64")
    spans["year_max"] = spans["year_max"].astype("int64")

    n_years = (spans["year_max"] - spans["year_min"] + 1).to_numpy()
    cal = spans.loc[spans.index.repeat(n_years)].reset_index(drop=True)
    # Offset of each row within its firm's block: 0, 1, ..., n-1
    starts = np.repeat(np.cumsum(n_years) - n_years, n_years)
    cal["year"] = cal["year_min"].to_numpy() + (np.arange(len(cal)) - starts)

    if start_year is not None:
        cal = cal.loc[cal["year"] >= start_year]
    if end_year is not None:
        cal = cal.loc[cal["year"] <= end_year]

    cal = cal[cols].sort_values([id_col, "year"], kind="mergesort")
    cal = cal.reset_index(drop=True)
    log.info(
        "calendar: %d firms expanded to %d firm-years", len(spans), len(cal)
    )
    return cal
