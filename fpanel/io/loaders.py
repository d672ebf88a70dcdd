"""
Data loaders for the panel pipeline.

These functions provide a thin abstraction layer over reading raw
inputs from disk.  Callers may supply their own DataFrames directly
(for example in unit tests), and each loader accepts one via the ``df``
argument, which takes precedence over ``path``.

Parquet is the storage format of the local cache; ``.csv`` files are
also accepted so that small hand-made extracts can be used as-is.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence, Union

import pandas as pd

from ..util.logging import get_logger

__all__ = [
    "read_table",
    "load_fundamentals",
    "load_prices",
    "load_ccm_links",
    "load_ticker_links",
    "load_forecasts",
    "load_actuals",
    "save_panel",
]

log = get_logger("fpanel.io")

PathLike = Union[str, Path]

# Identifier and flag columns that must not be parsed as numbers
_TEXT_COLUMNS = {c: str for c in ("gvkey", "ticker", "cusip", "fpi", "pdf", "linktype")}


def read_table(path: PathLike, *, date_cols: Sequence[str] = ()) -> pd.DataFrame:
    """Read a Parquet or CSV file, parsing ``date_cols`` in CSV input."""
    p = Path(path)
    if p.suffix.lower() == ".csv":
        df = pd.read_csv(p, dtype=_TEXT_COLUMNS)
        for c in date_cols:
            if c in df.columns:
                df[c] = pd.to_datetime(df[c], errors="coerce")
    else:
        df = pd.read_parquet(p)
    log.info("Read %d rows from %s", len(df), p)
    return df


def _load(
    what: str,
    path: Optional[PathLike],
    df: Optional[pd.DataFrame],
    date_cols: Sequence[str],
) -> pd.DataFrame:
    if df is not None:
        return df.copy()
    if path is None:
        raise FileNotFoundError(
            f"Either a {what} DataFrame or file path must be provided."
        )
    return read_table(path, date_cols=date_cols)


def load_fundamentals(
    *, path: Optional[PathLike] = None, df: Optional[pd.DataFrame] = None
) -> pd.DataFrame:
    """
    Load Compustat annual fundamentals (FUNDA).

    Parameters
    ----------
    path : str or Path, optional
        Location of a Parquet or CSV file.  Ignored if ``df`` is provided.
    df : DataFrame, optional
        Provide FUNDA data directly.

    Raises
    ------
    FileNotFoundError
        If neither ``df`` nor ``path`` is given.
    """
    return _load("FUNDA", path, df, ["datadate"])


def load_prices(
    *, path: Optional[PathLike] = None, df: Optional[pd.DataFrame] = None
) -> pd.DataFrame:
    """Load CRSP daily prices with adjustment factors (DSF)."""
    return _load("CRSP daily", path, df, ["date"])


def load_ccm_links(
    *, path: Optional[PathLike] = None, df: Optional[pd.DataFrame] = None
) -> pd.DataFrame:
    """Load the CCM gvkey-permno link history."""
    return _load("link history", path, df, ["linkdt", "linkenddt"])


def load_ticker_links(
    *, path: Optional[PathLike] = None, df: Optional[pd.DataFrame] = None
) -> pd.DataFrame:
    """Load the scored IBES ticker-permno link table."""
    return _load("ticker link", path, df, [])


def load_forecasts(
    *, path: Optional[PathLike] = None, df: Optional[pd.DataFrame] = None
) -> pd.DataFrame:
    """Load unadjusted IBES detail forecasts."""
    return _load("IBES detail", path, df, ["fpedats", "anndats"])


def load_actuals(
    *, path: Optional[PathLike] = None, df: Optional[pd.DataFrame] = None
) -> pd.DataFrame:
    """Load unadjusted IBES actuals."""
    return _load("IBES actuals", path, df, ["pends", "anndats"])


def save_panel(df: pd.DataFrame, path: PathLike) -> Path:
    """Write a panel to ``.parquet`` or ``.csv`` depending on the suffix."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    if p.suffix.lower() == ".csv":
        df.to_csv(p, index=False)
    else:
        df.to_parquet(p, index=False)
    log.info("Wrote %d rows to %s", len(df), p)
    return p
