"""
CRSP daily stock file (DSF) cleaning.

Prices are kept on their unadjusted basis.  Negative ``prc`` marks a
bid/ask midpoint and is taken in absolute value.  Zero cumulative
adjustment factors (securities that stopped trading) are treated as 1.
"""

from __future__ import annotations

from typing import Optional

import pandas as pd

from ..util.dates import to_naive_datetime
from ..util.ids import normalize_permno
from ..util.logging import get_logger
from ..util.schema import require_columns
from .filters import IsIn, Predicate, apply_filter
from .ratios import neutral_factor, ratio

__all__ = ["COMMON_EQUITY", "clean_crsp_dsf"]

log = get_logger("fpanel.crsp")

# Ordinary common shares
COMMON_EQUITY = IsIn("shrcd", (10, 11))


def clean_crsp_dsf(
    dsf: pd.DataFrame, predicate: Optional[Predicate] = None
) -> pd.DataFrame:
    """Normalise CRSP daily prices and add split-adjusted price ``adj_prc``."""
    require_columns(dsf, ["permno", "date", "prc", "cfacpr", "cfacshr"], "crsp_dsf")
    df = dsf.copy()
    df = normalize_permno(df)
    df["date"] = to_naive_datetime(df["date"])
    # Fix prices: prc negative indicates bid/ask convention; take abs
    df["prc"] = pd.to_numeric(df["prc"], errors="coerce").abs()
    df["cfacpr"] = neutral_factor(df["cfacpr"])
    df["cfacshr"] = neutral_factor(df["cfacshr"])
    df = apply_filter(df, predicate, stage="crsp_dsf")
    df["adj_prc"] = ratio(df["prc"], df["cfacpr"])
    # Market equity in $ thousands when shrout (thousands of shares) is present
    if "shrout" in df:
        df["me"] = (df["prc"] * pd.to_numeric(df["shrout"], errors="coerce")).astype(
            "float64"
        )
    df = df.dropna(subset=["permno", "date"])
    df = df.sort_values(["permno", "date"], kind="mergesort").reset_index(drop=True)
    log.info("crsp_dsf: %d daily rows for %d securities", len(df), df["permno"].nunique())
    return df
