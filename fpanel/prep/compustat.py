"""
Compustat Annual (FUNDA) → one clean record per firm and calendar year.

Rules:
- Apply the source filter (by default industrial, standardised,
  domestic, consolidated statements) and the column projection.
- Assign each statement to the calendar year of ``datadate``.  A firm
  that changes fiscal year end can file twice in one calendar year; the
  latest ``datadate`` wins.
- Derive book equity and related fields through the fallback chains
  below, in the order listed.

Fallback order
--------------
``book_equity``         seq → ceq + pstk → at − lt − mib
``preferred_stock``     pstkrv → pstkl → pstk → 0
``deferred_taxes``      txditc → txdb + itcb → 0
``sales``               sale → revt
``market_equity``       prcc_f × csho, non-positive values treated as missing
``common_book_equity``  book_equity + deferred_taxes − preferred_stock
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple

import pandas as pd

from ..diagnostics import RunDiagnostics
from ..util.dates import calendar_year, to_naive_datetime
from ..util.ids import normalize_gvkey
from ..util.logging import get_logger
from ..util.schema import require_columns
from .dedup import assert_unique, keep_last
from .filters import Predicate, Range, apply_filter
from .merge import Col, Diff, FallbackChain, Product, Sum, evaluate_chains
from .ratios import ratio

__all__ = ["FUNDAMENTAL_CHAINS", "prepare_fundamentals", "add_fundamental_ratios"]

log = get_logger("fpanel.compustat")

_KEY = ["gvkey", "year"]
_NON_NUMERIC = {"gvkey", "datadate", "fyear", "indfmt", "datafmt", "popsrc", "consol"}


def _positive(s: pd.Series) -> pd.Series:
    return s.where(s > 0)


FUNDAMENTAL_CHAINS: Tuple[FallbackChain, ...] = (
    FallbackChain(
        "book_equity", [Col("seq"), Sum("ceq", "pstk"), Diff("at", "lt", "mib")]
    ),
    FallbackChain("preferred_stock", ["pstkrv", "pstkl", "pstk"], default=0.0),
    FallbackChain("deferred_taxes", ["txditc", Sum("txdb", "itcb")], default=0.0),
    FallbackChain("sales", ["sale", "revt"]),
    FallbackChain("market_equity", [(Product("prcc_f", "csho"), _positive)]),
    FallbackChain(
        "common_book_equity",
        [Diff(Sum("book_equity", "deferred_taxes"), "preferred_stock")],
    ),
)


def prepare_fundamentals(
    raw_funda: pd.DataFrame,
    *,
    predicate: Optional[Predicate] = None,
    columns: Optional[Sequence[str]] = None,
    start_year: Optional[int] = None,
    end_year: Optional[int] = None,
    chains: Sequence[FallbackChain] = FUNDAMENTAL_CHAINS,
    diagnostics: Optional[RunDiagnostics] = None,
) -> pd.DataFrame:
    """
    Clean FUNDA into a (gvkey, year) keyed table with derived fields.

    Parameters
    ----------
    raw_funda : DataFrame
        Raw FUNDA extract.  Must contain every column referenced by
        ``predicate``, ``columns`` and ``chains``.
    predicate : Predicate, optional
        Row filter applied before anything else.
    columns : sequence of str, optional
        Projection; must include ``gvkey`` and ``datadate``.
    start_year, end_year : int, optional
        Sample period on the calendar year of ``datadate``.
    chains : sequence of FallbackChain
        Derived fields, evaluated in order.

    Returns
    -------
    DataFrame
        One row per (``gvkey``, ``year``) with the projected columns, the
        ``year`` column and one column per chain, sorted by key.
    """
    df = apply_filter(raw_funda, predicate, columns, stage="fundamentals")
    require_columns(df, ["gvkey", "datadate"], "fundamentals")

    df = normalize_gvkey(df)
    df["datadate"] = to_naive_datetime(df["datadate"])
    df = df.dropna(subset=["gvkey", "datadate"]).copy()
    df["year"] = calendar_year(df["datadate"])
    if start_year is not None or end_year is not None:
        df = apply_filter(
            df, Range("year", start_year, end_year), stage="sample_period"
        )

    for c in df.columns:
        if c not in _NON_NUMERIC and c != "year":
            df[c] = pd.to_numeric(df[c], errors="coerce")

    df = keep_last(
        df, _KEY, ["datadate"], stage="fundamentals_dedup", diagnostics=diagnostics
    )
    df = evaluate_chains(df, chains, stage="fundamentals", diagnostics=diagnostics)
    assert_unique(df, _KEY, stage="fundamentals")
    return df.sort_values(_KEY).reset_index(drop=True)


def add_fundamental_ratios(df: pd.DataFrame) -> pd.DataFrame:
    """Book-to-market and book leverage from derived fundamentals."""
    require_columns(
        df, ["common_book_equity", "market_equity", "lt", "at"], "fundamental_ratios"
    )
    out = df.copy()
    out["book_to_market"] = ratio(out["common_book_equity"], out["market_equity"])
    out["leverage"] = ratio(out["lt"], out["at"].where(out["at"] > 0))
    return out
