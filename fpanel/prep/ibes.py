"""
IBES detail forecasts and actuals → analyst consensus and forecast errors.

The unadjusted IBES files report every figure on the share basis in force
on the day it was issued.  To compare an analyst's forecast with the
announced actual, the forecast is restated on the basis of the
announcement date using CRSP's cumulative share-adjustment factor
(``cfacshr``) matched at both dates.  The price used to scale errors is
the unadjusted CRSP close nearest to (and not after) the announcement,
which is already on the actual's basis.

Steps:
1. :func:`prepare_actuals` – one actual per (ticker, fiscal period end);
   duplicates are an error.
2. :func:`prepare_forecasts` – filter and normalise the detail file.
3. :func:`latest_forecasts` – forecasts issued no later than the
   announcement, on the actual's EPS basis, last one per analyst.
4. :func:`adjust_to_announcement_basis` – split-adjust forecasts.
5. :func:`consensus` and :func:`forecast_errors` – per firm-period
   statistics scaled by price.
"""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np
import pandas as pd

from ..diagnostics import RunDiagnostics
from ..util.dates import MatchWindow, to_naive_datetime
from ..util.ids import normalize_permno, normalize_ticker
from ..util.logging import get_logger
from ..util.schema import require_columns
from .dedup import assert_unique, keep_last
from .filters import Predicate, apply_filter
from .merge import merge_left
from .nearest import match_nearest
from .ratios import adjust_for_splits, ratio, relative_error

__all__ = [
    "ANALYST_KEY",
    "PERIOD_KEY",
    "prepare_actuals",
    "prepare_forecasts",
    "attach_permno",
    "latest_forecasts",
    "adjust_to_announcement_basis",
    "consensus",
    "forecast_errors",
]

log = get_logger("fpanel.ibes")

PERIOD_KEY = ["ticker", "fpedats"]
ANALYST_KEY = PERIOD_KEY + ["estimator", "analys"]


def prepare_actuals(
    raw_act: pd.DataFrame, *, predicate: Optional[Predicate] = None
) -> pd.DataFrame:
    """
    Clean IBES actuals to one row per (``ticker``, ``fpedats``).

    Returns columns ``ticker``, ``fpedats``, ``act_anndats``, ``actual``
    and, when the source has a basis flag, ``act_pdf``.

    Raises
    ------
    UniquenessViolation
        If a firm has several actuals for one fiscal period end.
    """
    df = apply_filter(raw_act, predicate, stage="actuals")
    require_columns(df, ["ticker", "pends", "anndats", "value"], "actuals")
    df = df.rename(
        columns={
            "pends": "fpedats",
            "anndats": "act_anndats",
            "value": "actual",
            "pdf": "act_pdf",
        }
    )
    df = normalize_ticker(df)
    df["fpedats"] = to_naive_datetime(df["fpedats"])
    df["act_anndats"] = to_naive_datetime(df["act_anndats"])
    df["actual"] = pd.to_numeric(df["actual"], errors="coerce")

    cols = PERIOD_KEY + ["act_anndats", "actual"]
    if "act_pdf" in df.columns:
        cols.append("act_pdf")
    df = df.loc[df["ticker"].notna() & df["fpedats"].notna(), cols]
    assert_unique(df, PERIOD_KEY, stage="actuals")
    return df.sort_values(PERIOD_KEY).reset_index(drop=True)


def prepare_forecasts(
    raw_det: pd.DataFrame,
    *,
    predicate: Optional[Predicate] = None,
    columns: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """Filter, project and normalise the IBES detail file."""
    df = apply_filter(raw_det, predicate, columns, stage="forecasts")
    require_columns(df, ANALYST_KEY + ["anndats", "value"], "forecasts")
    df = normalize_ticker(df)
    df["fpedats"] = to_naive_datetime(df["fpedats"])
    df["anndats"] = to_naive_datetime(df["anndats"])
    df["value"] = pd.to_numeric(df["value"], errors="coerce")
    return df.dropna(subset=PERIOD_KEY).reset_index(drop=True)


def attach_permno(df: pd.DataFrame, links: pd.DataFrame) -> pd.DataFrame:
    """Add ``permno`` from a resolved one-to-one ticker link table."""
    links = normalize_ticker(links[["ticker", "permno"]].copy())
    out = merge_left(df, links, "ticker", columns=["permno"], stage="ticker_link")
    return normalize_permno(out)


def latest_forecasts(
    forecasts: pd.DataFrame,
    actuals: pd.DataFrame,
    *,
    match_basis: bool = True,
    diagnostics: Optional[RunDiagnostics] = None,
) -> pd.DataFrame:
    """
    Keep each analyst's last forecast issued on or before the announcement.

    Forecasts for periods without an actual are dropped.  With
    ``match_basis`` and a basis flag on both sides, forecasts on a
    different EPS basis (primary vs diluted) than the actual are dropped.
    """
    act_cols = [c for c in actuals.columns if c not in PERIOD_KEY]
    fc = merge_left(forecasts, actuals, PERIOD_KEY, columns=act_cols, stage="actuals")
    keep = fc["act_anndats"].notna() & (fc["anndats"] <= fc["act_anndats"])
    if match_basis and {"pdf", "act_pdf"}.issubset(fc.columns):
        keep &= fc["pdf"] == fc["act_pdf"]
    fc = fc.loc[keep]
    log.info(
        "latest_forecasts: %d of %d forecasts precede an actual", len(fc), keep.size
    )
    return keep_last(
        fc, ANALYST_KEY, ["anndats"], stage="analyst_dedup", diagnostics=diagnostics
    )


def adjust_to_announcement_basis(
    forecasts: pd.DataFrame,
    prices: pd.DataFrame,
    *,
    window: MatchWindow = MatchWindow(),
    n_jobs: int = 1,
    diagnostics: Optional[RunDiagnostics] = None,
) -> pd.DataFrame:
    """
    Restate forecasts on the announcement date's share basis as ``value_adj``.

    Adds ``fcst_cfacshr`` and ``act_cfacshr`` (with their match columns).
    A forecast whose factor cannot be matched at either date gets a
    missing ``value_adj``.
    """
    require_columns(
        forecasts, ["permno", "anndats", "act_anndats", "value"], "split_adjust"
    )
    fc = match_nearest(
        forecasts,
        prices,
        by="permno",
        target_date="anndats",
        value_cols=["cfacshr"],
        window=window,
        prefix="fcst_",
        n_jobs=n_jobs,
        diagnostics=diagnostics,
        stage="forecast_factor",
    )
    fc = match_nearest(
        fc,
        prices,
        by="permno",
        target_date="act_anndats",
        value_cols=["cfacshr"],
        window=window,
        prefix="act_",
        n_jobs=n_jobs,
        diagnostics=diagnostics,
        stage="actual_factor",
    )
    fc["value_adj"] = adjust_for_splits(
        fc["value"], fc["fcst_cfacshr"], fc["act_cfacshr"]
    )
    return fc


def consensus(forecasts: pd.DataFrame, value: str = "value_adj") -> pd.DataFrame:
    """
    Per (``ticker``, ``fpedats``) consensus over analysts.

    Returns ``permno``, ``act_anndats``, ``actual``, ``n_analysts``,
    ``mean_forecast``, ``median_forecast``, ``forecast_std`` (sample
    standard deviation, missing with one analyst) and
    ``last_forecast_date``.
    """
    require_columns(
        forecasts,
        PERIOD_KEY + ["permno", "act_anndats", "actual", "anndats", value],
        "consensus",
    )
    cols = [
        *PERIOD_KEY,
        "permno",
        "act_anndats",
        "actual",
        "n_analysts",
        "mean_forecast",
        "median_forecast",
        "forecast_std",
        "last_forecast_date",
    ]
    if forecasts.empty:
        return pd.DataFrame(columns=cols)
    out = (
        forecasts.groupby(PERIOD_KEY, sort=True)
        .agg(
            permno=("permno", "first"),
            act_anndats=("act_anndats", "first"),
            actual=("actual", "first"),
            n_analysts=(value, "count"),
            mean_forecast=(value, "mean"),
            median_forecast=(value, "median"),
            forecast_std=(value, "std"),
            last_forecast_date=("anndats", "max"),
        )
        .reset_index()
    )
    out["permno"] = out["permno"].astype("Int64")
    return out[cols]


def forecast_errors(
    cons: pd.DataFrame,
    prices: pd.DataFrame,
    *,
    window: MatchWindow = MatchWindow(),
    n_jobs: int = 1,
    diagnostics: Optional[RunDiagnostics] = None,
) -> pd.DataFrame:
    """
    Scale consensus errors and dispersion by the announcement-date price.

    Adds ``price``, ``price_date``, ``price_days``, ``forecast_error``
    (``(actual - median_forecast) / price``), ``abs_forecast_error`` and
    ``dispersion`` (``forecast_std / price``).
    """
    out = match_nearest(
        cons,
        prices,
        by="permno",
        target_date="act_anndats",
        value_cols=["prc"],
        window=window,
        prefix="price_",
        n_jobs=n_jobs,
        diagnostics=diagnostics,
        stage="announcement_price",
    )
    out = out.rename(
        columns={
            "price_prc": "price",
            "price_match_date": "price_date",
            "price_match_days": "price_days",
        }
    )
    out["forecast_error"] = relative_error(
        out["actual"], out["median_forecast"], out["price"]
    )
    out["abs_forecast_error"] = np.abs(out["forecast_error"])
    out["dispersion"] = ratio(out["forecast_std"], out["price"])
    return out
