"""
Nearest-date matching against a reference time series.

For each target row (an entity and a target date) we look for the
reference observation of the same entity whose date is closest to the
target date without being after it, and no further back than a lookback
window.  Typical uses are the closing price a few days before an
earnings announcement, or the CRSP share-adjustment factor in force on
the day an analyst issued a forecast.

Matching is strictly causal: only ``target - window <= date <= target``
qualifies, so the closest candidate is simply the latest one in the
window.  Per entity this is a backward ``pd.merge_asof``; as in the
signal constructors, the as-of join runs within each entity group so
interleaved dates across entities never trip the sortedness check.

Tie-break
---------
Two candidates at equal distance necessarily share a date.  Such
duplicates are collapsed before matching to the row with the lowest
``value_cols`` (compared in the given order, missing values last).  The
result therefore does not depend on input row order.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from ..diagnostics import RunDiagnostics
from ..util.dates import MatchWindow, to_naive_datetime, window_start
from ..util.groups import apply_by_group
from ..util.logging import get_logger
from ..util.schema import require_columns

__all__ = ["match_nearest"]

log = get_logger("fpanel.nearest")


def _as_list(x: Union[str, Sequence[str]]) -> List[str]:
    return [x] if isinstance(x, str) else list(x)


def match_nearest(
    targets: pd.DataFrame,
    series: pd.DataFrame,
    *,
    by: Union[str, Sequence[str]],
    target_date: str,
    value_cols: Sequence[str],
    date_col: str = "date",
    window: MatchWindow = MatchWindow(),
    prefix: str = "",
    n_jobs: int = 1,
    diagnostics: Optional[RunDiagnostics] = None,
    stage: str = "nearest",
) -> pd.DataFrame:
    """
    Attach the closest prior-or-same-day observation within a lookback window.

    Parameters
    ----------
    targets : DataFrame
        Rows to enrich; must contain the ``by`` columns and ``target_date``.
    series : DataFrame
        Reference time series with the ``by`` columns, ``date_col`` and
        ``value_cols``.
    by : str or sequence of str
        Entity key shared by both tables (e.g. ``"permno"``).
    target_date : str
        Column of ``targets`` holding the reference date.
    value_cols : sequence of str
        Columns of ``series`` to carry over.
    date_col : str, default "date"
        Observation date column of ``series``.
    window : MatchWindow
        Lookback length and unit.
    prefix : str, default ""
        Prepended to the carried columns and to the ``match_date`` and
        ``match_days`` bookkeeping columns.
    n_jobs : int, default 1
        Worker threads used across entities.
    diagnostics : RunDiagnostics, optional
        Receives the count of unmatched target rows under ``no_match``.
    stage : str
        Label for errors, logs and diagnostics.

    Returns
    -------
    DataFrame
        ``targets`` in its original row order with ``<prefix><value>``
        columns, ``<prefix>match_date`` and ``<prefix>match_days`` (days
        between the match and the target date).  Rows without a candidate
        in the window keep missing values in all of them.
    """
    keys = _as_list(by)
    values = list(value_cols)
    require_columns(targets, keys + [target_date], stage)
    require_columns(series, keys + [date_col] + values, stage)

    renamed: Dict[str, str] = {c: f"{prefix}{c}" for c in values}
    match_date = f"{prefix}match_date"
    match_days = f"{prefix}match_days"
    new_cols = list(renamed.values()) + [match_date, match_days]
    clash = sorted(set(new_cols) & set(targets.columns))
    if clash:
        raise ValueError(
            f"{stage}: output columns {clash} already exist; set a prefix"
        )

    # Reference series: one row per (entity, date), lowest values first
    ref = series[keys + [date_col] + values].copy()
    ref[date_col] = to_naive_datetime(ref[date_col])
    ref = ref.dropna(subset=keys + [date_col])
    n_ref = len(ref)
    ref = ref.sort_values(
        keys + [date_col] + values, kind="mergesort", na_position="last"
    ).drop_duplicates(subset=keys + [date_col], keep="first")
    if len(ref) < n_ref:
        log.info(
            "%s: collapsed %d same-date duplicate observations", stage, n_ref - len(ref)
        )
    ref = ref.rename(columns={**renamed, date_col: match_date})
    ref_groups: Dict[Any, pd.DataFrame] = {
        k: g.drop(columns=keys) for k, g in ref.groupby(keys, sort=False)
    }

    tgt = targets.copy()
    tgt["_row"] = np.arange(len(tgt))
    tgt["_target"] = to_naive_datetime(tgt[target_date])
    tgt["_lower"] = window_start(tgt["_target"], window.length, window.unit)

    matchable = tgt[keys + ["_target"]].notna().all(axis=1)

    def _match_group(key: Any, g: pd.DataFrame) -> pd.DataFrame:
        r = ref_groups.get(key)
        if r is None:
            return g
        return pd.merge_asof(
            g.sort_values("_target", kind="mergesort"),
            r.sort_values(match_date),
            left_on="_target",
            right_on=match_date,
            direction="backward",
            allow_exact_matches=True,
        )

    parts = [tgt.loc[~matchable]]
    if matchable.any():
        parts.append(
            apply_by_group(tgt.loc[matchable], keys, _match_group, n_jobs=n_jobs)
        )
    parts = [p for p in parts if not p.empty]
    out = pd.concat(parts, ignore_index=True) if parts else tgt.copy()
    for c in new_cols:
        if c not in out.columns:
            out[c] = np.nan
    # Fixed layout: target columns, then values, match_date, match_days
    out = out[[*tgt.columns, *new_cols]].copy()
    out[match_date] = pd.to_datetime(out[match_date])

    # Observations older than the window do not count as matches
    stale = out[match_date].notna() & (out[match_date] < out["_lower"])
    for c in [*renamed.values(), match_date]:
        out[c] = out[c].where(~stale)
    out[match_days] = (out["_target"] - out[match_date]).dt.days.astype("Int64")

    out = out.sort_values("_row", kind="mergesort").drop(
        columns=["_row", "_target", "_lower"]
    )
    out = out.reset_index(drop=True)

    n_missing = int(out[match_date].isna().sum())
    if diagnostics is not None and n_missing:
        diagnostics.record("no_match", stage, n_missing)
    log.info(
        "%s: matched %d of %d rows within %d %s",
        stage,
        len(out) - n_missing,
        len(out),
        window.length,
        window.unit,
    )
    return out
