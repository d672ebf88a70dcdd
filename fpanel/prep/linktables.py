"""
Identifier linkage between data vendors.

Two link tables are handled here:

* The IBES–CRSP ticker link (ICLINK-style), where every candidate
  ``ticker → permno`` pair carries a quality score, 0 being the best.
  :func:`resolve_links` keeps the accepted scores and then refuses to
  guess: a ticker that still points to more than one PERMNO is dropped
  altogether.  Losing a firm costs coverage; linking its forecasts to
  the wrong price history corrupts every ratio built on it.
* The CRSP/Compustat Merged (CCM) link history, where each
  ``gvkey → permno`` link is valid over a date interval.
  :func:`map_gvkey_to_permno` attaches the PERMNO whose link is active
  at a given as-of date.
"""

from __future__ import annotations

import warnings
from typing import Iterable, List, Optional

import pandas as pd

from ..diagnostics import RunDiagnostics
from ..errors import AmbiguousLinkWarning
from ..util.ids import normalize_gvkey
from ..util.logging import get_logger
from ..util.schema import require_columns

__all__ = ["resolve_links", "clean_ccm_linkhist", "map_gvkey_to_permno"]

log = get_logger("fpanel.linktables")

OPEN_END = pd.Timestamp("2099-12-31")


def resolve_links(
    links: pd.DataFrame,
    *,
    source: str = "ticker",
    target: str = "permno",
    score: str = "score",
    accepted_scores: Iterable[int] = (0, 1, 2),
    diagnostics: Optional[RunDiagnostics] = None,
) -> pd.DataFrame:
    """
    Reduce a scored many-to-many link table to a one-to-one mapping.

    Parameters
    ----------
    links : DataFrame
        Raw links with columns ``source``, ``target`` and ``score``.
    source, target, score : str
        Column names of the identifier being mapped, the identifier it
        maps to, and the link quality score.
    accepted_scores : iterable of int, default (0, 1, 2)
        Allow-list of scores; links with any other score are discarded.
    diagnostics : RunDiagnostics, optional
        Receives the number of excluded source identifiers under
        ``ambiguous_links``.

    Returns
    -------
    DataFrame
        Columns ``[source, target, score]`` with exactly one row per
        source identifier, sorted by ``source``.  Where a source reaches
        its single target through several links, the best (lowest) score
        is kept.

    Warns
    -----
    AmbiguousLinkWarning
        When at least one source identifier maps to several distinct
        targets; those identifiers are absent from the result.
    """
    require_columns(links, [source, target, score], "resolve_links")
    allowed = list(accepted_scores)

    lk = links[[source, target, score]].copy()
    lk[score] = pd.to_numeric(lk[score], errors="coerce")
    lk = lk.loc[lk[score].isin(allowed)].dropna(subset=[source, target])

    n_targets = lk.groupby(source)[target].nunique()
    ambiguous = n_targets.index[n_targets > 1]
    if len(ambiguous):
        sample = sorted(map(str, ambiguous))[:5]
        msg = (
            f"{len(ambiguous)} {source} value(s) map to several {target} values "
            f"and were excluded, e.g. {sample}"
        )
        warnings.warn(msg, AmbiguousLinkWarning, stacklevel=2)
        log.warning(msg)
        if diagnostics is not None:
            diagnostics.record("ambiguous_links", "resolve_links", len(ambiguous))
    lk = lk.loc[~lk[source].isin(ambiguous)]

    out = (
        lk.sort_values([source, score], kind="mergesort")
        .drop_duplicates(subset=[source], keep="first")
        .reset_index(drop=True)
    )
    log.info(
        "resolve_links: %d raw links -> %d one-to-one %s->%s links",
        len(links),
        len(out),
        source,
        target,
    )
    return out


def clean_ccm_linkhist(
    lnk: pd.DataFrame,
    *,
    link_types: Iterable[str] = ("LC", "LU", "LX", "LS"),
    link_prims: Optional[Iterable[str]] = ("P", "C"),
) -> pd.DataFrame:
    """
    Clean CCM link history; normalize date bounds and allowed link types.

    When the extract carries ``linkprim``, only primary links (``P`` and
    ``C`` by default) are kept.  ``link_prims=None`` disables the screen.
    """
    keep_types: List[str] = list(link_types)
    require_columns(
        lnk, ["gvkey", "lpermno", "linktype", "linkdt", "linkenddt"], "ccm_linkhist"
    )
    out = lnk.copy()

    out = out.loc[out["linktype"].isin(keep_types)].copy()
    if link_prims is not None and "linkprim" in out.columns:
        out = out.loc[out["linkprim"].isin(list(link_prims))].copy()
    out["linkdt"] = pd.to_datetime(out["linkdt"], errors="coerce")
    # Open-ended links (missing or 'E') run to the far future
    out["linkenddt"] = pd.to_datetime(out["linkenddt"], errors="coerce")
    out["linkenddt"] = out["linkenddt"].fillna(OPEN_END)

    out["lpermno"] = pd.to_numeric(out["lpermno"], errors="coerce").astype("Int64")
    out = normalize_gvkey(out)
    out = out.dropna(subset=["gvkey", "lpermno", "linkdt"])

    start = out["linkdt"].to_numpy("datetime64[ns]")
    end = out["linkenddt"].to_numpy("datetime64[ns]")
    span = (end - start).astype("timedelta64[D]").astype("int64")
    out = out.assign(_span_days=span)

    # Repeated (gvkey, permno) rows: keep longest span, then latest start
    out = (
        out.sort_values(
            ["gvkey", "lpermno", "_span_days", "linkdt"],
            ascending=[True, True, False, False],
        )
        .drop_duplicates(subset=["gvkey", "lpermno"], keep="first")
        .reset_index(drop=True)
    )
    return out


def map_gvkey_to_permno(
    funda: pd.DataFrame,
    lnkhist: pd.DataFrame,
    *,
    date_col: str = "datadate",
) -> pd.DataFrame:
    """
    Attach the CRSP PERMNO linked to each Compustat row at ``date_col``.

    Parameters
    ----------
    funda : DataFrame
        Must contain ``gvkey`` and ``date_col``.
    lnkhist : DataFrame
        CCM link history with ``gvkey``, ``lpermno``, ``linktype``,
        ``linkdt`` and ``linkenddt``.
    date_col : str, default "datadate"
        As-of date; a link is active when ``linkdt <= asof <= linkenddt``.

    Returns
    -------
    DataFrame
        ``funda`` with an added ``permno`` (Int64) column, missing where no
        link is active.  When several links are active, the longest span
        wins, then the latest start.  Row count and order are unchanged.
    """
    require_columns(funda, ["gvkey", date_col], "map_gvkey_to_permno")

    lnk = clean_ccm_linkhist(lnkhist)

    df = normalize_gvkey(funda.copy())
    df[date_col] = pd.to_datetime(df[date_col], errors="coerce")
    keys = df[["gvkey", date_col]].drop_duplicates()

    merged = keys.merge(
        lnk[["gvkey", "lpermno", "linkdt", "linkenddt", "_span_days"]],
        on="gvkey",
        how="inner",
        validate="m:m",
    )
    asof = merged[date_col].to_numpy("datetime64[ns]")
    start = merged["linkdt"].to_numpy("datetime64[ns]")
    end = merged["linkenddt"].to_numpy("datetime64[ns]")
    active = merged.loc[(asof >= start) & (asof <= end)]

    active = (
        active.sort_values(
            ["gvkey", date_col, "_span_days", "linkdt"],
            ascending=[True, True, False, False],
        )
        .drop_duplicates(subset=["gvkey", date_col], keep="first")
        .reset_index(drop=True)
    )

    out = df.merge(
        active[["gvkey", date_col, "lpermno"]],
        on=["gvkey", date_col],
        how="left",
        validate="m:1",
    )
    out = out.rename(columns={"lpermno": "permno"})
    out["permno"] = out["permno"].astype("Int64")
    n_linked = int(out["permno"].notna().sum())
    log.info("map_gvkey_to_permno: linked %d of %d rows", n_linked, len(out))
    return out
