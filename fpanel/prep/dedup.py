"""
Deduplication policies.

``keep_last``
    Later observations supersede earlier ones: sort within each key and
    keep the final row (an analyst's latest forecast, the latest
    ``datadate`` within a fiscal year).
``keep_extreme``
    Keep the row with the smallest or largest value of a derived column
    (the closest fiscal period, the largest analyst following).
``assert_unique``
    Not a transformation.  Fails with :class:`UniquenessViolation` when a
    key that must be unique is not, instead of silently picking a row.

Both transformations are deterministic.  When the sort key does not
fully order a group, the input row position is the final key: for
``keep_last`` the later input row wins, for ``keep_extreme`` the earlier
one.  ``keep_last`` logs a warning when it has to fall back on position.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from ..diagnostics import RunDiagnostics
from ..errors import UniquenessViolation
from ..util.logging import get_logger
from ..util.schema import require_columns

__all__ = ["keep_last", "keep_extreme", "assert_unique"]

log = get_logger("fpanel.dedup")

Columns = Union[str, Sequence[str]]


def _as_list(x: Columns) -> List[str]:
    return [x] if isinstance(x, str) else list(x)


def keep_last(
    df: pd.DataFrame,
    by: Columns,
    order_by: Columns,
    *,
    stage: str = "keep_last",
    diagnostics: Optional[RunDiagnostics] = None,
) -> pd.DataFrame:
    """
    Keep the last row of each ``by`` group in ``order_by`` order.

    Missing ``order_by`` values sort first, so they never supersede a
    dated observation.  The result is sorted by ``by``.
    """
    keys = _as_list(by)
    order = _as_list(order_by)
    require_columns(df, keys + order, stage)

    d = df.copy()
    d["_pos"] = np.arange(len(d))
    d = d.sort_values(keys + order + ["_pos"], kind="mergesort", na_position="first")

    tied = d.duplicated(subset=keys + order, keep=False)
    if tied.any():
        n_groups = d.loc[tied, keys].drop_duplicates().shape[0]
        log.warning(
            "%s: %d group(s) have rows tied on %s; the later input row is kept",
            stage,
            n_groups,
            keys + order,
        )

    out = d.drop_duplicates(subset=keys, keep="last").drop(columns="_pos")
    out = out.reset_index(drop=True)
    n_dropped = len(df) - len(out)
    if diagnostics is not None and n_dropped:
        diagnostics.record("duplicates_dropped", stage, n_dropped)
    log.info("%s: %d rows -> %d unique %s", stage, len(df), len(out), keys)
    return out


def keep_extreme(
    df: pd.DataFrame,
    by: Columns,
    value: str,
    *,
    how: str = "min",
    stage: str = "keep_extreme",
    diagnostics: Optional[RunDiagnostics] = None,
) -> pd.DataFrame:
    """
    Keep, per ``by`` group, the row with the minimal or maximal ``value``.

    Missing values never win unless the whole group is missing.  Ties keep
    the earliest input row.  The result is sorted by ``by``.
    """
    if how not in ("min", "max"):
        raise ValueError("how must be 'min' or 'max'")
    keys = _as_list(by)
    require_columns(df, keys + [value], stage)

    d = df.copy()
    d["_pos"] = np.arange(len(d))
    d = d.sort_values(
        keys + [value, "_pos"],
        ascending=[True] * len(keys) + [how == "min", True],
        kind="mergesort",
        na_position="last",
    )
    out = d.drop_duplicates(subset=keys, keep="first").drop(columns="_pos")
    out = out.reset_index(drop=True)
    n_dropped = len(df) - len(out)
    if diagnostics is not None and n_dropped:
        diagnostics.record("duplicates_dropped", stage, n_dropped)
    return out


def assert_unique(
    df: pd.DataFrame, key: Columns, *, stage: str = "assert_unique"
) -> pd.DataFrame:
    """
    Check that ``key`` identifies at most one row and return ``df`` unchanged.

    Raises
    ------
    UniquenessViolation
        Carrying the stage, the key, the number of rows involved and a
        DataFrame of the offending key values with their counts (``n``).
    """
    keys = _as_list(key)
    require_columns(df, keys, stage)
    counts = df.groupby(keys, dropna=False, sort=True).size()
    dups = counts[counts > 1]
    if len(dups):
        offenders = dups.rename("n").reset_index()
        raise UniquenessViolation(stage, keys, int(offenders["n"].sum()), offenders)
    return df
