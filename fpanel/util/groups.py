"""
Group-wise independent computation.

Per-firm and per-security work (calendar expansion, nearest-date
matching, deduplication) never reads across groups, so it can be split
by key, evaluated in any order, and reassembled.  Results are always
concatenated in sorted key order so that worker scheduling cannot change
the output.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Sequence, Union

import pandas as pd

GroupKey = Union[str, Sequence[str]]


def apply_by_group(
    df: pd.DataFrame,
    by: GroupKey,
    func: Callable[[Any, pd.DataFrame], pd.DataFrame],
    *,
    n_jobs: int = 1,
) -> pd.DataFrame:
    """
    Apply ``func(key, group)`` to every group of ``df`` and concatenate.

    Parameters
    ----------
    df : DataFrame
        Input table; it is not modified.
    by : str or sequence of str
        Grouping column(s).  Rows with a missing key are skipped.
    func : callable
        Receives the group key and the group's rows, returns a DataFrame.
    n_jobs : int, default 1
        Number of worker threads.  ``1`` runs sequentially.

    Returns
    -------
    DataFrame
        Concatenation of the per-group results in ascending key order,
        with a fresh RangeIndex.
    """
    groups = list(df.groupby(by, sort=True, dropna=True))
    if not groups:
        return pd.DataFrame()

    if n_jobs <= 1 or len(groups) == 1:
        parts: List[pd.DataFrame] = [func(key, g) for key, g in groups]
    else:
        results: Dict[int, pd.DataFrame] = {}
        with ThreadPoolExecutor(max_workers=n_jobs) as executor:
            futures = {
                executor.submit(func, key, g): i for i, (key, g) in enumerate(groups)
            }
            for future, i in futures.items():
                results[i] = future.result()
        parts = [results[i] for i in range(len(groups))]

    parts = [p for p in parts if p is not None and not p.empty]
    if not parts:
        return pd.DataFrame()
    return pd.concat(parts, ignore_index=True)
