"""
Per-row arithmetic on merged fields.

Everything here is vectorised and total: a missing operand gives a
missing result, and a zero adjustment factor or denominator is replaced
by the neutral value 1 instead of producing ``inf`` or a division
warning.  CRSP reports ``cfacpr``/``cfacshr`` of zero for securities
that stopped trading, which is the usual source of such zeros.
"""

from __future__ import annotations

import numpy as np
import pandas as pd

__all__ = ["neutral_factor", "ratio", "relative_error", "adjust_for_splits"]


def _as_float(x: pd.Series) -> pd.Series:
    return pd.to_numeric(x, errors="coerce").astype("float64")


def neutral_factor(s: pd.Series) -> pd.Series:
    """Replace zeros with 1; missing values stay missing."""
    s = _as_float(s)
    return s.mask(s == 0, 1.0)


def ratio(num: pd.Series, den: pd.Series) -> pd.Series:
    """``num / den`` with zero denominators treated as 1."""
    with np.errstate(divide="ignore", invalid="ignore"):
        return _as_float(num) / neutral_factor(den)


def relative_error(
    actual: pd.Series, forecast: pd.Series, scale: pd.Series
) -> pd.Series:
    """Signed forecast error ``(actual - forecast) / scale``."""
    return ratio(_as_float(actual) - _as_float(forecast), scale)


def adjust_for_splits(
    value: pd.Series, factor_from: pd.Series, factor_to: pd.Series
) -> pd.Series:
    """
    Restate a per-share value on another date's share basis.

    ``factor_from`` is the cumulative share-adjustment factor on the date
    the value was measured and ``factor_to`` the factor on the date whose
    basis is wanted.  A 2-for-1 split between the two halves the value.
    """
    return _as_float(value) * ratio(factor_to, factor_from)
