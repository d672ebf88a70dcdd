from __future__ import annotations

from dataclasses import dataclass

import pandas as pd

WINDOW_UNITS = ("days", "weeks", "months", "bdays")


def to_naive_datetime(s: pd.Series) -> pd.Series:
    out = pd.to_datetime(s, errors="coerce")
    if getattr(out.dt, "tz", None) is not None:
        out = out.dt.tz_localize(None)
    return out.astype("datetime64[ns]")


def calendar_year(s: pd.Series) -> pd.Series:
    return to_naive_datetime(s).dt.year.astype("Int64")


def window_offset(length: int, unit: str) -> pd.DateOffset:
    """Return the offset spanning ``length`` units back from a reference date."""
    if unit not in WINDOW_UNITS:
        raise ValueError(f"unknown window unit {unit!r}; expected one of {WINDOW_UNITS}")
    if unit == "bdays":
        return pd.offsets.BDay(length)
    return pd.DateOffset(**{unit: length})


def window_start(dates: pd.Series, length: int, unit: str) -> pd.Series:
    """Earliest admissible date of a lookback window ending at each of ``dates``."""
    offset = window_offset(length, unit)
    if unit == "bdays":
        # BDay arithmetic is not vectorised over datetime Series with NaT
        lower = dates.map(lambda d: d - offset if pd.notna(d) else pd.NaT).astype(
            "datetime64[ns]"
        )
        # BDay(0) rolls a weekend date forward; clamp to the date itself
        return lower.where(~(lower > dates), dates)
    return dates - offset


@dataclass(frozen=True)
class MatchWindow:
    """
    Lookback window for nearest-date matching.

    Parameters
    ----------
    length : int
        Number of units to look back from the target date.
    unit : {'days', 'weeks', 'months', 'bdays'}
        Unit of ``length``; ``bdays`` counts business days.
    """

    length: int = 7
    unit: str = "days"

    def __post_init__(self) -> None:
        if self.unit not in WINDOW_UNITS:
            raise ValueError(
                f"unknown window unit {self.unit!r}; expected one of {WINDOW_UNITS}"
            )
        if self.length < 0:
            raise ValueError("window length must be non-negative")
