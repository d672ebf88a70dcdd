"""
Pipeline configuration.

All settings the panel pipeline recognises live on :class:`PanelConfig`.
Filters are declarative predicates from :mod:`fpanel.prep.filters`, so a
configuration is plain data that can be inspected and compared.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

import pandas as pd

from .prep.filters import And, Comparison, IsIn, Predicate, Range
from .util.dates import MatchWindow

__all__ = ["MatchWindow", "PanelConfig"]


def _standard_funda_filter() -> Predicate:
    # Industrial, standardised, domestic, consolidated statements
    return And(
        Comparison("indfmt", "==", "INDL"),
        Comparison("datafmt", "==", "STD"),
        Comparison("popsrc", "==", "D"),
        Comparison("consol", "==", "C"),
    )


def _eps_forecast_filter() -> Predicate:
    return And(
        Comparison("measure", "==", "EPS"),
        Comparison("fpi", "==", "1"),
        IsIn("pdf", ("P", "D")),
    )


_FUNDAMENTAL_COLUMNS: Tuple[str, ...] = (
    "gvkey",
    "datadate",
    "fyear",
    "at",
    "lt",
    "seq",
    "ceq",
    "pstk",
    "pstkrv",
    "pstkl",
    "mib",
    "txditc",
    "txdb",
    "itcb",
    "sale",
    "revt",
    "ib",
    "prcc_f",
    "csho",
)

_FORECAST_COLUMNS: Tuple[str, ...] = (
    "ticker",
    "fpedats",
    "estimator",
    "analys",
    "anndats",
    "value",
    "pdf",
)


@dataclass(frozen=True)
class PanelConfig:
    """
    Configuration of a panel-construction run.

    Parameters
    ----------
    start_year, end_year : int, optional
        Sample period, inclusive.  ``None`` leaves that side open.
    fundamentals_filter, price_filter, forecast_filter, actuals_filter : Predicate, optional
        Row predicates applied to each raw source before anything else.
    link_scores : tuple of int, default (0, 1, 2)
        Accepted ticker-permno link quality scores (0 is best).
    price_window : MatchWindow
        Lookback for the price used to scale forecast errors.
    factor_window : MatchWindow
        Lookback for the share-adjustment factors at forecast and
        announcement dates.
    fundamental_columns, forecast_columns : tuple of str
        Projection lists retained from the raw fundamentals and forecasts.
    n_jobs : int, default 1
        Worker threads for per-security nearest-date matching.
    """

    start_year: Optional[int] = None
    end_year: Optional[int] = None
    fundamentals_filter: Optional[Predicate] = field(
        default_factory=_standard_funda_filter
    )
    price_filter: Optional[Predicate] = field(
        default_factory=lambda: Comparison("prc", ">", 0)
    )
    forecast_filter: Optional[Predicate] = field(default_factory=_eps_forecast_filter)
    actuals_filter: Optional[Predicate] = field(
        default_factory=lambda: Comparison("measure", "==", "EPS")
    )
    link_scores: Tuple[int, ...] = (0, 1, 2)
    price_window: MatchWindow = MatchWindow(7, "days")
    factor_window: MatchWindow = MatchWindow(7, "days")
    fundamental_columns: Tuple[str, ...] = _FUNDAMENTAL_COLUMNS
    forecast_columns: Tuple[str, ...] = _FORECAST_COLUMNS
    n_jobs: int = 1

    def __post_init__(self) -> None:
        if (
            self.start_year is not None
            and self.end_year is not None
            and self.start_year > self.end_year
        ):
            raise ValueError(
                f"start_year {self.start_year} is after end_year {self.end_year}"
            )
        if not self.link_scores:
            raise ValueError("link_scores must accept at least one score")
        if self.n_jobs < 1:
            raise ValueError("n_jobs must be at least 1")

    def sample_filter(self, column: str) -> Optional[Predicate]:
        """
        Date-range predicate for the sample period on ``column``.

        Covers January 1 of ``start_year`` through December 31 of
        ``end_year``; ``None`` when the period is unbounded.
        """
        if self.start_year is None and self.end_year is None:
            return None
        low = pd.Timestamp(self.start_year, 1, 1) if self.start_year is not None else None
        high = pd.Timestamp(self.end_year, 12, 31) if self.end_year is not None else None
        return Range(column, low, high)
