"""Data loading routines."""

from .loaders import (
    load_actuals,
    load_ccm_links,
    load_forecasts,
    load_fundamentals,
    load_prices,
    load_ticker_links,
    read_table,
    save_panel,
)

__all__ = [
    "load_actuals",
    "load_ccm_links",
    "load_forecasts",
    "load_fundamentals",
    "load_prices",
    "load_ticker_links",
    "read_table",
    "save_panel",
]
