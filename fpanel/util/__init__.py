"""Utility functions and helpers for the fpanel package."""

from .ids import normalize_gvkey, normalize_permno, normalize_ticker
from .groups import apply_by_group

__all__ = ["normalize_gvkey", "normalize_permno", "normalize_ticker", "apply_by_group"]
