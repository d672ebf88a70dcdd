"""
Firm Panel Construction
=======================

This package turns raw Compustat fundamentals, CRSP daily prices and
IBES analyst forecasts and actuals into clean, uniquely keyed panels.
Data flows through pandas ``DataFrame`` objects in tidy form, and each
stage copies its input and returns a new table, so stages compose:

* Row filters are declarative predicates, configured as data.
* Every firm observed in some years gets a gapless firm-year calendar.
* Identifiers are linked across vendors (ticker to PERMNO by link
  score, gvkey to PERMNO by dated CCM links); ambiguous links are
  excluded with a warning rather than guessed.
* Prices and adjustment factors are attached by nearest prior date
  within a lookback window.
* Duplicates are resolved by an explicit policy (keep the latest, keep
  an extreme, or fail).
* Derived fields follow ordered fallback chains.

Subpackages and modules
-----------------------

``prep``
    The stages above plus the source-specific cleaning of FUNDA, DSF
    and the IBES files.

``pipeline``
    :func:`fpanel.pipeline.run_pipeline` wires every stage together.

``config``, ``errors``, ``diagnostics``
    Run configuration, fatal errors and warnings, and per-run counters
    of rows affected by non-fatal conditions.

``io`` and ``data``
    File loaders and writers, the local Parquet cache and WRDS pulls.
"""

from . import prep  # noqa: F401  # re-export subpackages
from .config import MatchWindow, PanelConfig
from .diagnostics import RunDiagnostics
from .errors import AmbiguousLinkWarning, SchemaError, UniquenessViolation

__all__ = [
    "prep",
    "MatchWindow",
    "PanelConfig",
    "RunDiagnostics",
    "AmbiguousLinkWarning",
    "SchemaError",
    "UniquenessViolation",
]
