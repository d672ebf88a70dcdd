"""Panel construction stages.

Generic building blocks (filters, calendar, linking, nearest-date
matching, deduplication, fallback merges and ratios) live in their own
modules; :mod:`.compustat`, :mod:`.crsp` and :mod:`.ibes` apply them to
the three vendor sources.
"""

from .filters import (
    And,
    Comparison,
    IsIn,
    NotMissing,
    Or,
    Predicate,
    Range,
    apply_filter,
    require_non_missing,
)
from .calendar import build_calendar
from .dedup import assert_unique, keep_extreme, keep_last
from .linktables import clean_ccm_linkhist, map_gvkey_to_permno, resolve_links
from .merge import (
    Col,
    Const,
    Diff,
    FallbackChain,
    Product,
    Sum,
    evaluate_chains,
    merge_left,
)
from .nearest import match_nearest
from .ratios import adjust_for_splits, neutral_factor, ratio, relative_error
from .compustat import FUNDAMENTAL_CHAINS, add_fundamental_ratios, prepare_fundamentals
from .crsp import COMMON_EQUITY, clean_crsp_dsf
from .ibes import (
    adjust_to_announcement_basis,
    attach_permno,
    consensus,
    forecast_errors,
    latest_forecasts,
    prepare_actuals,
    prepare_forecasts,
)

__all__ = [
    "And",
    "Comparison",
    "IsIn",
    "NotMissing",
    "Or",
    "Predicate",
    "Range",
    "apply_filter",
    "require_non_missing",
    "build_calendar",
    "assert_unique",
    "keep_extreme",
    "keep_last",
    "clean_ccm_linkhist",
    "map_gvkey_to_permno",
    "resolve_links",
    "Col",
    "Const",
    "Diff",
    "FallbackChain",
    "Product",
    "Sum",
    "evaluate_chains",
    "merge_left",
    "match_nearest",
    "adjust_for_splits",
    "neutral_factor",
    "ratio",
    "relative_error",
    "FUNDAMENTAL_CHAINS",
    "add_fundamental_ratios",
    "prepare_fundamentals",
    "COMMON_EQUITY",
    "clean_crsp_dsf",
    "adjust_to_announcement_basis",
    "attach_permno",
    "consensus",
    "forecast_errors",
    "latest_forecasts",
    "prepare_actuals",
    "prepare_forecasts",
]
