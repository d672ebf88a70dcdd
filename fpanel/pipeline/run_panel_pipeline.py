"""
Executable pipeline for the firm-year and forecast panels.

This module wires together loading, filtering, linking, nearest-date
matching, deduplication and fallback merges.  It can be run as a script
via ``python -m fpanel.pipeline.run_panel_pipeline``.

The pipeline performs the following steps:

1. Load FUNDA, CRSP daily prices, the CCM link history, the IBES ticker
   link table, IBES detail forecasts and IBES actuals via
   :mod:`fpanel.io.loaders`.  Users may specify file paths or supply
   DataFrames directly.
2. Clean FUNDA to one record per (gvkey, calendar year) and derive book
   equity and related fields through fallback chains.
3. Expand the observed years into a gapless firm-year calendar and link
   each firm-year to its CRSP PERMNO as of December 31.
4. Resolve ticker links, keep each analyst's last forecast before the
   announcement, restate it on the announcement's share basis, and
   compute consensus statistics and price-scaled forecast errors per
   (ticker, fiscal period end).
5. Attach the forecast statistics to the firm-year calendar by
   (permno, year) and return both panels with the run diagnostics.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, TypedDict, Union

import pandas as pd

from ..config import PanelConfig
from ..diagnostics import RunDiagnostics
from ..io import (
    load_actuals,
    load_ccm_links,
    load_forecasts,
    load_fundamentals,
    load_prices,
    load_ticker_links,
    save_panel,
)
from ..prep import (
    add_fundamental_ratios,
    adjust_to_announcement_basis,
    apply_filter,
    attach_permno,
    build_calendar,
    clean_crsp_dsf,
    consensus,
    forecast_errors,
    keep_extreme,
    latest_forecasts,
    map_gvkey_to_permno,
    merge_left,
    prepare_actuals,
    prepare_forecasts,
    prepare_fundamentals,
    resolve_links,
)
from ..util.dates import calendar_year
from ..util.ids import normalize_ticker
from ..util.logging import get_logger

log = get_logger("fpanel.pipeline")

PathLike = Union[str, Path]

# Forecast statistics carried onto the firm-year panel
FIRM_YEAR_FORECAST_COLUMNS = [
    "ticker",
    "fpedats",
    "n_analysts",
    "median_forecast",
    "actual",
    "forecast_error",
    "abs_forecast_error",
    "dispersion",
]

DEFAULT_FILES = {
    "funda": "comp_funda.parquet",
    "dsf": "crsp_dsf.parquet",
    "ccm": "ccm_lnkhist.parquet",
    "iclink": "ibes_iclink.parquet",
    "detail": "ibes_detu.parquet",
    "actuals": "ibes_actu.parquet",
}


class PanelPipelineResult(TypedDict):
    firm_year: pd.DataFrame
    forecasts: pd.DataFrame
    diagnostics: RunDiagnostics


def build_forecast_panel(
    detail: pd.DataFrame,
    actuals: pd.DataFrame,
    iclink: pd.DataFrame,
    prices: pd.DataFrame,
    *,
    config: PanelConfig,
    diagnostics: RunDiagnostics,
) -> pd.DataFrame:
    """
    Consensus and forecast errors keyed by (``ticker``, ``fpedats``).

    ``prices`` must already be cleaned with
    :func:`fpanel.prep.clean_crsp_dsf`.
    """
    links = resolve_links(
        normalize_ticker(iclink.copy()),
        accepted_scores=config.link_scores,
        diagnostics=diagnostics,
    )
    fc = prepare_forecasts(
        detail, predicate=config.forecast_filter, columns=config.forecast_columns
    )
    fc = apply_filter(fc, config.sample_filter("fpedats"), stage="forecast_period")
    fc = attach_permno(fc, links)
    act = prepare_actuals(actuals, predicate=config.actuals_filter)

    fc = latest_forecasts(fc, act, diagnostics=diagnostics)
    fc = adjust_to_announcement_basis(
        fc,
        prices,
        window=config.factor_window,
        n_jobs=config.n_jobs,
        diagnostics=diagnostics,
    )
    cons = consensus(fc)
    return forecast_errors(
        cons,
        prices,
        window=config.price_window,
        n_jobs=config.n_jobs,
        diagnostics=diagnostics,
    )


def build_firm_year_panel(
    fundamentals: pd.DataFrame,
    ccm: pd.DataFrame,
    forecast_panel: pd.DataFrame,
    *,
    config: PanelConfig,
    diagnostics: RunDiagnostics,
) -> pd.DataFrame:
    """
    Gapless (``gvkey``, ``year``) panel with fundamentals and forecasts.

    Each firm-year is linked to the PERMNO active on December 31.  When a
    PERMNO has several fiscal periods ending in one calendar year, the one
    followed by the most analysts supplies the forecast columns.
    """
    spine = build_calendar(
        fundamentals,
        id_col="gvkey",
        date_col="datadate",
        start_year=config.start_year,
        end_year=config.end_year,
    )
    spine["asof"] = pd.to_datetime(spine["year"].astype(str) + "-12-31")
    spine = map_gvkey_to_permno(spine, ccm, date_col="asof")

    fund = fundamentals.assign(year=fundamentals["year"].astype("int64"))
    fund_cols = [c for c in fund.columns if c not in ("gvkey", "year")]
    panel = merge_left(
        spine, fund, ["gvkey", "year"], columns=fund_cols, stage="fundamentals_join"
    )

    fy = forecast_panel.dropna(subset=["permno", "fpedats"]).copy()
    fy["permno"] = fy["permno"].astype("Int64")
    fy["year"] = calendar_year(fy["fpedats"]).astype("int64")
    fy = keep_extreme(
        fy,
        ["permno", "year"],
        "n_analysts",
        how="max",
        stage="forecast_year",
        diagnostics=diagnostics,
    )
    fy = fy[["permno", "year"] + FIRM_YEAR_FORECAST_COLUMNS].rename(
        columns={"ticker": "ibes_ticker"}
    )
    panel = merge_left(panel, fy, ["permno", "year"], stage="forecast_join")
    return panel.sort_values(["gvkey", "year"], kind="mergesort").reset_index(drop=True)


def run_pipeline(
    *,
    funda: Optional[pd.DataFrame] = None,
    dsf: Optional[pd.DataFrame] = None,
    ccm: Optional[pd.DataFrame] = None,
    iclink: Optional[pd.DataFrame] = None,
    detail: Optional[pd.DataFrame] = None,
    actuals: Optional[pd.DataFrame] = None,
    funda_path: Optional[PathLike] = None,
    dsf_path: Optional[PathLike] = None,
    ccm_path: Optional[PathLike] = None,
    iclink_path: Optional[PathLike] = None,
    detail_path: Optional[PathLike] = None,
    actuals_path: Optional[PathLike] = None,
    config: Optional[PanelConfig] = None,
) -> PanelPipelineResult:
    """
    Build the firm-year and forecast panels.

    Users may supply each input either as a DataFrame or as a path to a
    Parquet or CSV file.  When both are provided for a dataset, the
    DataFrame takes precedence.  Inputs are never modified.

    Parameters
    ----------
    funda, dsf, ccm, iclink, detail, actuals : DataFrame, optional
        Compustat FUNDA, CRSP daily prices, CCM link history, IBES
        ticker-permno links, IBES detail forecasts and IBES actuals.
    funda_path, dsf_path, ccm_path, iclink_path, detail_path, actuals_path : str or Path, optional
        File locations of the same inputs.
    config : PanelConfig, optional
        Run configuration; defaults to ``PanelConfig()``.

    Returns
    -------
    dict
        ``"firm_year"`` → one row per (gvkey, year), ``"forecasts"`` → one
        row per (ticker, fpedats), ``"diagnostics"`` → :class:`RunDiagnostics`.

    Raises
    ------
    SchemaError
        A source lacks a column some stage needs.
    UniquenessViolation
        A key that must be unique is not (e.g. two actuals for one period).
    """
    cfg = config or PanelConfig()
    diag = RunDiagnostics()

    funda_df = load_fundamentals(path=funda_path, df=funda)
    dsf_df = load_prices(path=dsf_path, df=dsf)
    ccm_df = load_ccm_links(path=ccm_path, df=ccm)
    iclink_df = load_ticker_links(path=iclink_path, df=iclink)
    detail_df = load_forecasts(path=detail_path, df=detail)
    actuals_df = load_actuals(path=actuals_path, df=actuals)

    fundamentals = prepare_fundamentals(
        funda_df,
        predicate=cfg.fundamentals_filter,
        columns=cfg.fundamental_columns,
        diagnostics=diag,
    )
    fundamentals = add_fundamental_ratios(fundamentals)
    prices = clean_crsp_dsf(dsf_df, cfg.price_filter)

    forecasts = build_forecast_panel(
        detail_df, actuals_df, iclink_df, prices, config=cfg, diagnostics=diag
    )
    firm_year = build_firm_year_panel(
        fundamentals, ccm_df, forecasts, config=cfg, diagnostics=diag
    )
    log.info(
        "Panels built: %d firm-years, %d firm-periods with forecasts",
        len(firm_year),
        len(forecasts),
    )
    diag.log_summary()
    return {"firm_year": firm_year, "forecasts": forecasts, "diagnostics": diag}


def main() -> None:
    """
    Run the pipeline on the local cache and write both panels.

    Inputs are read from ``data/cache`` (file names as in
    ``DEFAULT_FILES``); panels are written to ``data/output`` and the
    diagnostic counters are printed as a Markdown table.
    """
    default_dir = Path("data/cache")
    paths = {k: default_dir / v for k, v in DEFAULT_FILES.items()}

    res = run_pipeline(
        funda_path=paths["funda"],
        dsf_path=paths["dsf"],
        ccm_path=paths["ccm"],
        iclink_path=paths["iclink"],
        detail_path=paths["detail"],
        actuals_path=paths["actuals"],
    )

    out_dir = Path("data/output")
    save_panel(res["firm_year"], out_dir / "firm_year.parquet")
    save_panel(res["forecasts"], out_dir / "forecasts.parquet")

    print("# Run diagnostics")
    diag = res["diagnostics"].to_frame()
    if diag.empty:
        print("No row-level conditions recorded.")
    else:
        print(diag.to_markdown(index=False))


if __name__ == "__main__":
    main()
