from __future__ import annotations

import pandas as pd
import pytest

from fpanel.config import MatchWindow, PanelConfig
from fpanel.diagnostics import RunDiagnostics
from fpanel.prep.filters import Range


def test_default_config() -> None:
    cfg = PanelConfig()
    assert cfg.link_scores == (0, 1, 2)
    assert cfg.price_window == MatchWindow(7, "days")
    assert cfg.sample_filter("fpedats") is None
    assert {"indfmt", "datafmt", "popsrc", "consol"} == set(
        cfg.fundamentals_filter.columns()
    )
    # Configurations are plain comparable data
    assert PanelConfig() == PanelConfig()


def test_sample_filter_spans_calendar_years() -> None:
    cfg = PanelConfig(start_year=2001, end_year=2002)
    pred = cfg.sample_filter("datadate")
    assert pred == Range(
        "datadate", pd.Timestamp("2001-01-01"), pd.Timestamp("2002-12-31")
    )
    df = pd.DataFrame(
        {"datadate": pd.to_datetime(["2000-12-31", "2001-01-01", "2002-12-31"])}
    )
    assert pred.mask(df).tolist() == [False, True, True]


def test_invalid_config() -> None:
    with pytest.raises(ValueError):
        PanelConfig(start_year=2005, end_year=2001)
    with pytest.raises(ValueError):
        PanelConfig(link_scores=())
    with pytest.raises(ValueError):
        PanelConfig(n_jobs=0)


def test_diagnostics_counts_and_table() -> None:
    diag = RunDiagnostics()
    diag.record("no_match", "price", 3)
    diag.record("no_match", "price", 2)
    diag.record("no_match", "factor", 1)
    diag.record("ambiguous_links", "resolve_links", 4)

    assert diag.get("no_match", "price") == 5
    assert diag.total("no_match") == 6
    assert diag.get("missing_operand", "sales") == 0

    table = diag.to_frame()
    assert list(table.columns) == ["condition", "where", "rows"]
    assert table.values.tolist() == [
        ["ambiguous_links", "resolve_links", 4],
        ["no_match", "factor", 1],
        ["no_match", "price", 5],
    ]
    assert diag.as_dict()["no_match:price"] == 5

    with pytest.raises(ValueError):
        diag.record("exploded", "price", 1)


def test_empty_diagnostics_table() -> None:
    table = RunDiagnostics().to_frame()
    assert table.empty
    assert list(table.columns) == ["condition", "where", "rows"]


def test_logger_level_from_environment(monkeypatch) -> None:
    import logging

    from fpanel.util.logging import get_logger, set_level

    monkeypatch.setenv("FPANEL_LOG_LEVEL", "warning")
    log = get_logger("fpanel.test_env_level")
    assert log.level == logging.WARNING
    assert get_logger("fpanel.test_env_level") is log

    set_level(logging.ERROR)
    assert log.level == logging.ERROR
    set_level(logging.INFO)
