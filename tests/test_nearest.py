from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from fpanel.config import MatchWindow
from fpanel.diagnostics import RunDiagnostics
from fpanel.errors import SchemaError
from fpanel.prep.nearest import match_nearest
from fpanel.util.dates import window_start


def _prices() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "permno": [1, 1, 1, 3],
            "date": pd.to_datetime(
                ["2019-10-25", "2019-10-28", "2019-10-31", "2019-10-01"]
            ),
            "prc": [10.0, 11.0, 12.0, 50.0],
        }
    )


def _targets() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "permno": [2, 1, 1, 3],
            "anndats": pd.to_datetime(
                ["2019-10-30", "2019-10-30", None, "2019-10-30"]
            ),
        }
    )


def test_latest_prior_observation_within_window() -> None:
    diag = RunDiagnostics()
    out = match_nearest(
        _targets(),
        _prices(),
        by="permno",
        target_date="anndats",
        value_cols=["prc"],
        window=MatchWindow(7, "days"),
        diagnostics=diag,
        stage="price",
    )
    # Original row order and columns are kept
    assert out["permno"].tolist() == [2, 1, 1, 3]
    assert list(out.columns) == ["permno", "anndats", "prc", "match_date", "match_days"]

    assert out.loc[1, "prc"] == 11.0
    assert out.loc[1, "match_date"] == pd.Timestamp("2019-10-28")
    assert out.loc[1, "match_days"] == 2

    # No series, missing target date, and an observation older than the window
    assert np.isnan(out.loc[0, "prc"])
    assert np.isnan(out.loc[2, "prc"])
    assert np.isnan(out.loc[3, "prc"])
    assert pd.isna(out.loc[3, "match_date"])
    assert pd.isna(out.loc[3, "match_days"])
    assert diag.get("no_match", "price") == 3


def test_window_excludes_stale_observation() -> None:
    out = match_nearest(
        _targets().iloc[[1]],
        _prices(),
        by="permno",
        target_date="anndats",
        value_cols=["prc"],
        window=MatchWindow(1, "days"),
    )
    assert np.isnan(out.loc[0, "prc"])


def test_same_day_observation_matches() -> None:
    tgt = pd.DataFrame({"permno": [1], "anndats": pd.to_datetime(["2019-10-31"])})
    out = match_nearest(
        tgt, _prices(), by="permno", target_date="anndats", value_cols=["prc"]
    )
    assert out.loc[0, "prc"] == 12.0
    assert out.loc[0, "match_days"] == 0


def test_same_date_tie_takes_lowest_value_regardless_of_order() -> None:
    prices = pd.DataFrame(
        {
            "permno": [1, 1, 1],
            "date": pd.to_datetime(["2019-10-28", "2019-10-28", "2019-10-25"]),
            "prc": [11.0, 9.0, 10.0],
        }
    )
    tgt = pd.DataFrame({"permno": [1], "anndats": pd.to_datetime(["2019-10-30"])})
    kw = dict(by="permno", target_date="anndats", value_cols=["prc"])
    a = match_nearest(tgt, prices, **kw)
    b = match_nearest(tgt, prices.iloc[::-1], **kw)
    assert a.loc[0, "prc"] == 9.0
    pd.testing.assert_frame_equal(a, b)


def test_month_and_business_day_windows() -> None:
    series = pd.DataFrame(
        {
            "permno": [1, 2],
            "date": pd.to_datetime(["2019-10-01", "2019-10-31"]),
            "cfacshr": [2.0, 1.0],
        }
    )
    tgt = pd.DataFrame({"permno": [1], "anndats": pd.to_datetime(["2019-10-30"])})
    out = match_nearest(
        tgt,
        series,
        by="permno",
        target_date="anndats",
        value_cols=["cfacshr"],
        window=MatchWindow(1, "months"),
    )
    assert out.loc[0, "cfacshr"] == 2.0
    assert out.loc[0, "match_days"] == 29

    # Monday 2019-11-04: one business day back is Friday 2019-11-01
    monday = pd.DataFrame(
        {"permno": [1, 2], "anndats": pd.to_datetime(["2019-11-04", "2019-11-04"])}
    )
    friday = series.assign(date=pd.to_datetime(["2019-11-01", "2019-10-31"]))
    out = match_nearest(
        monday,
        friday,
        by="permno",
        target_date="anndats",
        value_cols=["cfacshr"],
        window=MatchWindow(1, "bdays"),
    )
    assert out.loc[0, "cfacshr"] == 2.0
    assert np.isnan(out.loc[1, "cfacshr"])


def test_column_layout_does_not_depend_on_matches() -> None:
    kw = dict(by="permno", target_date="anndats", value_cols=["prc"])
    hit = pd.DataFrame({"permno": [1], "anndats": pd.to_datetime(["2019-10-30"])})
    miss = pd.DataFrame({"permno": [2], "anndats": pd.to_datetime(["2019-10-30"])})
    expected = ["permno", "anndats", "prc", "match_date", "match_days"]

    matched = match_nearest(hit, _prices(), **kw)
    unmatched = match_nearest(miss, _prices(), **kw)
    assert matched.loc[0, "prc"] == 11.0
    assert np.isnan(unmatched.loc[0, "prc"])
    assert list(matched.columns) == expected
    assert list(unmatched.columns) == expected

    prefixed = match_nearest(hit, _prices(), prefix="px_", **kw)
    assert list(prefixed.columns) == [
        "permno",
        "anndats",
        "px_prc",
        "px_match_date",
        "px_match_days",
    ]


def test_zero_business_day_window_on_weekend() -> None:
    # Saturday 2019-11-02 with an observation on the same day
    tgt = pd.DataFrame({"permno": [1], "anndats": pd.to_datetime(["2019-11-02"])})
    series = pd.DataFrame(
        {
            "permno": [1, 1],
            "date": pd.to_datetime(["2019-11-01", "2019-11-02"]),
            "prc": [20.0, 21.0],
        }
    )
    out = match_nearest(
        tgt,
        series,
        by="permno",
        target_date="anndats",
        value_cols=["prc"],
        window=MatchWindow(0, "bdays"),
    )
    assert out.loc[0, "prc"] == 21.0
    assert out.loc[0, "match_days"] == 0

    # Saturday and Monday: a zero-length window starts on the date itself
    dates = pd.Series(pd.to_datetime(["2019-11-02", "2019-11-04"]))
    assert window_start(dates, 0, "bdays").tolist() == dates.tolist()


def test_prefix_and_column_clash() -> None:
    out = match_nearest(
        _targets(),
        _prices(),
        by="permno",
        target_date="anndats",
        value_cols=["prc"],
        prefix="ann_",
    )
    assert {"ann_prc", "ann_match_date", "ann_match_days"}.issubset(out.columns)

    with pytest.raises(ValueError, match="prefix"):
        match_nearest(
            out,
            _prices(),
            by="permno",
            target_date="anndats",
            value_cols=["prc"],
            prefix="ann_",
        )


def test_threaded_matching_is_identical() -> None:
    rng = np.random.default_rng(1)
    days = pd.bdate_range("2019-01-01", "2019-12-31")
    series = pd.DataFrame(
        {
            "permno": np.repeat(np.arange(1, 21), len(days)),
            "date": np.tile(days, 20),
            "prc": rng.uniform(5, 50, size=20 * len(days)),
        }
    )
    tgt = pd.DataFrame(
        {
            "permno": rng.integers(1, 23, size=200),
            "anndats": pd.Timestamp("2019-01-01")
            + pd.to_timedelta(rng.integers(0, 365, size=200), unit="D"),
        }
    )
    kw = dict(by="permno", target_date="anndats", value_cols=["prc"])
    serial = match_nearest(tgt, series, n_jobs=1, **kw)
    threaded = match_nearest(tgt, series, n_jobs=4, **kw)
    pd.testing.assert_frame_equal(serial, threaded)
    assert serial["permno"].tolist() == tgt["permno"].tolist()


def test_missing_series_column_is_schema_error() -> None:
    with pytest.raises(SchemaError):
        match_nearest(
            _targets(),
            _prices(),
            by="permno",
            target_date="anndats",
            value_cols=["cfacshr"],
        )


def test_invalid_window() -> None:
    with pytest.raises(ValueError):
        MatchWindow(3, "fortnights")
    with pytest.raises(ValueError):
        MatchWindow(-1, "days")
