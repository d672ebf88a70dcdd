from __future__ import annotations

import numpy as np
import pandas as pd

from fpanel.prep.calendar import build_calendar


def _obs() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "gvkey": ["001001", "001001", "001002", "001003", None],
            "datadate": pd.to_datetime(
                ["2001-12-31", "2004-12-31", "2003-06-30", None, "2002-12-31"]
            ),
        }
    )


def test_calendar_has_one_row_per_year_without_gaps() -> None:
    cal = build_calendar(_obs())
    assert list(cal.columns) == ["gvkey", "year_min", "year_max", "year"]

    a = cal.loc[cal["gvkey"] == "001001"]
    assert a["year"].tolist() == [2001, 2002, 2003, 2004]
    assert (a["year_min"] == 2001).all() and (a["year_max"] == 2004).all()

    b = cal.loc[cal["gvkey"] == "001002"]
    assert b["year"].tolist() == [2003]

    # Rows with a missing id or date contribute nothing
    assert set(cal["gvkey"]) == {"001001", "001002"}

    counts = cal.groupby("gvkey").size()
    spans = cal.groupby("gvkey").agg(lo=("year_min", "first"), hi=("year_max", "first"))
    assert (counts == spans["hi"] - spans["lo"] + 1).all()
    gaps = cal.groupby("gvkey")["year"].diff().dropna()
    assert (gaps == 1).all()


def test_calendar_clipping_keeps_observed_span() -> None:
    cal = build_calendar(_obs(), start_year=2002, end_year=2003)
    a = cal.loc[cal["gvkey"] == "001001"]
    assert a["year"].tolist() == [2002, 2003]
    assert (a["year_min"] == 2001).all()
    assert (a["year_max"] == 2004).all()


def test_calendar_is_sorted_and_independent_of_input_order() -> None:
    obs = _obs()
    shuffled = obs.sample(frac=1.0, random_state=3)
    pd.testing.assert_frame_equal(build_calendar(obs), build_calendar(shuffled))
    cal = build_calendar(obs)
    assert cal.equals(cal.sort_values(["gvkey", "year"]).reset_index(drop=True))


def test_calendar_many_firms_row_count() -> None:
    rng = np.random.default_rng(0)
    firms = [f"{i:06d}" for i in range(50)]
    rows = []
    for f in firms:
        years = rng.choice(np.arange(1990, 2010), size=3, replace=False)
        rows += [(f, pd.Timestamp(int(y), 12, 31)) for y in years]
    obs = pd.DataFrame(rows, columns=["gvkey", "datadate"])
    cal = build_calendar(obs)
    span = obs.groupby("gvkey")["datadate"].agg(["min", "max"])
    expected = int((span["max"].dt.year - span["min"].dt.year + 1).sum())
    assert len(cal) == expected


def test_calendar_empty_input() -> None:
    empty = pd.DataFrame({"gvkey": [], "datadate": pd.to_datetime([])})
    cal = build_calendar(empty)
    assert cal.empty
    assert list(cal.columns) == ["gvkey", "year_min", "year_max", "year"]
