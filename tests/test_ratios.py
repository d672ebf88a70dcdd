from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from fpanel.prep.crsp import COMMON_EQUITY, clean_crsp_dsf
from fpanel.prep.filters import And, Comparison
from fpanel.prep.ratios import adjust_for_splits, neutral_factor, ratio, relative_error


def test_zero_adjustment_factor_is_neutral() -> None:
    s = pd.Series([0.0, 2.0, np.nan])
    out = neutral_factor(s)
    assert out.iloc[0] == 1.0
    assert out.iloc[1] == 2.0
    assert np.isnan(out.iloc[2])

    # Value measured under a zero factor keeps its magnitude
    adj = adjust_for_splits(pd.Series([2.0]), pd.Series([0.0]), pd.Series([1.0]))
    assert adj.iloc[0] == 2.0


def test_split_between_forecast_and_announcement() -> None:
    # 2-for-1 split: the factor drops from 2 to 1, per-share values halve
    adj = adjust_for_splits(
        pd.Series([2.0, 1.5]), pd.Series([2.0, 1.0]), pd.Series([1.0, 1.0])
    )
    assert adj.tolist() == [1.0, 1.5]


def test_ratio_and_relative_error() -> None:
    num = pd.Series([10.0, 10.0, np.nan])
    den = pd.Series([0.0, 4.0, 2.0])
    out = ratio(num, den)
    assert out.iloc[0] == 10.0
    assert out.iloc[1] == 2.5
    assert np.isnan(out.iloc[2])

    err = relative_error(pd.Series([1.1]), pd.Series([1.0]), pd.Series([10.0]))
    assert err.iloc[0] == pytest.approx(0.01)


def test_missing_factor_propagates() -> None:
    adj = adjust_for_splits(pd.Series([2.0]), pd.Series([np.nan]), pd.Series([1.0]))
    assert np.isnan(adj.iloc[0])


def test_clean_crsp_dsf() -> None:
    dsf = pd.DataFrame(
        {
            "permno": [2, 1, 1],
            "date": ["2019-01-02", "2019-01-03", "2019-01-02"],
            "prc": [-20.0, 10.0, 0.0],
            "cfacpr": [0.0, 2.0, 2.0],
            "cfacshr": [0.0, 2.0, 2.0],
            "shrout": [100.0, 50.0, 50.0],
        }
    )
    out = clean_crsp_dsf(dsf)
    assert out["permno"].tolist() == [1, 1, 2]
    assert out["date"].tolist()[0] == pd.Timestamp("2019-01-02")
    row = out.loc[out["permno"] == 2].iloc[0]
    assert row["prc"] == 20.0
    assert row["cfacshr"] == 1.0
    assert row["adj_prc"] == 20.0
    assert row["me"] == 2000.0
    assert out.loc[1, "adj_prc"] == 5.0

    positive = clean_crsp_dsf(dsf, Comparison("prc", ">", 0))
    assert len(positive) == 2


def test_clean_crsp_dsf_common_equity_screen() -> None:
    dsf = pd.DataFrame(
        {
            "permno": [1, 2, 3],
            "date": ["2019-01-02"] * 3,
            "prc": [10.0, 12.0, 0.0],
            "cfacpr": [1.0, 1.0, 1.0],
            "cfacshr": [1.0, 1.0, 1.0],
            "shrcd": [10, 73, 11],
        }
    )
    out = clean_crsp_dsf(dsf, And(COMMON_EQUITY, Comparison("prc", ">", 0)))
    assert out["permno"].tolist() == [1]
