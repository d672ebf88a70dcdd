from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from fpanel.diagnostics import RunDiagnostics
from fpanel.errors import SchemaError, UniquenessViolation
from fpanel.prep.compustat import FUNDAMENTAL_CHAINS
from fpanel.prep.merge import (
    Col,
    Const,
    Diff,
    FallbackChain,
    Product,
    Sum,
    evaluate_chains,
    merge_left,
)

BOOK_EQUITY = FallbackChain(
    "book_equity", [Col("seq"), Sum("ceq", "pstk"), Diff("at", "lt", "mib")]
)


def _funda() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "seq": [np.nan, 50.0, np.nan, np.nan],
            "ceq": [100.0, 40.0, np.nan, np.nan],
            "pstk": [10.0, 1.0, 5.0, np.nan],
            "at": [500.0, 90.0, 400.0, np.nan],
            "lt": [300.0, 40.0, 150.0, 10.0],
            "mib": [0.0, 0.0, 50.0, 0.0],
        }
    )


def test_book_equity_fallback_order() -> None:
    df = _funda()
    be = BOOK_EQUITY.evaluate(df)
    assert be.name == "book_equity"
    assert be.iloc[0] == 110.0
    assert be.iloc[1] == 50.0
    assert be.iloc[2] == 200.0
    assert np.isnan(be.iloc[3])
    src = BOOK_EQUITY.sources(df)
    assert src.iloc[:3].tolist() == [1, 0, 2]
    assert pd.isna(src.iloc[3])


def test_describe_lists_fallback_order() -> None:
    assert BOOK_EQUITY.describe() == ["seq", "ceq + pstk", "at - lt - mib"]
    chains = {ch.name: ch for ch in FUNDAMENTAL_CHAINS}
    assert chains["preferred_stock"].describe() == [
        "pstkrv",
        "pstkl",
        "pstk",
        "default=0.0",
    ]
    assert chains["common_book_equity"].describe() == [
        "(book_equity + deferred_taxes) - preferred_stock"
    ]


def test_default_and_transform() -> None:
    df = pd.DataFrame({"a": [np.nan, 2.0], "p": [-1.0, 3.0], "q": [5.0, 2.0]})
    ch = FallbackChain("x", ["a"], default=0.0)
    assert ch.evaluate(df).tolist() == [0.0, 2.0]
    assert ch.sources(df).tolist() == [-1, 0]

    me = FallbackChain("me", [(Product("p", "q"), lambda s: s.where(s > 0))])
    out = me.evaluate(df)
    assert np.isnan(out.iloc[0])
    assert out.iloc[1] == 6.0

    const = FallbackChain("c", ["a", Const(7.0)])
    assert const.evaluate(df).tolist() == [7.0, 2.0]


def test_evaluate_chains_sequential_and_counts_missing() -> None:
    df = _funda()
    chains = [
        BOOK_EQUITY,
        FallbackChain("be_less_pstk", [Diff("book_equity", "pstk")]),
    ]
    diag = RunDiagnostics()
    out = evaluate_chains(df, chains, stage="funda", diagnostics=diag)
    assert out["be_less_pstk"].iloc[0] == 100.0
    assert diag.get("missing_operand", "book_equity") == 1
    assert diag.get("missing_operand", "be_less_pstk") == 1
    assert "book_equity" not in df.columns


def test_evaluate_chains_unknown_column() -> None:
    with pytest.raises(SchemaError) as exc:
        evaluate_chains(
            _funda(), [FallbackChain("sales", ["sale", "revt"])], stage="funda"
        )
    assert exc.value.missing == ["revt", "sale"]


def test_merge_left_preserves_spine_rows() -> None:
    spine = pd.DataFrame(
        {"gvkey": ["b", "a", "a", "c"], "year": [2001, 2000, 2001, 2000]}
    )
    right = pd.DataFrame(
        {"gvkey": ["a", "b"], "year": [2001, 2001], "at": [1.0, 2.0], "lt": [0.5, 1.0]}
    )
    out = merge_left(spine, right, ["gvkey", "year"], columns=["at"])
    assert len(out) == len(spine)
    assert out["gvkey"].tolist() == ["b", "a", "a", "c"]
    assert out["at"].iloc[0] == 2.0
    assert np.isnan(out["at"].iloc[1])
    assert out["at"].iloc[2] == 1.0
    assert "lt" not in out.columns


def test_merge_left_rejects_duplicates_and_clashes() -> None:
    spine = pd.DataFrame({"k": [1, 2], "at": [0.0, 0.0]})
    dup = pd.DataFrame({"k": [1, 1], "v": [1.0, 2.0]})
    with pytest.raises(UniquenessViolation):
        merge_left(spine, dup, "k")
    with pytest.raises(ValueError, match="both sides"):
        merge_left(spine, pd.DataFrame({"k": [1], "at": [5.0]}), "k")
    with pytest.raises(SchemaError):
        merge_left(spine, dup, "nokey")
