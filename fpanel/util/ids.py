from typing import Callable

import pandas as pd


def _map_present(s: pd.Series, fn: Callable[[str], str]) -> pd.Series:
    out = s.astype(object)
    present = out.notna()
    out.loc[present] = [fn(str(v).strip()) for v in out.loc[present]]
    return out


def normalize_permno(df: pd.DataFrame, col: str = "permno") -> pd.DataFrame:
    if col in df:
        df[col] = pd.to_numeric(df[col], errors="coerce").astype("Int64")
    return df


def normalize_gvkey(df: pd.DataFrame, col: str = "gvkey") -> pd.DataFrame:
    # Compustat gvkeys are six-character zero-padded strings
    if col in df:
        df[col] = _map_present(df[col], lambda v: v.zfill(6))
    return df


def normalize_ticker(df: pd.DataFrame, col: str = "ticker") -> pd.DataFrame:
    if col in df:
        df[col] = _map_present(df[col], str.upper)
    return df
