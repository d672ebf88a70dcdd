from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import pandas as pd


def cache_root(root: Optional[Path] = None) -> Path:
    """Cache directory: ``root``, else ``$FPANEL_CACHE``, else ``~/.fpanel_cache``."""
    if root is not None:
        return Path(root)
    env = os.environ.get("FPANEL_CACHE")
    return Path(env) if env else Path.home() / ".fpanel_cache"


def save_parquet(df: pd.DataFrame, relpath: str, root: Optional[Path] = None) -> Path:
    p = cache_root(root) / relpath
    p.parent.mkdir(parents=True, exist_ok=True)
    df.to_parquet(p, index=False)
    return p


def read_parquet(relpath: str, root: Optional[Path] = None) -> pd.DataFrame:
    return pd.read_parquet(cache_root(root) / relpath)
