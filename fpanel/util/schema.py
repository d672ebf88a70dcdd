from __future__ import annotations

from typing import Iterable

import pandas as pd

from ..errors import SchemaError


def require_columns(df: pd.DataFrame, columns: Iterable[str], stage: str) -> None:
    """Raise :class:`SchemaError` if any of ``columns`` is absent from ``df``."""
    missing = sorted(set(columns) - set(df.columns))
    if missing:
        raise SchemaError(stage, missing)
