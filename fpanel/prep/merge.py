"""
Left joins onto a spine and derived fields with fallback chains.

A fallback chain is an ordered list of candidate expressions for one
field; for every row the first candidate that is not missing wins.  The
order matters whenever sources disagree, so it is declared once, as
data, and can be printed with :meth:`FallbackChain.describe`:

>>> BOOK_EQUITY = FallbackChain(
...     "book_equity",
...     [Col("seq"), Sum("ceq", "pstk"), Diff("at", "lt", "mib")],
... )
>>> BOOK_EQUITY.describe()
['seq', 'ceq + pstk', 'at - lt - mib']

Arithmetic expressions are missing as soon as one operand is missing,
so ``ceq + pstk`` only counts as available when both are reported.
Operands may be column names or other expressions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    FrozenSet,
    Iterable,
    List,
    Optional,
    Sequence,
    Tuple,
    Union,
)

import numpy as np
import pandas as pd

from ..diagnostics import RunDiagnostics
from ..errors import SchemaError
from ..util.logging import get_logger
from ..util.schema import require_columns
from .dedup import assert_unique

__all__ = [
    "Col",
    "Sum",
    "Diff",
    "Product",
    "Const",
    "FallbackChain",
    "evaluate_chains",
    "merge_left",
]

log = get_logger("fpanel.merge")


def _numeric(s: pd.Series) -> pd.Series:
    return pd.to_numeric(s, errors="coerce").astype("float64")


@dataclass(frozen=True)
class Col:
    name: str

    def columns(self) -> FrozenSet[str]:
        return frozenset({self.name})

    def evaluate(self, df: pd.DataFrame) -> pd.Series:
        return df[self.name]

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Const:
    value: Any

    def columns(self) -> FrozenSet[str]:
        return frozenset()

    def evaluate(self, df: pd.DataFrame) -> pd.Series:
        return pd.Series(self.value, index=df.index)

    def __str__(self) -> str:
        return repr(self.value)


Operand = Union[str, "Expr"]


def _expr(x: Operand) -> "Expr":
    return Col(x) if isinstance(x, str) else x


def _label(e: "Expr") -> str:
    s = str(e)
    return f"({s})" if isinstance(e, (Sum, Diff, Product)) else s


class _Arithmetic:
    """Shared plumbing for n-ary arithmetic over operands."""

    operands: Tuple["Expr", ...]
    symbol = "?"

    def __init__(self, *operands: Operand) -> None:
        if not operands:
            raise ValueError(f"{type(self).__name__} needs at least one operand")
        object.__setattr__(self, "operands", tuple(_expr(o) for o in operands))

    def columns(self) -> FrozenSet[str]:
        return frozenset().union(*(o.columns() for o in self.operands))

    def _values(self, df: pd.DataFrame) -> List[pd.Series]:
        return [_numeric(o.evaluate(df)) for o in self.operands]

    def __str__(self) -> str:
        return f" {self.symbol} ".join(_label(o) for o in self.operands)


@dataclass(frozen=True, init=False)
class Sum(_Arithmetic):
    operands: Tuple["Expr", ...]
    symbol = "+"

    def evaluate(self, df: pd.DataFrame) -> pd.Series:
        vals = self._values(df)
        out = vals[0]
        for v in vals[1:]:
            out = out + v
        return out


@dataclass(frozen=True, init=False)
class Diff(_Arithmetic):
    """``first - second - ...``"""

    operands: Tuple["Expr", ...]
    symbol = "-"

    def evaluate(self, df: pd.DataFrame) -> pd.Series:
        vals = self._values(df)
        out = vals[0]
        for v in vals[1:]:
            out = out - v
        return out


@dataclass(frozen=True, init=False)
class Product(_Arithmetic):
    operands: Tuple["Expr", ...]
    symbol = "*"

    def evaluate(self, df: pd.DataFrame) -> pd.Series:
        vals = self._values(df)
        out = vals[0]
        for v in vals[1:]:
            out = out * v
        return out


Expr = Union[Col, Const, Sum, Diff, Product]
Transform = Callable[[pd.Series], pd.Series]
Step = Union[Operand, Tuple[Operand, Optional[Transform]]]


@dataclass(frozen=True)
class FallbackChain:
    """
    Ordered candidates for one derived field.

    Parameters
    ----------
    name : str
        Output column.
    steps : sequence
        Each element is an expression (or column name), or a pair
        ``(expression, transform)`` where ``transform`` maps the evaluated
        Series before it is used (e.g. ``lambda s: s.where(s > 0)``).
    default : scalar, optional
        Used where every step is missing.  ``None`` leaves the row missing.
    """

    name: str
    steps: Tuple[Tuple[Expr, Optional[Transform]], ...]
    default: Any = None

    def __init__(
        self, name: str, steps: Iterable[Step], default: Any = None
    ) -> None:
        norm: List[Tuple[Expr, Optional[Transform]]] = []
        for step in steps:
            if isinstance(step, tuple):
                expr, transform = step
            else:
                expr, transform = step, None
            norm.append((_expr(expr), transform))
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "steps", tuple(norm))
        object.__setattr__(self, "default", default)

    def columns(self) -> FrozenSet[str]:
        return frozenset().union(*(e.columns() for e, _ in self.steps))

    def describe(self) -> List[str]:
        labels = [str(e) for e, _ in self.steps]
        if self.default is not None:
            labels.append(f"default={self.default!r}")
        return labels

    def _candidates(self, df: pd.DataFrame) -> List[pd.Series]:
        out = []
        for expr, transform in self.steps:
            v = expr.evaluate(df)
            if transform is not None:
                v = transform(v)
            out.append(v)
        return out

    def evaluate(self, df: pd.DataFrame) -> pd.Series:
        """First non-missing candidate per row, then the default."""
        result: Optional[pd.Series] = None
        for v in self._candidates(df):
            result = v if result is None else result.where(result.notna(), v)
        if result is None:
            result = pd.Series(np.nan, index=df.index)
        if self.default is not None:
            result = result.fillna(self.default)
        return result.rename(self.name)

    def sources(self, df: pd.DataFrame) -> pd.Series:
        """
        Index of the step that supplied each row's value.

        ``-1`` marks the default and ``<NA>`` a row left missing.
        """
        src = pd.Series(pd.NA, index=df.index, dtype="Int64")
        for i, v in enumerate(self._candidates(df)):
            src = src.mask(src.isna() & v.notna(), i)
        if self.default is not None:
            src = src.fillna(-1)
        return src


def evaluate_chains(
    df: pd.DataFrame,
    chains: Sequence[FallbackChain],
    *,
    stage: str = "derive",
    diagnostics: Optional[RunDiagnostics] = None,
) -> pd.DataFrame:
    """
    Add one column per chain, evaluated in the given order.

    A chain may reference the output of an earlier chain.  Rows left
    missing are counted per field under ``missing_operand``.

    Raises
    ------
    SchemaError
        If a chain references a column that is neither in ``df`` nor
        produced by an earlier chain.
    """
    available = set(df.columns)
    for ch in chains:
        missing = sorted(ch.columns() - available)
        if missing:
            raise SchemaError(f"{stage}:{ch.name}", missing)
        available.add(ch.name)

    out = df.copy()
    for ch in chains:
        out[ch.name] = ch.evaluate(out)
        n_missing = int(out[ch.name].isna().sum())
        if diagnostics is not None and n_missing:
            diagnostics.record("missing_operand", ch.name, n_missing)
    return out


def merge_left(
    spine: pd.DataFrame,
    right: pd.DataFrame,
    on: Union[str, Sequence[str]],
    *,
    columns: Optional[Sequence[str]] = None,
    stage: str = "merge",
) -> pd.DataFrame:
    """
    Left-join ``right`` onto ``spine`` without changing the spine's rows.

    Parameters
    ----------
    spine : DataFrame
        Left table; every row is kept, in order.
    right : DataFrame
        Must be unique on ``on``.
    on : str or sequence of str
        Join key present in both tables.
    columns : sequence of str, optional
        Non-key columns of ``right`` to bring over (default: all).

    Raises
    ------
    SchemaError
        Unknown key or column.
    UniquenessViolation
        ``right`` has duplicate keys.
    ValueError
        A brought-over column already exists on the spine.
    """
    keys = [on] if isinstance(on, str) else list(on)
    require_columns(spine, keys, stage)
    require_columns(right, keys, stage)
    if columns is None:
        columns = [c for c in right.columns if c not in keys]
    require_columns(right, columns, stage)

    clash = sorted(set(columns) & (set(spine.columns) - set(keys)))
    if clash:
        raise ValueError(f"{stage}: columns {clash} exist on both sides")

    rhs = assert_unique(right[keys + list(columns)], keys, stage=stage)
    out = spine.merge(rhs, on=keys, how="left", validate="m:1")
    if columns:
        n_hit = int(out[list(columns)].notna().any(axis=1).sum())
        log.info("%s: %d of %d spine rows matched", stage, n_hit, len(out))
    return out
