"""
Declarative row filters and column projection.

Filters are small expression trees over named columns rather than inline
conditionals, so each source's selection rule is data that can be
configured, printed and tested on its own.  The variants are

* :class:`Comparison` – ``column <op> value``
* :class:`Range` – inclusive bounds, either side optional
* :class:`IsIn` – categorical / set membership
* :class:`NotMissing` – explicit non-missing requirement
* :class:`And`, :class:`Or` – conjunction and disjunction

Every predicate evaluates vectorised over a DataFrame via ``mask(df)``
and reports the columns it reads via ``columns()``.

Missing values follow pandas comparison semantics: a missing operand
makes ``==``, ``<``, ``<=``, ``>``, ``>=``, :class:`Range` and
:class:`IsIn` false, and makes ``!=`` true.  Nothing else is treated as
missing by implication; use :func:`require_non_missing` when a filter
must exclude missing values (for example ``prc != 0`` keeps rows with a
missing price unless it is combined with ``NotMissing("prc")``).
"""

from __future__ import annotations

import operator
from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Dict,
    FrozenSet,
    Iterable,
    Optional,
    Sequence,
    Tuple,
    Union,
)

import pandas as pd

from ..util.logging import get_logger
from ..util.schema import require_columns

__all__ = [
    "Predicate",
    "Comparison",
    "Range",
    "IsIn",
    "NotMissing",
    "And",
    "Or",
    "require_non_missing",
    "apply_filter",
]

log = get_logger("fpanel.filters")

_OPS: Dict[str, Callable[[Any, Any], Any]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


def _coerce_like(s: pd.Series, value: Any) -> Any:
    # Allow date strings against datetime columns
    if pd.api.types.is_datetime64_any_dtype(s) and isinstance(value, str):
        return pd.Timestamp(value)
    return value


@dataclass(frozen=True)
class Comparison:
    column: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in _OPS:
            raise ValueError(
                f"unsupported operator {self.op!r}; use one of {list(_OPS)}"
            )

    def columns(self) -> FrozenSet[str]:
        return frozenset({self.column})

    def mask(self, df: pd.DataFrame) -> pd.Series:
        s = df[self.column]
        out = _OPS[self.op](s, _coerce_like(s, self.value))
        return pd.Series(out, index=df.index).fillna(self.op == "!=").astype(bool)


@dataclass(frozen=True)
class Range:
    """Inclusive ``low <= column <= high``; a ``None`` bound is open."""

    column: str
    low: Any = None
    high: Any = None

    def columns(self) -> FrozenSet[str]:
        return frozenset({self.column})

    def mask(self, df: pd.DataFrame) -> pd.Series:
        s = df[self.column]
        out = s.notna()
        if self.low is not None:
            out &= (s >= _coerce_like(s, self.low)).fillna(False).astype(bool)
        if self.high is not None:
            out &= (s <= _coerce_like(s, self.high)).fillna(False).astype(bool)
        return out.astype(bool)


@dataclass(frozen=True)
class IsIn:
    column: str
    values: Tuple[Any, ...]

    def __init__(self, column: str, values: Iterable[Any]) -> None:
        object.__setattr__(self, "column", column)
        object.__setattr__(self, "values", tuple(values))

    def columns(self) -> FrozenSet[str]:
        return frozenset({self.column})

    def mask(self, df: pd.DataFrame) -> pd.Series:
        return df[self.column].isin(list(self.values)).astype(bool)


@dataclass(frozen=True)
class NotMissing:
    fields: Tuple[str, ...]

    def __init__(self, *fields: str) -> None:
        object.__setattr__(self, "fields", tuple(fields))

    def columns(self) -> FrozenSet[str]:
        return frozenset(self.fields)

    def mask(self, df: pd.DataFrame) -> pd.Series:
        if not self.fields:
            return pd.Series(True, index=df.index)
        return df[list(self.fields)].notna().all(axis=1)


@dataclass(frozen=True)
class And:
    terms: Tuple["Predicate", ...]

    def __init__(self, *terms: "Predicate") -> None:
        object.__setattr__(self, "terms", tuple(terms))

    def columns(self) -> FrozenSet[str]:
        return frozenset().union(*(t.columns() for t in self.terms))

    def mask(self, df: pd.DataFrame) -> pd.Series:
        out = pd.Series(True, index=df.index)
        for t in self.terms:
            out &= t.mask(df)
        return out


@dataclass(frozen=True)
class Or:
    terms: Tuple["Predicate", ...]

    def __init__(self, *terms: "Predicate") -> None:
        object.__setattr__(self, "terms", tuple(terms))

    def columns(self) -> FrozenSet[str]:
        return frozenset().union(*(t.columns() for t in self.terms))

    def mask(self, df: pd.DataFrame) -> pd.Series:
        out = pd.Series(False, index=df.index)
        for t in self.terms:
            out |= t.mask(df)
        return out


Predicate = Union[Comparison, Range, IsIn, NotMissing, And, Or]


def require_non_missing(*fields: str) -> NotMissing:
    """Predicate keeping only rows where every one of ``fields`` is present."""
    return NotMissing(*fields)


def apply_filter(
    df: pd.DataFrame,
    predicate: Optional[Predicate] = None,
    columns: Optional[Sequence[str]] = None,
    *,
    stage: str = "filter",
) -> pd.DataFrame:
    """
    Select the rows satisfying ``predicate`` and project onto ``columns``.

    Parameters
    ----------
    df : DataFrame
        Source table (not modified).
    predicate : Predicate, optional
        Row filter.  ``None`` keeps every row.
    columns : sequence of str, optional
        Columns to retain, in this order.  ``None`` keeps all columns.
    stage : str
        Name used in error messages and log records.

    Returns
    -------
    DataFrame
        New table with a fresh RangeIndex.

    Raises
    ------
    SchemaError
        If the predicate or the projection names an unknown column.  The
        check runs before any row is evaluated.
    """
    referenced = set(predicate.columns()) if predicate is not None else set()
    if columns is not None:
        referenced |= set(columns)
    require_columns(df, referenced, stage)

    out = df
    if predicate is not None:
        out = out.loc[predicate.mask(out)]
    if columns is not None:
        out = out[list(columns)]
    out = out.reset_index(drop=True).copy()
    log.info("%s: kept %d of %d rows", stage, len(out), len(df))
    return out
