"""
Per-run diagnostic counters.

Row-level conditions never stop a run: a nearest-date lookup that finds
nothing, an arithmetic step with a missing operand, an identifier that
links to several securities, or a superseded duplicate are absorbed into
missing values or dropped rows.  :class:`RunDiagnostics` counts how many
rows each condition touched, per stage or field, so the caller can see
what the panel lost.

Conditions
----------
``no_match``
    Target rows with no observation inside the lookback window.
``missing_operand``
    Rows whose derived field is missing after every fallback.
``ambiguous_links``
    Source identifiers excluded because they map to several targets.
``duplicates_dropped``
    Rows removed by a keep-last or keep-extreme deduplication.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Tuple

import pandas as pd

from .util.logging import get_logger

__all__ = ["RunDiagnostics", "CONDITIONS"]

CONDITIONS: Tuple[str, ...] = (
    "no_match",
    "missing_operand",
    "ambiguous_links",
    "duplicates_dropped",
)

log = get_logger("fpanel.diagnostics")


@dataclass
class RunDiagnostics:
    """Mutable tally of row-level conditions, keyed by (condition, where)."""

    counts: Counter = field(default_factory=Counter)

    def record(self, condition: str, where: str, n: int) -> None:
        if condition not in CONDITIONS:
            raise ValueError(f"unknown condition {condition!r}")
        self.counts[(condition, where)] += int(n)

    def total(self, condition: str) -> int:
        return sum(v for (c, _), v in self.counts.items() if c == condition)

    def get(self, condition: str, where: str) -> int:
        return self.counts.get((condition, where), 0)

    def to_frame(self) -> pd.DataFrame:
        """Tidy table with columns ``condition``, ``where``, ``rows``."""
        rows = [
            {"condition": c, "where": w, "rows": n}
            for (c, w), n in sorted(self.counts.items())
        ]
        return pd.DataFrame(rows, columns=["condition", "where", "rows"])

    def as_dict(self) -> Dict[str, int]:
        return {f"{c}:{w}": n for (c, w), n in sorted(self.counts.items())}

    def log_summary(self) -> None:
        if not self.counts:
            log.info("No row-level conditions recorded.")
            return
        for (c, w), n in sorted(self.counts.items()):
            log.info("%s [%s]: %d rows", c, w, n)
