from __future__ import annotations

import itertools
import math
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence

import numpy as np
import pandas as pd
from scipy import stats

from .data_loader import categorical_values
from .errors import DegenerateInputError
from .utils.logger import get_logger


@dataclass(frozen=True)
class AssociationPair:
    """Cramér's V between two distinct columns, stored once per unordered pair."""

    column_a: str
    column_b: str
    strength: float

    def involves(self, column: str) -> bool:
        return column in (self.column_a, self.column_b)

    def other(self, column: str) -> str:
        if column == self.column_a:
            return self.column_b
        if column == self.column_b:
            return self.column_a
        raise KeyError(column)


@dataclass(frozen=True)
class AssociationReport:
    """Pairs at or above ``threshold``, strongest first."""

    pairs: tuple[AssociationPair, ...]
    threshold: float
    n_evaluated: int
    failures: tuple[tuple[str, str, str], ...] = ()

    def __len__(self) -> int:
        return len(self.pairs)

    def __iter__(self) -> Iterator[AssociationPair]:
        return iter(self.pairs)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [(p.column_a, p.column_b, p.strength) for p in self.pairs],
            columns=["column_a", "column_b", "strength"],
        )

    def matrix(self, columns: Optional[Sequence[str]] = None) -> pd.DataFrame:
        """Symmetric strength matrix; pairs missing from the report are NaN."""
        if columns is None:
            seen: dict[str, None] = {}
            for p in self.pairs:
                seen.setdefault(p.column_a)
                seen.setdefault(p.column_b)
            columns = list(seen)
        columns = list(columns)
        m = pd.DataFrame(np.nan, index=columns, columns=columns)
        for col in columns:
            m.loc[col, col] = 1.0
        for p in self.pairs:
            if p.column_a in m.index and p.column_b in m.index:
                m.loc[p.column_a, p.column_b] = p.strength
                m.loc[p.column_b, p.column_a] = p.strength
        return m

    def select_features(self, target: str) -> list[str]:
        """Columns whose association with ``target`` passed the threshold, strongest first."""
        return [p.other(target) for p in self.pairs if p.involves(target)]


class AssociationScreener:
    """
    Pairwise Cramér's V screening of categorical columns.

    Each unordered pair of distinct columns is computed exactly once and
    pairs below the threshold are dropped. Missing cells count as their own
    ``unknown`` category.
    """

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self.logger = get_logger(self.__class__.__name__)

    def compute(self, table: pd.DataFrame, column_a: str, column_b: str) -> float:
        """Cramér's V of two columns, in [0, 1]."""
        if column_a == column_b:
            raise ValueError(f"Association of '{column_a}' with itself is undefined")
        for col in (column_a, column_b):
            if col not in table.columns:
                raise KeyError(col)
        n = len(table)
        if n == 0:
            raise DegenerateInputError("Cannot compute association on a table with zero rows")

        # fixed order so (a, b) and (b, a) tabulate identically
        first, second = sorted((column_a, column_b))
        contingency = pd.crosstab(
            categorical_values(table[first]),
            categorical_values(table[second]),
        )
        min_dim = min(contingency.shape) - 1
        if min_dim < 1:
            return 0.0

        chi2 = stats.chi2_contingency(contingency.to_numpy(), correction=False)[0]
        v = math.sqrt(chi2 / (n * min_dim))
        return float(min(1.0, max(0.0, v)))

    def screen(self, table: pd.DataFrame, threshold: float) -> AssociationReport:
        """Compute every unordered column pair and keep those with strength >= threshold."""
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be within [0, 1], got {threshold}")
        if table.shape[0] == 0 or table.shape[1] == 0:
            raise DegenerateInputError("Cannot screen an empty table")
        columns = [str(c) for c in table.columns]
        if len(set(columns)) != len(columns):
            raise ValueError("Column names must be unique")
        table = table.set_axis(columns, axis=1)

        kept: list[AssociationPair] = []
        failures: list[tuple[str, str, str]] = []
        n_evaluated = 0

        for i, j in itertools.combinations(range(len(columns)), 2):
            a, b = columns[i], columns[j]
            n_evaluated += 1
            try:
                strength = self.compute(table, a, b)
            except (ValueError, TypeError) as exc:
                failures.append((a, b, str(exc)))
                self.logger.warning(f"Association {a} ~ {b} failed: {exc}")
                continue
            if strength >= threshold:
                kept.append(AssociationPair(a, b, strength))

        kept.sort(key=lambda p: (-p.strength, p.column_a, p.column_b))

        if self.verbose:
            self.logger.info(
                f"Screened {n_evaluated} pairs over {len(columns)} columns: "
                f"{len(kept)} at or above {threshold:.2f}"
            )

        return AssociationReport(
            pairs=tuple(kept),
            threshold=float(threshold),
            n_evaluated=n_evaluated,
            failures=tuple(failures),
        )


def compute_association(table: pd.DataFrame, column_a: str, column_b: str) -> float:
    return AssociationScreener().compute(table, column_a, column_b)


def screen_all(table: pd.DataFrame, threshold: float) -> AssociationReport:
    return AssociationScreener().screen(table, threshold)
