from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

import pandas as pd
from sklearn.model_selection import train_test_split

from .utils.logger import get_logger

UNKNOWN = "unknown"


def _mask_missing(series: pd.Series, missing_values: Iterable[str]) -> pd.Series:
    missing = list(missing_values)
    return series.mask(series.isin(missing)) if missing else series


def integral_codes(series: pd.Series, missing_values: Iterable[str] = ()) -> Optional[bool]:
    """Whether a numeric column holds only whole-number codes; None for non-numeric columns."""
    s = _mask_missing(series, missing_values)
    if not pd.api.types.is_numeric_dtype(s) or pd.api.types.is_bool_dtype(s):
        return None
    present = s.dropna()
    return bool(len(present)) and bool((present == present.round()).all())


def categorical_values(
    series: pd.Series,
    missing_values: Iterable[str] = (),
    integral: Optional[bool] = None,
) -> pd.Series:
    """
    Render one column as string categories.

    Missing cells (and any of ``missing_values``) become the ``UNKNOWN``
    sentinel; integral numeric codes are written without a decimal part,
    so ``1.0`` and ``1`` are the same category ``"1"``.

    ``integral`` pins the numeric rendering learned elsewhere (see
    ``integral_codes``): True writes whole numbers as ``"1"``, False writes
    every value as a float (``"1.0"``), None decides from this column alone.
    """
    s = _mask_missing(series, missing_values)

    whole = integral_codes(s)
    if whole is not None:
        if integral is None:
            integral = whole
        if integral and whole:
            s = s.astype("Int64")
        elif not integral:
            s = s.astype(float)

    out = s.astype(object)
    return out.where(s.notna(), UNKNOWN).astype(str)


def normalize_categories(df: pd.DataFrame, missing_values: Iterable[str] = ()) -> pd.DataFrame:
    """Return a new categorical table with every column passed through ``categorical_values``."""
    missing = list(missing_values)
    return pd.DataFrame(
        {col: categorical_values(df[col], missing) for col in df.columns},
        index=df.index,
    )


class DataLoader:
    """Loads the test-record CSV and normalizes it into a categorical table."""

    def __init__(
        self,
        path: str,
        sample_size: Optional[int] = None,
        drop_columns: Sequence[str] = (),
        missing_values: Sequence[str] = ("None", ""),
        random_state: int = 42,
    ):
        self.path = path
        self.sample_size = sample_size
        self.drop_columns = list(drop_columns)
        self.missing_values = list(missing_values)
        self.random_state = random_state

    def load(self) -> pd.DataFrame:
        df = pd.read_csv(self.path, keep_default_na=True, low_memory=False)
        df = df.drop(columns=[c for c in self.drop_columns if c in df.columns])
        if self.sample_size:
            df = df.sample(self.sample_size, random_state=self.random_state)
        return normalize_categories(df.reset_index(drop=True), self.missing_values)


@dataclass(frozen=True)
class LabeledDataset:
    """A categorical table whose label column only holds the two modeled classes."""

    frame: pd.DataFrame
    label_col: str
    negative_label: str = "negative"
    positive_label: str = "positive"

    def __post_init__(self):
        if self.label_col not in self.frame.columns:
            raise ValueError(f"Label column '{self.label_col}' not found")
        retained = {self.negative_label, self.positive_label}
        unexpected = set(self.frame[self.label_col].unique()) - retained
        if unexpected:
            raise ValueError(
                f"Label column '{self.label_col}' holds classes outside "
                f"{sorted(retained)}: {sorted(map(str, unexpected))}"
            )

    @classmethod
    def from_table(
        cls,
        table: pd.DataFrame,
        label_col: str,
        negative_label: str = "negative",
        positive_label: str = "positive",
        exclude: Iterable[str] = ("other",),
    ) -> "LabeledDataset":
        """Drop rows whose label is in ``exclude`` and wrap the rest."""
        if label_col not in table.columns:
            raise ValueError(f"Label column '{label_col}' not found")
        keep = ~table[label_col].isin(list(exclude))
        return cls(
            frame=table.loc[keep].reset_index(drop=True),
            label_col=label_col,
            negative_label=negative_label,
            positive_label=positive_label,
        )

    @property
    def feature_columns(self) -> list[str]:
        return [c for c in self.frame.columns if c != self.label_col]

    def __len__(self) -> int:
        return len(self.frame)

    def class_counts(self) -> dict[str, int]:
        counts = self.frame[self.label_col].value_counts()
        return {
            self.negative_label: int(counts.get(self.negative_label, 0)),
            self.positive_label: int(counts.get(self.positive_label, 0)),
        }

    def with_frame(self, frame: pd.DataFrame) -> "LabeledDataset":
        return LabeledDataset(frame, self.label_col, self.negative_label, self.positive_label)


def train_eval_split(
    dataset: LabeledDataset,
    eval_size: float = 0.25,
    random_state: int = 42,
) -> tuple[LabeledDataset, LabeledDataset]:
    """Stratified random split into training and held-out evaluation partitions."""
    logger = get_logger("train_eval_split")
    train_df, eval_df = train_test_split(
        dataset.frame,
        test_size=eval_size,
        stratify=dataset.frame[dataset.label_col],
        random_state=random_state,
    )
    train = dataset.with_frame(train_df.reset_index(drop=True))
    held_out = dataset.with_frame(eval_df.reset_index(drop=True))
    logger.info(
        f"Split {len(dataset):,} rows: train={len(train):,} {train.class_counts()}, "
        f"eval={len(held_out):,} {held_out.class_counts()}"
    )
    return train, held_out
