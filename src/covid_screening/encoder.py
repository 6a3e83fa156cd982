from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.preprocessing import OneHotEncoder

from .data_loader import LabeledDataset, categorical_values, integral_codes
from .errors import SchemaMismatchError
from .utils.logger import get_logger


@dataclass(frozen=True, eq=False)
class EncodedDataset:
    """One-hot indicator matrix with a 0/1 label vector (1 = positive)."""

    X: pd.DataFrame
    y: np.ndarray
    feature_names: tuple[str, ...]

    def __post_init__(self):
        if len(self.X) != len(self.y):
            raise ValueError(f"X has {len(self.X)} rows but y has {len(self.y)}")

    def __len__(self) -> int:
        return len(self.y)

    def class_counts(self) -> dict[int, int]:
        return {0: int(np.sum(self.y == 0)), 1: int(np.sum(self.y == 1))}

    def take(self, idx: np.ndarray) -> "EncodedDataset":
        """New dataset made of the given row positions."""
        idx = np.asarray(idx, dtype=int)
        return EncodedDataset(
            X=self.X.iloc[idx].reset_index(drop=True),
            y=self.y[idx].copy(),
            feature_names=self.feature_names,
        )


class FeatureEncoder:
    """Expands categorical features into indicator columns learned from training data only."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self.logger = get_logger(self.__class__.__name__)
        self.encoder: Optional[OneHotEncoder] = None
        self.feature_columns: list[str] = []
        self.feature_names_: tuple[str, ...] = ()
        self.integral_: dict[str, Optional[bool]] = {}

    @staticmethod
    def _make_onehot() -> OneHotEncoder:
        return OneHotEncoder(handle_unknown="error", sparse_output=False, dtype=np.int8)

    def _features(self, dataset: LabeledDataset) -> pd.DataFrame:
        missing = [c for c in self.feature_columns if c not in dataset.frame.columns]
        if missing:
            raise SchemaMismatchError(f"Feature columns missing from dataset: {missing}")
        return pd.DataFrame(
            {
                c: categorical_values(dataset.frame[c], integral=self.integral_.get(c))
                for c in self.feature_columns
            }
        )

    @staticmethod
    def _labels(dataset: LabeledDataset) -> np.ndarray:
        return (dataset.frame[dataset.label_col] == dataset.positive_label).astype(int).to_numpy()

    def fit_encode(self, dataset: LabeledDataset, feature_columns: Sequence[str]) -> EncodedDataset:
        """Learn the category domain of each feature from ``dataset`` and encode it."""
        if not feature_columns:
            raise ValueError("At least one feature column is required")
        if dataset.label_col in feature_columns:
            raise ValueError(f"Label column '{dataset.label_col}' cannot be a feature")

        self.feature_columns = list(feature_columns)
        self.integral_ = {
            c: integral_codes(dataset.frame[c])
            for c in self.feature_columns
            if c in dataset.frame.columns
        }
        X_df = self._features(dataset)
        self.encoder = self._make_onehot()
        Xt = self.encoder.fit_transform(X_df)
        self.feature_names_ = tuple(self.encoder.get_feature_names_out(self.feature_columns))

        if self.verbose:
            self.logger.info(
                f"Encoded {len(self.feature_columns)} features into "
                f"{len(self.feature_names_)} indicator columns"
            )

        return EncodedDataset(
            X=pd.DataFrame(Xt, columns=list(self.feature_names_)),
            y=self._labels(dataset),
            feature_names=self.feature_names_,
        )

    def encode(self, dataset: LabeledDataset) -> EncodedDataset:
        """Encode another partition onto exactly the training indicator columns."""
        if self.encoder is None:
            raise RuntimeError("Call fit_encode() before encode().")

        X_df = self._features(dataset)
        for col, known in zip(self.feature_columns, self.encoder.categories_):
            unseen = sorted(set(X_df[col].unique()) - set(known))
            if unseen:
                raise SchemaMismatchError(
                    f"Column '{col}' has categories not seen in training: {unseen}"
                )

        Xt = self.encoder.transform(X_df)
        names = tuple(self.encoder.get_feature_names_out(self.feature_columns))
        if names != self.feature_names_:
            raise SchemaMismatchError("Indicator columns differ from the training encoding")

        return EncodedDataset(
            X=pd.DataFrame(Xt, columns=list(names)),
            y=self._labels(dataset),
            feature_names=names,
        )


def encode_features(
    train: LabeledDataset,
    held_out: LabeledDataset,
    feature_columns: Sequence[str],
) -> tuple[EncodedDataset, EncodedDataset]:
    """Fit the encoding on ``train`` and apply it to both partitions."""
    encoder = FeatureEncoder()
    encoded_train = encoder.fit_encode(train, feature_columns)
    encoded_eval = encoder.encode(held_out)
    return encoded_train, encoded_eval
