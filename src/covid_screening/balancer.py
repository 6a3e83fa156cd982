from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

import numpy as np

from .encoder import EncodedDataset
from .errors import InsufficientMinorityClassError
from .utils.logger import get_logger


@dataclass(frozen=True)
class ClassBalancePolicy:
    """
    How to resample a training set to a target class ratio.

    ``ratio`` is the number of majority rows kept per minority row when
    undersampling (1.0 gives a 1:1 split).
    """

    strategy: Literal["none", "oversample", "undersample"] = "undersample"
    ratio: float = 1.0
    random_state: int = 42

    def __post_init__(self):
        if self.strategy not in ("none", "oversample", "undersample"):
            raise ValueError(f"Unknown balancing strategy: {self.strategy}")
        if self.ratio <= 0:
            raise ValueError(f"ratio must be positive, got {self.ratio}")


class Balancer:
    """
    Handles class imbalance of an encoded training set via undersampling or oversampling.

    Example:
        balancer = Balancer(ClassBalancePolicy(strategy="undersample", random_state=42))
        balanced = balancer.rebalance(encoded_train)
    """

    def __init__(self, policy: ClassBalancePolicy = ClassBalancePolicy(), verbose: bool = False):
        self.policy = policy
        self.verbose = verbose
        self.logger = get_logger(self.__class__.__name__)

    def rebalance(self, dataset: EncodedDataset) -> EncodedDataset:
        if self.policy.strategy == "none":
            return dataset.take(np.arange(len(dataset)))

        y = np.asarray(dataset.y)
        idx_pos = np.where(y == 1)[0]
        idx_neg = np.where(y == 0)[0]

        if len(idx_pos) == 0 or len(idx_neg) == 0:
            raise InsufficientMinorityClassError(
                f"Cannot rebalance: class counts are {dataset.class_counts()}"
            )

        if len(idx_pos) <= len(idx_neg):
            idx_min, idx_maj = idx_pos, idx_neg
        else:
            idx_min, idx_maj = idx_neg, idx_pos

        rng = np.random.RandomState(self.policy.random_state)

        if self.policy.strategy == "undersample":
            n_keep = min(len(idx_maj), int(round(self.policy.ratio * len(idx_min))))
            keep_maj = rng.choice(idx_maj, size=n_keep, replace=False)
            keep_idx = np.sort(np.concatenate([idx_min, keep_maj]))
        else:
            n_to_add = len(idx_maj) - len(idx_min)
            add_min = rng.choice(idx_min, size=n_to_add, replace=True)
            keep_idx = np.concatenate([np.arange(len(y)), add_min])

        balanced = dataset.take(keep_idx)
        if self.verbose:
            self.logger.info(
                f"Applied {self.policy.strategy}: {dataset.class_counts()} -> {balanced.class_counts()}"
            )
        return balanced


def rebalance(dataset: EncodedDataset, policy: ClassBalancePolicy = ClassBalancePolicy()) -> EncodedDataset:
    return Balancer(policy).rebalance(dataset)
