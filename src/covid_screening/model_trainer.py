from __future__ import annotations

import warnings
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterable, Mapping, Optional

import numpy as np
from lightgbm import LGBMClassifier
from sklearn.ensemble import BaggingClassifier, RandomForestClassifier
from sklearn.tree import DecisionTreeClassifier

from .encoder import EncodedDataset
from .errors import VariantTrainingFailure
from .utils.logger import get_logger

DEFAULT_THRESHOLD = 0.5

FamilyFactory = Callable[[dict[str, Any]], Any]
_FAMILIES: dict[str, FamilyFactory] = {}


def register_family(name: str, factory: FamilyFactory) -> None:
    """Make a classifier family available to ModelVariant.family by name."""
    _FAMILIES[name] = factory


def available_families() -> list[str]:
    return sorted(_FAMILIES)


def _boosted_trees(params: dict[str, Any]) -> LGBMClassifier:
    params = dict(params)
    params.setdefault("verbosity", -1)
    return LGBMClassifier(**params)


def _bagged_trees(params: dict[str, Any]) -> BaggingClassifier:
    params = dict(params)
    tree_params = params.pop("tree_params", {})
    return BaggingClassifier(estimator=DecisionTreeClassifier(**tree_params), **params)


register_family("decision_tree", lambda params: DecisionTreeClassifier(**params))
register_family("random_forest", lambda params: RandomForestClassifier(**params))
register_family("bagged_trees", _bagged_trees)
register_family("boosted_trees", _boosted_trees)


@dataclass(frozen=True)
class CostMatrix:
    """Misclassification costs; correct predictions cost nothing."""

    false_negative: float = 1.0
    false_positive: float = 1.0

    def __post_init__(self):
        if self.false_negative <= 0 or self.false_positive <= 0:
            raise ValueError("Misclassification costs must be positive")

    def sample_weight(self, y: np.ndarray) -> np.ndarray:
        """Weight positive rows by the false-negative cost and negative rows by the false-positive cost."""
        return np.where(np.asarray(y) == 1, self.false_negative, self.false_positive).astype(float)


@dataclass(frozen=True)
class ModelVariant:
    """A named training configuration: classifier family, data view, costs and cutoff."""

    name: str
    family: str = "random_forest"
    balanced: bool = False
    cost_matrix: Optional[CostMatrix] = None
    decision_threshold: Optional[float] = None
    params: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.decision_threshold is not None and not 0.0 < self.decision_threshold < 1.0:
            raise ValueError(
                f"decision_threshold must be within (0, 1), got {self.decision_threshold}"
            )

    @classmethod
    def from_dict(cls, cfg: Mapping[str, Any]) -> "ModelVariant":
        cost = cfg.get("cost_matrix")
        return cls(
            name=cfg["name"],
            family=cfg.get("family", "random_forest"),
            balanced=bool(cfg.get("balanced", False)),
            cost_matrix=CostMatrix(**cost) if cost else None,
            decision_threshold=cfg.get("decision_threshold"),
            params=dict(cfg.get("params") or {}),
        )

    def describe(self) -> str:
        parts = [self.family, "balanced" if self.balanced else "unbalanced"]
        if self.cost_matrix is not None:
            parts.append(
                f"cost FN={self.cost_matrix.false_negative:g} FP={self.cost_matrix.false_positive:g}"
            )
        if self.decision_threshold is not None:
            parts.append(f"threshold={self.decision_threshold:g}")
        return ", ".join(parts)


def build_variants(configs: Iterable[Mapping[str, Any]]) -> list[ModelVariant]:
    return [ModelVariant.from_dict(cfg) for cfg in configs]


@dataclass(frozen=True)
class TrainedClassifier:
    """A fitted estimator bound to the variant and indicator columns it was trained with."""

    variant: ModelVariant
    estimator: Any
    feature_names: tuple[str, ...]

    @property
    def threshold(self) -> float:
        if self.variant.decision_threshold is None:
            return DEFAULT_THRESHOLD
        return self.variant.decision_threshold

    def predict_proba_negative(self, X) -> np.ndarray:
        proba = self.estimator.predict_proba(np.asarray(X, dtype=float))
        classes = list(self.estimator.classes_)
        return proba[:, classes.index(0)]

    def predict(self, X) -> np.ndarray:
        """Negative (0) when P(negative) reaches the threshold, positive (1) otherwise."""
        p_neg = self.predict_proba_negative(X)
        return np.where(p_neg >= self.threshold, 0, 1)

    def with_threshold(self, threshold: Optional[float]) -> "TrainedClassifier":
        """Same fitted estimator with a different decision threshold."""
        return replace(self, variant=replace(self.variant, decision_threshold=threshold))


class ModelTrainer:
    """
    Fits one ModelVariant on an encoded training set.

    Cost-sensitive variants pass their cost matrix as sample weights, so the
    fit objective charges false negatives at the configured rate. Any error
    while building or fitting is re-raised as VariantTrainingFailure.
    """

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self.logger = get_logger(self.__class__.__name__)
        warnings.filterwarnings("ignore", category=UserWarning, module="lightgbm")

    @staticmethod
    def _build(variant: ModelVariant) -> Any:
        if variant.family not in _FAMILIES:
            raise KeyError(
                f"Unknown classifier family '{variant.family}' "
                f"(available: {', '.join(available_families())})"
            )
        return _FAMILIES[variant.family](dict(variant.params))

    def train(self, dataset: EncodedDataset, variant: ModelVariant) -> TrainedClassifier:
        y = np.asarray(dataset.y).astype(int)
        if len(np.unique(y)) < 2:
            raise VariantTrainingFailure(variant.name, "training data holds a single class")

        sample_weight = None
        if variant.cost_matrix is not None:
            sample_weight = variant.cost_matrix.sample_weight(y)

        try:
            estimator = self._build(variant)
            estimator.fit(dataset.X.to_numpy(dtype=float), y, sample_weight=sample_weight)
        except Exception as exc:
            raise VariantTrainingFailure(variant.name, f"{type(exc).__name__}: {exc}") from exc

        if not hasattr(estimator, "predict_proba"):
            raise VariantTrainingFailure(
                variant.name, f"{type(estimator).__name__} does not provide predict_proba"
            )

        if self.verbose:
            self.logger.info(f"Trained {variant.name} ({variant.describe()}) on {len(y):,} rows")

        return TrainedClassifier(
            variant=variant,
            estimator=estimator,
            feature_names=tuple(dataset.feature_names),
        )


def train_variant(dataset: EncodedDataset, variant: ModelVariant) -> TrainedClassifier:
    return ModelTrainer().train(dataset, variant)
