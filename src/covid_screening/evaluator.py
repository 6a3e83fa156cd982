from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict

import numpy as np
from sklearn.metrics import confusion_matrix

from .encoder import EncodedDataset
from .errors import SchemaMismatchError, VariantTrainingFailure
from .model_trainer import TrainedClassifier
from .utils.logger import get_logger


@dataclass(frozen=True)
class EvaluationRecord:
    """Confusion-matrix metrics of one trained variant on the held-out partition."""

    model: str
    false_positives: int
    false_negatives: int
    true_positives: int
    true_negatives: int
    sensitivity: float
    specificity: float
    balanced_accuracy: float
    remark: str = ""

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _rate(num: int, den: int) -> float:
    return num / den if den else float("nan")


class Evaluator:
    """Evaluate a trained classifier against a fixed held-out set (classes: negative=0, positive=1)."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self.logger = get_logger(self.__class__.__name__)

    @staticmethod
    def record_from_predictions(
        model: str,
        y_true: np.ndarray,
        y_pred: np.ndarray,
        remark: str = "",
    ) -> EvaluationRecord:
        tn, fp, fn, tp = confusion_matrix(
            np.asarray(y_true).astype(int),
            np.asarray(y_pred).astype(int),
            labels=[0, 1],
        ).ravel()

        sensitivity = _rate(int(tp), int(tp + fn))
        specificity = _rate(int(tn), int(tn + fp))

        return EvaluationRecord(
            model=model,
            false_positives=int(fp),
            false_negatives=int(fn),
            true_positives=int(tp),
            true_negatives=int(tn),
            sensitivity=sensitivity,
            specificity=specificity,
            balanced_accuracy=(sensitivity + specificity) / 2,
            remark=remark,
        )

    def evaluate(self, trained: TrainedClassifier, dataset: EncodedDataset) -> EvaluationRecord:
        if tuple(dataset.feature_names) != tuple(trained.feature_names):
            raise SchemaMismatchError(
                f"Evaluation columns do not match the columns '{trained.variant.name}' was trained on"
            )

        try:
            y_pred = trained.predict(dataset.X)
        except Exception as exc:
            raise VariantTrainingFailure(
                trained.variant.name, f"prediction failed: {type(exc).__name__}: {exc}"
            ) from exc
        record = self.record_from_predictions(
            trained.variant.name,
            dataset.y,
            y_pred,
            remark=trained.variant.describe(),
        )

        if self.verbose:
            self.logger.info(
                f"{record.model}: FP={record.false_positives} FN={record.false_negatives} "
                f"sens={record.sensitivity:.4f} spec={record.specificity:.4f} "
                f"bal_acc={record.balanced_accuracy:.4f}"
            )
        return record
