from typing import Optional

import numpy as np
import pandas as pd

from .encoder import EncodedDataset
from .evaluator import Evaluator
from .model_trainer import TrainedClassifier
from .utils.logger import get_logger


class ThresholdAnalyzer:
    """Sweep negative-probability thresholds and report the FN/FP trade-off at each one."""

    def __init__(
        self,
        start: float = 0.05,
        stop: float = 0.95,
        step: float = 0.01,
        verbose: bool = True,
    ):
        self.start = start
        self.stop = stop
        self.step = step
        self.verbose = verbose
        self.logger = get_logger(self.__class__.__name__)

    def thresholds(self) -> np.ndarray:
        return np.round(np.arange(self.start, self.stop + self.step / 2, self.step), 4)

    def sweep(self, trained: TrainedClassifier, dataset: EncodedDataset) -> pd.DataFrame:
        """One row per threshold; the model's probabilities are computed once."""
        p_neg = trained.predict_proba_negative(dataset.X)
        rows = []
        for thr in self.thresholds():
            y_pred = np.where(p_neg >= thr, 0, 1)
            record = Evaluator.record_from_predictions(trained.variant.name, dataset.y, y_pred)
            row = record.as_dict()
            row.pop("remark")
            row["threshold"] = float(thr)
            rows.append(row)
        return pd.DataFrame(rows)

    @staticmethod
    def best_threshold(sweep: pd.DataFrame, max_false_negatives: Optional[int] = None) -> float:
        """Threshold with the highest balanced accuracy, optionally capping false negatives."""
        candidates = sweep
        if max_false_negatives is not None:
            candidates = sweep[sweep["false_negatives"] <= max_false_negatives]
        if candidates.empty:
            raise ValueError(f"No threshold keeps false negatives <= {max_false_negatives}")
        best_idx = candidates["balanced_accuracy"].fillna(-1.0).idxmax()
        return float(candidates.loc[best_idx, "threshold"])

    def run(
        self,
        trained: TrainedClassifier,
        dataset: EncodedDataset,
        max_false_negatives: Optional[int] = None,
    ) -> tuple[float, pd.DataFrame]:
        sweep = self.sweep(trained, dataset)
        best_thr = self.best_threshold(sweep, max_false_negatives)

        if self.verbose:
            row = sweep.loc[sweep["threshold"] == best_thr].iloc[0]
            self.logger.info(
                f"Best threshold for {trained.variant.name}: {best_thr:.2f} "
                f"(bal_acc={row['balanced_accuracy']:.3f}, FN={int(row['false_negatives'])}, "
                f"FP={int(row['false_positives'])})"
            )
        return best_thr, sweep
