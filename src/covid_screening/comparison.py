from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, Optional

import pandas as pd
from joblib import Parallel, delayed

from .balancer import Balancer, ClassBalancePolicy
from .encoder import EncodedDataset
from .errors import InsufficientMinorityClassError, SchemaMismatchError, VariantTrainingFailure
from .evaluator import EvaluationRecord, Evaluator
from .model_trainer import ModelTrainer, ModelVariant
from .utils.logger import get_logger


class VariantStatus(str, Enum):
    EVALUATED = "evaluated"
    FAILED = "failed"


@dataclass(frozen=True)
class VariantOutcome:
    """Result of one requested variant: an evaluation record or the reason it failed."""

    variant: ModelVariant
    status: VariantStatus
    record: Optional[EvaluationRecord] = None
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.status is VariantStatus.FAILED


class VariantComparison:
    """
    Train and evaluate a batch of model variants against one held-out set.

    Balanced variants train on an undersampled copy of the shared training
    set. Variants run on a joblib worker pool and outcomes come back in the
    order requested; a failing variant is reported, not raised.
    """

    def __init__(
        self,
        policy: ClassBalancePolicy = ClassBalancePolicy(),
        n_jobs: int = -1,
        verbose: bool = True,
    ):
        self.policy = policy
        self.n_jobs = n_jobs
        self.verbose = verbose
        self.logger = get_logger(self.__class__.__name__)
        self.balancer = Balancer(policy)
        self.trainer = ModelTrainer()
        self.evaluator = Evaluator()

    def _run_one(
        self,
        train: EncodedDataset,
        held_out: EncodedDataset,
        variant: ModelVariant,
    ) -> VariantOutcome:
        try:
            data = self.balancer.rebalance(train) if variant.balanced else train
            trained = self.trainer.train(data, variant)
            record = self.evaluator.evaluate(trained, held_out)
        except (VariantTrainingFailure, InsufficientMinorityClassError, SchemaMismatchError) as exc:
            return VariantOutcome(variant, VariantStatus.FAILED, error=str(exc))
        return VariantOutcome(variant, VariantStatus.EVALUATED, record=record)

    def iter_outcomes(
        self,
        train: EncodedDataset,
        held_out: EncodedDataset,
        variants: Iterable[ModelVariant],
    ) -> Iterator[VariantOutcome]:
        """Lazily yield outcomes in request order; the caller may stop at any point."""
        variants = list(variants)
        if not variants:
            raise ValueError("At least one model variant is required")
        names = [v.name for v in variants]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate variant names: {duplicates}")
        if len(held_out) == 0:
            raise ValueError("Evaluation partition is empty")

        parallel = Parallel(n_jobs=self.n_jobs, prefer="threads", return_as="generator")
        return iter(parallel(delayed(self._run_one)(train, held_out, v) for v in variants))

    def run(
        self,
        train: EncodedDataset,
        held_out: EncodedDataset,
        variants: Iterable[ModelVariant],
    ) -> list[VariantOutcome]:
        outcomes: list[VariantOutcome] = []
        for outcome in self.iter_outcomes(train, held_out, variants):
            outcomes.append(outcome)
            if not self.verbose:
                continue
            if outcome.failed:
                self.logger.warning(f"{outcome.variant.name} failed: {outcome.error}")
            else:
                r = outcome.record
                self.logger.info(
                    f"{r.model}: FP={r.false_positives} FN={r.false_negatives} "
                    f"bal_acc={r.balanced_accuracy:.4f}"
                )

        if self.verbose:
            n_failed = sum(o.failed for o in outcomes)
            self.logger.info(f"Evaluated {len(outcomes) - n_failed}/{len(outcomes)} variants")
        return outcomes


def comparison_table(outcomes: Iterable[VariantOutcome]) -> pd.DataFrame:
    """One row per requested variant, failed ones included with their reason."""
    rows = []
    for o in outcomes:
        row = {"model": o.variant.name, "status": o.status.value}
        if o.record is not None:
            row.update(o.record.as_dict())
        else:
            row["remark"] = o.variant.describe()
        row["error"] = o.error
        rows.append(row)

    columns = [
        "model", "status", "false_positives", "false_negatives", "true_positives",
        "true_negatives", "sensitivity", "specificity", "balanced_accuracy", "remark", "error",
    ]
    return pd.DataFrame(rows).reindex(columns=columns)
