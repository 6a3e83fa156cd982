import logging
from dataclasses import replace
from typing import Any

import numpy as np
import optuna
from sklearn.model_selection import StratifiedKFold

from .balancer import Balancer, ClassBalancePolicy
from .encoder import EncodedDataset
from .evaluator import Evaluator
from .model_trainer import ModelTrainer, ModelVariant
from .utils.logger import get_logger


class HyperTuner:
    """Optuna tuning of a model variant, scored by balanced accuracy over stratified folds."""

    def __init__(
        self,
        n_trials: int = 30,
        n_splits: int = 5,
        random_state: int = 42,
        policy: ClassBalancePolicy = ClassBalancePolicy(),
    ):
        self.n_trials = n_trials
        self.n_splits = n_splits
        self.random_state = random_state
        self.policy = policy
        self.logger = get_logger(self.__class__.__name__)
        self.best_params_: dict[str, Any] | None = None
        self.best_value_: float | None = None

    def _suggest_params(self, trial: optuna.Trial, family: str) -> dict[str, Any]:
        """Define Optuna search space per classifier family."""
        if family == "boosted_trees":
            return {
                "n_estimators": trial.suggest_int("n_estimators", 100, 800, step=100),
                "learning_rate": trial.suggest_float("learning_rate", 0.01, 0.2, log=True),
                "num_leaves": trial.suggest_int("num_leaves", 8, 64),
                "min_child_samples": trial.suggest_int("min_child_samples", 10, 200),
                "reg_lambda": trial.suggest_float("reg_lambda", 1e-8, 10.0, log=True),
            }
        if family == "random_forest":
            return {
                "n_estimators": trial.suggest_int("n_estimators", 100, 600, step=100),
                "max_depth": trial.suggest_int("max_depth", 2, 12),
                "min_samples_leaf": trial.suggest_int("min_samples_leaf", 1, 50),
            }
        if family == "bagged_trees":
            return {
                "n_estimators": trial.suggest_int("n_estimators", 20, 200, step=20),
                "max_samples": trial.suggest_float("max_samples", 0.3, 1.0),
            }
        if family == "decision_tree":
            return {
                "max_depth": trial.suggest_int("max_depth", 2, 12),
                "min_samples_leaf": trial.suggest_int("min_samples_leaf", 1, 50),
            }
        raise ValueError(f"No search space defined for family '{family}'")

    def tune(self, dataset: EncodedDataset, variant: ModelVariant) -> dict[str, Any]:
        """
        Run Optuna optimization and return the best parameters merged over the variant's own.
        Balanced variants are rebalanced inside each training fold only.
        """
        self.logger.info(
            f"Tuning {variant.name} ({self.n_trials} trials, {self.n_splits}-fold CV)"
        )

        trainer = ModelTrainer()
        evaluator = Evaluator()
        skf = StratifiedKFold(n_splits=self.n_splits, shuffle=True, random_state=self.random_state)
        folds = list(skf.split(dataset.X, dataset.y))

        def objective(trial: optuna.Trial) -> float:
            params = dict(variant.params)
            params.update(self._suggest_params(trial, variant.family))
            candidate = replace(variant, params=params)

            scores: list[float] = []
            for fold, (train_idx, val_idx) in enumerate(folds, start=1):
                fold_train = dataset.take(train_idx)
                if candidate.balanced:
                    fold_policy = replace(self.policy, random_state=self.policy.random_state + fold)
                    fold_train = Balancer(fold_policy).rebalance(fold_train)
                trained = trainer.train(fold_train, candidate)
                scores.append(evaluator.evaluate(trained, dataset.take(val_idx)).balanced_accuracy)
            return float(np.nanmean(scores))

        optuna.logging.set_verbosity(logging.WARNING)
        sampler = optuna.samplers.TPESampler(seed=self.random_state)
        study = optuna.create_study(direction="maximize", sampler=sampler)
        study.optimize(objective, n_trials=self.n_trials)

        self.best_params_ = study.best_params
        self.best_value_ = float(study.best_value)

        self.logger.info(f"Best CV balanced accuracy: {self.best_value_:.4f}")
        self.logger.info(f"Best parameters: {self.best_params_}")

        params = dict(variant.params)
        params.update(self.best_params_)
        return params
