"""
COVID-19 Symptom Screening: Association Screening and Model Comparison

This package screens categorical symptom indicators for association with
the test result (pairwise Cramér's V), then compares classifier variants
trained on imbalanced data: plain, undersampled, cost-weighted and
decision-threshold-shifted.

Modules:
    config             : Load YAML configuration safely.
    data_loader        : Read the CSV, normalize categories, split train/eval.
    association        : Pairwise Cramér's V screening and feature selection.
    encoder            : One-hot encoding with a fixed train/eval schema.
    balancer           : Seeded undersampling / oversampling of training data.
    model_trainer      : Model variants, classifier families, cost weights.
    evaluator          : Confusion-matrix metrics per trained variant.
    comparison         : Parallel batch of variants with per-variant failures.
    threshold_analyzer : Sweep decision thresholds.
    hyper_tuner        : Tune hyperparameters with Optuna.
    reporter           : Save tables and figures.
    pipeline           : Orchestrates all components.
    utils.logger       : Unified timestamped console logger.
"""

from .config import Config
from .data_loader import DataLoader, LabeledDataset, UNKNOWN, train_eval_split
from .association import (
    AssociationPair,
    AssociationReport,
    AssociationScreener,
    compute_association,
    screen_all,
)
from .encoder import EncodedDataset, FeatureEncoder, encode_features
from .balancer import Balancer, ClassBalancePolicy, rebalance
from .model_trainer import (
    CostMatrix,
    ModelTrainer,
    ModelVariant,
    TrainedClassifier,
    register_family,
    train_variant,
)
from .evaluator import EvaluationRecord, Evaluator
from .comparison import VariantComparison, VariantOutcome, VariantStatus, comparison_table
from .threshold_analyzer import ThresholdAnalyzer
from .hyper_tuner import HyperTuner
from .reporter import Reporter
from .pipeline import PipelineRunner
from .errors import (
    DegenerateInputError,
    InsufficientMinorityClassError,
    SchemaMismatchError,
    ScreeningError,
    VariantTrainingFailure,
)

__all__ = [
    "Config",
    "DataLoader",
    "LabeledDataset",
    "UNKNOWN",
    "train_eval_split",
    "AssociationPair",
    "AssociationReport",
    "AssociationScreener",
    "compute_association",
    "screen_all",
    "EncodedDataset",
    "FeatureEncoder",
    "encode_features",
    "Balancer",
    "ClassBalancePolicy",
    "rebalance",
    "CostMatrix",
    "ModelTrainer",
    "ModelVariant",
    "TrainedClassifier",
    "register_family",
    "train_variant",
    "EvaluationRecord",
    "Evaluator",
    "VariantComparison",
    "VariantOutcome",
    "VariantStatus",
    "comparison_table",
    "ThresholdAnalyzer",
    "HyperTuner",
    "Reporter",
    "PipelineRunner",
    "DegenerateInputError",
    "InsufficientMinorityClassError",
    "SchemaMismatchError",
    "ScreeningError",
    "VariantTrainingFailure",
]
