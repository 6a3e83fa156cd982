import warnings
from dataclasses import replace
from textwrap import indent
from typing import Any, Dict

from .association import AssociationScreener
from .balancer import Balancer, ClassBalancePolicy
from .comparison import VariantComparison, comparison_table
from .config import Config
from .data_loader import DataLoader, LabeledDataset, train_eval_split
from .encoder import FeatureEncoder
from .hyper_tuner import HyperTuner
from .model_trainer import ModelTrainer, build_variants
from .reporter import Reporter
from .threshold_analyzer import ThresholdAnalyzer
from .utils.logger import get_logger


class PipelineRunner:
    """End-to-end COVID-19 symptom screening study.

    Steps:
      1. Load test records and normalize them into a categorical table
      2. Drop rows with an unresolved ("other") result
      3. Screen pairwise Cramér's V and select features associated with the label
      4. Stratified train/eval split
      5. One-hot encode features (fit on training data only)
      6. Optionally tune hyperparameters of selected variants with Optuna
      7. Train and evaluate every model variant (plain, balanced, cost-weighted, thresholded)
      8. Optionally sweep decision thresholds for one variant
      9. Save tables and figures"""

    def __init__(self, config_path: str):
        self.config = Config.from_yaml(config_path)
        self.logger = get_logger(self.__class__.__name__)
        warnings.filterwarnings(
            "ignore",
            message="X does not have valid feature names",
            category=UserWarning,
            module="sklearn",
        )

    def run(self) -> Dict[str, Any]:
        cfg = self.config
        data_cfg = cfg.data
        eval_cfg = cfg.evaluation
        self.logger.info("Starting COVID-19 screening pipeline")

        table = DataLoader(
            data_cfg["path"],
            sample_size=data_cfg.get("sample_size"),
            drop_columns=data_cfg.get("drop_columns", []),
            missing_values=data_cfg.get("missing_values", ["None", ""]),
        ).load()
        self.logger.info(f"Loaded dataset: {table.shape[0]:,} rows x {table.shape[1]} cols")

        label_col = data_cfg["label_col"]
        dataset = LabeledDataset.from_table(
            table,
            label_col=label_col,
            negative_label=data_cfg.get("negative_label", "negative"),
            positive_label=data_cfg.get("positive_label", "positive"),
            exclude=data_cfg.get("exclude_labels", ["other"]),
        )
        self.logger.info(f"Modeled rows: {len(dataset):,} {dataset.class_counts()}")

        screener = AssociationScreener(verbose=True)
        threshold = float(cfg.screening["threshold"])
        report = screener.screen(dataset.frame, threshold)
        features = report.select_features(label_col)
        if not features:
            raise ValueError(
                f"No column reaches Cramér's V >= {threshold} with '{label_col}'"
            )
        self.logger.info(f"Selected features: {features}")

        train, held_out = train_eval_split(
            dataset,
            eval_size=eval_cfg.get("eval_size", 0.25),
            random_state=eval_cfg.get("random_state", 42),
        )

        encoder = FeatureEncoder(verbose=True)
        encoded_train = encoder.fit_encode(train, features)
        encoded_eval = encoder.encode(held_out)

        policy = ClassBalancePolicy(**cfg.balancing)
        variants = build_variants(cfg.models)

        tune_names = set(eval_cfg.get("tune_variants", []))
        if tune_names:
            tuner = HyperTuner(
                n_trials=eval_cfg.get("n_trials", 30),
                n_splits=eval_cfg.get("n_splits", 5),
                random_state=eval_cfg.get("random_state", 42),
                policy=policy,
            )
            variants = [
                replace(v, params=tuner.tune(encoded_train, v)) if v.name in tune_names else v
                for v in variants
            ]
        else:
            self.logger.info("Hyperparameter tuning disabled")

        comparison = VariantComparison(policy=policy, n_jobs=eval_cfg.get("n_jobs", -1))
        outcomes = comparison.run(encoded_train, encoded_eval, variants)

        table_str = indent(comparison_table(outcomes).to_string(index=False), " " * 4)
        self.logger.info(f"Variant comparison:\n{table_str}")

        out_cfg = cfg.output
        reporter = Reporter(out_cfg.get("dir", "artifacts"))
        reporter.save_association(report)
        reporter.save_comparison(outcomes)

        result: Dict[str, Any] = {
            "report": report,
            "features": features,
            "outcomes": outcomes,
        }

        sweep_name = eval_cfg.get("threshold_variant")
        if eval_cfg.get("analyze_thresholds", False) and sweep_name:
            outcome = next((o for o in outcomes if o.variant.name == sweep_name), None)
            if outcome is None:
                raise ValueError(f"threshold_variant '{sweep_name}' is not a configured model")
            if outcome.failed:
                self.logger.warning(
                    f"Skipping threshold sweep: {sweep_name} failed ({outcome.error})"
                )
            else:
                variant = outcome.variant
                data = Balancer(policy).rebalance(encoded_train) if variant.balanced else encoded_train
                trained = ModelTrainer().train(data, variant)
                best_thr, sweep = ThresholdAnalyzer().run(
                    trained, encoded_eval, eval_cfg.get("max_false_negatives")
                )
                result["best_threshold"] = best_thr
                if out_cfg.get("plots", True):
                    reporter.plot_threshold_sweep(sweep, best_thr)

        if out_cfg.get("plots", True):
            full_report = screener.screen(dataset.frame, 0.0)
            reporter.plot_association_heatmap(full_report, list(dataset.frame.columns))
            reporter.plot_comparison(outcomes)

        self.logger.info("Pipeline finished")
        return result
