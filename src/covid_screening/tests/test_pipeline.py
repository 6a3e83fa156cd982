import os
from pathlib import Path

import numpy as np
import pandas as pd
import yaml

from covid_screening.comparison import VariantStatus
from covid_screening.config import Config
from covid_screening.model_trainer import build_variants
from covid_screening.pipeline import PipelineRunner

DEFAULT_CONFIG = Path(__file__).resolve().parents[3] / "config" / "default.yaml"


def _write_records(path, n=480):
    rng = np.random.RandomState(0)
    labels = np.where(
        np.arange(n) % 8 == 0, "positive", np.where(np.arange(n) % 8 == 1, "other", "negative")
    )
    positive = labels == "positive"
    fever = np.where(positive, rng.binomial(1, 0.8, n), rng.binomial(1, 0.1, n))
    cough = np.where(positive, rng.binomial(1, 0.4, n), rng.binomial(1, 0.2, n))
    pd.DataFrame(
        {
            "test_date": ["2020-04-30"] * n,
            "cough": cough,
            "fever": fever,
            "gender": np.array(["male", "female", "None"])[np.arange(n) % 3],
            "corona_result": labels,
        }
    ).to_csv(path, index=False)


def _write_config(tmp_path, csv_path, threshold_variant="rf_plain"):
    rf = {"n_estimators": 20, "random_state": 0}
    cfg = {
        "data": {
            "path": str(csv_path),
            "label_col": "corona_result",
            "exclude_labels": ["other"],
            "drop_columns": ["test_date"],
        },
        "screening": {"threshold": 0.1},
        "balancing": {"strategy": "undersample", "ratio": 1.0, "random_state": 42},
        "evaluation": {
            "eval_size": 0.25,
            "random_state": 42,
            "n_jobs": 1,
            "analyze_thresholds": True,
            "threshold_variant": threshold_variant,
        },
        "models": [
            {"name": "rf_plain", "family": "random_forest", "params": rf},
            {"name": "rf_balanced", "family": "random_forest", "balanced": True, "params": rf},
            {"name": "broken", "family": "random_forest", "params": {"n_estimators": -1}},
        ],
        "output": {"dir": str(tmp_path / "artifacts"), "plots": False},
    }
    path = tmp_path / "config.yaml"
    with open(path, "w") as f:
        yaml.safe_dump(cfg, f)
    return path


def test_default_config_loads_and_builds_variants():
    cfg = Config.from_yaml(str(DEFAULT_CONFIG))
    variants = build_variants(cfg.models)

    assert cfg.screening["threshold"] == 0.18
    assert len({v.name for v in variants}) == len(variants)
    assert {0.81, 0.83} <= {v.decision_threshold for v in variants}


def test_pipeline_runs_end_to_end(tmp_path):
    csv_path = tmp_path / "corona_tested_individuals.csv"
    _write_records(csv_path)

    result = PipelineRunner(str(_write_config(tmp_path, csv_path))).run()

    assert result["features"][0] == "fever"
    assert [o.variant.name for o in result["outcomes"]] == ["rf_plain", "rf_balanced", "broken"]
    assert [o.status for o in result["outcomes"]] == [
        VariantStatus.EVALUATED,
        VariantStatus.EVALUATED,
        VariantStatus.FAILED,
    ]
    assert 0.05 <= result["best_threshold"] <= 0.95
    assert os.path.exists(tmp_path / "artifacts" / "comparison.csv")
    assert os.path.exists(tmp_path / "artifacts" / "associations.csv")


def test_threshold_sweep_is_skipped_when_its_variant_failed(tmp_path):
    csv_path = tmp_path / "corona_tested_individuals.csv"
    _write_records(csv_path)
    config_path = _write_config(tmp_path, csv_path, threshold_variant="broken")

    result = PipelineRunner(str(config_path)).run()

    assert [o.status for o in result["outcomes"]][-1] is VariantStatus.FAILED
    assert "best_threshold" not in result
    assert os.path.exists(tmp_path / "artifacts" / "comparison.csv")
    assert os.path.exists(tmp_path / "artifacts" / "associations.csv")
