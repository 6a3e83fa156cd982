import math

import numpy as np
import pandas as pd
import pytest
from sklearn.svm import SVC

from covid_screening.balancer import ClassBalancePolicy
from covid_screening.comparison import VariantComparison, VariantStatus, comparison_table
from covid_screening.data_loader import LabeledDataset
from covid_screening.encoder import encode_features
from covid_screening.model_trainer import CostMatrix, ModelVariant, register_family


def _symptom_dataset(n_neg, n_pos, seed):
    rng = np.random.RandomState(seed)

    def draw(p_neg, p_pos):
        return np.concatenate(
            [rng.binomial(1, p_neg, n_neg), rng.binomial(1, p_pos, n_pos)]
        ).astype(str)

    frame = pd.DataFrame(
        {
            "fever": draw(0.1, 0.7),
            "cough": draw(0.15, 0.6),
            "corona_result": ["negative"] * n_neg + ["positive"] * n_pos,
        }
    )
    return LabeledDataset(frame, "corona_result")


def _partitions():
    return encode_features(
        _symptom_dataset(400, 40, seed=0),
        _symptom_dataset(100, 10, seed=1),
        ["fever", "cough"],
    )


def _four_variants():
    rf = {"n_estimators": 20, "random_state": 0}
    return [
        ModelVariant("rf_plain", "random_forest", params=rf),
        ModelVariant("rf_balanced", "random_forest", balanced=True, params=rf),
        ModelVariant("broken", "random_forest", params={"n_estimators": -5}),
        ModelVariant(
            "tree_cost", "decision_tree", cost_matrix=CostMatrix(false_negative=3.0),
            decision_threshold=0.81, params={"random_state": 0},
        ),
    ]


@pytest.mark.parametrize("n_jobs", [1, 2])
def test_one_failure_does_not_abort_the_batch(n_jobs):
    train, held_out = _partitions()

    outcomes = VariantComparison(n_jobs=n_jobs).run(train, held_out, _four_variants())

    assert [o.variant.name for o in outcomes] == ["rf_plain", "rf_balanced", "broken", "tree_cost"]
    failed = [o for o in outcomes if o.failed]
    assert len(failed) == 1
    assert failed[0].variant.name == "broken"
    assert failed[0].record is None
    assert "broken" in failed[0].error
    assert all(o.record is not None for o in outcomes if not o.failed)


def test_results_are_reproducible():
    train, held_out = _partitions()
    comparison = VariantComparison(policy=ClassBalancePolicy(random_state=3), n_jobs=2)

    first = comparison.run(train, held_out, _four_variants())
    second = comparison.run(train, held_out, _four_variants())

    assert [o.record for o in first] == [o.record for o in second]


def test_balanced_variant_without_minority_rows_fails_alone():
    train, held_out = _partitions()
    only_negatives = train.take(np.where(train.y == 0)[0])
    variants = [
        ModelVariant("rf_balanced", "random_forest", balanced=True, params={"n_estimators": 5}),
        ModelVariant("rf_plain", "random_forest", params={"n_estimators": 5}),
    ]

    outcomes = VariantComparison(n_jobs=1).run(only_negatives, held_out, variants)

    assert [o.status for o in outcomes] == [VariantStatus.FAILED, VariantStatus.FAILED]
    assert "rebalance" in outcomes[0].error
    assert "single class" in outcomes[1].error


def test_outcomes_can_be_consumed_lazily():
    train, held_out = _partitions()
    outcomes = VariantComparison(n_jobs=1).iter_outcomes(train, held_out, _four_variants())

    first = next(outcomes)

    assert first.variant.name == "rf_plain"
    assert first.status is VariantStatus.EVALUATED


def test_batch_preconditions_fail_before_training():
    train, held_out = _partitions()
    comparison = VariantComparison(n_jobs=1)

    with pytest.raises(ValueError, match="At least one"):
        comparison.run(train, held_out, [])
    with pytest.raises(ValueError, match="Duplicate"):
        comparison.run(train, held_out, [ModelVariant("a"), ModelVariant("a")])


def test_comparison_table_lists_every_variant():
    train, held_out = _partitions()
    outcomes = VariantComparison(n_jobs=1).run(train, held_out, _four_variants())

    table = comparison_table(outcomes)

    assert len(table) == 4
    assert table["status"].tolist() == ["evaluated", "evaluated", "failed", "evaluated"]
    broken = table.set_index("model").loc["broken"]
    assert math.isnan(broken["balanced_accuracy"])
    assert isinstance(broken["error"], str)
    assert broken["remark"] == "random_forest, unbalanced"


class _BrokenPredictor:
    """Fits fine but cannot score new rows."""

    def fit(self, X, y, sample_weight=None):
        self.classes_ = np.array([0, 1])
        return self

    def predict_proba(self, X):
        raise RuntimeError("scoring backend unavailable")


register_family("svc", lambda params: SVC(**params))
register_family("broken_predictor", lambda params: _BrokenPredictor())


def test_families_that_cannot_score_are_marked_failed():
    train, held_out = _partitions()
    variants = [
        ModelVariant("rf", "random_forest", params={"n_estimators": 10, "random_state": 0}),
        ModelVariant("svc", "svc"),
        ModelVariant("no_scores", "broken_predictor"),
        ModelVariant("tree", "decision_tree", params={"random_state": 0}),
    ]

    outcomes = VariantComparison(n_jobs=1).run(train, held_out, variants)

    assert len(outcomes) == 4
    assert [o.status for o in outcomes] == [
        VariantStatus.EVALUATED,
        VariantStatus.FAILED,
        VariantStatus.FAILED,
        VariantStatus.EVALUATED,
    ]
    assert "predict_proba" in outcomes[1].error
    assert "scoring backend unavailable" in outcomes[2].error
