import numpy as np
import pandas as pd
import pytest

from covid_screening.data_loader import LabeledDataset
from covid_screening.encoder import FeatureEncoder, encode_features
from covid_screening.errors import SchemaMismatchError


def _dataset(fever, gender, labels):
    frame = pd.DataFrame({"fever": fever, "gender": gender, "corona_result": labels})
    return LabeledDataset(frame, "corona_result")


def _train():
    return _dataset(
        ["1", "0", "unknown", "0"],
        ["male", "female", "female", "male"],
        ["positive", "negative", "negative", "positive"],
    )


def test_fit_encode_produces_one_indicator_per_category():
    encoded = FeatureEncoder().fit_encode(_train(), ["fever", "gender"])

    assert encoded.feature_names == (
        "fever_0", "fever_1", "fever_unknown", "gender_female", "gender_male",
    )
    assert encoded.X.shape == (4, 5)
    assert (encoded.X.sum(axis=1) == 2).all()
    assert encoded.y.tolist() == [1, 0, 0, 1]
    assert encoded.class_counts() == {0: 2, 1: 2}


def test_eval_partition_gets_training_columns_even_with_fewer_categories():
    held_out = _dataset(["1"], ["male"], ["positive"])

    enc_train, enc_eval = encode_features(_train(), held_out, ["fever", "gender"])

    assert enc_eval.feature_names == enc_train.feature_names
    assert list(enc_eval.X.columns) == list(enc_train.X.columns)
    assert enc_eval.X.iloc[0].tolist() == [0, 1, 0, 0, 1]


def test_unseen_eval_category_is_a_schema_mismatch():
    held_out = _dataset(["1"], ["other"], ["positive"])
    with pytest.raises(SchemaMismatchError, match="gender"):
        encode_features(_train(), held_out, ["fever", "gender"])


def test_missing_eval_column_is_a_schema_mismatch():
    encoder = FeatureEncoder()
    encoder.fit_encode(_train(), ["fever", "gender"])
    held_out = LabeledDataset(
        pd.DataFrame({"fever": ["1"], "corona_result": ["negative"]}), "corona_result"
    )
    with pytest.raises(SchemaMismatchError, match="missing"):
        encoder.encode(held_out)


def test_encode_before_fit_raises():
    with pytest.raises(RuntimeError):
        FeatureEncoder().encode(_train())


def test_label_cannot_be_a_feature():
    with pytest.raises(ValueError):
        FeatureEncoder().fit_encode(_train(), ["fever", "corona_result"])


def test_take_builds_new_dataset_without_touching_source():
    encoded = FeatureEncoder().fit_encode(_train(), ["fever"])
    subset = encoded.take(np.array([3, 0]))

    assert subset.y.tolist() == [1, 1]
    assert len(encoded) == 4
    assert encoded.y.tolist() == [1, 0, 0, 1]


def test_eval_partition_reuses_training_rendering_of_numeric_codes():
    train = LabeledDataset(
        pd.DataFrame({"f": [1.0, 0.0, 0.5], "corona_result": ["positive", "negative", "negative"]}),
        "corona_result",
    )
    held_out = LabeledDataset(
        pd.DataFrame({"f": [1.0, 0.0], "corona_result": ["positive", "negative"]}),
        "corona_result",
    )

    enc_train, enc_eval = encode_features(train, held_out, ["f"])

    assert enc_train.feature_names == ("f_0.0", "f_0.5", "f_1.0")
    assert enc_eval.feature_names == enc_train.feature_names
    assert enc_eval.X.to_numpy().tolist() == [[0, 0, 1], [1, 0, 0]]


def test_integral_training_codes_accept_integer_eval_column():
    train = LabeledDataset(
        pd.DataFrame({"f": [1.0, 0.0, np.nan], "corona_result": ["positive", "negative", "negative"]}),
        "corona_result",
    )
    held_out = LabeledDataset(
        pd.DataFrame({"f": [0, 1], "corona_result": ["negative", "positive"]}), "corona_result"
    )

    enc_train, enc_eval = encode_features(train, held_out, ["f"])

    assert enc_train.feature_names == ("f_0", "f_1", "f_unknown")
    assert enc_eval.X.to_numpy().tolist() == [[1, 0, 0], [0, 1, 0]]
