import math

import numpy as np
import pytest

from tabular_gbm.models.evaluate import (
    baseline_rmse,
    cross_validate_model,
    cv_boosting_rounds,
    regression_metrics,
    rmse,
)


def test_rmse_known_value():
    assert rmse([1, 2, 3], [1, 2, 5]) == pytest.approx(math.sqrt(4 / 3))


def test_rmse_rejects_bad_input():
    with pytest.raises(ValueError):
        rmse([1, 2, 3], [1, 2])
    with pytest.raises(ValueError):
        rmse([], [])


def test_regression_metrics_perfect_fit():
    metrics = regression_metrics([1.0, 2.0, 3.0], [1.0, 2.0, 3.0])
    assert metrics == {"RMSE": 0.0, "MAE": 0.0, "R2": 1.0}


def test_baseline_rmse_uses_training_median():
    assert baseline_rmse([1, 2, 3], [2, 4]) == pytest.approx(math.sqrt(2))


def test_cross_validate_model(encoded, fast_params):
    X, y, _ = encoded

    results = cross_validate_model(X, y, n_splits=3, random_state=0, params=fast_params)

    folds = results["folds"]
    assert list(folds["fold"]) == [1, 2, 3]
    assert folds["n_val"].sum() == len(X)
    assert (folds["n_train"] + folds["n_val"] == len(X)).all()
    mean_rmse, std_rmse = results["RMSE"]
    assert mean_rmse == pytest.approx(folds["RMSE"].mean())
    assert std_rmse >= 0
    # far better than predicting a constant
    assert mean_rmse < 0.5 * y.std()


def test_cross_validate_is_reproducible(encoded, fast_params):
    X, y, _ = encoded
    first = cross_validate_model(X, y, n_splits=3, random_state=7, params=fast_params)
    second = cross_validate_model(X, y, n_splits=3, random_state=7, params=fast_params)
    assert first["RMSE"] == second["RMSE"]


def test_cross_validate_log_target_onehot_with_early_stopping(encoded, fast_params):
    X, y, _ = encoded

    results = cross_validate_model(
        X, y, n_splits=3, params=fast_params, encoding="onehot", log_target=True, early_stopping_rounds=5
    )

    assert np.isfinite(results["RMSE"][0])
    assert results["RMSE"][0] < y.std()


@pytest.mark.parametrize("n_splits", [1, 10_000])
def test_cross_validate_rejects_bad_fold_count(encoded, n_splits):
    X, y, _ = encoded
    with pytest.raises(ValueError, match="n_splits"):
        cross_validate_model(X, y, n_splits=n_splits)


def test_cv_boosting_rounds(encoded):
    X, y, _ = encoded

    history = cv_boosting_rounds(
        X, y, params={"learning_rate": 0.3, "max_depth": 3}, num_boost_round=40, nfold=3, early_stopping_rounds=5
    )

    assert {"train-rmse-mean", "train-rmse-std", "test-rmse-mean", "test-rmse-std"} <= set(history.columns)
    assert 1 <= len(history) <= 40
    assert history["test-rmse-mean"].iloc[-1] < history["test-rmse-mean"].iloc[0]
