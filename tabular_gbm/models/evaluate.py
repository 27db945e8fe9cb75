"""
Evaluation utilities: RMSE, hold-out metrics and K-Fold cross-validation.

Usage (from project root)
-------------------------
# Run k-fold CV on the configured dataset and print metrics:
python -m tabular_gbm.models.evaluate

# Or import functions:
from tabular_gbm.models.evaluate import cross_validate_model, rmse
cross_validate_model(X, y, n_splits=5)
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd
import xgboost as xgb
from sklearn.metrics import mean_absolute_error, mean_squared_error, r2_score
from sklearn.model_selection import KFold

from tabular_gbm.config import EARLY_STOPPING_ROUNDS, N_SPLITS, RANDOM_SEED
from tabular_gbm.models.train import native_params, predict_target, train_model

logger = logging.getLogger(__name__)


def _check_pair(y_true, y_pred):
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)
    if y_true.size == 0:
        raise ValueError("Cannot score an empty set of predictions")
    if y_true.shape != y_pred.shape:
        raise ValueError(f"Shape mismatch: y_true {y_true.shape} vs y_pred {y_pred.shape}")
    return y_true, y_pred


def rmse(y_true, y_pred) -> float:
    y_true, y_pred = _check_pair(y_true, y_pred)
    return float(np.sqrt(mean_squared_error(y_true, y_pred)))


def regression_metrics(y_true, y_pred) -> Dict[str, float]:
    """
    RMSE, MAE and R2 of a set of predictions.
    """
    y_true, y_pred = _check_pair(y_true, y_pred)
    return {
        "RMSE": float(np.sqrt(mean_squared_error(y_true, y_pred))),
        "MAE": float(mean_absolute_error(y_true, y_pred)),
        "R2": float(r2_score(y_true, y_pred)) if y_true.size > 1 else float("nan"),
    }


def baseline_rmse(y_train, y_test) -> float:
    """
    RMSE of predicting the training median for every test row.
    """
    baseline_pred = np.full(len(y_test), float(np.median(np.asarray(y_train, dtype=float))))
    return rmse(y_test, baseline_pred)


def cross_validate_model(
    X: pd.DataFrame,
    y: pd.Series,
    n_splits: int = N_SPLITS,
    random_state: int = RANDOM_SEED,
    params: Optional[Dict[str, Any]] = None,
    encoding: str = "native",
    log_target: bool = False,
    early_stopping_rounds: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Run K-fold cross-validation, training a fresh model on every fold.

    Parameters
    ----------
    X, y : pd.DataFrame, pd.Series
        Encoded features and target.
    n_splits : int
        Number of folds, between 2 and the number of rows.
    random_state : int
        Seed for the fold shuffle and the regressor.
    params : dict or None
        XGBoost parameters overriding `XGB_PARAMS`.
    encoding : {"native", "onehot"}
    log_target : bool
        Fit on log1p(y); metrics are still computed on the original scale.
    early_stopping_rounds : int or None
        If set, each fold early-stops on its own validation part.

    Returns
    -------
    results : dict
        ``{"RMSE": (mean, std), "MAE": (mean, std), "folds": DataFrame}`` where
        the fold table has one row per fold.
    """
    n_rows = len(X)
    if n_rows != len(y):
        raise ValueError(f"X has {n_rows} rows but y has {len(y)}")
    if not 2 <= n_splits <= n_rows:
        raise ValueError(f"n_splits must be between 2 and {n_rows}, got {n_splits}")

    kf = KFold(n_splits=n_splits, shuffle=True, random_state=random_state)
    rows = []

    for fold_idx, (train_idx, val_idx) in enumerate(kf.split(X), start=1):
        X_train, X_val = X.iloc[train_idx], X.iloc[val_idx]
        y_train, y_val = y.iloc[train_idx], y.iloc[val_idx]

        fold_kwargs = {}
        if early_stopping_rounds:
            fold_kwargs = {"X_val": X_val, "y_val": y_val, "early_stopping_rounds": early_stopping_rounds}
        model = train_model(
            X_train,
            y_train,
            params=params,
            encoding=encoding,
            log_target=log_target,
            random_state=random_state,
            **fold_kwargs,
        )
        y_pred = predict_target(model, X_val, log_target=log_target)

        fold_rmse = rmse(y_val, y_pred)
        fold_mae = float(mean_absolute_error(y_val, y_pred))
        rows.append(
            {"fold": fold_idx, "n_train": len(train_idx), "n_val": len(val_idx), "RMSE": fold_rmse, "MAE": fold_mae}
        )
        logger.info(f"Fold {fold_idx}/{n_splits}: RMSE={fold_rmse:.2f}, MAE={fold_mae:.2f}")

    folds = pd.DataFrame(rows)
    rmses = folds["RMSE"].to_numpy()
    maes = folds["MAE"].to_numpy()
    logger.info(f"Cross-validation RMSE mean={rmses.mean():.2f}, std={rmses.std():.2f}")
    logger.info(f"Cross-validation MAE  mean={maes.mean():.2f}, std={maes.std():.2f}")

    return {
        "RMSE": (float(rmses.mean()), float(rmses.std())),
        "MAE": (float(maes.mean()), float(maes.std())),
        "folds": folds,
    }


def cv_boosting_rounds(
    X: pd.DataFrame,
    y: pd.Series,
    params: Optional[Dict[str, Any]] = None,
    num_boost_round: Optional[int] = None,
    nfold: int = N_SPLITS,
    early_stopping_rounds: Optional[int] = EARLY_STOPPING_ROUNDS,
    seed: int = RANDOM_SEED,
) -> pd.DataFrame:
    """
    Cross-validated learning curve from ``xgboost.cv``.

    Returns one row per boosting round with ``train-rmse-mean``,
    ``train-rmse-std``, ``test-rmse-mean`` and ``test-rmse-std``; with early
    stopping the table ends at the best round.
    """
    booster_params, default_rounds = native_params(params)
    booster_params.pop("eval_metric", None)
    dtrain = xgb.DMatrix(X, label=y, enable_categorical=True)
    history = xgb.cv(
        booster_params,
        dtrain,
        num_boost_round=num_boost_round or default_rounds,
        nfold=nfold,
        metrics="rmse",
        early_stopping_rounds=early_stopping_rounds,
        seed=seed,
        as_pandas=True,
    )
    best = history["test-rmse-mean"].idxmin()
    logger.info(f"xgboost.cv best round {best + 1}: test RMSE {history['test-rmse-mean'].iloc[best]:.2f}")
    return history


if __name__ == "__main__":
    from tabular_gbm.config import CATEGORICAL_COLS, TARGET_COL, configure_logging
    from tabular_gbm.data.load_data import load_data
    from tabular_gbm.features.build_features import build_features, split_features_target

    configure_logging()
    df, _ = build_features(load_data(), TARGET_COL, CATEGORICAL_COLS)
    X, y = split_features_target(df, TARGET_COL)
    print(f"Running {N_SPLITS}-fold cross-validation...")
    cv_res = cross_validate_model(X, y, n_splits=N_SPLITS)
    print(cv_res["folds"].to_string(index=False))
    print(f"RMSE mean={cv_res['RMSE'][0]:.2f}, std={cv_res['RMSE'][1]:.2f}")
