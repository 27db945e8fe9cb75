"""
Training utilities for the XGBoost regressor.

Two ways of handling categorical columns are supported:

- ``native``: category-typed columns are handed to XGBoost directly
  (``enable_categorical=True``).
- ``onehot``: a ColumnTransformer imputes and one-hot encodes in front of the
  regressor inside a scikit-learn Pipeline.

`make_estimator()` builds unfitted estimators for cross-validation and search;
`train_model()` fits one, optionally with early stopping on a validation set;
`train_booster()` uses the native ``xgboost.train`` API.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Optional, Tuple

import joblib
import numpy as np
import pandas as pd
import xgboost as xgb
from sklearn.compose import TransformedTargetRegressor
from sklearn.pipeline import Pipeline
from xgboost import XGBRegressor

from tabular_gbm.config import (
    EARLY_STOPPING_ROUNDS,
    METADATA_FILE,
    MODEL_FILE,
    NUM_BOOST_ROUND,
    RANDOM_SEED,
    XGB_PARAMS,
)
from tabular_gbm.features.build_features import make_preprocessor

logger = logging.getLogger(__name__)

ENCODINGS = ("native", "onehot")


def _check_encoding(encoding: str):
    if encoding not in ENCODINGS:
        raise ValueError(f"Unknown encoding {encoding!r}; expected one of {ENCODINGS}")


def _make_regressor(params: Optional[Dict[str, Any]], random_state: int, **extra) -> XGBRegressor:
    kwargs = dict(XGB_PARAMS)
    kwargs.update(params or {})
    kwargs.setdefault("random_state", random_state)
    kwargs.setdefault("enable_categorical", True)
    kwargs.update(extra)
    return XGBRegressor(**kwargs)


def make_estimator(
    params: Optional[Dict[str, Any]] = None,
    encoding: str = "native",
    log_target: bool = False,
    random_state: int = RANDOM_SEED,
):
    """
    Build an unfitted estimator for cross-validation and hyperparameter search.

    With `log_target` the regressor is trained on ``log1p(y)`` and predictions
    are mapped back with ``expm1`` by a TransformedTargetRegressor.
    """
    _check_encoding(encoding)
    model = _make_regressor(params, random_state)
    if encoding == "onehot":
        model = Pipeline(steps=[("preprocessor", make_preprocessor()), ("model", model)])
    if log_target:
        model = TransformedTargetRegressor(regressor=model, func=np.log1p, inverse_func=np.expm1)
    return model


def param_prefix(encoding: str = "native", log_target: bool = False) -> str:
    """
    Prefix mapping plain XGBoost parameter names onto the nested estimator.
    """
    _check_encoding(encoding)
    prefix = "model__" if encoding == "onehot" else ""
    if log_target:
        prefix = "regressor__" + prefix
    return prefix


def train_model(
    X_train: pd.DataFrame,
    y_train: pd.Series,
    X_val: Optional[pd.DataFrame] = None,
    y_val: Optional[pd.Series] = None,
    params: Optional[Dict[str, Any]] = None,
    encoding: str = "native",
    log_target: bool = False,
    early_stopping_rounds: Optional[int] = None,
    random_state: int = RANDOM_SEED,
):
    """
    Fit an XGBRegressor, with early stopping when a validation set is given.

    The returned model predicts on the training scale of the target; use
    `predict_target()` to get predictions on the original scale.
    """
    _check_encoding(encoding)
    use_val = X_val is not None and y_val is not None
    extra = {}
    if use_val and early_stopping_rounds:
        extra["early_stopping_rounds"] = early_stopping_rounds
    regressor = _make_regressor(params, random_state, **extra)

    y_fit = np.log1p(y_train) if log_target else y_train
    preprocessor = None
    X_fit = X_train
    if encoding == "onehot":
        preprocessor = make_preprocessor()
        X_fit = preprocessor.fit_transform(X_train)

    fit_kwargs = {}
    if use_val:
        X_eval = preprocessor.transform(X_val) if preprocessor is not None else X_val
        y_eval = np.log1p(y_val) if log_target else y_val
        fit_kwargs = {"eval_set": [(X_eval, y_eval)], "verbose": False}

    regressor.fit(X_fit, y_fit, **fit_kwargs)
    if "early_stopping_rounds" in extra:
        logger.info(f"Early stopping at iteration {regressor.best_iteration} (best score {regressor.best_score:.4f})")

    if preprocessor is not None:
        return Pipeline(steps=[("preprocessor", preprocessor), ("model", regressor)])
    return regressor


def predict_target(model, X: pd.DataFrame, log_target: bool = False) -> np.ndarray:
    preds = np.asarray(model.predict(X), dtype=float)
    if log_target:
        preds = np.expm1(preds)
    return preds


def native_params(params: Optional[Dict[str, Any]] = None) -> Tuple[Dict[str, Any], int]:
    """
    Translate scikit-learn style XGBoost parameters to the ``xgboost.train`` form.

    Returns
    -------
    params : dict
        Booster parameters (``n_jobs`` becomes ``nthread``, ``random_state``
        becomes ``seed``).
    num_boost_round : int
        Taken from ``n_estimators`` when present, else `NUM_BOOST_ROUND`.
    """
    merged = dict(XGB_PARAMS)
    merged.update(params or {})
    num_boost_round = int(merged.pop("n_estimators", NUM_BOOST_ROUND))
    if "n_jobs" in merged:
        n_jobs = merged.pop("n_jobs")
        if n_jobs is not None and n_jobs > 0:
            merged["nthread"] = n_jobs
    if "random_state" in merged:
        merged["seed"] = merged.pop("random_state")
    merged.pop("enable_categorical", None)
    merged.pop("early_stopping_rounds", None)
    return merged, num_boost_round


def train_booster(
    X_train: pd.DataFrame,
    y_train: pd.Series,
    X_val: pd.DataFrame,
    y_val: pd.Series,
    params: Optional[Dict[str, Any]] = None,
    num_boost_round: Optional[int] = None,
    early_stopping_rounds: Optional[int] = EARLY_STOPPING_ROUNDS,
) -> Tuple[xgb.Booster, Dict[str, Dict[str, list]]]:
    """
    Train with the native API on DMatrix inputs and a train/validation watchlist.

    Returns the booster and the per-round evaluation history, keyed as
    ``{"train": {"rmse": [...]}, "validation": {"rmse": [...]}}``.
    """
    booster_params, default_rounds = native_params(params)
    booster_params.setdefault("eval_metric", "rmse")
    dtrain = xgb.DMatrix(X_train, label=y_train, enable_categorical=True)
    dval = xgb.DMatrix(X_val, label=y_val, enable_categorical=True)

    evals_result: Dict[str, Dict[str, list]] = {}
    booster = xgb.train(
        booster_params,
        dtrain,
        num_boost_round=num_boost_round or default_rounds,
        evals=[(dtrain, "train"), (dval, "validation")],
        early_stopping_rounds=early_stopping_rounds,
        evals_result=evals_result,
        verbose_eval=False,
    )
    logger.info(f"Booster trained for {booster.num_boosted_rounds()} rounds")
    return booster, evals_result


def save_model(model, metadata: Dict[str, Any], model_file: str = MODEL_FILE, metadata_file: str = METADATA_FILE):
    os.makedirs(os.path.dirname(os.path.abspath(model_file)), exist_ok=True)
    joblib.dump(model, model_file)
    os.makedirs(os.path.dirname(os.path.abspath(metadata_file)), exist_ok=True)
    with open(metadata_file, "w") as fh:
        json.dump(metadata, fh, indent=4, default=str)
    logger.info(f"Saved model to {model_file} and metadata to {metadata_file}")


def load_model(model_file: str = MODEL_FILE):
    if not os.path.exists(model_file):
        raise FileNotFoundError(f"Model file not found at {model_file}. Run the training pipeline first.")
    return joblib.load(model_file)
