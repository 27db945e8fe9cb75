"""
End-to-end workflow: load, encode, split, train, cross-validate, tune, save.

Usage (from project root)
-------------------------
python -m tabular_gbm.pipeline --data data/raw/diamonds.csv --target price
tabular-gbm --search random --n-iter 20 --log-target

Steps
-----
1. Load the dataset (file or SQL table, parquet-cached) and encode categoricals.
2. Shuffled train/test split; median baseline RMSE on the test set.
3. Hold-out model with early stopping on a validation slice of the training
   set, scored on the test set.
4. K-fold cross-validation on the training set.
5. Optional ``xgboost.cv`` learning curve.
6. Grid or randomized search on the training set (or none).
7. Final model with the best parameters, evaluated on the test set and saved
   together with its metadata and CSV reports.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import platform
import sys
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
import sklearn
import xgboost as xgb
from sklearn.model_selection import train_test_split

from tabular_gbm import config
from tabular_gbm.data.load_data import load_data, split_data
from tabular_gbm.features.build_features import build_features, category_levels
from tabular_gbm.models.evaluate import baseline_rmse, cross_validate_model, cv_boosting_rounds, regression_metrics
from tabular_gbm.models.train import predict_target, save_model, train_model
from tabular_gbm.models.tune import grid_search, random_search

logger = logging.getLogger(__name__)

SEARCH_MODES = ("grid", "random", "none")


def _versions() -> Dict[str, str]:
    return {
        "python": platform.python_version(),
        "numpy": np.__version__,
        "pandas": pd.__version__,
        "sklearn": sklearn.__version__,
        "xgboost": xgb.__version__,
    }


def _write_csv(df: pd.DataFrame, path: str):
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    df.to_csv(path, index=False)
    logger.info(f"Saved -> {path}")


def run_pipeline(
    data_path: Optional[str] = None,
    target_col: str = config.TARGET_COL,
    categorical_cols: Optional[List[str]] = None,
    db_url: Optional[str] = None,
    table: Optional[str] = None,
    use_cache: bool = True,
    cache_dir: str = config.PROCESSED_DATA_DIR,
    test_size: float = config.TEST_SIZE,
    validation_size: float = config.VALIDATION_SIZE,
    n_splits: int = config.N_SPLITS,
    random_state: int = config.RANDOM_SEED,
    encoding: str = "native",
    log_target: bool = False,
    params: Optional[Dict[str, Any]] = None,
    search: str = "grid",
    param_grid: Optional[Dict[str, list]] = None,
    n_iter: int = config.N_ITER,
    n_jobs: int = config.SEARCH_N_JOBS,
    early_stopping_rounds: Optional[int] = config.EARLY_STOPPING_ROUNDS,
    boosting_cv: bool = False,
    model_file: str = config.MODEL_FILE,
    metadata_file: str = config.METADATA_FILE,
    cv_results_file: str = config.CV_RESULTS_FILE,
    search_results_file: str = config.SEARCH_RESULTS_FILE,
) -> Dict[str, Any]:
    """
    Run the full workflow and persist the final model.

    Returns
    -------
    dict
        The metadata written next to the model.
    """
    if search not in SEARCH_MODES:
        raise ValueError(f"Unknown search mode {search!r}; expected one of {SEARCH_MODES}")
    params = dict(params or {})

    df = load_data(data_path, target_col=target_col, use_cache=use_cache, db_url=db_url, table=table, cache_dir=cache_dir)
    df, categorical_cols = build_features(df, target_col=target_col, categorical_cols=categorical_cols)
    X_train, X_test, y_train, y_test = split_data(df, target_col=target_col, test_size=test_size, random_state=random_state)
    logger.info(f"Train rows: {len(X_train)}, test rows: {len(X_test)}")

    baseline = baseline_rmse(y_train, y_test)
    logger.info(f"Median baseline RMSE: {baseline:.2f}")

    # early stopping watches a slice of the training split; the test split only scores
    X_fit, X_val, y_fit, y_val = train_test_split(
        X_train, y_train, test_size=validation_size, random_state=random_state,
    )
    holdout_model = train_model(
        X_fit, y_fit, X_val, y_val,
        params=params, encoding=encoding, log_target=log_target,
        early_stopping_rounds=early_stopping_rounds, random_state=random_state,
    )
    holdout_metrics = regression_metrics(y_test, predict_target(holdout_model, X_test, log_target=log_target))
    logger.info(f"Hold-out RMSE with default parameters: {holdout_metrics['RMSE']:.2f}")

    cv_res = cross_validate_model(
        X_train, y_train, n_splits=n_splits, random_state=random_state,
        params=params, encoding=encoding, log_target=log_target,
    )
    _write_csv(cv_res["folds"], cv_results_file)

    boosting_summary = None
    if boosting_cv:
        y_curve = np.log1p(y_train) if log_target else y_train
        history = cv_boosting_rounds(
            X_train, y_curve, params=params, nfold=n_splits,
            early_stopping_rounds=early_stopping_rounds, seed=random_state,
        )
        best = int(history["test-rmse-mean"].idxmin())
        boosting_summary = {"best_round": best + 1, "test_rmse_mean": float(history["test-rmse-mean"].iloc[best])}

    search_summary = None
    best_params = dict(params)
    if search != "none":
        search_kwargs = dict(
            param_grid=param_grid, n_splits=n_splits, random_state=random_state,
            encoding=encoding, log_target=log_target, base_params=params, n_jobs=n_jobs,
        )
        if search == "grid":
            _, results = grid_search(X_train, y_train, **search_kwargs)
        else:
            _, results = random_search(X_train, y_train, n_iter=n_iter, **search_kwargs)
        _write_csv(results["cv_results"], search_results_file)
        best_params.update(results["best_params"])
        search_summary = {
            "mode": search,
            "n_candidates": results["n_candidates"],
            "best_params": results["best_params"],
            "best_cv_rmse": results["best_rmse"],
        }

    # search candidates are fit without early stopping, so the final model
    # keeps their n_estimators rather than stopping on the test set
    final_model = train_model(
        X_train, y_train, params=best_params, encoding=encoding,
        log_target=log_target, random_state=random_state,
    )
    final_metrics = regression_metrics(y_test, predict_target(final_model, X_test, log_target=log_target))
    logger.info(f"Final test RMSE={final_metrics['RMSE']:.2f}, MAE={final_metrics['MAE']:.2f}, R2={final_metrics['R2']:.3f}")

    metadata = {
        "model_name": f"XGBoost Regressor ({encoding} categories{', log-target' if log_target else ''})",
        "trained_on": pd.Timestamp.today().strftime("%Y-%m-%d"),
        "target": target_col,
        "features": list(X_train.columns),
        "categorical_cols": categorical_cols,
        "categorical_levels": category_levels(df, categorical_cols),
        "encoding": encoding,
        "log_target": log_target,
        "params": best_params,
        "train_rows": int(len(X_train)),
        "test_rows": int(len(X_test)),
        "validation_rows": int(len(X_val)),
        "metrics": {k: round(v, 4) for k, v in final_metrics.items()},
        "holdout_default_metrics": {k: round(v, 4) for k, v in holdout_metrics.items()},
        "baseline_rmse": round(baseline, 4),
        "cv": {"n_splits": n_splits, "RMSE": list(cv_res["RMSE"]), "MAE": list(cv_res["MAE"])},
        "boosting_cv": boosting_summary,
        "search": search_summary,
        "versions": _versions(),
        "model_file": os.path.basename(model_file),
    }
    save_model(final_model, metadata, model_file=model_file, metadata_file=metadata_file)
    return metadata


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tabular-gbm",
        description="Train, cross-validate and tune an XGBoost regressor on a tabular dataset.",
    )
    parser.add_argument("--data", default=None, help="CSV or parquet file (default: GBM_DATA_FILE)")
    parser.add_argument("--db-url", default=config.DB_URL, help="SQLAlchemy URL to read a table from instead")
    parser.add_argument("--table", default=config.DB_TABLE, help="Table name used with --db-url")
    parser.add_argument("--target", default=config.TARGET_COL, help="Regression target column")
    parser.add_argument(
        "--categorical", nargs="*", default=None,
        help="Categorical columns (default: configured columns; pass no names to infer from dtypes)",
    )
    parser.add_argument("--no-cache", action="store_true", help="Ignore the parquet cache")
    parser.add_argument("--test-size", type=float, default=config.TEST_SIZE)
    parser.add_argument("--n-splits", type=int, default=config.N_SPLITS)
    parser.add_argument("--seed", type=int, default=config.RANDOM_SEED)
    parser.add_argument("--encoding", choices=("native", "onehot"), default="native")
    parser.add_argument("--log-target", action="store_true", help="Train on log1p(target)")
    parser.add_argument("--params", type=json.loads, default=None, help="JSON object of XGBoost parameters")
    parser.add_argument("--search", choices=SEARCH_MODES, default="grid")
    parser.add_argument("--grid", type=json.loads, default=None, help="JSON object {param: [values...]}")
    parser.add_argument("--n-iter", type=int, default=config.N_ITER)
    parser.add_argument("--n-jobs", type=int, default=config.SEARCH_N_JOBS)
    parser.add_argument("--early-stopping-rounds", type=int, default=config.EARLY_STOPPING_ROUNDS)
    parser.add_argument("--boosting-cv", action="store_true", help="Also run xgboost.cv for a learning curve")
    parser.add_argument("--model-file", default=config.MODEL_FILE)
    parser.add_argument("--metadata-file", default=config.METADATA_FILE)
    parser.add_argument("--reports-dir", default=config.REPORTS_DIR)
    parser.add_argument("--cache-dir", default=config.PROCESSED_DATA_DIR)
    parser.add_argument("--log-level", default=config.LOG_LEVEL)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config.configure_logging(args.log_level)

    if args.categorical is None:
        categorical_cols = config.CATEGORICAL_COLS
    else:
        categorical_cols = args.categorical or None

    try:
        metadata = run_pipeline(
            data_path=args.data,
            target_col=args.target,
            categorical_cols=categorical_cols,
            db_url=args.db_url,
            table=args.table,
            use_cache=not args.no_cache,
            cache_dir=args.cache_dir,
            test_size=args.test_size,
            n_splits=args.n_splits,
            random_state=args.seed,
            encoding=args.encoding,
            log_target=args.log_target,
            params=args.params,
            search=args.search,
            param_grid=args.grid,
            n_iter=args.n_iter,
            n_jobs=args.n_jobs,
            early_stopping_rounds=args.early_stopping_rounds,
            boosting_cv=args.boosting_cv,
            model_file=args.model_file,
            metadata_file=args.metadata_file,
            cv_results_file=os.path.join(args.reports_dir, os.path.basename(config.CV_RESULTS_FILE)),
            search_results_file=os.path.join(args.reports_dir, os.path.basename(config.SEARCH_RESULTS_FILE)),
        )
    except (FileNotFoundError, ValueError) as exc:
        logger.error(str(exc))
        return 2

    print(json.dumps(metadata["metrics"], indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
