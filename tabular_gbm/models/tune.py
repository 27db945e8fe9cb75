"""
Hyperparameter tuning with cross-validated grid and randomized search.

Each candidate in the grid is scored by K-fold cross-validated RMSE on the
original target scale; the best candidate is refit on all rows passed in.
Parameter names in grids and results are plain XGBoost names
(``max_depth``, ``learning_rate``...); the prefix needed to reach the regressor
inside a Pipeline or TransformedTargetRegressor is added and stripped here.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

import pandas as pd
from sklearn.model_selection import GridSearchCV, KFold, ParameterGrid, RandomizedSearchCV

from tabular_gbm.config import N_ITER, N_SPLITS, PARAM_GRID, RANDOM_SEED, SEARCH_N_JOBS
from tabular_gbm.models.train import make_estimator, param_prefix

logger = logging.getLogger(__name__)

SCORING = "neg_root_mean_squared_error"


def grid_size(param_grid: Dict[str, list]) -> int:
    if not param_grid:
        raise ValueError("Parameter grid is empty")
    empty = [k for k, v in param_grid.items() if len(v) == 0]
    if empty:
        raise ValueError(f"Parameter grid has no values for {empty}")
    return len(ParameterGrid(param_grid))


def _check_folds(X, n_splits: int):
    if not 2 <= n_splits <= len(X):
        raise ValueError(f"n_splits must be between 2 and {len(X)}, got {n_splits}")


def search_summary(search, prefix: str = "") -> pd.DataFrame:
    """
    One row per candidate: parameter values, mean/std CV RMSE and rank.
    """
    cv = pd.DataFrame(search.cv_results_)
    param_cols = [c for c in cv.columns if c.startswith("param_")]
    summary = cv[param_cols].rename(columns=lambda c: c[len("param_") + len(prefix):])
    summary["mean_rmse"] = -cv["mean_test_score"]
    summary["std_rmse"] = cv["std_test_score"]
    summary["rank"] = cv["rank_test_score"]
    return summary.sort_values(["rank", "mean_rmse"]).reset_index(drop=True)


def _results(search, prefix: str, n_candidates: int) -> Dict[str, Any]:
    best_params = {k[len(prefix):]: v for k, v in search.best_params_.items()}
    results = {
        "best_params": best_params,
        "best_rmse": float(-search.best_score_),
        "n_candidates": n_candidates,
        "cv_results": search_summary(search, prefix),
    }
    logger.info(f"Best parameters: {best_params}")
    logger.info(f"Best CV RMSE: {results['best_rmse']:.4f}")
    return results


def grid_search(
    X: pd.DataFrame,
    y: pd.Series,
    param_grid: Optional[Dict[str, list]] = None,
    n_splits: int = N_SPLITS,
    random_state: int = RANDOM_SEED,
    encoding: str = "native",
    log_target: bool = False,
    base_params: Optional[Dict[str, Any]] = None,
    n_jobs: int = SEARCH_N_JOBS,
    verbose: int = 0,
) -> Tuple[Any, Dict[str, Any]]:
    """
    Exhaustive search over `param_grid`, every candidate scored by K-fold CV.

    Parameters
    ----------
    X, y : pd.DataFrame, pd.Series
        Encoded features and target.
    param_grid : dict or None
        ``{parameter: [values...]}`` using plain XGBoost names. Defaults to
        `PARAM_GRID`.
    n_splits, random_state : int
        Shuffled KFold configuration.
    encoding, log_target
        See `make_estimator`.
    base_params : dict or None
        Fixed parameters for every candidate, overridden by the grid.
    n_jobs : int
        Parallel candidate/fold fits.

    Returns
    -------
    best_estimator
        Best candidate refit on all of `X`, `y`.
    results : dict
        ``best_params``, ``best_rmse``, ``n_candidates`` and ``cv_results``.
    """
    param_grid = PARAM_GRID if param_grid is None else param_grid
    n_candidates = grid_size(param_grid)
    _check_folds(X, n_splits)

    prefix = param_prefix(encoding, log_target)
    estimator = make_estimator(base_params, encoding=encoding, log_target=log_target, random_state=random_state)
    cv = KFold(n_splits=n_splits, shuffle=True, random_state=random_state)
    logger.info(f"Grid search over {n_candidates} candidates x {n_splits} folds")

    search = GridSearchCV(
        estimator=estimator,
        param_grid={prefix + k: list(v) for k, v in param_grid.items()},
        scoring=SCORING,
        cv=cv,
        n_jobs=n_jobs,
        refit=True,
        verbose=verbose,
    )
    search.fit(X, y)
    return search.best_estimator_, _results(search, prefix, n_candidates)


def random_search(
    X: pd.DataFrame,
    y: pd.Series,
    param_grid: Optional[Dict[str, list]] = None,
    n_iter: int = N_ITER,
    n_splits: int = N_SPLITS,
    random_state: int = RANDOM_SEED,
    encoding: str = "native",
    log_target: bool = False,
    base_params: Optional[Dict[str, Any]] = None,
    n_jobs: int = SEARCH_N_JOBS,
    verbose: int = 0,
) -> Tuple[Any, Dict[str, Any]]:
    """
    Randomized search sampling `n_iter` candidates from `param_grid`.

    Same contract as `grid_search`; `n_iter` is capped at the grid size.
    """
    param_grid = PARAM_GRID if param_grid is None else param_grid
    n_candidates = min(n_iter, grid_size(param_grid))
    _check_folds(X, n_splits)

    prefix = param_prefix(encoding, log_target)
    estimator = make_estimator(base_params, encoding=encoding, log_target=log_target, random_state=random_state)
    cv = KFold(n_splits=n_splits, shuffle=True, random_state=random_state)
    logger.info(f"Randomized search over {n_candidates} candidates x {n_splits} folds")

    search = RandomizedSearchCV(
        estimator=estimator,
        param_distributions={prefix + k: list(v) for k, v in param_grid.items()},
        n_iter=n_candidates,
        scoring=SCORING,
        cv=cv,
        n_jobs=n_jobs,
        random_state=random_state,
        refit=True,
        verbose=verbose,
    )
    search.fit(X, y)
    return search.best_estimator_, _results(search, prefix, n_candidates)
