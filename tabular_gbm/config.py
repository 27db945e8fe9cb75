"""
Central configuration for the project.

This module centralizes environment-independent constants and derived paths
used throughout the codebase (data source, experiment settings, model paths).
A handful of values can be overridden through environment variables.

Constants
---------
BASE_DIR : str
    Absolute path to the project root (parent of the package directory).
DATA_DIR, RAW_DATA_DIR, PROCESSED_DATA_DIR : str
    Paths to data folders.
DATA_FILE : str
    Default tabular dataset (``GBM_DATA_FILE``).
DB_URL, DB_TABLE : str
    Optional SQLAlchemy URL and table name (``GBM_DB_URL``, ``GBM_DB_TABLE``).
TARGET_COL, CATEGORICAL_COLS
    Regression target and the categorical feature columns.
XGB_PARAMS, PARAM_GRID : dict
    Default regressor parameters and the default search grid.
MODELS_DIR, MODEL_FILE, METADATA_FILE : str
    Paths to model artifacts and metadata.
"""

import logging
import os

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
DATA_DIR = os.path.join(BASE_DIR, "data")
RAW_DATA_DIR = os.path.join(DATA_DIR, "raw")
PROCESSED_DATA_DIR = os.path.join(DATA_DIR, "processed")

DATA_FILE = os.getenv("GBM_DATA_FILE", os.path.join(RAW_DATA_DIR, "diamonds.csv"))
DB_URL = os.getenv("GBM_DB_URL")
DB_TABLE = os.getenv("GBM_DB_TABLE", "diamonds")

TARGET_COL = os.getenv("GBM_TARGET", "price")
CATEGORICAL_COLS = ["cut", "color", "clarity"]

RANDOM_SEED = int(os.getenv("GBM_SEED", "42"))
TEST_SIZE = 0.25
# share of the training split held out for early stopping
VALIDATION_SIZE = 0.1
N_SPLITS = 5

# native xgboost.train / xgboost.cv
NUM_BOOST_ROUND = 1000
EARLY_STOPPING_ROUNDS = 50

XGB_PARAMS = {
    "objective": "reg:squarederror",
    "tree_method": "hist",
    "n_estimators": 1000,
    "learning_rate": 0.05,
    "max_depth": 6,
    "subsample": 0.8,
    "colsample_bytree": 0.8,
    "n_jobs": -1,
    "verbosity": 0,
}

PARAM_GRID = {
    "max_depth": [3, 6, 9],
    "learning_rate": [0.05, 0.1],
    "n_estimators": [200, 500],
    "subsample": [0.8, 1.0],
}
N_ITER = 10  # RandomizedSearchCV iterations
SEARCH_N_JOBS = -1

MODELS_DIR = os.path.join(BASE_DIR, "models")
MODEL_FILE = os.path.join(MODELS_DIR, "xgb_regressor.joblib")
METADATA_FILE = os.path.join(MODELS_DIR, "xgb_regressor.metadata.json")

REPORTS_DIR = os.path.join(BASE_DIR, "reports")
CV_RESULTS_FILE = os.path.join(REPORTS_DIR, "cv_folds.csv")
SEARCH_RESULTS_FILE = os.path.join(REPORTS_DIR, "search_results.csv")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level=None):
    """Configure root logging for scripts and the CLI."""
    logging.basicConfig(level=(level or LOG_LEVEL).upper(), format=LOG_FORMAT)
