"""
Load, clean and cache a tabular regression dataset.

This module provides `load_data()` which reads the dataset either from a
CSV/parquet file or from a SQL table, applies light cleaning (exported index
columns dropped, target coerced to numeric, rows without a target removed) and
caches the raw frame as a parquet file on disk for faster subsequent access.

The cache lives in `PROCESSED_DATA_DIR` by default. Its name is the source
file (or table) name plus a short hash of the full source path (or database
URL and table), so same-named sources never share a cache file.
"""

import hashlib
import logging
import os
import re
from typing import Optional, Tuple

import pandas as pd
from sklearn.model_selection import train_test_split
from sqlalchemy import create_engine

from tabular_gbm.config import DATA_FILE, PROCESSED_DATA_DIR, RANDOM_SEED, TARGET_COL, TEST_SIZE

logger = logging.getLogger(__name__)

_INDEX_COL = re.compile(r"^Unnamed: \d+$")


def read_table(path: str) -> pd.DataFrame:
    """
    Read a CSV or parquet file into a DataFrame.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Data file not found: {path}")

    ext = os.path.splitext(path)[1].lower()
    if ext in (".csv", ".txt"):
        return pd.read_csv(path)
    if ext in (".parquet", ".pq"):
        return pd.read_parquet(path)
    raise ValueError(f"Unsupported data file type {ext!r} for {path}")


def read_sql_table(db_url: str, table: str) -> pd.DataFrame:
    engine = create_engine(db_url)
    try:
        return pd.read_sql_table(table, engine)
    finally:
        engine.dispose()


def clean_data(df: pd.DataFrame, target_col: str = TARGET_COL) -> pd.DataFrame:
    """
    Standardize a freshly loaded frame.

    Parameters
    ----------
    df : pd.DataFrame
        Raw frame as read from disk or the database.
    target_col : str
        Name of the numeric regression target.

    Returns
    -------
    pd.DataFrame
        Frame without exported index columns, with a float target and no rows
        whose target is missing.
    """
    df = df.copy()
    df.columns = [str(c).strip() for c in df.columns]
    index_cols = [c for c in df.columns if _INDEX_COL.match(c)]
    if index_cols:
        df = df.drop(columns=index_cols)

    if target_col not in df.columns:
        raise ValueError(f"Target column {target_col!r} not found; columns are {list(df.columns)}")

    df[target_col] = pd.to_numeric(df[target_col], errors="coerce")
    n_before = len(df)
    df = df.dropna(subset=[target_col]).reset_index(drop=True)
    dropped = n_before - len(df)
    if dropped:
        logger.warning(f"Dropped {dropped} rows with missing {target_col!r}")

    if df.empty:
        raise ValueError("Dataset is empty after dropping rows without a target")
    df[target_col] = df[target_col].astype(float)
    return df


def _cache_path(cache_dir: str, name: str, source_id: str) -> str:
    # same-named sources in different places get different cache files
    stem = os.path.splitext(os.path.basename(name))[0]
    digest = hashlib.sha1(source_id.encode("utf-8")).hexdigest()[:10]
    return os.path.join(cache_dir, f"{stem}-{digest}.parquet")


def load_data(
    path: Optional[str] = None,
    target_col: str = TARGET_COL,
    use_cache: bool = True,
    db_url: Optional[str] = None,
    table: Optional[str] = None,
    cache_dir: str = PROCESSED_DATA_DIR,
) -> pd.DataFrame:
    """
    Load the dataset from a file, a SQL table or the cached parquet copy.

    Parameters
    ----------
    path : str or None
        CSV/parquet source. Defaults to `DATA_FILE`. Ignored when `db_url` is set.
    target_col : str
        Regression target; used for cleaning.
    use_cache : bool
        If True and an up-to-date parquet cache exists, load from cache.
    db_url, table : str or None
        SQLAlchemy URL and table name to read instead of a file.
    cache_dir : str
        Directory holding the parquet cache.

    Returns
    -------
    pd.DataFrame
        Cleaned dataset.
    """
    if db_url:
        if not table:
            raise ValueError("A table name is required when reading from a database")
        cache_file = _cache_path(cache_dir, table, f"{db_url}::{table}")
        fresh = os.path.exists(cache_file)
    else:
        path = path or DATA_FILE
        if not os.path.exists(path):
            raise FileNotFoundError(f"Data file not found: {path}")
        cache_file = _cache_path(cache_dir, path, os.path.abspath(path))
        fresh = os.path.exists(cache_file) and os.path.getmtime(cache_file) >= os.path.getmtime(path)

    if use_cache and fresh:
        logger.info(f"Loading cached dataset from {cache_file}")
        df = pd.read_parquet(cache_file)
    else:
        if db_url:
            logger.info(f"Loading table {table!r} from database")
            df = read_sql_table(db_url, table)
        else:
            logger.info(f"Loading data from {path}")
            df = read_table(path)
        # the raw frame is cached; cleaning depends on the target and is redone per load
        os.makedirs(cache_dir, exist_ok=True)
        df.to_parquet(cache_file, index=False)

    df = clean_data(df, target_col=target_col)
    logger.info(f"Data loaded. Shape: {df.shape}")
    return df


def split_data(
    df: pd.DataFrame,
    target_col: str = TARGET_COL,
    test_size: float = TEST_SIZE,
    random_state: int = RANDOM_SEED,
) -> Tuple[pd.DataFrame, pd.DataFrame, pd.Series, pd.Series]:
    """
    Shuffled train/test split returning `X_train, X_test, y_train, y_test`.
    """
    if not 0.0 < test_size < 1.0:
        raise ValueError(f"test_size must be between 0 and 1, got {test_size}")
    X = df.drop(columns=[target_col])
    y = df[target_col]
    return train_test_split(X, y, test_size=test_size, random_state=random_state)
