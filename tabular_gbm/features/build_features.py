"""
Feature engineering utilities: categorical encoding and feature/target split.

"""
import logging
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd
from sklearn.compose import ColumnTransformer, make_column_selector
from sklearn.impute import SimpleImputer
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import FunctionTransformer, OneHotEncoder

from tabular_gbm.config import TARGET_COL

logger = logging.getLogger(__name__)


def infer_categorical_columns(df: pd.DataFrame, exclude: Iterable[str] = ()) -> List[str]:
    """
    Columns holding strings, booleans or pandas categories.
    """
    exclude = set(exclude)
    cols = []
    for c in df.columns:
        if c in exclude:
            continue
        dtype = df[c].dtype
        if (
            isinstance(dtype, pd.CategoricalDtype)
            or pd.api.types.is_object_dtype(dtype)
            or pd.api.types.is_string_dtype(dtype)
            or pd.api.types.is_bool_dtype(dtype)
        ):
            cols.append(c)
    return cols


def _as_labels(s: pd.Series) -> pd.Series:
    # levels are persisted as JSON strings, so values are compared as strings
    if isinstance(s.dtype, pd.CategoricalDtype):
        s = s.astype(object)
    return s.where(s.isna(), s.astype(str))


def encode_categories(
    df: pd.DataFrame,
    categorical_cols: Iterable[str],
    levels: Optional[Dict[str, List[str]]] = None,
) -> pd.DataFrame:
    """
    Cast categorical columns to pandas `category` dtype.

    With `levels`, each column's category set is fixed to the given levels and
    values outside it become missing, so that encoding at prediction time
    matches the encoding seen during training.
    """
    df = df.copy()
    for c in categorical_cols:
        if c not in df.columns:
            raise ValueError(f"Categorical column {c!r} not found")
        labels = _as_labels(df[c])
        if levels and c in levels:
            known = [str(v) for v in levels[c]]
            unseen = labels.notna() & ~labels.isin(known)
            if unseen.any():
                logger.warning(f"{int(unseen.sum())} unseen values in {c!r} treated as missing")
            df[c] = pd.Categorical(labels, categories=known)
        else:
            df[c] = pd.Categorical(labels)
    return df


def category_levels(df: pd.DataFrame, categorical_cols: Iterable[str]) -> Dict[str, List[str]]:
    return {c: [str(v) for v in df[c].cat.categories] for c in categorical_cols}


def coerce_numeric(df: pd.DataFrame, exclude: Iterable[str] = ()) -> pd.DataFrame:
    """
    Coerce every column not in `exclude` to a numeric dtype; junk becomes NaN.
    """
    df = df.copy()
    exclude = set(exclude)
    for c in df.columns:
        if c not in exclude and not pd.api.types.is_numeric_dtype(df[c]):
            had_values = df[c].notna().any()
            df[c] = pd.to_numeric(df[c], errors="coerce")
            if had_values and df[c].isna().all():
                logger.warning(f"Column {c!r} has no numeric values and is now all missing; declare it categorical to keep it")
    return df


def split_features_target(df: pd.DataFrame, target_col: str = TARGET_COL) -> Tuple[pd.DataFrame, pd.Series]:
    if target_col not in df.columns:
        raise ValueError(f"Target column {target_col!r} not found")
    return df.drop(columns=[target_col]), df[target_col]


def build_features(
    df: pd.DataFrame,
    target_col: str = TARGET_COL,
    categorical_cols: Optional[List[str]] = None,
    levels: Optional[Dict[str, List[str]]] = None,
) -> Tuple[pd.DataFrame, List[str]]:
    """
    Apply all feature transforms and return the model-ready frame.

    Parameters
    ----------
    df : pd.DataFrame
        Cleaned dataset including the target column.
    target_col : str
        Regression target; left untouched.
    categorical_cols : list of str or None
        Columns to encode as categories. Inferred from dtypes when None; names
        missing from `df` are skipped.
    levels : dict or None
        Fixed category levels per column (see `encode_categories`).

    Returns
    -------
    df : pd.DataFrame
        Frame with category-typed categoricals and numeric everything else.
    categorical_cols : list of str
        The categorical columns actually encoded.
    """
    if categorical_cols is None:
        categorical_cols = infer_categorical_columns(df, exclude=[target_col])
    else:
        missing = [c for c in categorical_cols if c not in df.columns]
        if missing:
            logger.warning(f"Categorical columns not in data, skipped: {missing}")
        categorical_cols = [c for c in categorical_cols if c in df.columns and c != target_col]

    df = encode_categories(df, categorical_cols, levels=levels)
    df = coerce_numeric(df, exclude=list(categorical_cols) + [target_col])
    logger.info(f"Features built: {df.shape[1] - 1} columns, categorical={categorical_cols}")
    return df, list(categorical_cols)


def _to_object(X):
    return X.astype(object)


def make_preprocessor() -> ColumnTransformer:
    """
    Create a simple ColumnTransformer (numeric imputer + categorical onehot).

    Columns are picked by dtype on fit: category-typed columns are one-hot
    encoded, everything else is median-imputed.
    """
    categorical_transformer = Pipeline(
        steps=[
            ("to_object", FunctionTransformer(_to_object)),
            ("imputer", SimpleImputer(strategy="most_frequent")),
            ("onehot", OneHotEncoder(handle_unknown="ignore", sparse_output=False)),
        ]
    )
    return ColumnTransformer(
        transformers=[
            ("num", SimpleImputer(strategy="median"), make_column_selector(dtype_exclude="category")),
            ("cat", categorical_transformer, make_column_selector(dtype_include="category")),
        ],
        remainder="drop",
    )
