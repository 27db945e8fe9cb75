"""
Prediction helper for the persisted regressor.

Provides `predict(records)` / `predict_one(record)` that:
- Load the persisted model and metadata (cached until the files change).
- Align input columns to the training features, filling missing ones with NaN.
- Encode categorical columns with the levels stored at training time, so
  unseen values are treated as missing.
- Return predictions on the original target scale.
"""

from __future__ import annotations

import json
import logging
import os
from functools import lru_cache
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np
import pandas as pd

from tabular_gbm.config import METADATA_FILE, MODEL_FILE
from tabular_gbm.features.build_features import coerce_numeric, encode_categories
from tabular_gbm.models.train import load_model, predict_target

logger = logging.getLogger(__name__)

Records = Union[Dict[str, Any], List[Dict[str, Any]], pd.DataFrame]


def load_metadata(metadata_file: str = METADATA_FILE) -> Dict[str, Any]:
    if not os.path.exists(metadata_file):
        raise FileNotFoundError(f"Metadata file not found at {metadata_file}")
    with open(metadata_file, encoding="utf-8") as fh:
        return json.load(fh)


@lru_cache(maxsize=4)
def _load_cached(model_file: str, metadata_file: str, model_mtime: float, metadata_mtime: float):
    model = load_model(model_file)
    metadata = load_metadata(metadata_file)
    logger.info(f"Loaded {metadata.get('model_name', 'model')} trained on {metadata.get('trained_on', '?')}")
    return model, metadata


def load_artifacts(model_file: str = MODEL_FILE, metadata_file: str = METADATA_FILE) -> Tuple[Any, Dict[str, Any]]:
    """
    Load the model and its metadata.

    Cached per file pair and modification times, so artifacts rewritten in
    place (e.g. by a new training run) are reloaded.
    """
    if not os.path.exists(model_file):
        raise FileNotFoundError(f"Model file not found at {model_file}")
    if not os.path.exists(metadata_file):
        raise FileNotFoundError(f"Metadata file not found at {metadata_file}")
    return _load_cached(model_file, metadata_file, os.path.getmtime(model_file), os.path.getmtime(metadata_file))


def prepare_input(records: Records, metadata: Dict[str, Any]) -> pd.DataFrame:
    """
    Turn raw records into a frame matching the training features.
    """
    if isinstance(records, pd.DataFrame):
        input_df = records.copy()
    elif isinstance(records, dict):
        input_df = pd.DataFrame([records])
    else:
        input_df = pd.DataFrame(list(records))
    if input_df.empty:
        raise ValueError("No records to predict")

    features = metadata.get("features")
    if not isinstance(features, list):
        raise ValueError("Metadata has no feature list")

    for f in features:
        if f not in input_df.columns:
            input_df[f] = np.nan
    input_df = input_df[features]

    categorical_cols = [c for c in metadata.get("categorical_cols", []) if c in features]
    input_df = encode_categories(input_df, categorical_cols, levels=metadata.get("categorical_levels"))
    return coerce_numeric(input_df, exclude=categorical_cols)


def predict(
    records: Records,
    model=None,
    metadata: Optional[Dict[str, Any]] = None,
    model_file: str = MODEL_FILE,
    metadata_file: str = METADATA_FILE,
) -> np.ndarray:
    """
    Predict the target for one or more records.

    Returns
    -------
    np.ndarray
        Predictions on the original target scale.
    """
    if model is None or metadata is None:
        loaded_model, loaded_metadata = load_artifacts(model_file, metadata_file)
        model = loaded_model if model is None else model
        metadata = loaded_metadata if metadata is None else metadata

    input_df = prepare_input(records, metadata)
    return predict_target(model, input_df, log_target=bool(metadata.get("log_target")))


def predict_one(record: Dict[str, Any], **kwargs) -> float:
    return float(predict(record, **kwargs)[0])


if __name__ == "__main__":
    example = {
        "carat": 0.7,
        "cut": "Ideal",
        "color": "G",
        "clarity": "VS2",
        "depth": 61.5,
        "table": 56.0,
        "x": 5.7,
        "y": 5.72,
        "z": 3.5,
    }
    print("Predicted value:", predict_one(example))
