import logging

import numpy as np
import pandas as pd
import pytest

from tabular_gbm.features.build_features import (
    build_features,
    category_levels,
    coerce_numeric,
    encode_categories,
    infer_categorical_columns,
    make_preprocessor,
    split_features_target,
)


def test_infer_categorical_columns(diamonds_df):
    df = diamonds_df.assign(flag=diamonds_df["carat"] > 1)
    assert infer_categorical_columns(df, exclude=["price"]) == ["cut", "color", "flag"]


def test_build_features_infers_and_encodes(diamonds_df):
    df, categorical_cols = build_features(diamonds_df, target_col="price")

    assert categorical_cols == ["cut", "color"]
    assert isinstance(df["cut"].dtype, pd.CategoricalDtype)
    assert set(df["cut"].cat.categories) == {"Fair", "Good", "Ideal"}
    assert pd.api.types.is_float_dtype(df["price"])


def test_build_features_skips_unknown_columns(diamonds_df):
    df, categorical_cols = build_features(diamonds_df, "price", ["cut", "clarity"])

    assert categorical_cols == ["cut"]
    assert not isinstance(df["color"].dtype, pd.CategoricalDtype)
    # a string column not declared categorical is coerced to numeric
    assert df["color"].isna().all()


def test_encode_with_fixed_levels_maps_unseen_to_missing():
    df = pd.DataFrame({"cut": ["Ideal", "Premium", None, "Fair"]})

    out = encode_categories(df, ["cut"], levels={"cut": ["Fair", "Good", "Ideal"]})

    assert list(out["cut"].cat.categories) == ["Fair", "Good", "Ideal"]
    assert out["cut"].isna().tolist() == [False, True, True, False]


def test_encode_casts_non_string_values():
    df = pd.DataFrame({"grade": [1, 2, 1]})
    out = encode_categories(df, ["grade"], levels={"grade": ["1", "2"]})
    assert out["grade"].tolist() == ["1", "2", "1"]


def test_encode_missing_column_raises():
    with pytest.raises(ValueError):
        encode_categories(pd.DataFrame({"a": [1]}), ["b"])


def test_category_levels(diamonds_df):
    df, categorical_cols = build_features(diamonds_df, "price", ["cut", "color"])
    assert category_levels(df, categorical_cols) == {
        "cut": ["Fair", "Good", "Ideal"],
        "color": ["D", "E", "F", "G"],
    }


def test_coerce_numeric():
    df = pd.DataFrame({"a": ["1.5", "x", None], "b": ["keep", "me", "please"]})
    out = coerce_numeric(df, exclude=["b"])
    assert out["a"].iloc[0] == 1.5
    assert np.isnan(out["a"].iloc[1])
    assert out["b"].tolist() == ["keep", "me", "please"]


def test_split_features_target(encoded):
    X, y, _ = encoded
    assert "price" not in X.columns
    assert y.name == "price"
    with pytest.raises(ValueError):
        split_features_target(X, "price")


def test_preprocessor_one_hot_encodes_categories(encoded):
    X, _, _ = encoded
    X = X.copy()
    X.loc[X.index[0], "carat"] = np.nan

    out = make_preprocessor().fit_transform(X)

    # carat, depth + 3 cuts + 4 colors
    assert out.shape == (len(X), 9)
    assert not np.isnan(out).any()


def test_coerce_numeric_warns_when_text_column_is_lost(diamonds_df, caplog):
    with caplog.at_level(logging.WARNING, logger="tabular_gbm.features.build_features"):
        df, _ = build_features(diamonds_df, "price", ["cut"])

    assert df["color"].isna().all()
    assert "'color'" in caplog.text
    assert "'carat'" not in caplog.text
