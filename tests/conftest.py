import numpy as np
import pandas as pd
import pytest

# small and fast; enough trees to beat a constant predictor on the synthetic data
FAST_PARAMS = {"n_estimators": 60, "learning_rate": 0.2, "max_depth": 3, "n_jobs": 1}


@pytest.fixture
def diamonds_df():
    rng = np.random.default_rng(0)
    n = 240
    cut = rng.choice(["Fair", "Good", "Ideal"], n)
    color = rng.choice(["D", "E", "F", "G"], n)
    carat = rng.uniform(0.2, 2.5, n)
    depth = rng.normal(61.5, 1.0, n)
    cut_bonus = pd.Series(cut).map({"Fair": 0.0, "Good": 300.0, "Ideal": 800.0}).to_numpy()
    price = 3000.0 * carat + cut_bonus + rng.normal(0.0, 100.0, n)
    return pd.DataFrame(
        {
            "carat": carat,
            "cut": cut,
            "color": color,
            "depth": depth,
            "price": np.round(price, 2),
        }
    )


@pytest.fixture
def diamonds_csv(tmp_path, diamonds_df):
    path = tmp_path / "diamonds.csv"
    diamonds_df.to_csv(path)  # keeps the exported index column, like the public dataset
    return str(path)


@pytest.fixture
def encoded(diamonds_df):
    from tabular_gbm.features.build_features import build_features, split_features_target

    df, categorical_cols = build_features(diamonds_df, "price", ["cut", "color"])
    X, y = split_features_target(df, "price")
    return X, y, categorical_cols


@pytest.fixture
def fast_params():
    return dict(FAST_PARAMS)
