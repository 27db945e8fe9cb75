import os

import numpy as np
import pandas as pd
import pytest
from sqlalchemy import create_engine

from tabular_gbm.data import load_data as load_data_module
from tabular_gbm.data.load_data import clean_data, load_data, read_table, split_data


def test_load_csv_drops_index_column_and_caches(diamonds_csv, tmp_path):
    cache_dir = tmp_path / "processed"
    df = load_data(diamonds_csv, target_col="price", use_cache=True, cache_dir=str(cache_dir))

    assert "Unnamed: 0" not in df.columns
    assert list(df.columns) == ["carat", "cut", "color", "depth", "price"]
    assert df["price"].dtype == float
    assert len(list(cache_dir.glob("diamonds-*.parquet"))) == 1


def test_load_uses_fresh_cache(diamonds_csv, tmp_path, monkeypatch):
    cache_dir = str(tmp_path / "processed")
    first = load_data(diamonds_csv, target_col="price", cache_dir=cache_dir)

    def fail(path):
        raise AssertionError("source should not be re-read")

    monkeypatch.setattr(load_data_module, "read_table", fail)
    second = load_data(diamonds_csv, target_col="price", cache_dir=cache_dir)
    pd.testing.assert_frame_equal(first, second)

    with pytest.raises(AssertionError):
        load_data(diamonds_csv, target_col="price", use_cache=False, cache_dir=cache_dir)


def test_newer_source_invalidates_cache(diamonds_csv, tmp_path, monkeypatch):
    cache_dir = str(tmp_path / "processed")
    load_data(diamonds_csv, target_col="price", cache_dir=cache_dir)
    cache_file = next((tmp_path / "processed").glob("diamonds-*.parquet"))
    newer = os.path.getmtime(cache_file) + 10
    os.utime(diamonds_csv, (newer, newer))

    calls = []
    real_read_table = load_data_module.read_table

    def counting_read_table(path):
        calls.append(path)
        return real_read_table(path)

    monkeypatch.setattr(load_data_module, "read_table", counting_read_table)
    load_data(diamonds_csv, target_col="price", cache_dir=cache_dir)

    assert calls == [diamonds_csv]


def test_same_named_sources_do_not_share_cache(tmp_path):
    first_dir, second_dir = tmp_path / "a", tmp_path / "b"
    first_dir.mkdir()
    second_dir.mkdir()
    first = first_dir / "diamonds.csv"
    second = second_dir / "diamonds.csv"
    first.write_text("carat,price\n0.5,10\n0.7,20\n")
    second.write_text("carat,price\n0.3,70\n0.4,80\n0.6,90\n")
    older = os.path.getmtime(first) - 100
    os.utime(second, (older, older))
    cache_dir = str(tmp_path / "processed")

    df_first = load_data(str(first), target_col="price", cache_dir=cache_dir)
    df_second = load_data(str(second), target_col="price", cache_dir=cache_dir)

    assert df_first["price"].tolist() == [10.0, 20.0]
    assert df_second["price"].tolist() == [70.0, 80.0, 90.0]
    assert len(list((tmp_path / "processed").glob("diamonds-*.parquet"))) == 2


def test_cached_frame_is_cleaned_for_each_target(tmp_path):
    path = tmp_path / "small.csv"
    path.write_text("carat,price\n0.5,100\n,200\n0.9,\n")
    cache_dir = str(tmp_path / "processed")

    by_price = load_data(str(path), target_col="price", cache_dir=cache_dir)
    by_carat = load_data(str(path), target_col="carat", cache_dir=cache_dir)

    assert by_price["price"].tolist() == [100.0, 200.0]
    assert by_carat["carat"].tolist() == [0.5, 0.9]
    assert by_carat["carat"].notna().all()


def test_rows_without_target_are_dropped(tmp_path):
    path = tmp_path / "small.csv"
    path.write_text("carat,cut,price\n0.5,Ideal,1000\n0.7,Good,\n0.9,Fair,n/a\n1.1,Ideal,4000\n")

    df = load_data(str(path), target_col="price", use_cache=False, cache_dir=str(tmp_path))

    assert len(df) == 2
    assert df["price"].tolist() == [1000.0, 4000.0]


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_data(str(tmp_path / "nope.csv"), cache_dir=str(tmp_path))


def test_unsupported_extension_raises(tmp_path):
    path = tmp_path / "data.json"
    path.write_text("{}")
    with pytest.raises(ValueError, match="Unsupported"):
        read_table(str(path))


def test_missing_target_raises(diamonds_df):
    with pytest.raises(ValueError, match="Target column"):
        clean_data(diamonds_df, target_col="value")


def test_all_targets_missing_raises():
    df = pd.DataFrame({"a": [1, 2], "price": [np.nan, np.nan]})
    with pytest.raises(ValueError, match="empty"):
        clean_data(df, target_col="price")


def test_load_from_sql_table(diamonds_df, tmp_path):
    db_url = f"sqlite:///{tmp_path / 'gbm.sqlite'}"
    engine = create_engine(db_url)
    diamonds_df.to_sql("diamonds", engine, index=False)
    engine.dispose()

    df = load_data(db_url=db_url, table="diamonds", target_col="price", cache_dir=str(tmp_path / "cache"))

    assert len(df) == len(diamonds_df)
    assert len(list((tmp_path / "cache").glob("diamonds-*.parquet"))) == 1


def test_sql_requires_table(tmp_path):
    with pytest.raises(ValueError, match="table"):
        load_data(db_url="sqlite://", table=None, cache_dir=str(tmp_path))


def test_split_data_sizes(diamonds_df):
    X_train, X_test, y_train, y_test = split_data(diamonds_df, "price", test_size=0.25, random_state=1)

    assert len(X_test) == 60
    assert len(X_train) == 180
    assert "price" not in X_train.columns
    assert set(X_train.index).isdisjoint(X_test.index)


@pytest.mark.parametrize("test_size", [0.0, 1.0, 1.5])
def test_split_data_rejects_bad_test_size(diamonds_df, test_size):
    with pytest.raises(ValueError):
        split_data(diamonds_df, "price", test_size=test_size)
