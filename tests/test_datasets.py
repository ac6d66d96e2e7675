from pathlib import Path

import pandas as pd
import pytest

from edalab import datasets
from edalab.config import settings
from edalab.datasets import UnknownDatasetError, cache_path, dataset_info, dim, list_datasets, load_dataset


def test_registry():
    names = [info.name for info in list_datasets()]
    assert names == sorted(names)
    assert {"diamonds", "mpg", "penguins", "flights", "planes"} <= set(names)
    assert dataset_info("penguins").package == "palmerpenguins"
    with pytest.raises(UnknownDatasetError) as exc:
        dataset_info("iris")
    assert str(exc.value) == "Unknown dataset: iris"


def test_load_normalises_types(diamonds, penguins, flights):
    assert "rownames" not in diamonds.columns
    assert diamonds["cut"].cat.ordered
    assert list(diamonds["cut"].cat.categories) == ["Fair", "Good", "Very Good", "Premium", "Ideal"]
    assert not penguins["species"].cat.ordered
    assert penguins["sex"].isna().sum() == 3
    assert pd.api.types.is_datetime64_any_dtype(flights["time_hour"])


def test_cache_round_trip(offline_datasets):
    first = load_dataset("mpg")
    assert cache_path("mpg").exists()
    assert cache_path("mpg").parent == Path(settings.data_dir) / "datasets"
    second = load_dataset("mpg")
    assert offline_datasets.count("mpg") == 1
    pd.testing.assert_frame_equal(first, second, check_dtype=False)


def test_cache_disabled(offline_datasets):
    load_dataset("airlines", cache=False)
    load_dataset("airlines", cache=False)
    assert offline_datasets.count("airlines") == 2
    assert not cache_path("airlines").exists()


def test_categories_survive_the_cache(offline_datasets):
    load_dataset("diamonds")
    again = load_dataset("diamonds")
    assert offline_datasets.count("diamonds") == 1
    assert again["clarity"].cat.ordered
    assert again["clarity"].cat.categories[0] == "I1"


def test_dim(mpg):
    assert dim(mpg) == (len(mpg), 11)


def test_normalize_drops_index_columns():
    info = datasets.DATASETS["penguins"]
    raw = pd.DataFrame({"Unnamed: 0": [1, 2], "species": ["Gentoo", "Adelie"]})
    out = datasets.normalize(raw, info)
    assert list(out.columns) == ["species"]
    assert list(out["species"].cat.categories) == ["Adelie", "Chinstrap", "Gentoo"]
