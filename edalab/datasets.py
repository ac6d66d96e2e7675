"""
Sample datasets used throughout the chapters.

The tables come from the R packages they were published in (ggplot2,
palmerpenguins, nycflights13) through the Rdatasets mirror, and are cached
locally as parquet so the network is only touched once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pandas as pd

from edalab.config import settings

logger = logging.getLogger(__name__)


class UnknownDatasetError(KeyError):
    def __str__(self) -> str:
        return f"Unknown dataset: {self.args[0]}"


@dataclass(frozen=True)
class DatasetInfo:
    name: str
    package: str
    title: str
    item: str = ""
    # column -> (levels, ordered)
    categories: Dict[str, Tuple[Tuple[str, ...], bool]] = field(default_factory=dict)
    datetimes: Tuple[str, ...] = ()

    @property
    def rdataset_item(self) -> str:
        return self.item or self.name


DATASETS: Dict[str, DatasetInfo] = {
    "diamonds": DatasetInfo(
        name="diamonds",
        package="ggplot2",
        title="Prices of over 50,000 round cut diamonds",
        categories={
            "cut": (("Fair", "Good", "Very Good", "Premium", "Ideal"), True),
            "color": (("D", "E", "F", "G", "H", "I", "J"), True),
            "clarity": (("I1", "SI2", "SI1", "VS2", "VS1", "VVS2", "VVS1", "IF"), True),
        },
    ),
    "mpg": DatasetInfo(
        name="mpg",
        package="ggplot2",
        title="Fuel economy data from 1999 to 2008 for 38 popular models of cars",
    ),
    "penguins": DatasetInfo(
        name="penguins",
        package="palmerpenguins",
        title="Size measurements for adult foraging penguins near Palmer Station, Antarctica",
        categories={
            "species": (("Adelie", "Chinstrap", "Gentoo"), False),
            "island": (("Biscoe", "Dream", "Torgersen"), False),
            "sex": (("female", "male"), False),
        },
    ),
    "flights": DatasetInfo(
        name="flights",
        package="nycflights13",
        title="All flights that departed NYC in 2013",
        datetimes=("time_hour",),
    ),
    "planes": DatasetInfo(name="planes", package="nycflights13", title="Plane metadata"),
    "airlines": DatasetInfo(name="airlines", package="nycflights13", title="Airline names"),
    "airports": DatasetInfo(name="airports", package="nycflights13", title="Airport metadata"),
    "weather": DatasetInfo(
        name="weather",
        package="nycflights13",
        title="Hourly weather data",
        datetimes=("time_hour",),
    ),
}

NYCFLIGHTS13 = ("airlines", "airports", "flights", "planes", "weather")


def list_datasets() -> List[DatasetInfo]:
    return [DATASETS[k] for k in sorted(DATASETS)]


def dataset_info(name: str) -> DatasetInfo:
    try:
        return DATASETS[name]
    except KeyError:
        raise UnknownDatasetError(name) from None


def cache_path(name: str) -> Path:
    return Path(settings.data_dir) / "datasets" / f"{name}.parquet"


def _fetch_rdataset(info: DatasetInfo) -> pd.DataFrame:
    from statsmodels.datasets import get_rdataset

    cache_dir = Path(settings.data_dir) / "rdatasets"
    cache_dir.mkdir(parents=True, exist_ok=True)
    logger.info("Downloading %s::%s", info.package, info.rdataset_item)
    ds = get_rdataset(info.rdataset_item, info.package, cache=str(cache_dir))
    return ds.data


def normalize(df: pd.DataFrame, info: DatasetInfo) -> pd.DataFrame:
    """Restore the column types the R package ships with."""
    df = df.drop(columns=[c for c in ("rownames", "Unnamed: 0") if c in df.columns])
    df = df.reset_index(drop=True)
    for column, (levels, ordered) in info.categories.items():
        if column in df.columns:
            df[column] = pd.Categorical(df[column], categories=list(levels), ordered=ordered)
    for column in info.datetimes:
        if column in df.columns and not pd.api.types.is_datetime64_any_dtype(df[column]):
            df[column] = pd.to_datetime(df[column], errors="coerce")
    return df


def load_dataset(name: str, cache: Optional[bool] = None) -> pd.DataFrame:
    """Load a named sample dataset as a DataFrame.

    Order: local parquet cache, then the Rdatasets mirror (written back to
    the cache when caching is on).
    """
    info = dataset_info(name)
    use_cache = settings.dataset_cache if cache is None else cache
    path = cache_path(name)

    if use_cache and path.exists():
        logger.debug("Dataset %s from cache %s", name, path)
        return normalize(pd.read_parquet(path), info)

    df = normalize(_fetch_rdataset(info), info)
    if use_cache:
        path.parent.mkdir(parents=True, exist_ok=True)
        df.to_parquet(path, index=False)
        logger.info("Cached %s (%d rows) at %s", name, len(df), path)
    return df


def dim(df: pd.DataFrame) -> Tuple[int, int]:
    return int(df.shape[0]), int(df.shape[1])
