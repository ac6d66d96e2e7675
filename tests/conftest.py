import logging

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from edalab import datasets
from edalab.config import settings
from edalab.engine.database import Database


def _diamonds(rng: np.random.Generator, n: int = 240) -> pd.DataFrame:
    carat = np.round(rng.uniform(0.2, 3.4, n), 2)
    x = np.round(carat ** (1 / 3) * 6.4, 2)
    y = x + np.round(rng.normal(0, 0.05, n), 2)
    y[:3] = [0.0, 31.8, 58.9]
    return pd.DataFrame({
        "carat": carat,
        "cut": rng.choice(["Fair", "Good", "Very Good", "Premium", "Ideal"], n),
        "color": rng.choice(list("DEFGHIJ"), n),
        "clarity": rng.choice(["I1", "SI2", "SI1", "VS2", "VS1", "VVS2", "VVS1", "IF"], n),
        "depth": np.round(rng.normal(61.7, 1.4, n), 1),
        "table": np.round(rng.normal(57.5, 2.2, n)),
        "price": (carat * 4000 + rng.integers(300, 900, n)).astype(int),
        "x": x,
        "y": y,
        "z": np.round(x * 0.62, 2),
    })


def _mpg(rng: np.random.Generator, n: int = 120) -> pd.DataFrame:
    classes = ["2seater", "compact", "midsize", "minivan", "pickup", "subcompact", "suv"]
    displ = np.round(rng.uniform(1.6, 7.0, n), 1)
    return pd.DataFrame({
        "manufacturer": rng.choice(["audi", "chevrolet", "ford", "toyota"], n),
        "model": rng.choice(["a4", "corvette", "f150", "camry"], n),
        "displ": displ,
        "year": rng.choice([1999, 2008], n),
        "cyl": rng.choice([4, 6, 8], n),
        "trans": rng.choice(["auto(l4)", "manual(m5)"], n),
        "drv": rng.choice(["4", "f", "r"], n),
        "cty": (30 - displ * 2.5 + rng.integers(0, 4, n)).astype(int),
        "hwy": (40 - displ * 3.0 + rng.integers(0, 6, n)).astype(int),
        "fl": rng.choice(["p", "r"], n),
        "class": rng.choice(classes, n),
    })


def _penguins(rng: np.random.Generator, n: int = 90) -> pd.DataFrame:
    species = rng.choice(["Adelie", "Chinstrap", "Gentoo"], n)
    flipper = np.round(rng.normal(200, 14, n))
    df = pd.DataFrame({
        "species": species,
        "island": rng.choice(["Biscoe", "Dream", "Torgersen"], n),
        "bill_length_mm": np.round(rng.normal(44, 5, n), 1),
        "bill_depth_mm": np.round(rng.normal(17, 2, n), 1),
        "flipper_length_mm": flipper,
        "body_mass_g": np.round(flipper * 21 + rng.normal(0, 300, n)),
        "sex": rng.choice(["female", "male"], n).astype(object),
        "year": rng.choice([2007, 2008, 2009], n),
    })
    df.loc[[3, 40], ["bill_length_mm", "bill_depth_mm", "flipper_length_mm", "body_mass_g"]] = np.nan
    df.loc[[3, 8, 40], "sex"] = None
    return df


def _flights(rng: np.random.Generator, n: int = 200) -> pd.DataFrame:
    month = rng.integers(1, 13, n)
    day = rng.integers(1, 29, n)
    sched_dep = rng.choice([515, 530, 600, 745, 1130, 1459, 1800, 2110], n)
    dep_delay = rng.integers(-10, 200, n).astype(float)
    arr_delay = dep_delay + rng.integers(-40, 20, n)
    dep_time = (sched_dep + dep_delay).astype(float)
    cancelled = rng.random(n) < 0.1
    dep_time[cancelled] = np.nan
    dep_delay[cancelled] = np.nan
    arr_delay[cancelled] = np.nan
    hour, minute = sched_dep // 100, sched_dep % 100
    time_hour = [f"2013-{m:02d}-{d:02d} {h:02d}:00:00" for m, d, h in zip(month, day, hour)]
    air_time = rng.integers(30, 400, n).astype(float)
    air_time[cancelled] = np.nan
    return pd.DataFrame({
        "year": 2013,
        "month": month,
        "day": day,
        "dep_time": dep_time,
        "sched_dep_time": sched_dep,
        "dep_delay": dep_delay,
        "arr_time": dep_time + 200,
        "sched_arr_time": sched_dep + 200,
        "arr_delay": arr_delay,
        "carrier": rng.choice(["UA", "AA", "DL", "B6"], n),
        "flight": rng.integers(1, 3000, n),
        "tailnum": rng.choice(["N14228", "N24211", "N619AA", "N804JB"], n),
        "origin": rng.choice(["EWR", "LGA", "JFK"], n),
        "dest": rng.choice(["IAH", "HOU", "MIA", "ATL", "ORD"], n),
        "air_time": air_time,
        "distance": rng.choice([1400, 1089, 762, 719], n),
        "hour": hour,
        "minute": minute,
        "time_hour": time_hour,
    })


def _nycflights_tables() -> dict:
    return {
        "planes": pd.DataFrame({
            "tailnum": ["N14228", "N24211", "N619AA", "N804JB"],
            "year": [1999, 1998, 1990, 2012],
            "type": "Fixed wing multi engine",
            "manufacturer": ["BOEING", "BOEING", "BOEING", "AIRBUS"],
            "model": ["737-824", "737-824", "757-223", "A320-232"],
            "engines": 2,
            "seats": [149, 149, 178, 200],
            "speed": np.nan,
            "engine": "Turbo-fan",
        }),
        "airlines": pd.DataFrame({
            "carrier": ["AA", "B6", "DL", "UA"],
            "name": ["American Airlines Inc.", "JetBlue Airways", "Delta Air Lines Inc.", "United Air Lines Inc."],
        }),
        "airports": pd.DataFrame({
            "faa": ["ATL", "IAH", "MIA"],
            "name": ["Hartsfield Jackson Atlanta Intl", "George Bush Intercontinental", "Miami Intl"],
            "lat": [33.64, 29.98, 25.79],
            "lon": [-84.43, -95.34, -80.29],
            "alt": [1026, 97, 8],
            "tz": -5,
            "dst": "A",
            "tzone": ["America/New_York", "America/Chicago", "America/New_York"],
        }),
        "weather": pd.DataFrame({
            "origin": ["EWR", "EWR", "JFK"],
            "year": 2013,
            "month": 1,
            "day": 1,
            "hour": [1, 2, 1],
            "temp": [39.02, 39.02, 39.92],
            "humid": [59.37, 61.63, 64.43],
            "time_hour": ["2013-01-01 01:00:00", "2013-01-01 02:00:00", "2013-01-01 01:00:00"],
        }),
    }


@pytest.fixture(scope="session")
def raw_frames() -> dict:
    rng = np.random.default_rng(2013)
    frames = {
        "diamonds": _diamonds(rng),
        "mpg": _mpg(rng),
        "penguins": _penguins(rng),
        "flights": _flights(rng),
    }
    frames.update(_nycflights_tables())
    return frames


@pytest.fixture(autouse=True)
def offline_datasets(monkeypatch, tmp_path, raw_frames):
    """Point data and output dirs at tmp_path and serve datasets from the synthetic frames."""
    monkeypatch.setattr(settings, "data_dir", str(tmp_path / "data"))
    monkeypatch.setattr(settings, "output_dir", str(tmp_path / "output"))
    monkeypatch.setattr(settings, "duckdb_path", "")
    monkeypatch.setattr(settings, "figure_dpi", 40)
    calls = []

    def fake_fetch(info):
        calls.append(info.name)
        df = raw_frames[info.name].copy()
        # Rdatasets csv files carry the R row names as a first column
        df.insert(0, "rownames", np.arange(1, len(df) + 1))
        return df

    monkeypatch.setattr(datasets, "_fetch_rdataset", fake_fetch)
    return calls


@pytest.fixture
def diamonds():
    return datasets.load_dataset("diamonds")


@pytest.fixture
def mpg():
    return datasets.load_dataset("mpg")


@pytest.fixture
def penguins():
    return datasets.load_dataset("penguins")


@pytest.fixture
def flights():
    return datasets.load_dataset("flights")


@pytest.fixture
def db():
    with Database.connect() as database:
        yield database


@pytest.fixture(autouse=True)
def reset_logging():
    # handlers bound to a captured stdout must not outlive the test
    yield
    logging.getLogger("edalab").handlers.clear()
