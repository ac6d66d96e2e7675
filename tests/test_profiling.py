import numpy as np
import pandas as pd

from edalab.engine.profiling import build_profile, glimpse, infer_role, json_records, summary, type_abbrev
from edalab.models.datasets import DatasetProfile


def test_infer_role():
    assert infer_role("DOUBLE") == "numeric"
    assert infer_role("BIGINT") == "numeric"
    assert infer_role("TIMESTAMP") == "datetime"
    assert infer_role("VARCHAR") == "categorical"


def test_type_abbrev(penguins, flights):
    assert type_abbrev(penguins["species"]) == "fct"
    assert type_abbrev(penguins["bill_length_mm"]) == "dbl"
    assert type_abbrev(penguins["year"]) == "int"
    assert type_abbrev(flights["carrier"]) == "chr"
    assert type_abbrev(flights["time_hour"]) == "dttm"


def test_glimpse_frame(penguins):
    text = glimpse(penguins, width=60)
    lines = text.splitlines()
    assert lines[0] == f"Rows: {len(penguins)}"
    assert lines[1] == "Columns: 8"
    assert lines[2].startswith("$ species")
    assert "<fct>" in lines[2]
    # values stop at the width, then the ", …" marker
    assert all(len(line) <= 63 for line in lines[2:])
    assert "NA" in text


def test_glimpse_lazy_table(db, flights):
    lazy = db.frame(flights).group_by("month")
    text = glimpse(lazy)
    assert text.splitlines()[0] == f"Rows: {len(flights)}"
    assert "Groups: month" in text


def test_summary(penguins):
    table = summary(penguins)
    assert list(table.columns) == list(penguins.columns)
    mass = [cell for cell in table["body_mass_g"] if cell]
    assert mass[0].startswith("Min.")
    assert mass[-1] == "NA's   : 2"
    species = [cell for cell in table["species"] if cell]
    assert [cell.split(":")[0] for cell in species] == ["Adelie", "Chinstrap", "Gentoo"]
    assert any(cell.startswith("NA's") for cell in table["sex"])


def test_build_profile(db, diamonds):
    db.write_table("diamonds", diamonds)
    profile = build_profile(db.con, '"diamonds"', sample_limit=5)
    assert profile["n_rows"] == len(diamonds)
    assert profile["n_cols"] == 10
    roles = {c["name"]: c["role"] for c in profile["schema"]}
    assert roles["price"] == "numeric"
    assert roles["cut"] == "categorical"
    assert len(profile["sample_rows"]) == 5


def test_json_records_are_json_safe():
    df = pd.DataFrame({"a": [1, np.nan], "t": pd.to_datetime(["2013-01-01", None])})
    records = json_records(df)
    assert records[1]["a"] is None
    assert records[1]["t"] is None
    assert records[0]["t"].startswith("2013-01-01")


def test_profile_model_keeps_schema_key():
    profile = DatasetProfile(name="t", n_rows=1, n_cols=1,
                             schema=[{"name": "a", "dtype": "BIGINT", "role": "numeric"}])
    assert profile.column_schema[0].name == "a"
    assert list(profile.model_dump(by_alias=True)) == ["name", "n_rows", "n_cols", "schema", "sample_rows"]
    assert "schema" not in DatasetProfile.model_fields
