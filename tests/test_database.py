import pandas as pd
import pytest

from edalab.datasets import NYCFLIGHTS13
from edalab.engine.database import Database, available_cores
from edalab.transformers.dsl import col


def test_write_list_read(db, mpg):
    db.write_table("mpg", mpg)
    assert db.list_tables() == ["mpg"]
    back = db.read_table("mpg")
    assert back.shape == mpg.shape
    with pytest.raises(ValueError, match="already exists"):
        db.write_table("mpg", mpg)
    db.write_table("mpg", mpg.head(5), overwrite=True)
    assert len(db.read_table("mpg")) == 5
    db.write_table("mpg", mpg.head(5), append=True)
    assert len(db.read_table("mpg")) == 10


def test_factor_levels_survive_the_round_trip(db, diamonds):
    db.write_table("diamonds", diamonds)
    back = db.read_table("diamonds")
    assert list(back["cut"].cat.categories) == ["Fair", "Good", "Very Good", "Premium", "Ideal"]


def test_get_query(db, diamonds):
    db.write_table("diamonds", diamonds)
    big = db.get_query("SELECT carat, cut, clarity, color, price FROM diamonds WHERE price > ?", [10000])
    assert list(big.columns) == ["carat", "cut", "clarity", "color", "price"]
    assert (big["price"] > 10000).all()


def test_unknown_table(db):
    with pytest.raises(ValueError, match="does not exist"):
        db.tbl("nope")
    with pytest.raises(ValueError):
        db.read_table("nope")


def test_tbl_is_lazy(db, diamonds):
    db.write_table("diamonds", diamonds)
    diamonds_db = db.tbl("diamonds")
    assert diamonds_db.show_query() == 'SELECT * FROM "diamonds"'
    big = diamonds_db.filter(col("price") > 1500).select("carat:clarity", "price")
    assert big.columns == ["carat", "cut", "color", "clarity", "price"]
    out = big.collect()
    assert isinstance(out, pd.DataFrame)
    assert len(out) == int((diamonds["price"] > 1500).sum())


def test_copy_datasets(db):
    written = db.copy_datasets(NYCFLIGHTS13)
    assert written == list(NYCFLIGHTS13)
    assert db.list_tables() == sorted(NYCFLIGHTS13)
    # existing tables are kept
    assert db.copy_datasets(["flights"]) == []


def test_persistent_database(tmp_path, mpg):
    path = tmp_path / "duckdb" / "cars.duckdb"
    with Database.connect(path) as disk:
        assert not disk.engine.is_memory
        disk.write_table("mpg", mpg)
    with Database.connect(path) as disk:
        assert disk.list_tables() == ["mpg"]


def test_closed_connection():
    db = Database.connect()
    db.close()
    with pytest.raises(ValueError, match="closed"):
        db.list_tables()
    # closing twice is fine
    db.close()


def test_read_csv_and_parquet(db, tmp_path, mpg):
    csv = tmp_path / "mpg.csv"
    mpg.to_csv(csv, index=False)
    db.read_csv("mpg_csv", csv)
    assert db.tbl("mpg_csv").count_rows() == len(mpg)
    pq = tmp_path / "mpg.parquet"
    mpg.to_parquet(pq, index=False)
    db.read_parquet("mpg_pq", pq)
    assert db.has_table("mpg_pq")


def test_available_cores():
    assert available_cores() >= 1


def test_schema_changes_refresh_column_lists(db):
    db.execute("CREATE TABLE t (a INTEGER)")
    assert db.tbl("t").columns == ["a"]
    db.execute("ALTER TABLE t ADD COLUMN b INTEGER")
    assert db.tbl("t").columns == ["a", "b"]
    db.get_query("SELECT * FROM t")
    db.execute("ALTER TABLE t DROP COLUMN a")
    assert db.tbl("t").columns == ["b"]
