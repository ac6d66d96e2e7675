"""Chapter 21: databases.

Database tables live on disk and can be arbitrarily large, usually carry
indexes, and in column-oriented engines such as DuckDB are laid out for
analysis rather than for collecting rows. Database gives the DBI verbs
(connect, write, list, read, query); tbl() gives lazy tables whose verbs are
translated to SQL and only run on collect().
"""

from pathlib import Path
from typing import Optional, Union

from edalab.chapters.runner import ChapterRun
from edalab.config import settings
from edalab.datasets import NYCFLIGHTS13, load_dataset
from edalab.engine.database import Database, available_cores
from edalab.transformers.dsl import col, mean

BIG_DIAMONDS_SQL = """
SELECT carat, cut, clarity, color, price
FROM diamonds
WHERE price > 15000
"""


def main(output_dir: Optional[Union[str, Path]] = None, echo: bool = True) -> ChapterRun:
    run = ChapterRun("ch21", output_dir, echo=echo)

    run.section("Connecting to DuckDB")
    # the default is a temporary database that is deleted on close, so every
    # run starts from a clean slate
    with Database.connect() as con:
        run.show(f"DuckDB {con.version}, in memory: {con.engine.is_memory}")

        run.section("Loading data")
        con.write_table("mpg", load_dataset("mpg"))
        con.write_table("diamonds", load_dataset("diamonds"))
        run.show(con.list_tables())
        run.show(con.read_table("diamonds"))
        # plain SQL when you already know it
        run.show(con.get_query(BIG_DIAMONDS_SQL))

        run.section("dbplyr-style lazy tables")
        # verbs are translated to SQL; other backends run them elsewhere, and
        # DuckDB itself runs every query on several threads
        run.show(f"{available_cores()} cores available, DuckDB uses {settings.duckdb_threads} threads")

        diamonds_db = con.tbl("diamonds")
        run.show(diamonds_db)

        # nothing runs yet: the verbs are only recorded
        big_diamonds_db = diamonds_db.filter(col("price") > 1500).select("carat:clarity", "price")
        run.show(big_diamonds_db)
        run.show(diamonds_db.show_query())
        run.show(big_diamonds_db.show_query())

        # collect() generates the SQL, runs it and returns a data frame
        big_diamonds = big_diamonds_db.collect()
        run.show(big_diamonds)

        run.section("SQL")
        con.copy_datasets(NYCFLIGHTS13)
        flights = con.tbl("flights")
        planes = con.tbl("planes")

        # an unchanged table is SELECT * FROM table
        run.show(flights.show_query())
        run.show(planes.show_query())

        # WHERE and ORDER BY choose and order rows
        run.show(flights.filter(col("dest") == "IAH").arrange("dep_delay").show_query())

        # GROUP BY turns the query into a summary
        run.show(flights.group_by("dest").summarize(dep_delay=mean("dep_delay")).show_query())
        # clauses are always written SELECT, FROM, WHERE, GROUP BY, ORDER BY but
        # evaluated FROM, WHERE, GROUP BY, SELECT, ORDER BY

    if output_dir is not None:
        # a persistent database keeps its tables between connections
        dbdir = run.output_dir / "duckdb"
        with Database.connect(dbdir) as disk:
            disk.write_table("mpg", load_dataset("mpg"), overwrite=True)
        with Database.connect(dbdir) as disk:
            run.show(disk.list_tables())
    return run


if __name__ == "__main__":
    main()
