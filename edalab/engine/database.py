"""DBI-style access to DuckDB: connect, write / list / read tables, run SQL,
and hand out lazy tables whose verbs are translated to SQL."""

from __future__ import annotations

import itertools
import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import duckdb
import pandas as pd

from edalab.engine.duckdb_engine import DuckDBEngine
from edalab.engine.pipeline import LazyTable
from edalab.transformers.base import Schema
from edalab.transformers.expression_builder import q_ident

logger = logging.getLogger(__name__)

_INTERNAL_PREFIX = "_edalab_"
_READ_ONLY = ("SELECT", "WITH", "DESCRIBE", "FROM")


def available_cores() -> int:
    """Number of CPU cores on this machine."""
    return os.cpu_count() or 1


class Database:
    """A DuckDB connection with the DBI verbs used in the database chapter.

    Use as a context manager or call close() when done; an in-memory
    database disappears on close, a file-backed one (dbdir) persists.
    """

    def __init__(self, dbdir: Optional[Union[str, Path]] = None):
        self.engine = DuckDBEngine(dbdir)
        self.con: duckdb.DuckDBPyConnection = self.engine.connect()
        self._frame_ids = itertools.count(1)
        self._schemas: Dict[str, Schema] = {}

    @classmethod
    def connect(cls, dbdir: Optional[Union[str, Path]] = None) -> "Database":
        return cls(dbdir)

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        if self.con is not None:
            self.con.close()
            self.con = None
            logger.info("Disconnected from DuckDB")

    disconnect = close

    @property
    def version(self) -> str:
        return duckdb.__version__

    def _require_open(self) -> duckdb.DuckDBPyConnection:
        if self.con is None:
            raise ValueError("Database connection is closed")
        return self.con

    # ------------------------------------------------------------------
    # raw SQL
    # ------------------------------------------------------------------
    def execute(self, sql: str, params: Optional[List[Any]] = None) -> duckdb.DuckDBPyConnection:
        con = self._require_open()
        if not sql.lstrip().upper().startswith(_READ_ONLY):
            # DDL and DML may change column lists
            self._schemas.clear()
        return con.execute(sql, params or [])

    def get_query(self, sql: str, params: Optional[List[Any]] = None) -> pd.DataFrame:
        return self.execute(sql, params).fetchdf()

    def describe(self, sql: str) -> Schema:
        """Column names and types of a SELECT, without running it."""
        if sql not in self._schemas:
            rows = self.execute(f"DESCRIBE SELECT * FROM ({sql}) AS _d").fetchall()
            self._schemas[sql] = [(r[0], str(r[1])) for r in rows]
        return self._schemas[sql]

    # ------------------------------------------------------------------
    # tables
    # ------------------------------------------------------------------
    def list_tables(self) -> List[str]:
        rows = self.execute(
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = 'main' ORDER BY table_name"
        ).fetchall()
        return [r[0] for r in rows if not r[0].startswith(_INTERNAL_PREFIX)]

    def has_table(self, name: str) -> bool:
        return name in self.list_tables()

    def write_table(self, name: str, df: pd.DataFrame, overwrite: bool = False, append: bool = False) -> None:
        """Create table `name` from a DataFrame.

        Categorical columns become ENUM columns, so factor levels survive.
        """
        if overwrite and append:
            raise ValueError("Use only one of overwrite / append")
        exists = self.has_table(name)
        if exists and not (overwrite or append):
            raise ValueError(f"Table {name} already exists; pass overwrite=True to replace it")
        con = self._require_open()
        staging = f"{_INTERNAL_PREFIX}upload"
        con.register(staging, df)
        try:
            if append and exists:
                con.execute(f"INSERT INTO {q_ident(name)} SELECT * FROM {staging}")
            else:
                con.execute(f"CREATE OR REPLACE TABLE {q_ident(name)} AS SELECT * FROM {staging}")
        finally:
            con.unregister(staging)
        self._schemas.clear()
        logger.info("Wrote table %s (%d rows)", name, len(df))

    def read_table(self, name: str) -> pd.DataFrame:
        self._check_table(name)
        return self.get_query(f"SELECT * FROM {q_ident(name)}")

    def remove_table(self, name: str) -> None:
        self._check_table(name)
        self.execute(f"DROP TABLE IF EXISTS {q_ident(name)}")

    def read_csv(self, name: str, path: Union[str, Path], overwrite: bool = False) -> None:
        """Load a CSV straight into a table without going through pandas."""
        if self.has_table(name) and not overwrite:
            raise ValueError(f"Table {name} already exists; pass overwrite=True to replace it")
        path_sql = Path(path).as_posix().replace("'", "''")
        self.execute(f"CREATE OR REPLACE TABLE {q_ident(name)} AS SELECT * FROM read_csv_auto('{path_sql}')")

    def read_parquet(self, name: str, path: Union[str, Path]) -> None:
        """Expose a parquet file as a view."""
        self.engine.register_parquet(self._require_open(), q_ident(name), Path(path))
        self._schemas.clear()

    def _check_table(self, name: str) -> None:
        if not self.has_table(name):
            raise ValueError(f"Table {name} does not exist")

    # ------------------------------------------------------------------
    # lazy tables
    # ------------------------------------------------------------------
    def tbl(self, name: str) -> LazyTable:
        self._check_table(name)
        return LazyTable(self, q_ident(name), label=name)

    def frame(self, df: pd.DataFrame, name: Optional[str] = None) -> LazyTable:
        """A lazy table over an in-memory DataFrame (nothing is copied)."""
        view = self.engine.frame_view_name(next(self._frame_ids))
        self._require_open().register(view, df)
        return LazyTable(self, view, label=name or "data frame")

    def copy_datasets(self, names: Iterable[str], overwrite: bool = False) -> List[str]:
        """Copy sample datasets into the database as tables; existing tables are kept."""
        from edalab.datasets import load_dataset

        written = []
        for name in names:
            if self.has_table(name) and not overwrite:
                logger.info("Table %s already present, skipping", name)
                continue
            self.write_table(name, load_dataset(name), overwrite=overwrite)
            written.append(name)
        return written
