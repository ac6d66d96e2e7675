from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

import duckdb

from edalab.config import settings

logger = logging.getLogger(__name__)


class DuckDBEngine:
    """Opens DuckDB connections: a temporary in-memory database by default,
    a persistent file when a dbdir is given (or DUCKDB_PATH is set).
    dbdir=":memory:" always means in-memory."""

    def __init__(self, dbdir: Optional[Union[str, Path]] = None):
        if dbdir is None and settings.duckdb_path:
            dbdir = settings.duckdb_path
        self.db_path: Optional[Path] = None
        if dbdir and str(dbdir) != ":memory:":
            path = Path(dbdir)
            if path.is_dir():
                path = path / "edalab.duckdb"
            path.parent.mkdir(parents=True, exist_ok=True)
            self.db_path = path

    @property
    def is_memory(self) -> bool:
        return self.db_path is None

    def connect(self) -> duckdb.DuckDBPyConnection:
        target = ":memory:" if self.db_path is None else str(self.db_path)
        con = duckdb.connect(target)
        con.execute(f"SET threads={int(settings.duckdb_threads)}")
        con.execute(f"SET memory_limit='{settings.duckdb_memory_limit}'")
        logger.info("Connected to DuckDB (%s, threads=%s)", target, settings.duckdb_threads)
        return con

    @staticmethod
    def register_parquet(con: duckdb.DuckDBPyConnection, view: str, parquet_local_path: Path) -> str:
        # Create/replace a view pointing to parquet
        path_sql = parquet_local_path.as_posix().replace("'", "''")
        con.execute(f"CREATE OR REPLACE VIEW {view} AS SELECT * FROM read_parquet('{path_sql}')")
        return view

    @staticmethod
    def frame_view_name(token: int) -> str:
        return f"_edalab_df_{token}"

    @staticmethod
    def pipeline_view_name(name: str, pipeline_hash: str) -> str:
        return f"{name.replace('-', '_')}_p_{pipeline_hash[:16]}"
