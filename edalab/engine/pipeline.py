from __future__ import annotations

import hashlib
import json
import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from edalab.models.pipelines import PipelineStep
from edalab.transformers.base import Schema, StepContext
from edalab.transformers.dsl import to_ast
from edalab.transformers.registry import transformer_registry

if TYPE_CHECKING:
    from edalab.engine.database import Database

logger = logging.getLogger(__name__)


def pipeline_hash(steps: List[PipelineStep]) -> str:
    payload = json.dumps([s.model_dump() for s in steps], sort_keys=True, default=str)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def compile_pipeline(base_view: str, steps: Sequence[PipelineStep], describe=None) -> Tuple[str, StepContext]:
    """Compile steps into a single SELECT statement plus the final step context.

    Each step wraps the previous step's SELECT. describe (sql -> schema) lets
    steps that need the column list ask the database, the way a lazy remote
    table discovers its columns.
    """
    ctx = StepContext(describe=describe)
    current = f"SELECT * FROM {base_view}"
    for step in steps:
        t = transformer_registry.get(step.op)
        current = t.apply_sql(current, step.args, ctx)
    return current, ctx


def compile_pipeline_sql(base_view: str, steps: Sequence[PipelineStep], describe=None) -> str:
    return compile_pipeline(base_view, steps, describe)[0]


def ensure_pipeline_view(con, name: str, base_view: str, steps: List[PipelineStep], describe=None) -> str:
    """Materialise a pipeline as a view named after its hash, so it can be queried again."""
    from edalab.engine.duckdb_engine import DuckDBEngine

    ph = pipeline_hash(steps)
    view = DuckDBEngine.pipeline_view_name(name, ph)
    sql = compile_pipeline_sql(base_view, steps, describe)
    con.execute(f"CREATE OR REPLACE VIEW {view} AS {sql}")
    return view


def _sort_spec(item: Any) -> Dict[str, Any]:
    if isinstance(item, dict):
        return item
    if isinstance(item, str) and item.startswith("-"):
        return {"column": item[1:], "direction": "desc"}
    return {"column": item, "direction": "asc"}


def _named(exprs: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [{"name": name, "expr": to_ast(expr)} for name, expr in exprs.items()]


class LazyTable:
    """A table reference plus a recorded chain of verbs.

    Verbs never touch the database; they return a new LazyTable with one more
    step. SQL is generated by show_query() and run by collect().
    """

    def __init__(self, db: "Database", source: str, steps: Optional[List[PipelineStep]] = None, label: Optional[str] = None):
        self.db = db
        self.source = source
        self.steps: List[PipelineStep] = list(steps or [])
        self.label = label or source

    def _with(self, op: str, args: Dict[str, Any]) -> "LazyTable":
        return LazyTable(self.db, self.source, self.steps + [PipelineStep(op=op, args=args)], self.label)

    # ------------------------------------------------------------------
    # rows
    # ------------------------------------------------------------------
    def filter(self, *conditions: Any) -> "LazyTable":
        return self._with("filter", {"exprs": [to_ast(c) for c in conditions]})

    def arrange(self, *columns: Any) -> "LazyTable":
        return self._with("arrange", {"sort": [_sort_spec(c) for c in columns]})

    def distinct(self, *columns: str, keep_all: bool = False) -> "LazyTable":
        return self._with("distinct", {"columns": list(columns), "keep_all": keep_all})

    def head(self, n: int = 6) -> "LazyTable":
        return self._with("head", {"n": n})

    # ------------------------------------------------------------------
    # columns
    # ------------------------------------------------------------------
    def mutate(self, _before: Any = None, _after: Any = None, _keep: str = "all", **exprs: Any) -> "LazyTable":
        args: Dict[str, Any] = {"columns": _named(exprs), "keep": _keep}
        if _before is not None:
            args["before"] = _before
        if _after is not None:
            args["after"] = _after
        return self._with("mutate", args)

    def select(self, *selectors: Any, **renames: str) -> "LazyTable":
        cols: List[Any] = list(selectors)
        cols.extend({"column": old, "as": new} for new, old in renames.items())
        return self._with("select", {"columns": cols})

    def rename(self, **renames: str) -> "LazyTable":
        return self._with("rename", {"mapping": {old: new for new, old in renames.items()}})

    def relocate(self, *selectors: Any, before: Any = None, after: Any = None) -> "LazyTable":
        return self._with("relocate", {"columns": list(selectors), "before": before, "after": after})

    # ------------------------------------------------------------------
    # groups
    # ------------------------------------------------------------------
    def group_by(self, *columns: str, add: bool = False) -> "LazyTable":
        return self._with("group_by", {"columns": list(columns), "add": add})

    def ungroup(self) -> "LazyTable":
        return self._with("ungroup", {})

    def summarize(self, _groups: str = "drop_last", **exprs: Any) -> "LazyTable":
        return self._with("summarize", {"columns": _named(exprs), "groups": _groups})

    summarise = summarize

    def count(self, *columns: str, sort: bool = False, name: str = "n") -> "LazyTable":
        return self._with("count", {"columns": list(columns), "sort": sort, "name": name})

    # ------------------------------------------------------------------
    # execution
    # ------------------------------------------------------------------
    def compile(self) -> Tuple[str, StepContext]:
        sql, ctx = compile_pipeline(self.source, self.steps, describe=self.db.describe)
        logger.debug("Compiled %s (%d steps): %s", self.label, len(self.steps), sql)
        return sql, ctx

    def show_query(self) -> str:
        return self.compile()[0]

    def group_vars(self) -> List[str]:
        return list(self.compile()[1].groups)

    @property
    def schema(self) -> Schema:
        return self.db.describe(self.show_query())

    @property
    def columns(self) -> List[str]:
        return [name for name, _ in self.schema]

    def count_rows(self) -> int:
        sql = self.show_query()
        return int(self.db.execute(f"SELECT COUNT(*) FROM ({sql}) AS _q").fetchone()[0])

    def collect(self) -> pd.DataFrame:
        sql, ctx = self.compile()
        df = self.db.execute(sql).fetchdf()
        if ctx.groups:
            df.attrs["groups"] = list(ctx.groups)
        return df

    def __repr__(self) -> str:
        schema = self.schema
        preview = self.head(10).collect()
        lines = [
            f"# Source:   SQL [?? x {len(schema)}]" if self.steps else f"# Source:   table<{self.label}> [?? x {len(schema)}]",
            f"# Database: DuckDB {self.db.version}",
        ]
        groups = self.group_vars()
        if groups:
            lines.append(f"# Groups:   {', '.join(groups)}")
        lines.append(preview.to_string(max_cols=12))
        lines.append("# ℹ more rows")
        return "\n".join(lines)
