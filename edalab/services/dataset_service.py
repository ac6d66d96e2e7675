"""
Request-scoped work for the HTTP API.

Every call opens its own in-memory DuckDB connection, exposes the dataset as
a table (ordered factors become ENUM columns) and closes the connection
when done.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from edalab.config import settings
from edalab.datasets import dataset_info, list_datasets, load_dataset
from edalab.engine.database import Database
from edalab.engine.pipeline import LazyTable, pipeline_hash
from edalab.engine.profiling import build_profile, json_records, summary
from edalab.models.pipelines import PipelineRequest, PipelineStep
from edalab.models.plots import PlotRequest
from edalab.plots import aes, facet_grid, facet_wrap, ggplot, render_png
from edalab.plots.grammar import LAYER_FUNCTIONS
from edalab.plots.specs import PlotSpecError
from edalab.transformers.expression_builder import q_ident

logger = logging.getLogger(__name__)


def catalog() -> List[Dict[str, Any]]:
    return [
        {
            "name": info.name,
            "package": info.package,
            "title": info.title,
            "factors": {col: list(levels) for col, (levels, _) in info.categories.items()},
        }
        for info in list_datasets()
    ]


@contextmanager
def open_dataset(name: str) -> Iterator[LazyTable]:
    """Yield a lazy table over the dataset inside a fresh connection."""
    dataset_info(name)
    with Database.connect(":memory:") as db:
        db.write_table(name, load_dataset(name))
        yield db.tbl(name)


def _pipeline(table: LazyTable, steps: List[PipelineStep]) -> LazyTable:
    return LazyTable(table.db, table.source, list(steps), table.label)


def _clamp(limit: Optional[int]) -> int:
    # Safety clamp: never stream huge raw datasets into JSON.
    max_rows = int(settings.max_query_rows)
    if limit is None or limit <= 0:
        return min(1000, max_rows)
    return min(int(limit), max_rows)


def run_query(name: str, req: PipelineRequest) -> Dict[str, Any]:
    limit = _clamp(req.limit)
    with open_dataset(name) as table:
        lazy = _pipeline(table, req.steps)
        sql, ctx = lazy.compile()
        row_count = lazy.count_rows()
        df = lazy.head(limit).collect()
    return {
        "columns": [str(c) for c in df.columns],
        "data": json_records(df),
        "row_count": row_count,
        "sql": sql,
        "groups": list(ctx.groups),
    }


def compile_query(name: str, req: PipelineRequest) -> Dict[str, Any]:
    with open_dataset(name) as table:
        sql, ctx = _pipeline(table, req.steps).compile()
    return {"sql": sql, "pipeline_hash": pipeline_hash(req.steps), "groups": list(ctx.groups)}


def profile(name: str, sample_limit: int = 20) -> Dict[str, Any]:
    with open_dataset(name) as table:
        out = build_profile(table.db.con, q_ident(name), sample_limit=sample_limit)
    out["name"] = name
    return out


def summarize_dataset(name: str) -> Dict[str, Any]:
    table = summary(load_dataset(name))
    return {
        "name": name,
        "columns": {col: [cell for cell in table[col] if cell] for col in table.columns},
    }


def plot_png(name: str, req: PlotRequest) -> bytes:
    with open_dataset(name) as table:
        data = _pipeline(table, req.steps).collect()

    plot = ggplot(data, aes(**req.mapping))
    for layer in req.layers:
        try:
            make = LAYER_FUNCTIONS[layer.geom]
        except KeyError:
            raise PlotSpecError(f"Unknown geom: {layer.geom}. Available: {sorted(LAYER_FUNCTIONS)}") from None
        plot = plot + make(aes(**layer.mapping), **layer.params)
    if req.facet is not None:
        if req.facet.kind == "wrap":
            plot = plot + facet_wrap(req.facet.formula, ncol=req.facet.ncol)
        else:
            plot = plot + facet_grid(req.facet.formula)
    for part in (req.coord, req.labs, req.theme):
        if part is not None:
            plot = plot + part

    logger.info("Rendering %s plot with %d layers", name, len(req.layers))
    return render_png(plot, width=req.width, height=req.height, dpi=req.dpi)
