from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, HTTPException

from edalab.transformers.registry import ALIASES, transformer_registry

router = APIRouter()

# ---------------------------------------------------------------------
# Capabilities discovery. READ-ONLY, never touches the database.
#
# GET /pipelines/ops
# GET /pipelines/ops/{op}
# ---------------------------------------------------------------------

# If an op is registered but not listed here, it still appears
# (just with limited description/schema).
OPS_META: Dict[str, Dict[str, Any]] = {
    # Rows
    "filter": {
        "category": "rows",
        "description": "Keep rows where every expression is true. Summary functions become window functions over the groups.",
        "args_schema": {"exprs": [{"op": ">", "left": {"col": "dep_delay"}, "right": {"val": 120}}]},
        "example": {"op": "filter", "args": {"exprs": [{"op": "in", "left": {"col": "month"}, "right": {"val": [1, 2]}}]}},
    },
    "arrange": {
        "category": "rows",
        "description": "Order rows by columns; missing values sort last.",
        "args_schema": {"sort": [{"column": "colA", "direction": "asc|desc"}]},
        "example": {"op": "arrange", "args": {"sort": [{"column": "dep_delay", "direction": "desc"}]}},
    },
    "distinct": {
        "category": "rows",
        "description": "Unique rows, or unique combinations of some columns (keep_all keeps the first full row).",
        "args_schema": {"columns": ["colA"], "keep_all": False},
        "example": {"op": "distinct", "args": {"columns": ["origin", "dest"]}},
    },
    "head": {
        "category": "rows",
        "description": "First n rows.",
        "args_schema": {"n": 6},
        "example": {"op": "head", "args": {"n": 10}},
    },
    # Columns
    "mutate": {
        "category": "columns",
        "description": "Add or replace computed columns; later columns may use earlier ones.",
        "args_schema": {
            "columns": [{"name": "new_col", "expr": {"op": "-", "left": {"col": "a"}, "right": {"col": "b"}}}],
            "before": "colA | 1",
            "after": "colA",
            "keep": "all|used|unused|none",
        },
        "example": {
            "op": "mutate",
            "args": {
                "columns": [{"name": "gain", "expr": {"op": "-", "left": {"col": "dep_delay"}, "right": {"col": "arr_delay"}}}],
                "before": 1,
            },
        },
    },
    "select": {
        "category": "columns",
        "description": "Pick columns: names, a:b ranges, !sel to drop, where:character, starts_with:, ends_with:, contains:.",
        "args_schema": {"columns": ["colA", "a:b", "!c", {"column": "old", "as": "new"}]},
        "example": {"op": "select", "args": {"columns": ["year:day"]}},
    },
    "rename": {
        "category": "columns",
        "description": "Rename columns using a mapping old->new, keeping every column.",
        "args_schema": {"mapping": {"old": "new"}},
        "example": {"op": "rename", "args": {"mapping": {"tailnum": "tail_num"}}},
    },
    "relocate": {
        "category": "columns",
        "description": "Move columns to the front, or before / after another column.",
        "args_schema": {"columns": ["colA"], "before": None, "after": None},
        "example": {"op": "relocate", "args": {"columns": ["time_hour", "air_time"]}},
    },
    # Groups
    "group_by": {
        "category": "groups",
        "description": "Group by columns for the following summarize / count / mutate / filter.",
        "args_schema": {"columns": ["colA"], "add": False},
        "example": {"op": "group_by", "args": {"columns": ["month"]}},
    },
    "ungroup": {
        "category": "groups",
        "description": "Remove the grouping.",
        "args_schema": {},
        "example": {"op": "ungroup", "args": {}},
    },
    "summarize": {
        "category": "groups",
        "description": "One row per group with summary columns (mean, median, sd, n, n_distinct ...).",
        "args_schema": {
            "columns": [{"name": "avg", "expr": {"op": "mean", "args": [{"col": "colA"}]}}],
            "groups": "drop_last|drop|keep",
        },
        "example": {
            "op": "summarize",
            "args": {"columns": [{"name": "avg_delay", "expr": {"op": "mean", "args": [{"col": "dep_delay"}]}},
                                 {"name": "n", "expr": {"op": "n", "args": []}}]},
        },
    },
    "count": {
        "category": "groups",
        "description": "Count rows per combination of columns.",
        "args_schema": {"columns": ["colA"], "sort": False, "name": "n"},
        "example": {"op": "count", "args": {"columns": ["color", "cut"]}},
    },
}


def _describe(op: str) -> Dict[str, Any]:
    meta = OPS_META.get(op, {})
    return {
        "op": op,
        "category": meta.get("category", "other"),
        "description": meta.get("description", ""),
        "aliases": sorted(alias for alias, target in ALIASES.items() if target == op),
        "args_schema": meta.get("args_schema"),
        "example": meta.get("example"),
    }


@router.get("/ops")
async def list_ops() -> Dict[str, Any]:
    items: List[Dict[str, Any]] = [_describe(op) for op in transformer_registry.available_ops()]
    return {"count": len(items), "ops": items}


@router.get("/ops/{op}")
async def get_op(op: str) -> Dict[str, Any]:
    try:
        t = transformer_registry.get(op)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _describe(t.op)
