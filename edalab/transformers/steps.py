"""
dplyr verbs as SQL-rewriting transformers.

Categories:
1. Rows: filter, arrange, distinct, head
2. Columns: mutate, select, rename, relocate
3. Groups: group_by, ungroup, summarize, count

Every step wraps the previous SELECT, so a chain of verbs compiles into one
nested query that DuckDB plans as a whole.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence, Tuple

from edalab.engine.profiling import infer_role
from edalab.transformers.base import Schema, StepContext, Transformer
from edalab.transformers.expression_builder import (
    ExprError,
    has_aggregate,
    q_ident,
    referenced_columns,
    to_sql,
)

logger = logging.getLogger(__name__)


def wrap(prior_sql: str) -> str:
    """Wrap SQL in parentheses with alias for use in subqueries."""
    return f"({prior_sql}) AS _t"


def _named_exprs(args: Dict[str, Any]) -> List[Tuple[str, Any]]:
    """Accept {"columns": [{"name", "expr"}, ...]} or {"exprs": {name: expr}}."""
    items: List[Tuple[str, Any]] = []
    for c in args.get("columns") or []:
        name = c.get("name")
        if not name or c.get("expr") is None:
            raise ExprError("Each computed column needs a name and an expr")
        items.append((name, c["expr"]))
    for name, expr in (args.get("exprs") or {}).items():
        items.append((name, expr))
    return items


def _project(columns: Sequence[str], prior_sql: str) -> str:
    return f"SELECT {', '.join(q_ident(c) for c in columns)} FROM {wrap(prior_sql)}"


def _move(columns: List[str], moving: List[str], before: Any = None, after: Any = None) -> List[str]:
    """Place `moving` before/after an anchor column; front when no anchor is given."""
    rest = [c for c in columns if c not in moving]
    if before is None and after is None:
        return moving + rest
    anchor = before if before is not None else after
    if isinstance(anchor, int):
        # 1-based positions, as .before = 1 in dplyr
        idx = max(0, min(len(rest), anchor - 1))
        if after is not None:
            idx = max(0, min(len(rest), anchor))
        return rest[:idx] + moving + rest[idx:]
    if anchor not in rest:
        raise ExprError(f"Unknown column: {anchor}")
    idx = rest.index(anchor) + (1 if after is not None else 0)
    return rest[:idx] + moving + rest[idx:]


# ============================================================================
# Column selection (tidyselect-style)
# ============================================================================

_TYPE_TESTS = {
    "character": lambda dtype: dtype.upper().startswith("VARCHAR"),
    "string": lambda dtype: dtype.upper().startswith("VARCHAR"),
    "factor": lambda dtype: dtype.upper().startswith("ENUM"),
    "numeric": lambda dtype: infer_role(dtype) == "numeric",
    "logical": lambda dtype: dtype.upper() == "BOOLEAN",
    "datetime": lambda dtype: infer_role(dtype) == "datetime",
}


def _match(selector: str, schema: Schema) -> List[str]:
    names = [name for name, _ in schema]
    if selector in ("everything", "everything()"):
        return names
    if ":" in selector:
        kind, _, value = selector.partition(":")
        if kind == "where":
            test = _TYPE_TESTS.get(value)
            if test is None:
                raise ExprError(f"Unknown type selector: {value}")
            return [name for name, dtype in schema if test(str(dtype))]
        if kind == "starts_with":
            return [c for c in names if c.startswith(value)]
        if kind == "ends_with":
            return [c for c in names if c.endswith(value)]
        if kind == "contains":
            return [c for c in names if value in c]
        # a:b range
        if kind not in names or value not in names:
            raise ExprError(f"Unknown column in range: {selector}")
        i, j = names.index(kind), names.index(value)
        step = 1 if i <= j else -1
        return names[i:j + step:step] if j + step >= 0 else names[i::step]
    if selector not in names:
        raise ExprError(f"Unknown column: {selector}")
    return [selector]


def resolve_selection(selectors: Sequence[Any], schema: Schema) -> List[Tuple[str, str]]:
    """Resolve selectors to (source column, output name) pairs, in output order.

    A leading exclusion starts from every column, as in tidyselect.
    """
    picked: List[Tuple[str, str]] = []
    if selectors and isinstance(selectors[0], str) and selectors[0][:1] in ("!", "-"):
        picked = [(name, name) for name, _ in schema]

    for sel in selectors:
        if isinstance(sel, dict):
            source, alias = sel.get("column"), sel.get("as") or sel.get("column")
            _match(source, schema)
            picked = [p for p in picked if p[0] != source] + [(source, alias)]
            continue
        if not isinstance(sel, str) or not sel:
            raise ExprError(f"Invalid selector: {sel!r}")
        if sel[0] in ("!", "-"):
            drop = set(_match(sel[1:], schema))
            picked = [p for p in picked if p[0] not in drop]
            continue
        for name in _match(sel, schema):
            if all(p[0] != name for p in picked):
                picked.append((name, name))
    return picked


# ============================================================================
# 1. ROWS
# ============================================================================

class Filter(Transformer):
    """Keep rows where every predicate is TRUE (NULL counts as FALSE)."""
    op = "filter"

    def apply_sql(self, prior_sql: str, args: Dict[str, Any], ctx: StepContext) -> str:
        if "where" in args:
            raise ExprError("filter() takes expressions only; raw SQL predicates are not accepted")
        exprs = list(args.get("exprs") or [])
        if args.get("expr"):
            exprs.append(args["expr"])
        if not exprs:
            return prior_sql
        exprs_sql = []
        windowed = any(has_aggregate(e) for e in exprs)
        allowed = set(args.get("allowed_columns") or []) or None
        for e in exprs:
            exprs_sql.append(to_sql(e, allowed_columns=allowed, window=windowed, partition_by=ctx.groups))
        cond = " AND ".join(exprs_sql)
        # aggregates in a predicate (filter(x == max(x))) are window functions
        keyword = "QUALIFY" if windowed else "WHERE"
        sql = f"SELECT * FROM {wrap(prior_sql)} {keyword} {cond}"
        # window functions do not keep the arrange() order
        return sql + ctx.order_by() if windowed else sql


class Arrange(Transformer):
    """Sort rows by one or more columns; missing values always sort last."""
    op = "arrange"

    def apply_sql(self, prior_sql: str, args: Dict[str, Any], ctx: StepContext) -> str:
        sort = args.get("sort") or []
        if not sort:
            return prior_sql
        order = []
        for s in sort:
            if isinstance(s, str):
                s = {"column": s}
            col = s.get("column")
            if not col:
                continue
            direction = (s.get("direction") or "asc").upper()
            if direction not in ("ASC", "DESC"):
                raise ExprError(f"Invalid sort direction: {direction}")
            nulls = str(s.get("nulls") or "last").upper()
            if nulls not in ("FIRST", "LAST"):
                raise ExprError(f"Invalid nulls placement: {nulls}")
            order.append((col, f"{direction} NULLS {nulls}"))
        if not order:
            return prior_sql
        ctx.order = order
        return f"SELECT * FROM {wrap(prior_sql)}" + ctx.order_by()


class Distinct(Transformer):
    """Unique rows, optionally by a subset of columns."""
    op = "distinct"

    def apply_sql(self, prior_sql: str, args: Dict[str, Any], ctx: StepContext) -> str:
        cols = args.get("columns") or []
        ctx.order = []
        if not cols:
            return f"SELECT DISTINCT * FROM {wrap(prior_sql)}"
        quoted = ", ".join(q_ident(c) for c in cols)
        if args.get("keep_all"):
            return f"SELECT DISTINCT ON ({quoted}) * FROM {wrap(prior_sql)}"
        return f"SELECT DISTINCT {quoted} FROM {wrap(prior_sql)}"


class Head(Transformer):
    """Limit to first N rows."""
    op = "head"

    def apply_sql(self, prior_sql: str, args: Dict[str, Any], ctx: StepContext) -> str:
        n = args.get("n", 6)
        if n is None:
            return prior_sql
        return f"SELECT * FROM {wrap(prior_sql)} LIMIT {int(n)}"


# ============================================================================
# 2. COLUMNS
# ============================================================================

class Mutate(Transformer):
    """Add or replace computed columns.

    Expressions are applied one at a time, so a later column can use an
    earlier one (gain_per_hour = gain / hours). Under group_by() summary
    functions become window functions over the group.
    """
    op = "mutate"

    def apply_sql(self, prior_sql: str, args: Dict[str, Any], ctx: StepContext) -> str:
        items = _named_exprs(args)
        if not items:
            return prior_sql
        keep = args.get("keep") or "all"
        if keep not in ("all", "used", "unused", "none"):
            raise ExprError(f"Invalid keep: {keep}")
        before, after = args.get("before"), args.get("after")
        if before is not None and after is not None:
            raise ExprError("Use only one of before / after")

        original = ctx.try_columns(prior_sql)
        current = list(original) if original is not None else None
        allowed = set(args.get("allowed_columns") or []) or None
        sql = prior_sql
        created: List[str] = []
        used: List[str] = []
        windowed = False
        for name, expr in items:
            expr_sql = to_sql(expr, allowed_columns=allowed, window=True, partition_by=ctx.groups)
            windowed = windowed or has_aggregate(expr)
            for c in referenced_columns(expr):
                if c not in used:
                    used.append(c)
            if current is not None and name in current:
                sql = f"SELECT * REPLACE (({expr_sql}) AS {q_ident(name)}) FROM {wrap(sql)}"
            else:
                sql = f"SELECT *, ({expr_sql}) AS {q_ident(name)} FROM {wrap(sql)}"
                if current is not None:
                    current.append(name)
            if name not in created:
                created.append(name)

        ctx.order = [(c, how) for c, how in ctx.order if c not in created]
        if windowed:
            sql += ctx.order_by()
        if keep == "all" and before is None and after is None:
            return sql
        if current is None:
            raise ExprError("mutate() with keep/before/after needs the column list; compile it against a database connection")

        new_cols = [c for c in created if c not in original]
        if keep == "used":
            current = [c for c in current if c in ctx.groups or c in created or c in used]
        elif keep == "unused":
            current = [c for c in current if c in ctx.groups or c in created or c not in used]
        elif keep == "none":
            current = [c for c in current if c in ctx.groups or c in created]
        if before is not None or after is not None:
            current = _move(current, [c for c in new_cols if c in current], before=before, after=after)
        ctx.keep_order(current)
        return _project(current, sql)


class Select(Transformer):
    """Pick, drop, reorder and rename columns with tidyselect-style selectors.

    Selectors: "name", "a:b", "!sel" / "-sel", "where:character",
    "starts_with:x", "ends_with:x", "contains:x", {"column": old, "as": new}.
    """
    op = "select"

    def apply_sql(self, prior_sql: str, args: Dict[str, Any], ctx: StepContext) -> str:
        selectors = args.get("columns") or []
        if not selectors:
            return prior_sql
        schema = ctx.schema(prior_sql)
        picked = resolve_selection(selectors, schema)
        missing = [g for g in ctx.groups if all(p[0] != g for p in picked)]
        if missing:
            logger.info("Adding missing grouping variables: %s", ", ".join(missing))
            picked = [(g, g) for g in missing] + picked
        exprs = []
        for source, alias in picked:
            if source == alias:
                exprs.append(q_ident(source))
            else:
                exprs.append(f"{q_ident(source)} AS {q_ident(alias)}")
        renamed = {source: alias for source, alias in picked if source != alias}
        ctx.groups = [renamed.get(g, g) for g in ctx.groups]
        ctx.keep_order([alias for _, alias in picked], renamed)
        return f"SELECT {', '.join(exprs)} FROM {wrap(prior_sql)}"


class Rename(Transformer):
    """Rename columns using a mapping old->new, keeping column order."""
    op = "rename"

    def apply_sql(self, prior_sql: str, args: Dict[str, Any], ctx: StepContext) -> str:
        mapping = args.get("mapping") or {}
        if not mapping:
            return prior_sql
        cols = ctx.columns(prior_sql)
        unknown = [c for c in mapping if c not in cols]
        if unknown:
            raise ExprError(f"Unknown column: {unknown[0]}")
        exprs = []
        for c in cols:
            new = mapping.get(c, c)
            if new == c:
                exprs.append(q_ident(c))
            else:
                exprs.append(f"{q_ident(c)} AS {q_ident(new)}")
        ctx.groups = [mapping.get(g, g) for g in ctx.groups]
        ctx.keep_order([mapping.get(c, c) for c in cols], mapping)
        return f"SELECT {', '.join(exprs)} FROM {wrap(prior_sql)}"


class Relocate(Transformer):
    """Move columns to the front, or before / after another column."""
    op = "relocate"

    def apply_sql(self, prior_sql: str, args: Dict[str, Any], ctx: StepContext) -> str:
        selectors = args.get("columns") or []
        if not selectors:
            return prior_sql
        schema = ctx.schema(prior_sql)
        moving = [source for source, _ in resolve_selection(selectors, schema)]
        cols = _move([name for name, _ in schema], moving, before=args.get("before"), after=args.get("after"))
        return _project(cols, prior_sql)


# ============================================================================
# 3. GROUPS
# ============================================================================

class GroupBy(Transformer):
    """Set the grouping used by summarize, count, mutate and filter. Emits no SQL."""
    op = "group_by"

    def apply_sql(self, prior_sql: str, args: Dict[str, Any], ctx: StepContext) -> str:
        cols = list(args.get("columns") or [])
        known = ctx.try_columns(prior_sql)
        if known is not None:
            unknown = [c for c in cols if c not in known]
            if unknown:
                raise ExprError(f"Unknown column: {unknown[0]}")
        if args.get("add"):
            cols = ctx.groups + [c for c in cols if c not in ctx.groups]
        ctx.groups = cols
        return prior_sql


class Ungroup(Transformer):
    op = "ungroup"

    def apply_sql(self, prior_sql: str, args: Dict[str, Any], ctx: StepContext) -> str:
        ctx.groups = []
        return prior_sql


class Summarize(Transformer):
    """One row per group with aggregate columns, ordered by the group keys."""
    op = "summarize"

    def apply_sql(self, prior_sql: str, args: Dict[str, Any], ctx: StepContext) -> str:
        items = _named_exprs(args)
        groups = list(ctx.groups)
        if not items and not groups:
            raise ExprError("summarize() needs at least one summary expression or a group_by()")
        regroup = args.get("groups") or "drop_last"
        if regroup not in ("drop_last", "drop", "keep"):
            raise ExprError(f"Invalid groups: {regroup}")

        allowed = set(args.get("allowed_columns") or []) or None
        select_list = [q_ident(g) for g in groups]
        for name, expr in items:
            select_list.append(f"{to_sql(expr, allowed_columns=allowed)} AS {q_ident(name)}")
        sql = f"SELECT {', '.join(select_list)} FROM {wrap(prior_sql)}"
        if groups:
            gb = ", ".join(q_ident(g) for g in groups)
            ctx.order = [(g, "ASC NULLS LAST") for g in groups]
            sql += f" GROUP BY {gb}" + ctx.order_by()
        else:
            ctx.order = []

        if regroup == "drop_last":
            ctx.groups = groups[:-1]
            if ctx.groups:
                logger.info("summarize() has grouped output by %s", ", ".join(repr(g) for g in ctx.groups))
        elif regroup == "drop":
            ctx.groups = []
        return sql


class Count(Transformer):
    """Count rows per combination of the groups and the given columns."""
    op = "count"

    def apply_sql(self, prior_sql: str, args: Dict[str, Any], ctx: StepContext) -> str:
        name = args.get("name") or "n"
        cols = list(ctx.groups) + [c for c in (args.get("columns") or []) if c not in ctx.groups]
        ctx.order = []
        if not cols:
            return f"SELECT COUNT(*) AS {q_ident(name)} FROM {wrap(prior_sql)}"
        quoted = ", ".join(q_ident(c) for c in cols)
        if args.get("sort"):
            ctx.order.append((name, "DESC NULLS LAST"))
        ctx.order += [(c, "ASC NULLS LAST") for c in cols]
        return f"SELECT {quoted}, COUNT(*) AS {q_ident(name)} FROM {wrap(prior_sql)} GROUP BY {quoted}" + ctx.order_by()


# ============================================================================
# MASTER LIST
# ============================================================================

ALL_TRANSFORMERS: List[Transformer] = [
    # 1. Rows
    Filter(), Arrange(), Distinct(), Head(),

    # 2. Columns
    Mutate(), Select(), Rename(), Relocate(),

    # 3. Groups
    GroupBy(), Ungroup(), Summarize(), Count(),
]
