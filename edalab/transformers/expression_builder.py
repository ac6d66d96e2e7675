from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Sequence, Set


@dataclass(eq=False)
class ExprError(ValueError):
    message: str

    def __str__(self) -> str:
        return self.message


def q_ident(name: str) -> str:
    if not isinstance(name, str) or not name:
        raise ExprError("Invalid column name")
    if '"' in name:
        raise ExprError(f"Invalid identifier: {name}")
    return f'"{name}"'


def q_lit(val: Any) -> str:
    if val is None:
        return "NULL"
    if isinstance(val, bool):
        return "TRUE" if val else "FALSE"
    if isinstance(val, (int, float)):
        if val != val:  # NaN is R's NA for doubles
            return "NULL"
        if val in (float("inf"), float("-inf")):
            return f"'{val}'::DOUBLE"
        return repr(val) if isinstance(val, float) else str(val)
    s = str(val).replace("'", "''")
    return f"'{s}'"


_BINOPS = {"+": "+", "-": "-", "*": "*", "/": "/", "//": "//", "%": "%"}
_CMPOPS = {"=": "=", "==": "=", "!=": "!=", ">": ">", ">=": ">=", "<": "<", "<=": "<=", "like": "LIKE", "ilike": "ILIKE"}
_LOGICAL = {"and", "or"}
_UNARY = {"not", "-"}

# DuckDB-safe scalar function whitelist (extend as needed)
_ALLOWED_FUNCS = {
    # numeric
    "abs": 1,
    "round": (1, 2),
    "floor": 1,
    "ceiling": 1,
    "coalesce": (2, 10),
    "sqrt": 1,
    "exp": 1,
    "ln": 1,
    "log10": 1,
    "log2": 1,
    # text
    "lower": 1,
    "upper": 1,
    "trim": 1,
    "replace": 3,
    "concat": (2, 20),
    "length": 1,
    # datetime
    "strftime": 2,  # (timestamp, format)
    "date_trunc": 2,  # (unit, timestamp)
}

# dplyr summary functions -> SQL aggregates. Missing values are always
# dropped by SQL aggregates, so na_rm has no effect here.
_AGG_FUNCS = {
    "mean": "AVG",
    "sum": "SUM",
    "min": "MIN",
    "max": "MAX",
    "median": "MEDIAN",
    "sd": "STDDEV_SAMP",
    "var": "VAR_SAMP",
    "first": "FIRST",
    "last": "LAST",
    "n": "COUNT",
    "n_distinct": "COUNT",
}


def _arity_ok(expected, got: int) -> bool:
    if isinstance(expected, int):
        return got == expected
    lo, hi = expected
    return lo <= got <= hi


def _func_name(expr: dict) -> str:
    op = expr.get("op")
    if op == "func":
        return str(expr.get("name") or "").lower()
    return str(op or "").lower()


def _over(partition_by: Optional[Sequence[str]]) -> str:
    if not partition_by:
        return " OVER ()"
    return " OVER (PARTITION BY " + ", ".join(q_ident(c) for c in partition_by) + ")"


def to_sql(
    expr: Any,
    *,
    allowed_columns: Optional[Set[str]] = None,
    window: bool = False,
    partition_by: Optional[Sequence[str]] = None,
) -> str:
    """Convert a JSON AST expression into a SAFE SQL expression string.

    Supported node shapes:
      - {"col": "MyColumn"}
      - {"val": <literal>}
      - {"op": "+", "left": <expr>, "right": <expr>}   (+ - * / // % ^)
      - {"op": ">=", "left": <expr>, "right": <expr>}
      - {"op": "and", "args": [<expr>, <expr>, ...]}
      - {"op": "not", "arg": <expr>}
      - {"op": "is_null", "arg": <expr>} / {"op": "not_null", "arg": <expr>}
      - {"op": "in", "left": <expr>, "right": {"val": [..]}}
      - {"op": "between", "value": <expr>, "low": <expr>, "high": <expr>, "inclusive": true}
      - {"op": "if_else", "cond": <expr>, "true": <expr>, "false": <expr>}
      - {"op": "func", "name": "strftime", "args": [..]}
      - shorthand func: {"op":"strftime","args":[..]}
      - aggregates: {"op": "mean", "args": [<expr>]}, {"op": "n", "args": []}

    With window=True aggregates become window functions partitioned by
    partition_by, which is how grouped mutate() and filter() are expressed.

    This intentionally does NOT accept raw SQL strings.
    """
    kw = dict(allowed_columns=allowed_columns, window=window, partition_by=partition_by)

    if isinstance(expr, dict):
        if "col" in expr:
            col = expr["col"]
            if allowed_columns is not None and col not in allowed_columns:
                raise ExprError(f"Unknown column: {col}")
            return q_ident(col)
        if "val" in expr:
            v = expr["val"]
            # IN expects list literal sometimes; handled below
            if isinstance(v, list):
                return "(" + ", ".join(q_lit(x) for x in v) + ")"
            return q_lit(v)

        op = expr.get("op")
        if not op:
            raise ExprError("Expression missing op")

        # logical n-ary
        if op in _LOGICAL:
            args = expr.get("args")
            if not isinstance(args, list) or len(args) < 2:
                raise ExprError(f"{op} requires args list")
            parts = [to_sql(a, **kw) for a in args]
            joiner = " AND " if op == "and" else " OR "
            return "(" + joiner.join(parts) + ")"

        # unary
        if op in _UNARY and "arg" in expr:
            arg = expr.get("arg")
            if arg is None:
                raise ExprError(f"{op} requires arg")
            a = to_sql(arg, **kw)
            if op == "not":
                return f"(NOT {a})"
            return f"(-{a})"

        if op in ("is_null", "not_null"):
            if expr.get("arg") is None:
                raise ExprError(f"{op} requires arg")
            a = to_sql(expr["arg"], **kw)
            return f"({a} IS NULL)" if op == "is_null" else f"({a} IS NOT NULL)"

        # between
        if op == "between":
            v = to_sql(expr.get("value"), **kw)
            low = to_sql(expr.get("low"), **kw)
            high = to_sql(expr.get("high"), **kw)
            inclusive = bool(expr.get("inclusive", True))
            if inclusive:
                return f"({v} BETWEEN {low} AND {high})"
            return f"({v} > {low} AND {v} < {high})"

        # IN
        if op == "in":
            left = to_sql(expr.get("left"), **kw)
            right = expr.get("right")
            if not isinstance(right, dict) or "val" not in right or not isinstance(right["val"], list):
                raise ExprError("in requires right={val:[...]} ")
            if not right["val"]:
                return "FALSE"
            lst = ", ".join(q_lit(x) for x in right["val"])
            return f"({left} IN ({lst}))"

        if op == "if_else":
            cond = to_sql(expr.get("cond"), **kw)
            yes = to_sql(expr.get("true"), **kw)
            no = to_sql(expr.get("false"), **kw)
            return f"(CASE WHEN {cond} THEN {yes} ELSE {no} END)"

        if op == "^":
            left = to_sql(expr.get("left"), **kw)
            right = to_sql(expr.get("right"), **kw)
            return f"POWER({left}, {right})"

        # binary ops
        if op in _BINOPS or op in _CMPOPS:
            left = to_sql(expr.get("left"), **kw)
            right = to_sql(expr.get("right"), **kw)
            sop = _BINOPS.get(op) or _CMPOPS[op]
            return f"({left} {sop} {right})"

        name = _func_name(expr)
        args = expr.get("args")
        if args is None:
            args = []
        if not isinstance(args, list):
            raise ExprError(f"{name} requires args list")

        if name in _AGG_FUNCS:
            return _aggregate_sql(name, args, **kw)

        if name in _ALLOWED_FUNCS:
            expected = _ALLOWED_FUNCS[name]
            if not _arity_ok(expected, len(args)):
                raise ExprError(f"{name} wrong number of args")
            sql_args = [to_sql(a, **kw) for a in args]
            # DuckDB date_trunc expects unit as string literal, so allow {val:"month"}
            if name in {"strftime", "date_trunc"}:
                return f"{name}({', '.join(sql_args)})"
            return f"{name.upper()}({', '.join(sql_args)})"

        raise ExprError(f"Unsupported op/function: {op}")

    raise ExprError("Expression must be an object")


def _aggregate_sql(name: str, args: List[Any], *, allowed_columns, window, partition_by) -> str:
    # aggregates never nest, so their arguments are plain row expressions
    inner_kw = dict(allowed_columns=allowed_columns, window=False, partition_by=None)
    if name == "n":
        if args:
            raise ExprError("n() takes no arguments")
        sql = "COUNT(*)"
    else:
        if len(args) != 1:
            raise ExprError(f"{name}() takes exactly one argument")
        a = to_sql(args[0], **inner_kw)
        if name == "n_distinct":
            sql = f"COUNT(DISTINCT {a})"
        else:
            sql = f"{_AGG_FUNCS[name]}({a})"
    if window:
        sql += _over(partition_by)
    return sql


def _walk(expr: Any) -> Iterable[dict]:
    if isinstance(expr, dict):
        yield expr
        for key, value in expr.items():
            if key in ("col", "val"):
                continue
            yield from _walk(value)
    elif isinstance(expr, list):
        for item in expr:
            yield from _walk(item)


def referenced_columns(expr: Any) -> List[str]:
    """Column names an expression reads, in first-seen order."""
    seen: List[str] = []
    for node in _walk(expr):
        col = node.get("col")
        if isinstance(col, str) and col not in seen:
            seen.append(col)
    return seen


def has_aggregate(expr: Any) -> bool:
    for node in _walk(expr):
        if "col" in node or "val" in node or not node.get("op"):
            continue
        if node["op"] in _LOGICAL or node["op"] in _BINOPS or node["op"] in _CMPOPS:
            continue
        if _func_name(node) in _AGG_FUNCS:
            return True
    return False
