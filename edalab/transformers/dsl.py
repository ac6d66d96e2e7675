"""Small Python front-end for the expression AST.

``col("dep_delay") > 120`` builds ``{"op": ">", "left": {"col": "dep_delay"},
"right": {"val": 120}}``, the same shape the HTTP API accepts as JSON.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable


class Expr:
    __slots__ = ("node",)

    # == builds an expression, so Expr cannot be hashed
    __hash__ = None  # type: ignore[assignment]

    def __init__(self, node: Dict[str, Any]):
        self.node = node

    def __repr__(self) -> str:
        return f"Expr({self.node!r})"

    def _bin(self, op: str, other: Any) -> "Expr":
        return Expr({"op": op, "left": self.node, "right": to_ast(other)})

    def _rbin(self, op: str, other: Any) -> "Expr":
        return Expr({"op": op, "left": to_ast(other), "right": self.node})

    # arithmetic
    def __add__(self, other): return self._bin("+", other)
    def __radd__(self, other): return self._rbin("+", other)
    def __sub__(self, other): return self._bin("-", other)
    def __rsub__(self, other): return self._rbin("-", other)
    def __mul__(self, other): return self._bin("*", other)
    def __rmul__(self, other): return self._rbin("*", other)
    def __truediv__(self, other): return self._bin("/", other)
    def __rtruediv__(self, other): return self._rbin("/", other)
    def __floordiv__(self, other): return self._bin("//", other)
    def __rfloordiv__(self, other): return self._rbin("//", other)
    def __mod__(self, other): return self._bin("%", other)
    def __rmod__(self, other): return self._rbin("%", other)
    def __pow__(self, other): return self._bin("^", other)
    def __neg__(self): return Expr({"op": "-", "arg": self.node})

    # comparison
    def __eq__(self, other): return self._bin("=", other)  # type: ignore[override]
    def __ne__(self, other): return self._bin("!=", other)  # type: ignore[override]
    def __gt__(self, other): return self._bin(">", other)
    def __ge__(self, other): return self._bin(">=", other)
    def __lt__(self, other): return self._bin("<", other)
    def __le__(self, other): return self._bin("<=", other)

    # logical
    def __and__(self, other): return Expr({"op": "and", "args": [self.node, to_ast(other)]})
    def __rand__(self, other): return Expr({"op": "and", "args": [to_ast(other), self.node]})
    def __or__(self, other): return Expr({"op": "or", "args": [self.node, to_ast(other)]})
    def __ror__(self, other): return Expr({"op": "or", "args": [to_ast(other), self.node]})
    def __invert__(self): return Expr({"op": "not", "arg": self.node})

    def __bool__(self):
        raise TypeError("Use & / | / ~ to combine expressions, not and / or / not")

    def isin(self, values: Iterable[Any]) -> "Expr":
        return Expr({"op": "in", "left": self.node, "right": {"val": list(values)}})

    def between(self, low: Any, high: Any, inclusive: bool = True) -> "Expr":
        return Expr({"op": "between", "value": self.node, "low": to_ast(low), "high": to_ast(high), "inclusive": inclusive})

    def is_null(self) -> "Expr":
        return Expr({"op": "is_null", "arg": self.node})

    def not_null(self) -> "Expr":
        return Expr({"op": "not_null", "arg": self.node})

    def to_ast(self) -> Dict[str, Any]:
        return self.node


def to_ast(value: Any) -> Dict[str, Any]:
    if isinstance(value, Expr):
        return value.node
    if isinstance(value, dict) and ("col" in value or "val" in value or "op" in value):
        return value
    return {"val": value}


def col(name: str) -> Expr:
    return Expr({"col": name})


def lit(value: Any) -> Expr:
    return Expr({"val": value})


def func(name: str, *args: Any) -> Expr:
    return Expr({"op": "func", "name": name, "args": [to_ast(a) for a in args]})


def _colish(x: Any) -> Dict[str, Any]:
    # bare strings inside summary functions name columns, as in dplyr
    return {"col": x} if isinstance(x, str) else to_ast(x)


def n() -> Expr:
    return Expr({"op": "n", "args": []})


def mean(x: Any) -> Expr:
    return Expr({"op": "mean", "args": [_colish(x)]})


def median(x: Any) -> Expr:
    return Expr({"op": "median", "args": [_colish(x)]})


def sd(x: Any) -> Expr:
    return Expr({"op": "sd", "args": [_colish(x)]})


def sum_(x: Any) -> Expr:
    return Expr({"op": "sum", "args": [_colish(x)]})


def min_(x: Any) -> Expr:
    return Expr({"op": "min", "args": [_colish(x)]})


def max_(x: Any) -> Expr:
    return Expr({"op": "max", "args": [_colish(x)]})


def n_distinct(x: Any) -> Expr:
    return Expr({"op": "n_distinct", "args": [_colish(x)]})


def if_else(cond: Any, true: Any, false: Any) -> Expr:
    return Expr({"op": "if_else", "cond": to_ast(cond), "true": to_ast(true), "false": to_ast(false)})


def desc(column: str, nulls: str = "last") -> Dict[str, Any]:
    return {"column": column, "direction": "desc", "nulls": nulls}
