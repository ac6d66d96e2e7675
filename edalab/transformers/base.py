from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from edalab.transformers.expression_builder import ExprError, q_ident

# (column name, duckdb type) pairs for a SELECT
Schema = List[Tuple[str, str]]


@dataclass
class StepContext:
    """State threaded through a pipeline while it compiles.

    groups is the active group_by() set and order the last arrange() as
    (column, "DESC NULLS LAST") pairs. describe, when given, returns the
    schema of a SELECT and lets steps resolve column ranges, type selectors
    and relocations the way a lazy database table learns its columns.
    """

    describe: Optional[Callable[[str], Schema]] = None
    groups: List[str] = field(default_factory=list)
    order: List[Tuple[str, str]] = field(default_factory=list)

    def schema(self, sql: str) -> Schema:
        if self.describe is None:
            raise ExprError("This step needs the column list; compile it against a database connection")
        return self.describe(sql)

    def columns(self, sql: str) -> List[str]:
        return [name for name, _ in self.schema(sql)]

    def try_columns(self, sql: str) -> Optional[List[str]]:
        if self.describe is None:
            return None
        return self.columns(sql)

    def order_by(self) -> str:
        """ORDER BY clause restoring the arrange() order, or an empty string."""
        if not self.order:
            return ""
        return " ORDER BY " + ", ".join(f"{q_ident(c)} {how}" for c, how in self.order)

    def keep_order(self, columns: List[str], renamed: Optional[Dict[str, str]] = None) -> None:
        """Follow column renames and forget sort keys that left the table."""
        renamed = renamed or {}
        self.order = [(renamed.get(c, c), how) for c, how in self.order if renamed.get(c, c) in columns]


class Transformer(ABC):
    """A single dplyr-like verb that rewrites SQL.

    Contract: given prior_sql (a SELECT), return a new SELECT that wraps it.
    """

    op: str

    @abstractmethod
    def apply_sql(self, prior_sql: str, args: Dict[str, Any], ctx: StepContext) -> str:
        raise NotImplementedError
