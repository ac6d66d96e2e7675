import pytest

from edalab.transformers.expression_builder import (
    ExprError,
    has_aggregate,
    q_ident,
    q_lit,
    referenced_columns,
    to_sql,
)


def test_quoting():
    assert q_ident("dep delay") == '"dep delay"'
    assert q_lit("O'Hare") == "'O''Hare'"
    assert q_lit(None) == "NULL"
    assert q_lit(True) == "TRUE"
    assert q_lit(float("nan")) == "NULL"
    assert q_lit(3) == "3"
    with pytest.raises(ExprError):
        q_ident('bad"name')


def test_comparison_and_logic():
    expr = {
        "op": "and",
        "args": [
            {"op": "==", "left": {"col": "month"}, "right": {"val": 1}},
            {"op": "=", "left": {"col": "day"}, "right": {"val": 1}},
        ],
    }
    assert to_sql(expr) == '(("month" = 1) AND ("day" = 1))'


def test_in_between_and_nulls():
    assert to_sql({"op": "in", "left": {"col": "dest"}, "right": {"val": ["IAH", "HOU"]}}) == "(\"dest\" IN ('IAH', 'HOU'))"
    assert to_sql({"op": "in", "left": {"col": "dest"}, "right": {"val": []}}) == "FALSE"
    assert to_sql({"op": "between", "value": {"col": "y"}, "low": {"val": 3}, "high": {"val": 20}}) == '("y" BETWEEN 3 AND 20)'
    assert to_sql({"op": "is_null", "arg": {"col": "dep_time"}}) == '("dep_time" IS NULL)'


def test_arithmetic_and_power():
    assert to_sql({"op": "//", "left": {"col": "sched_dep_time"}, "right": {"val": 100}}) == '("sched_dep_time" // 100)'
    assert to_sql({"op": "^", "left": {"col": "x"}, "right": {"val": 2}}) == 'POWER("x", 2)'


def test_aggregates_plain_and_windowed():
    mean = {"op": "mean", "args": [{"col": "dep_delay"}]}
    assert to_sql(mean) == 'AVG("dep_delay")'
    assert to_sql(mean, window=True, partition_by=["month"]) == 'AVG("dep_delay") OVER (PARTITION BY "month")'
    assert to_sql({"op": "n", "args": []}, window=True) == "COUNT(*) OVER ()"
    assert to_sql({"op": "n_distinct", "args": [{"col": "dest"}]}) == 'COUNT(DISTINCT "dest")'


def test_unknown_function_and_column():
    with pytest.raises(ExprError, match="Unsupported"):
        to_sql({"op": "system", "args": [{"val": "rm -rf"}]})
    with pytest.raises(ExprError, match="Unknown column: z"):
        to_sql({"col": "z"}, allowed_columns={"x", "y"})
    with pytest.raises(ExprError):
        to_sql("price > 3")


def test_referenced_columns_and_aggregate_detection():
    expr = {"op": "/", "left": {"col": "gain"}, "right": {"op": "mean", "args": [{"col": "hours"}]}}
    assert referenced_columns(expr) == ["gain", "hours"]
    assert has_aggregate(expr)
    assert not has_aggregate({"op": ">", "left": {"col": "x"}, "right": {"val": 3}})
