import numpy as np
import pandas as pd
import pytest

from edalab.engine.pipeline import compile_pipeline, compile_pipeline_sql, ensure_pipeline_view, pipeline_hash
from edalab.models.pipelines import PipelineStep
from edalab.transformers.dsl import col, desc, mean, n
from edalab.transformers.expression_builder import ExprError
from edalab.transformers.registry import transformer_registry


@pytest.fixture
def small():
    return pd.DataFrame({
        "year": [2013] * 6,
        "month": [1, 1, 2, 2, 2, 3],
        "day": [1, 2, 1, 1, 3, 1],
        "dep_delay": [10.0, np.nan, 130.0, -5.0, 60.0, 2.0],
        "arr_delay": [5.0, np.nan, 150.0, -20.0, 20.0, 1.0],
        "dest": ["IAH", "HOU", "IAH", "ATL", "IAH", "ORD"],
        "tailnum": ["N1", "N2", "N3", "N1", "N2", "N3"],
    })


@pytest.fixture
def tbl(db, small):
    return db.frame(small, name="small")


def test_verbs_are_lazy_until_collect(tbl):
    q = tbl.filter(col("dest") == "IAH").arrange(desc("dep_delay"))
    assert len(q.steps) == 2
    assert len(tbl.steps) == 0
    sql = q.show_query()
    assert "WHERE" in sql and "ORDER BY" in sql
    out = q.collect()
    assert out["dep_delay"].tolist() == [130.0, 60.0, 10.0]


def test_filter_treats_missing_as_false(tbl):
    assert tbl.filter(col("dep_delay") > 0).count_rows() == 4
    assert tbl.filter(col("month").isin([1, 2])).count_rows() == 5


def test_arrange_puts_missing_last(tbl):
    out = tbl.arrange("dep_delay").collect()
    assert np.isnan(out["dep_delay"].iloc[-1])
    out = tbl.arrange(desc("dep_delay")).collect()
    assert np.isnan(out["dep_delay"].iloc[-1])


def test_distinct(tbl):
    pairs = tbl.distinct("dest").collect()
    assert list(pairs.columns) == ["dest"]
    assert sorted(pairs["dest"]) == ["ATL", "HOU", "IAH", "ORD"]
    keep_all = tbl.distinct("dest", keep_all=True).collect()
    assert len(keep_all) == 4 and keep_all.shape[1] == 7


def test_mutate_sequential_before_after_keep(tbl):
    out = tbl.mutate(gain=col("dep_delay") - col("arr_delay"), double=col("gain") * 2).collect()
    assert list(out.columns[-2:]) == ["gain", "double"]
    assert out["double"].iloc[0] == 10.0

    front = tbl.mutate(gain=col("dep_delay") - col("arr_delay"), _before=1)
    assert front.columns[0] == "gain"
    after_day = tbl.mutate(gain=col("dep_delay") - col("arr_delay"), _after="day")
    assert after_day.columns[:4] == ["year", "month", "day", "gain"]

    used = tbl.mutate(
        gain=col("dep_delay") - col("arr_delay"),
        hours=col("dep_delay") / 60,
        gain_per_hour=col("gain") / col("hours"),
        _keep="used",
    )
    assert used.columns == ["dep_delay", "arr_delay", "gain", "hours", "gain_per_hour"]


def test_mutate_overwrites_in_place(tbl):
    out = tbl.mutate(month=col("month") * 10)
    assert out.columns == tbl.columns
    assert out.collect()["month"].tolist()[:2] == [10, 10]


def test_grouped_mutate_uses_window(tbl):
    out = tbl.group_by("month").mutate(avg=mean("dep_delay")).arrange("month", "day").collect()
    assert out.loc[out["month"] == 2, "avg"].round(3).unique().tolist() == [61.667]
    assert out.attrs["groups"] == ["month"]


def test_grouped_filter_uses_qualify(tbl):
    q = tbl.group_by("month").filter(col("dep_delay") == {"op": "max", "args": [{"col": "dep_delay"}]})
    assert "QUALIFY" in q.show_query()
    assert sorted(q.collect()["dep_delay"]) == [2.0, 10.0, 130.0]


def test_select_helpers(tbl):
    assert tbl.select("year:day").columns == ["year", "month", "day"]
    assert tbl.select("!year:day").columns == ["dep_delay", "arr_delay", "dest", "tailnum"]
    assert tbl.select("where:character").columns == ["dest", "tailnum"]
    assert tbl.select("ends_with:delay").columns == ["dep_delay", "arr_delay"]
    assert tbl.select(tail_num="tailnum").columns == ["tail_num"]
    with pytest.raises(ExprError, match="Unknown column"):
        tbl.select("nope").show_query()


def test_select_keeps_grouping_columns(tbl):
    q = tbl.group_by("month").select("dep_delay")
    assert q.columns == ["month", "dep_delay"]


def test_rename_and_relocate(tbl):
    assert tbl.rename(tail_num="tailnum").columns[-1] == "tail_num"
    assert tbl.relocate().columns == tbl.columns
    assert tbl.relocate("dest", "tailnum").columns[:2] == ["dest", "tailnum"]
    assert tbl.relocate("year:day", after="tailnum").columns[-3:] == ["year", "month", "day"]


def test_summarize_orders_by_groups_and_drops_last(tbl):
    q = tbl.group_by("year", "month").summarize(avg_delay=mean("dep_delay"), n=n())
    assert q.group_vars() == ["year"]
    out = q.collect()
    assert out["month"].tolist() == [1, 2, 3]
    # missing values are left out of the mean
    assert out["avg_delay"].tolist()[0] == 10.0
    assert out["n"].tolist() == [2, 3, 1]


def test_summarize_groups_option_and_distinct_groups(tbl):
    assert tbl.group_by("month").summarize(_groups="keep", n=n()).group_vars() == ["month"]
    assert tbl.group_by("month", "day").summarize(_groups="drop", n=n()).group_vars() == []
    assert tbl.group_by("month").summarize().collect()["month"].tolist() == [1, 2, 3]
    with pytest.raises(ExprError):
        tbl.summarize().show_query()


def test_count(tbl):
    out = tbl.count("dest", sort=True).collect()
    assert out.iloc[0].tolist() == ["IAH", 3]
    assert tbl.count().collect()["n"].tolist() == [6]


def test_head_and_repr(tbl):
    assert tbl.head(2).count_rows() == 2
    text = repr(tbl.group_by("dest"))
    assert text.startswith("# Source:")
    assert "# Groups:   dest" in text


def test_compile_without_database():
    steps = [
        PipelineStep(op="filter", args={"exprs": [{"op": ">", "left": {"col": "x"}, "right": {"val": 1}}]}),
        PipelineStep(op="group_by", args={"columns": ["g"]}),
        PipelineStep(op="summarise", args={"columns": [{"name": "n", "expr": {"op": "n", "args": []}}]}),
    ]
    sql, ctx = compile_pipeline('"t"', steps)
    assert sql.startswith('SELECT "g", COUNT(*) AS "n"')
    assert ctx.groups == []
    assert compile_pipeline_sql('"t"', steps) == sql
    # select needs the column list
    with pytest.raises(ExprError):
        compile_pipeline_sql('"t"', [PipelineStep(op="select", args={"columns": ["a:b"]})])


def test_pipeline_hash_is_stable():
    a = [PipelineStep(op="head", args={"n": 3})]
    b = [PipelineStep(op="head", args={"n": 3})]
    assert pipeline_hash(a) == pipeline_hash(b)
    assert pipeline_hash(a) != pipeline_hash([PipelineStep(op="head", args={"n": 4})])


def test_ensure_pipeline_view(db, small):
    db.write_table("small", small)
    steps = [PipelineStep(op="filter", args={"exprs": [{"op": "=", "left": {"col": "dest"}, "right": {"val": "IAH"}}]})]
    view = ensure_pipeline_view(db.con, "small", '"small"', steps)
    assert db.get_query(f"SELECT COUNT(*) AS n FROM {view}")["n"].iloc[0] == 3


def test_registry():
    assert transformer_registry.get("summarise").op == "summarize"
    assert transformer_registry.get("slice_head").op == "head"
    assert "mutate" in transformer_registry.available_ops()
    with pytest.raises(ValueError, match="Unknown transform op"):
        transformer_registry.get("pivot_longer")


def test_grouped_steps_keep_arrange_order(tbl):
    out = tbl.arrange(desc("dep_delay")).group_by("month").mutate(avg=mean("dep_delay")).collect()
    assert out["dep_delay"].tolist()[:5] == [130.0, 60.0, 10.0, 2.0, -5.0]
    assert np.isnan(out["dep_delay"].iloc[-1])

    biggest = {"op": "max", "args": [{"col": "dep_delay"}]}
    kept = tbl.arrange("dep_delay").group_by("month").filter(col("dep_delay") == biggest).collect()
    assert kept["dep_delay"].tolist() == [2.0, 10.0, 130.0]

    renamed = tbl.arrange(desc("dep_delay")).rename(delay="dep_delay").group_by("dest").mutate(n=n())
    assert renamed.collect()["delay"].tolist()[:3] == [130.0, 60.0, 10.0]


def test_filter_rejects_raw_sql():
    steps = [PipelineStep(op="filter", args={"where": "1 = 1"})]
    with pytest.raises(ExprError, match="raw SQL"):
        compile_pipeline_sql('"t"', steps)


def test_arrange_validates_nulls(tbl):
    assert tbl.arrange(desc("dep_delay", nulls="first")).collect()["dep_delay"].isna().iloc[0]
    with pytest.raises(ExprError, match="nulls"):
        tbl.arrange({"column": "dep_delay", "nulls": "last; DROP TABLE small"}).show_query()
