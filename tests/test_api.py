import pytest
from fastapi.testclient import TestClient

from edalab.main import create_app


@pytest.fixture
def client():
    return TestClient(create_app())


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["ok"] is True


def test_list_datasets(client):
    body = client.get("/datasets").json()
    assert body["count"] == len(body["datasets"])
    diamonds = next(d for d in body["datasets"] if d["name"] == "diamonds")
    assert diamonds["package"] == "ggplot2"
    assert diamonds["factors"]["cut"][0] == "Fair"


def test_profile_and_summary(client, raw_frames):
    r = client.get("/datasets/penguins/profile", params={"sample_limit": 3})
    assert r.status_code == 200
    body = r.json()
    assert body["name"] == "penguins"
    assert body["n_rows"] == len(raw_frames["penguins"])
    assert len(body["sample_rows"]) == 3
    roles = {c["name"]: c["role"] for c in body["schema"]}
    assert roles["body_mass_g"] == "numeric"

    r = client.get("/datasets/penguins/summary")
    assert r.status_code == 200
    assert r.json()["columns"]["body_mass_g"][0].startswith("Min.")


def test_unknown_dataset_is_404(client):
    assert client.get("/datasets/iris/profile").status_code == 404
    r = client.post("/datasets/iris/query", json={"steps": []})
    assert r.status_code == 404
    assert r.json()["detail"] == "Unknown dataset: iris"


def test_query_pipeline(client, raw_frames):
    steps = [
        {"op": "group_by", "args": {"columns": ["cut"]}},
        {"op": "summarize", "args": {"columns": [
            {"name": "avg_price", "expr": {"op": "mean", "args": [{"col": "price"}]}},
            {"name": "n", "expr": {"op": "n", "args": []}},
        ]}},
    ]
    r = client.post("/datasets/diamonds/query", json={"steps": steps})
    assert r.status_code == 200
    body = r.json()
    assert body["columns"] == ["cut", "avg_price", "n"]
    assert body["groups"] == []
    assert body["row_count"] == raw_frames["diamonds"]["cut"].nunique()
    assert [row["cut"] for row in body["data"]] == ["Fair", "Good", "Very Good", "Premium", "Ideal"]
    assert sum(row["n"] for row in body["data"]) == len(raw_frames["diamonds"])
    assert "GROUP BY" in body["sql"]


def test_query_limit(client):
    r = client.post("/datasets/mpg/query", json={"steps": [], "limit": 5})
    body = r.json()
    assert len(body["data"]) == 5
    assert body["row_count"] > 5


def test_compile_only(client):
    steps = [{"op": "filter", "args": {"exprs": [{"op": ">", "left": {"col": "dep_delay"}, "right": {"val": 120}}]}}]
    r = client.post("/datasets/flights/query/sql", json={"steps": steps})
    assert r.status_code == 200
    body = r.json()
    assert "WHERE" in body["sql"]
    assert len(body["pipeline_hash"]) == 64


def test_bad_pipeline_is_400(client):
    r = client.post("/datasets/mpg/query", json={"steps": [{"op": "pivot_longer", "args": {}}]})
    assert r.status_code == 400
    r = client.post("/datasets/mpg/query", json={"steps": [{"op": "select", "args": {"columns": ["nope"]}}]})
    assert r.status_code == 400


def test_ops_catalog(client):
    body = client.get("/pipelines/ops").json()
    ops = {item["op"]: item for item in body["ops"]}
    assert "summarize" in ops
    assert "summarise" in ops["summarize"]["aliases"]
    assert client.get("/pipelines/ops/summarise").json()["op"] == "summarize"
    assert client.get("/pipelines/ops/pivot_longer").status_code == 404


def test_plot_png(client):
    req = {
        "mapping": {"x": "displ", "y": "hwy"},
        "layers": [{"geom": "point", "mapping": {"color": "class"}}, {"geom": "smooth", "params": {"method": "lm"}}],
        "facet": {"kind": "wrap", "formula": "~drv"},
        "labs": {"title": "Engine size and highway mileage"},
        "width": 4,
        "height": 3,
        "dpi": 40,
    }
    r = client.post("/plots/mpg", json=req)
    assert r.status_code == 200
    assert r.headers["content-type"] == "image/png"
    assert r.content[:4] == b"\x89PNG"


def test_plot_errors(client):
    r = client.post("/plots/mpg", json={"mapping": {"x": "displ"}, "layers": [{"geom": "point"}]})
    assert r.status_code == 400
    assert "missing aesthetics" in r.json()["detail"]
    r = client.post("/plots/mpg", json={"mapping": {"x": "displ", "y": "hwy"}, "layers": [{"geom": "violin"}]})
    assert r.status_code == 400


def test_database_errors_are_400(client):
    steps = [
        {"op": "mutate", "args": {"columns": [{"name": "z", "expr": {"op": "*", "left": {"col": "nope"}, "right": {"val": 2}}}]}},
        {"op": "select", "args": {"columns": ["z"]}},
    ]
    r = client.post("/datasets/mpg/query/sql", json={"steps": steps})
    assert r.status_code == 400
    assert "nope" in r.json()["detail"]
    r = client.post("/plots/mpg", json={"mapping": {"x": "z", "y": "z"}, "layers": [{"geom": "point"}], "steps": steps})
    assert r.status_code == 400


def test_filter_refuses_raw_sql(client):
    steps = [{"op": "filter", "args": {"where": "1 = 1"}}]
    r = client.post("/datasets/mpg/query", json={"steps": steps})
    assert r.status_code == 400
    assert "data" not in r.json()
    bad_nulls = [{"op": "arrange", "args": {"sort": [{"column": "hwy", "nulls": "last, (SELECT 1)"}]}}]
    assert client.post("/datasets/mpg/query", json={"steps": bad_nulls}).status_code == 400
