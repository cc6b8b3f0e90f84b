"""Tests for the HTTP API."""

import json

import pytest
from fastapi.testclient import TestClient

from node_flow_engine.server.app import create_app
from tests.helpers import edge, node

ADD_ONE = {
    "name": "Add One",
    "description": "Adds one to the number input",
    "nodes": [
        node("n", "input/number", value=1),
        node("m", "utility/math", b=1),
    ],
    "edges": [edge("n", "m", "value", "a")],
}

BROKEN = {"nodes": [node("r", "logic/run_flow")], "edges": []}

SCHEMA_ONLY = {"nodes": [node("s", "input/schema", fields=[{"name": "mood", "type": "string"}])]}


@pytest.fixture
def client(runner, tmp_path):
    for name, flow in (("add_one", ADD_ONE), ("broken", BROKEN), ("schema_only", SCHEMA_ONLY)):
        (tmp_path / f"{name}.json").write_text(json.dumps(flow))
    app = create_app({"flows_dir": str(tmp_path)}, runner)
    with TestClient(app) as client:
        yield client


class TestSystem:
    def test_health(self, client, registry):
        data = client.get("/health").json()
        assert data["status"] == "healthy"
        assert data["flows_available"] == 3
        assert data["node_types"] == len(registry.list_types())
        assert data["active_runs"] == 0

    def test_node_docs(self, client):
        data = client.get("/docs/nodes").json()
        assert data["format"] == "markdown"
        assert "`utility/math`" in data["content"]


class TestFlows:
    def test_list(self, client):
        flows = client.get("/flows").json()["flows"]
        assert [f["id"] for f in flows] == ["add_one", "broken", "schema_only"]
        assert flows[0]["name"] == "Add One"
        assert flows[0]["node_count"] == 2
        assert flows[1]["name"] == "broken"

    def test_get(self, client):
        data = client.get("/flows/add_one").json()
        assert [n["id"] for n in data["nodes"]] == ["n", "m"]
        assert data["edges"][0]["sourceHandle"] == "value"

    def test_get_unknown(self, client):
        assert client.get("/flows/nope").status_code == 404

    def test_validate(self, client):
        assert client.post("/flows/add_one/validate").json()["valid"] is True

        data = client.post("/flows/broken/validate").json()
        assert data["valid"] is False
        assert data["issues"][0]["node_id"] == "r"


class TestExecute:
    def test_execute(self, client):
        response = client.post("/flows/add_one/execute", json={"run_id": "run-1"})
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["status"] == "completed"
        assert data["run_id"] == "run-1"
        assert data["last_output"] == {"result": 2}
        assert [n["node_id"] for n in data["executed_nodes"]] == ["n", "m"]

    def test_execute_partial(self, client):
        data = client.post("/flows/add_one/execute", json={"end_node_id": "n"}).json()
        assert data["last_output"] == {"value": 1}

    def test_execute_with_input(self, client):
        data = client.post(
            "/flows/add_one/execute", json={"input": {"value": 41}, "start_node_id": "n"}
        ).json()
        assert data["last_output"] == {"result": 42}

    def test_execute_invalid_flow(self, client):
        response = client.post("/flows/broken/execute", json={})
        assert response.status_code == 422
        detail = response.json()["detail"]
        assert "is invalid" in detail["message"]
        assert detail["issues"]

    def test_execute_unknown_start_node(self, client):
        response = client.post("/flows/add_one/execute", json={"start_node_id": "ghost"})
        assert response.status_code == 400
        assert "Start node not found" in response.json()["detail"]

    def test_schema_outputs_are_serialized(self, client):
        data = client.post("/flows/schema_only/execute", json={}).json()
        assert data["last_output"]["result"]["properties"]["mood"]["type"] == "string"

    def test_history(self, client):
        client.post("/flows/add_one/execute", json={"run_id": "a"})
        client.post("/flows/add_one/execute", json={"run_id": "b"})
        data = client.get("/runs/history").json()
        assert data["total"] == 2
        assert [run["run_id"] for run in data["runs"]] == ["b", "a"]

    def test_abort_unknown_run(self, client):
        assert client.post("/runs/ghost/abort", json={"reason": "x"}).status_code == 404


class TestNodes:
    def test_list(self, client):
        data = client.get("/nodes").json()
        assert "logic/for_each" in data["nodes"]["logic"]
        assert data["total"] == sum(len(types) for types in data["nodes"].values())

    def test_manifest(self, client):
        data = client.get("/nodes/utility/math").json()
        assert data["label"] == "Math"
        assert [h["id"] for h in data["inputs"]] == ["operation", "a", "b"]

    def test_unknown_type(self, client):
        assert client.get("/nodes/utility/nope").status_code == 404


class TestConnections:
    def test_against_stored_flow(self, client):
        body = {"flow_id": "add_one", "source": "n", "source_handle": "value", "target": "m", "target_handle": "b"}
        assert client.post("/connections/check", json=body).json() == {"valid": True}

        body["target_handle"] = "a"
        assert client.post("/connections/check", json=body).json() == {"valid": False}

    def test_against_inline_graph(self, client):
        body = {
            "nodes": [node("b", "input/boolean"), node("m", "utility/math")],
            "edges": [],
            "source": "b",
            "source_handle": "value",
            "target": "m",
            "target_handle": "a",
        }
        assert client.post("/connections/check", json=body).json() == {"valid": False}
