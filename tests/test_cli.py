"""Tests for the node-flow command line runner."""

import json

import pytest

from node_flow_engine.runner import get_available_flows, main, parse_input_args
from tests.helpers import edge, node


@pytest.fixture
def flow_file(tmp_path):
    path = tmp_path / "double.json"
    path.write_text(json.dumps({
        "name": "Double",
        "nodes": [node("n", "input/number"), node("m", "utility/math", b=2, operation="multiply")],
        "edges": [edge("n", "m", "value", "a")],
    }))
    return path


def run_cli(tmp_path, *args):
    return main(["--config", str(tmp_path / "absent.yaml"), "--quiet", *args])


def test_parse_input_args():
    assert parse_input_args(["a=1", "b=hello", "c=[1, 2]", "broken"]) == {
        "a": 1,
        "b": "hello",
        "c": [1, 2],
    }
    assert parse_input_args(None) == {}


def test_available_flows(flow_file, tmp_path):
    (tmp_path / "junk.json").write_text("{")
    flows = get_available_flows(tmp_path)
    assert [f["id"] for f in flows] == ["double"]
    assert flows[0]["name"] == "Double"


def test_run_flow_writes_report(tmp_path, flow_file, registry, capsys):
    output = tmp_path / "out" / "report.json"
    code = run_cli(tmp_path, str(flow_file), "-i", "value=21", "-o", str(output))
    assert code == 0
    assert "EXECUTION COMPLETE" in capsys.readouterr().out
    assert json.loads(output.read_text())["last_output"] == {"result": 42}


def test_dry_run(tmp_path, flow_file, registry):
    assert run_cli(tmp_path, str(flow_file), "--dry-run") == 0


def test_invalid_flow_fails(tmp_path, registry, capsys):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"nodes": [node("x", "no/such_type")]}))
    assert run_cli(tmp_path, str(path)) == 1
    assert "Unknown node type" in capsys.readouterr().out


def test_failed_run_exit_code(tmp_path, registry):
    path = tmp_path / "fails.json"
    path.write_text(json.dumps({"nodes": [node("f", "test/fail")]}))
    assert run_cli(tmp_path, str(path)) == 1


def test_missing_flow_file(tmp_path, registry):
    assert run_cli(tmp_path, str(tmp_path / "nope.json")) == 1


def test_list_nodes(tmp_path, registry, capsys):
    assert run_cli(tmp_path, "--list-nodes") == 0
    assert "logic/for_each" in capsys.readouterr().out
