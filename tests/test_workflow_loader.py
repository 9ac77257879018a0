"""Tests for the workflow loader (workflow document -> graph)."""

import json
import random

import pytest
from wizflow.errors import MalformedDocument
from wizflow.workflow.compiler import compile_workflow, compile_graph
from wizflow.workflow.graph import WorkflowGraph
from wizflow.workflow.loader import (
    load_document, load_into_graph, load_document_file, parse_document,
    snapshot_graph, restore_snapshot,
)
from wizflow.workflow.models import TaskNode, TaskType, TaskStatus, Edge, Position, OutputSpec


def sample_document():
    return {
        "workflow_name": "nightly",
        "description": "Build, report, notify",
        "version": "1.0",
        "tasks": [
            {"id": "build", "name": "Build", "type": "SHELL", "status": "PENDING",
             "loading": False, "breakpoint": True, "depends_on": [],
             "position": {"x": 10, "y": 20}, "command": "make all",
             "outputs": {"log": {"type": "file", "path": "build.log"}}},
            {"id": "report", "name": "Report", "type": "RESTAPI", "status": "PENDING",
             "loading": False, "breakpoint": False, "depends_on": ["build"],
             "method": "POST", "url": "https://ci.example.com/report",
             "headers": {"Content-Type": "application/json"}},
            {"id": "notify", "name": "Notify", "type": "EMAIL", "status": "PENDING",
             "loading": False, "breakpoint": False, "depends_on": ["build", "report"],
             "position": {"x": 300, "y": 40}, "subject": "Nightly done",
             "emailBody": "See report", "recipients": ["dev@example.com"]},
        ],
    }


def sample_graph():
    graph = WorkflowGraph(name="sample", description="round trip")
    graph.add_node(TaskNode(id="A", task_type=TaskType.SHELL, label="A", command="echo 1",
                            position=Position(5, 6), file="data.csv",
                            outputs={"out": OutputSpec(type="file", path="out.txt")}))
    graph.add_node(TaskNode(id="B", task_type=TaskType.RESTAPI, label="B", method="GET",
                            url="https://api.example.com", position=Position(100, 50),
                            outputs={"json": OutputSpec(type="json", json_path="$.items")}))
    graph.add_node(TaskNode(id="C", task_type=TaskType.EMAIL, label="C", subject="hi",
                            recipients=["x@example.com"], position=Position(0, 300),
                            status=TaskStatus.COMPLETED))
    graph.connect("A", "B")
    graph.connect("B", "C")
    graph.connect("A", "C")
    return graph


def test_load_document_builds_nodes_and_edges():
    """One node per task, one edge per depends_on entry."""
    nodes, edges = load_document(sample_document())

    assert [n.id for n in nodes] == ["build", "report", "notify"]
    assert nodes[0].label == "Build"
    assert nodes[0].task_type == TaskType.SHELL
    assert nodes[0].breakpoint is True
    assert nodes[0].position == Position(10, 20)
    assert nodes[0].outputs == {"log": OutputSpec(type="file", path="build.log")}
    assert nodes[1].headers == {"Content-Type": "application/json"}
    assert nodes[2].email_body == "See report"
    assert [(e.source, e.target) for e in edges] == [
        ("build", "report"), ("build", "notify"), ("report", "notify"),
    ]
    assert edges[0].id == "build-report"
    assert all(e.animated and e.marker_end == "arrowclosed" for e in edges)


def test_missing_position_gets_random_placement():
    """Tasks without a position are placed uniformly in the canvas area."""
    nodes, _ = load_document(sample_document(), rng=random.Random(7))

    report = nodes[1]
    assert 0 <= report.position.x < 500
    assert 0 <= report.position.y < 500


def test_round_trip_preserves_graph():
    """load(compile(G)) gives back the same nodes and dependency edges."""
    graph = sample_graph()

    doc = compile_graph(graph)
    nodes, edges = load_document(doc)

    assert nodes == graph.nodes
    assert {(e.source, e.target) for e in edges} == {(e.source, e.target) for e in graph.edges}


def test_load_is_idempotent():
    """Loading the same document twice gives the same edge set."""
    doc = sample_document()

    _, first = load_document(doc)
    _, second = load_document(doc)

    assert {(e.id, e.source, e.target) for e in first} == {(e.id, e.source, e.target) for e in second}


def test_missing_tasks_is_malformed():
    """A document without tasks is rejected."""
    with pytest.raises(MalformedDocument, match="Missing required top-level field: tasks"):
        load_document({"workflow_name": "empty"})


def test_tasks_must_be_a_list():
    """tasks has to be a list."""
    with pytest.raises(MalformedDocument, match="must be a list"):
        load_document({"workflow_name": "bad", "tasks": {"a": {}}})


def test_invalid_task_is_malformed():
    """Schema violations surface as MalformedDocument."""
    doc = {"tasks": [{"id": "x", "name": "x", "type": "FTP"}]}
    with pytest.raises(MalformedDocument, match="validation error"):
        load_document(doc)


def test_email_task_with_outputs_is_malformed():
    """EMAIL tasks do not expose outputs."""
    doc = {"tasks": [{"id": "m", "name": "m", "type": "EMAIL",
                      "outputs": {"x": {"type": "file", "path": "x"}}}]}
    with pytest.raises(MalformedDocument, match="Invalid task m"):
        load_document(doc)


def test_dangling_dependency_rejected_or_dropped():
    """Unresolved depends_on entries follow the configured policy."""
    doc = {"tasks": [{"id": "a", "name": "a", "type": "SHELL", "depends_on": ["missing"]}]}

    with pytest.raises(MalformedDocument, match="unknown task: missing"):
        load_document(doc)

    nodes, edges = load_document(doc, dangling="drop")
    assert [n.id for n in nodes] == ["a"]
    assert edges == []


def test_duplicate_task_ids_rejected():
    """Task ids must be unique within a document."""
    doc = {"tasks": [{"id": "a", "name": "a", "type": "SHELL"},
                     {"id": "a", "name": "again", "type": "SHELL"}]}
    with pytest.raises(MalformedDocument, match="Duplicate task id"):
        load_document(doc)


def test_nodes_are_wired_to_the_controller():
    """node.update and node.delete go through the graph."""
    graph = WorkflowGraph()
    load_into_graph(graph, sample_document())

    graph.get("report").update(url="https://ci.example.com/v2", method="put")
    assert graph.get("report").url == "https://ci.example.com/v2"
    assert graph.get("report").method == "PUT"

    graph.get("build").delete()
    assert "build" not in graph
    assert [(e.source, e.target) for e in graph.edges] == [("report", "notify")]


def test_load_into_graph_keeps_graph_on_error():
    """A failed load leaves the previous graph untouched."""
    graph = WorkflowGraph(name="keep")
    load_into_graph(graph, sample_document())
    before = (graph.name, graph.nodes, list(graph.edges))

    with pytest.raises(MalformedDocument):
        load_into_graph(graph, {"workflow_name": "broken", "tasks": [
            {"id": "a", "name": "a", "type": "SHELL", "depends_on": ["zzz"]}]})

    assert (graph.name, graph.nodes, graph.edges) == before


def test_parse_document_json_and_yaml():
    """Documents decode from JSON text and from YAML text."""
    as_json = parse_document(json.dumps(sample_document()))
    as_yaml = parse_document("""
workflow_name: nightly
tasks:
  - id: build
    name: Build
    type: SHELL
    command: make all
  - id: report
    name: Report
    type: RESTAPI
    depends_on: [build]
""", fmt="yaml")

    assert as_json.task_ids() == ["build", "report", "notify"]
    assert as_yaml.tasks[1].depends_on == ["build"]


def test_parse_document_rejects_bad_json():
    """Undecodable text is a malformed document."""
    with pytest.raises(MalformedDocument, match="Could not decode"):
        parse_document("{not json")


def test_parse_document_rejects_unknown_format():
    """Only json and yaml are decoded."""
    with pytest.raises(MalformedDocument, match="Unsupported document format"):
        parse_document("{}", fmt="toml")


def test_load_document_file(tmp_path):
    """The file suffix selects the decoder."""
    path = tmp_path / "nightly.json"
    path.write_text(json.dumps(sample_document()))

    doc = load_document_file(path)

    assert doc.workflow_name == "nightly"


def test_snapshot_round_trip():
    """A persisted snapshot restores nodes and edges with derived ids."""
    graph = sample_graph()

    data = json.loads(json.dumps(snapshot_graph(graph)))
    nodes, edges = restore_snapshot(data, controller=graph)

    assert nodes == graph.nodes
    assert [e.id for e in edges] == ["A-B", "B-C", "A-C"]
    assert all(n.controller is graph for n in nodes)


def test_restore_snapshot_rejects_garbage():
    """Snapshots missing required keys are malformed."""
    with pytest.raises(MalformedDocument, match="Invalid workflow snapshot"):
        restore_snapshot({"nodes": [{"id": "a"}], "edges": []})


def test_load_document_file_rejects_invalid_utf8(tmp_path):
    """Bytes that are not UTF-8 are a malformed document."""
    path = tmp_path / "binary.json"
    path.write_bytes(b'{"tasks": [\xff\xfe]}')

    with pytest.raises(MalformedDocument, match="Could not decode"):
        load_document_file(path)
