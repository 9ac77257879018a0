"""
Loader that turns a WorkflowDocument (imported file, stored workflow) back into
editable graph nodes and edges.

Edges are not stored in a document, only each task's depends_on list, so every
edge is re-derived from (source, target) on load. Nodes get the graph's
controller handed in rather than any stored behaviour.
"""
import json
import logging
import random
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from ..errors import MalformedDocument
from .graph import GraphController, WorkflowGraph
from .models import TaskNode, Edge, Position, PAYLOAD_FIELDS
from .schema import WorkflowDocument, CompiledTask, validate_document

logger = logging.getLogger(__name__)

DANGLING_POLICIES = ("reject", "drop")
DEFAULT_CANVAS_SIZE = 500.0

_FORMATS = {".json": "json", ".yaml": "yaml", ".yml": "yaml"}


def parse_document(text: str, fmt: str = "json") -> WorkflowDocument:
    """ Decode and validate a workflow document from JSON (default) or YAML text. """
    if fmt not in ("json", "yaml"):
        raise MalformedDocument(f"Unsupported document format: {fmt}")
    try:
        if fmt == "json":
            raw = json.loads(text)
        else:
            raw = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise MalformedDocument(f"Could not decode workflow document: {e}") from e
    return validate_document(raw)


def load_document_file(path: Union[str, Path]) -> WorkflowDocument:
    path = Path(path)
    fmt = _FORMATS.get(path.suffix.lower(), "json")
    data = path.read_bytes()
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedDocument(f"Could not decode workflow document: {e}") from e
    return parse_document(text, fmt=fmt)


def load_document(doc: Union[WorkflowDocument, Dict[str, Any]], *,
                  controller: Optional[GraphController] = None,
                  dangling: str = "reject",
                  rng: Optional[random.Random] = None,
                  canvas_size: float = DEFAULT_CANVAS_SIZE) -> Tuple[List[TaskNode], List[Edge]]:
    """
    Expand a document into (nodes, edges).

    dangling: "reject" raises MalformedDocument on a depends_on entry that is
    not a task of the document, "drop" skips it with a warning.
    """
    if dangling not in DANGLING_POLICIES:
        raise ValueError(f"Unknown dangling dependency policy: {dangling}")
    if not isinstance(doc, WorkflowDocument):
        doc = validate_document(doc)
    rng = rng or random.Random()

    known = set()
    for task in doc.tasks:
        if task.id in known:
            raise MalformedDocument(f"Duplicate task id: {task.id}")
        known.add(task.id)

    nodes = [_task_to_node(task, rng, canvas_size, controller) for task in doc.tasks]

    edges: List[Edge] = []
    for task in doc.tasks:
        for source in task.depends_on:
            if source not in known:
                if dangling == "drop":
                    logger.warning("Dropping dependency of %s on unknown task %s", task.id, source)
                    continue
                raise MalformedDocument(f"Task {task.id} depends on unknown task: {source}")
            edges.append(Edge(source=source, target=task.id))

    return nodes, edges


def load_into_graph(graph: WorkflowGraph, doc: Union[WorkflowDocument, Dict[str, Any]],
                    **kwargs) -> WorkflowGraph:
    """ Replace the content of `graph` with a document. Leaves it untouched on error. """
    if not isinstance(doc, WorkflowDocument):
        doc = validate_document(doc)
    nodes, edges = load_document(doc, controller=graph, **kwargs)
    graph.replace(nodes, edges)
    graph.name = doc.workflow_name
    graph.description = doc.description
    return graph


def _task_to_node(task: CompiledTask, rng: random.Random, canvas_size: float,
                  controller: Optional[GraphController]) -> TaskNode:
    if task.position is not None:
        position = Position(x=task.position.x, y=task.position.y)
    else:
        position = Position(x=rng.uniform(0, canvas_size), y=rng.uniform(0, canvas_size))

    node = TaskNode(
        id=task.id,
        task_type=task.type,
        label=task.name,
        position=position,
        status=task.status,
        loading=task.loading,
        breakpoint=task.breakpoint,
    )
    payload = task.model_dump(include=set(PAYLOAD_FIELDS), exclude_none=True)
    try:
        node.merge(payload)
    except ValueError as e:
        raise MalformedDocument(f"Invalid task {task.id}: {e}") from e
    node.controller = controller
    return node


# -------------------------
# SNAPSHOTS
# -------------------------

def snapshot_graph(graph: WorkflowGraph) -> Dict[str, List[Dict[str, Any]]]:
    """ Plain node/edge lists for persistence next to the compiled document. """
    nodes = []
    for node in graph.nodes:
        data: Dict[str, Any] = {
            "label": node.label,
            "type": node.task_type.value,
            "status": node.status.value,
            "loading": node.loading,
            "breakpoint": node.breakpoint,
        }
        for key, value in node.payload().items():
            if key == "outputs":
                value = {k: spec.to_dict() for k, spec in value.items()}
            data[key] = value
        nodes.append({"id": node.id, "position": node.position.to_dict(), "data": data})
    return {"nodes": nodes, "edges": [edge.to_dict() for edge in graph.edges]}


def restore_snapshot(data: Dict[str, Any], *,
                     controller: Optional[GraphController] = None) -> Tuple[List[TaskNode], List[Edge]]:
    """ Inverse of snapshot_graph: re-attach the controller, re-derive edge ids. """
    try:
        nodes = []
        for raw in data["nodes"]:
            fields = dict(raw["data"])
            node = TaskNode(
                id=raw["id"],
                task_type=fields.pop("type"),
                label=fields.pop("label", ""),
                position=Position(**raw.get("position", {})),
            )
            node.merge(fields)
            node.controller = controller
            nodes.append(node)
        edges = [
            Edge(source=raw["source"], target=raw["target"],
                 animated=raw.get("animated", True),
                 marker_end=raw.get("marker_end", "arrowclosed"))
            for raw in data["edges"]
        ]
    except (KeyError, TypeError, ValueError) as e:
        raise MalformedDocument(f"Invalid workflow snapshot: {e}") from e
    return nodes, edges
