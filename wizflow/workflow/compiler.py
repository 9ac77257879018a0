""" Compile an editable graph into a canonical WorkflowDocument. """

import json
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set

from ..errors import CycleDetected
from .models import TaskNode, Edge, TaskStatus
from .schema import WorkflowDocument, CompiledTask, DOCUMENT_VERSION, document_to_dict


@dataclass(frozen=True)
class CompilerOptions:
    # keep edges whose source is not in the graph (the runner validates them)
    drop_orphan_edges: bool = False
    reject_cycles: bool = False


def compile_workflow(nodes: Iterable[TaskNode], edges: Iterable[Edge], name: str,
                     description: str = "", *,
                     options: Optional[CompilerOptions] = None) -> WorkflowDocument:
    """
    Build the workflow document for a graph.
    Each task's depends_on lists the distinct sources of the edges pointing at
    it, in edge order. Does not mutate its inputs.
    """
    options = options or CompilerOptions()
    nodes = list(nodes)
    known = {node.id for node in nodes} if options.drop_orphan_edges else None
    depends = _dependencies(edges, known)

    tasks = [_compile_task(node, depends.get(node.id, [])) for node in nodes]
    if options.reject_cycles:
        _check_acyclic(tasks)

    return WorkflowDocument(
        workflow_name=name,
        description=description,
        version=DOCUMENT_VERSION,
        tasks=tasks,
    )


def compile_graph(graph, options: Optional[CompilerOptions] = None) -> WorkflowDocument:
    """ Compile a WorkflowGraph using its own name and description. """
    return compile_workflow(graph.nodes, graph.edges, graph.name, graph.description, options=options)


def dumps_document(doc: WorkflowDocument, indent: Optional[int] = 2) -> str:
    return json.dumps(document_to_dict(doc), indent=indent)


def _dependencies(edges: Iterable[Edge], known: Optional[Set[str]]) -> Dict[str, List[str]]:
    depends: Dict[str, List[str]] = {}
    for edge in edges:
        if edge.source == edge.target:
            continue
        if known is not None and edge.source not in known:
            continue
        sources = depends.setdefault(edge.target, [])
        if edge.source not in sources:
            sources.append(edge.source)
    return depends


def _compile_task(node: TaskNode, depends_on: List[str]) -> CompiledTask:
    payload = node.payload()
    if "outputs" in payload:
        payload["outputs"] = {key: spec.to_dict() for key, spec in payload["outputs"].items()}

    return CompiledTask(
        id=node.id,
        name=node.label,
        type=node.task_type,
        status=node.status or TaskStatus.PENDING,
        loading=bool(node.loading),
        breakpoint=bool(node.breakpoint),
        depends_on=list(depends_on),
        position=node.position.to_dict() if node.position is not None else None,
        **payload,
    )


def _check_acyclic(tasks: List[CompiledTask]) -> None:
    """
    Cyclic check on the compiled DAG (Kahn).
    Dependencies on ids outside the document are ignored here.
    """
    task_ids = {task.id for task in tasks}
    indegree = {task.id: 0 for task in tasks}
    adjacency: Dict[str, List[str]] = {task.id: [] for task in tasks}

    for task in tasks:
        for dep in task.depends_on:
            if dep not in task_ids:
                continue
            adjacency[dep].append(task.id)
            indegree[task.id] += 1

    queue = [task_id for task_id, deg in indegree.items() if deg == 0]
    visited = 0
    while queue:
        current = queue.pop(0)
        visited += 1
        for neighbor in adjacency[current]:
            indegree[neighbor] -= 1
            if indegree[neighbor] == 0:
                queue.append(neighbor)

    if visited != len(tasks):
        raise CycleDetected(task_id for task_id, deg in indegree.items() if deg > 0)
