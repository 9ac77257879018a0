""" Editable workflow graph and the controller capability handed to its nodes. """

import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Optional

from .models import TaskNode, TaskType, Edge, Position

logger = logging.getLogger(__name__)


class GraphController(ABC):
    """ Mutation capability a task node uses to reach its owning graph. """

    @abstractmethod
    def update_task(self, task_id: str, changes: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def delete_task(self, task_id: str) -> None:
        pass


class WorkflowGraph(GraphController):
    """
    Ordered set of task nodes plus the edge list between them.

    Node order and edge order are insertion order; the compiler relies on
    edge order for the order of each task's dependency list.
    """

    def __init__(self, name: str = "New Workflow", description: str = ""):
        self.name = name
        self.description = description
        self._nodes: Dict[str, TaskNode] = {}
        self.edges: List[Edge] = []
        self.listeners: List[Callable[[], None]] = []

    @property
    def nodes(self) -> List[TaskNode]:
        return list(self._nodes.values())

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, task_id: str) -> bool:
        return task_id in self._nodes

    def get(self, task_id: str) -> Optional[TaskNode]:
        return self._nodes.get(task_id)

    def add_node(self, node: TaskNode) -> TaskNode:
        if node.id in self._nodes:
            raise ValueError(f"Duplicate task id: {node.id}")
        node.controller = self
        self._nodes[node.id] = node
        self._changed()
        return node

    def add_task(self, task_type: TaskType, position: Optional[Position] = None,
                 label: Optional[str] = None) -> TaskNode:
        """ Create a new PENDING task with a generated id, e.g. ``shell_<uuid>``. """
        task_type = TaskType(task_type)
        kind = task_type.value.lower()
        node = TaskNode(
            id=f"{kind}_{uuid.uuid4()}",
            task_type=task_type,
            label=label or f"{kind.capitalize()} Task",
            position=position or Position(),
        )
        logger.debug("Added task %s", node.id)
        return self.add_node(node)

    def connect(self, source: str, target: str) -> Edge:
        """ Add an edge meaning `target` depends on `source`. """
        edge = Edge(source=source, target=target)
        self.edges.append(edge)
        self._changed()
        return edge

    def disconnect(self, source: str, target: str) -> int:
        before = len(self.edges)
        self.edges = [e for e in self.edges if not (e.source == source and e.target == target)]
        self._changed()
        return before - len(self.edges)

    def replace(self, nodes: Iterable[TaskNode], edges: Iterable[Edge]) -> None:
        """ Swap the whole graph content, e.g. after an import. """
        self._nodes = {}
        for node in nodes:
            node.controller = self
            self._nodes[node.id] = node
        self.edges = list(edges)
        self._changed()

    def clear(self) -> None:
        self._nodes = {}
        self.edges = []
        self._changed()

    # GraphController

    def update_task(self, task_id: str, changes: Dict[str, Any]) -> None:
        node = self._nodes.get(task_id)
        if node is None:
            raise KeyError(task_id)
        node.merge(changes)
        self._changed()

    def delete_task(self, task_id: str) -> None:
        node = self._nodes.pop(task_id, None)
        if node is None:
            raise KeyError(task_id)
        node.controller = None
        self.edges = [e for e in self.edges if e.source != task_id and e.target != task_id]
        self._changed()
        logger.debug("Deleted task %s", task_id)

    def _changed(self) -> None:
        for listener in list(self.listeners):
            listener()
