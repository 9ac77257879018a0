""" Per-task execution status transitions and the workflow-completed aggregate. """

import logging
from typing import Callable, Dict, FrozenSet, Iterable, Optional, Union

from .models import TaskNode, TaskStatus

logger = logging.getLogger(__name__)

# Any state may also be reset to PENDING.
TRANSITIONS: Dict[TaskStatus, FrozenSet[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.RUNNING}),
    TaskStatus.RUNNING: frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED}),
    TaskStatus.COMPLETED: frozenset({TaskStatus.RUNNING}),
    TaskStatus.FAILED: frozenset({TaskStatus.RUNNING}),
}


def can_transition(current: TaskStatus, new: TaskStatus) -> bool:
    if new == current or new == TaskStatus.PENDING:
        return True
    return new in TRANSITIONS[current]


def apply_status_update(graph, task_id: str,
                        status: Optional[Union[TaskStatus, str]] = None,
                        loading: Optional[bool] = None, *,
                        strict: bool = False) -> bool:
    """
    Merge a runner status event into the task with `task_id`.

    Unknown ids are ignored. The runner is authoritative, so an unexpected
    transition is applied with a warning unless `strict` is set, in which case
    the whole update is dropped. Returns True if the task was updated.
    """
    node = graph.get(task_id)
    if node is None:
        logger.warning("Ignoring status update for unknown task %s", task_id)
        return False

    changes = {}
    if status is not None:
        status = TaskStatus(status)
        if not can_transition(node.status, status):
            if strict:
                logger.warning("Dropping transition %s -> %s for task %s",
                               node.status.value, status.value, task_id)
                return False
            logger.warning("Unexpected transition %s -> %s for task %s",
                           node.status.value, status.value, task_id)
        changes["status"] = status
    if loading is not None:
        changes["loading"] = loading

    graph.update_task(task_id, changes)
    logger.debug("Task %s now %s (loading=%s)", task_id, node.status.value, node.loading)
    return True


def is_workflow_completed(nodes: Iterable[TaskNode]) -> bool:
    """ True iff there is at least one task and every task is COMPLETED. """
    nodes = list(nodes)
    return len(nodes) > 0 and all(node.status == TaskStatus.COMPLETED for node in nodes)


class CompletionMonitor:
    """
    Edge-triggered workflow-completed tracker.
    `on_completed` fires once when the graph becomes completed and re-arms as
    soon as any task leaves COMPLETED.
    """

    def __init__(self, on_completed: Optional[Callable[[], None]] = None):
        self.on_completed = on_completed
        self.completed = False

    def evaluate(self, nodes: Iterable[TaskNode]) -> bool:
        """ Recompute the aggregate; returns True only on the false -> true edge. """
        now = is_workflow_completed(nodes)
        fired = now and not self.completed
        self.completed = now
        if fired and self.on_completed is not None:
            self.on_completed()
        return fired

    def reset(self) -> None:
        self.completed = False
