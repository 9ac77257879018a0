"""
Workflow editor: the single-user editing session.

The editor owns the graph being edited and the execution session to the
runner. It follows this cycle:
1. Edit tasks and dependencies (the compiled document is available at any time)
2. Save the graph and its compiled document to the store
3. Run: send the compiled document to the runner
4. Reflect NODE_UPDATE messages back into the graph
5. Announce once when every task has completed

Errors from the store, the runner channel or an imported file are reported
through the notifier and never propagate out of the editor.
"""

import logging
import random
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .config import Settings, get_settings
from .errors import MalformedDocument, PersistenceError
from .notify import Notifier, LoggingNotifier
from .session.execution import Connect, ExecutionSession
from .session.messages import NodeUpdate
from .store import DocumentStore, IdentityProvider, User
from .workflow.compiler import compile_graph, dumps_document
from .workflow.graph import WorkflowGraph
from .workflow.loader import (
    load_document_file, load_into_graph, snapshot_graph, restore_snapshot,
)
from .workflow.models import Edge, Position, TaskNode, TaskType
from .workflow.schema import WorkflowDocument
from .workflow.status import CompletionMonitor, apply_status_update

logger = logging.getLogger(__name__)


class WorkflowEditor:
    def __init__(self, store: DocumentStore, identity: IdentityProvider, *,
                 settings: Optional[Settings] = None,
                 notifier: Optional[Notifier] = None,
                 connect: Optional[Connect] = None,
                 rng: Optional[random.Random] = None):
        self.settings = settings or get_settings()
        self.store = store
        self.identity = identity
        self.notifier = notifier or LoggingNotifier()
        self.rng = rng or random.Random()

        self.graph = WorkflowGraph(name=self.settings.default_workflow_name)
        self.completion = CompletionMonitor(on_completed=self._announce_completed)
        self.graph.listeners.append(self._graph_changed)
        self.session = ExecutionSession(
            self.settings.runner_url,
            connect=connect,
            notifier=self.notifier,
            on_update=self.handle_status,
        )

        self.workflow_id: Optional[str] = None
        self.paused = False
        self.is_running = False
        self.is_saving = False

    async def __aenter__(self) -> "WorkflowEditor":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def is_completed(self) -> bool:
        return self.completion.completed

    # -------------------------
    # EDITING
    # -------------------------

    def add_task(self, task_type: Union[TaskType, str], position: Optional[Position] = None,
                 label: Optional[str] = None) -> TaskNode:
        return self.graph.add_task(TaskType(task_type), position=position, label=label)

    def connect(self, source: str, target: str) -> Edge:
        return self.graph.connect(source, target)

    def rename(self, name: Optional[str] = None, description: Optional[str] = None) -> None:
        if name is not None:
            self.graph.name = name
        if description is not None:
            self.graph.description = description

    def compile(self) -> WorkflowDocument:
        return compile_graph(self.graph, self.settings.compiler_options())

    def preview(self) -> str:
        """ Live JSON of the compiled document. """
        return dumps_document(self.compile())

    def new_workflow(self) -> None:
        self.workflow_id = None
        self.graph.name = self.settings.default_workflow_name
        self.graph.description = ""
        self.graph.clear()

    # -------------------------
    # EXECUTION
    # -------------------------

    async def run(self) -> bool:
        """ Save, then send START with the compiled document. """
        if self._user() is None or self.is_running:
            return False
        self.is_running = True
        try:
            await self.save()
            try:
                doc = self.compile()
            except MalformedDocument as e:
                logger.error("Error running workflow: %s", e)
                self.notifier.error("Failed to start workflow execution")
                return False
            return await self.session.run(doc)
        finally:
            self.is_running = False

    async def pause(self) -> bool:
        if self._user() is None or self.is_running:
            return False
        sent = await self.session.pause()
        if sent:
            self.paused = True
        return sent

    async def resume(self) -> bool:
        if self._user() is None or self.is_running:
            return False
        sent = await self.session.resume()
        if sent:
            self.paused = False
        return sent

    async def toggle_pause(self) -> bool:
        if self.paused:
            return await self.resume()
        return await self.pause()

    def handle_status(self, update: NodeUpdate) -> bool:
        return apply_status_update(
            self.graph, update.node_id, update.status, update.loading,
            strict=self.settings.strict_transitions,
        )

    async def close(self) -> None:
        await self.session.teardown()

    # -------------------------
    # PERSISTENCE
    # -------------------------

    async def save(self) -> bool:
        user = self._user()
        if user is None or self.is_saving:
            return False

        self.is_saving = True
        try:
            workflow_id = self.workflow_id or str(uuid.uuid4())
            now = datetime.now(timezone.utc).isoformat()
            data: Dict[str, Any] = {
                "name": self.graph.name,
                "description": self.graph.description,
                **snapshot_graph(self.graph),
                "json": self.preview(),
                "updated_at": now,
                "user_name": user.name,
            }
            if self.workflow_id is None:
                data["created_at"] = now

            await self.store.upsert(user.uid, workflow_id, data, merge=True)
            if self.workflow_id is None:
                self.workflow_id = workflow_id
            logger.info("Workflow %s saved", workflow_id)
            return True
        except (MalformedDocument, PersistenceError) as e:
            logger.error("Error saving workflow: %s", e)
            self.notifier.error("Failed to save workflow")
            return False
        finally:
            self.is_saving = False

    async def open_workflow(self, workflow_id: str) -> bool:
        """ Replace the graph with a persisted workflow. """
        user = self._user()
        if user is None:
            return False
        try:
            data = await self.store.get(user.uid, workflow_id)
            if data is None:
                logger.warning("Workflow %s not found", workflow_id)
                return False
            nodes, edges = restore_snapshot(data, controller=self.graph)
        except (PersistenceError, MalformedDocument) as e:
            logger.error("Error loading workflow %s: %s", workflow_id, e)
            self.notifier.error("Failed to load workflow")
            return False

        self.workflow_id = workflow_id
        self.graph.name = data.get("name", "")
        self.graph.description = data.get("description", "")
        self.graph.replace(nodes, edges)
        return True

    async def list_workflows(self) -> List[Dict[str, Any]]:
        user = self._user()
        if user is None:
            return []
        try:
            return await self.store.list(user.uid)
        except PersistenceError as e:
            logger.error("Error listing workflows: %s", e)
            self.notifier.error("Failed to list workflows")
            return []

    async def delete_workflow(self, workflow_id: str) -> bool:
        user = self._user()
        if user is None:
            return False
        try:
            await self.store.delete(user.uid, workflow_id)
        except PersistenceError as e:
            logger.error("Error deleting workflow %s: %s", workflow_id, e)
            self.notifier.error("Failed to delete workflow")
            return False
        return True

    # -------------------------
    # IMPORT / EXPORT
    # -------------------------

    def import_file(self, path: Union[str, Path]) -> bool:
        """ Load a workflow document file; the current graph is kept on failure. """
        try:
            doc = load_document_file(path)
            load_into_graph(
                self.graph, doc,
                dangling=self.settings.dangling_dependencies,
                rng=self.rng,
                canvas_size=self.settings.canvas_size,
            )
        except (MalformedDocument, OSError) as e:
            logger.error("Error importing workflow: %s", e)
            self.notifier.error("Failed to import workflow")
            return False
        self.notifier.success("Workflow imported successfully")
        return True

    def export_file(self, directory: Union[str, Path]) -> Optional[Path]:
        """ Write the compiled document to ``<directory>/<workflow name>.json``. """
        path = Path(directory) / f"{self.graph.name}.json"
        try:
            text = self.preview()
            with open(path, "w", encoding="utf-8") as f:
                f.write(text)
        except (MalformedDocument, OSError) as e:
            logger.error("Error exporting workflow: %s", e)
            self.notifier.error("Failed to export workflow")
            return None
        self.notifier.success("Workflow exported successfully")
        return path

    # -------------------------
    # HELPERS
    # -------------------------

    def _user(self) -> Optional[User]:
        return self.identity.current_user()

    def _graph_changed(self) -> None:
        self.completion.evaluate(self.graph.nodes)

    def _announce_completed(self) -> None:
        self.notifier.success("Workflow execution completed successfully!")
