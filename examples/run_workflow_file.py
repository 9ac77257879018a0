""" Example: send a workflow document file to the runner and print status updates. """
import asyncio
import sys

from wizflow.config import configure_logging, get_settings
from wizflow.session.execution import ExecutionSession
from wizflow.workflow.graph import WorkflowGraph
from wizflow.workflow.loader import load_document_file, load_into_graph
from wizflow.workflow.status import CompletionMonitor, apply_status_update


async def run(path: str):
    settings = get_settings()
    doc = load_document_file(path)
    graph = load_into_graph(WorkflowGraph(), doc)
    monitor = CompletionMonitor(on_completed=lambda: print("Workflow completed"))
    graph.listeners.append(lambda: monitor.evaluate(graph.nodes))

    def on_update(update):
        if apply_status_update(graph, update.node_id, update.status, update.loading):
            node = graph.get(update.node_id)
            print(f"{node.label}: {node.status.value}{' (loading)' if node.loading else ''}")

    async with ExecutionSession(settings.runner_url, on_update=on_update) as session:
        if await session.run(doc):
            await session.wait_closed()


def main():
    if len(sys.argv) != 2:
        print("usage: run_workflow_file.py WORKFLOW.json")
        sys.exit(2)
    configure_logging()
    asyncio.run(run(sys.argv[1]))


if __name__ == "__main__":
    main()
