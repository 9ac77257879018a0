""" Example: build a small graph in code and export its workflow document. """
from pathlib import Path

from wizflow.workflow.compiler import compile_graph, dumps_document
from wizflow.workflow.graph import WorkflowGraph
from wizflow.workflow.models import TaskType, Position, make_output


def main():
    graph = WorkflowGraph(name="nightly_report", description="fetch, archive, notify")

    fetch = graph.add_task(TaskType.RESTAPI, Position(0, 0), label="Fetch stats")
    fetch.update(method="GET", url="https://stats.example.com/daily",
                 outputs={"stats": make_output(TaskType.RESTAPI, json_path="$.data")})

    archive = graph.add_task(TaskType.SHELL, Position(250, 0), label="Archive")
    archive.update(command="tar czf stats.tgz stats.json")

    notify = graph.add_task(TaskType.EMAIL, Position(500, 0), label="Notify")
    notify.update(subject="Nightly stats", email_body="Archive is ready",
                  recipients="ops@example.com, data@example.com")

    graph.connect(fetch.id, archive.id)
    graph.connect(archive.id, notify.id)

    out_path = Path(f"{graph.name}.json")
    out_path.write_text(dumps_document(compile_graph(graph)))
    print(f"Wrote workflow document to: {out_path}")


if __name__ == "__main__":
    main()
