""" Data models for the editable workflow graph """

from dataclasses import dataclass, field, fields as dataclass_fields
from enum import Enum
from typing import List, Optional, Dict, Any


class TaskType(str, Enum):
    SHELL = "SHELL"
    RESTAPI = "RESTAPI"
    EMAIL = "EMAIL"


class TaskStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


HTTP_METHODS = ("GET", "POST", "PUT", "DELETE")
OUTPUT_TYPES = ("file", "json")

# Optional payload fields, in the order they appear in a compiled task
PAYLOAD_FIELDS = (
    "command", "file", "method", "url", "headers", "outputs",
    "subject", "email_body", "recipients", "inputs",
)


@dataclass
class Position:
    x: float = 0.0
    y: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}


@dataclass
class OutputSpec:
    type: str
    path: Optional[str] = None
    json_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"type": self.type}
        if self.path is not None:
            out["path"] = self.path
        if self.json_path is not None:
            out["json_path"] = self.json_path
        return out


def edge_id(source: str, target: str) -> str:
    return f"{source}-{target}"


@dataclass
class Edge:
    """ Directed dependency: target depends on source. """
    source: str
    target: str
    animated: bool = True
    marker_end: str = "arrowclosed"

    @property
    def id(self) -> str:
        return edge_id(self.source, self.target)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "animated": self.animated,
            "marker_end": self.marker_end,
        }


@dataclass
class TaskNode:
    id: str
    task_type: TaskType
    label: str = ""
    position: Position = field(default_factory=Position)
    status: TaskStatus = TaskStatus.PENDING
    loading: bool = False
    breakpoint: bool = False

    # SHELL
    command: Optional[str] = None
    file: Optional[str] = None
    # RESTAPI
    method: Optional[str] = None
    url: Optional[str] = None
    headers: Optional[Dict[str, str]] = None
    # EMAIL
    subject: Optional[str] = None
    email_body: Optional[str] = None
    recipients: Optional[List[str]] = None
    # all types
    outputs: Optional[Dict[str, OutputSpec]] = None
    inputs: Optional[Dict[str, str]] = None

    controller: Optional[Any] = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        self.task_type = TaskType(self.task_type)
        self.status = TaskStatus(self.status)

    def update(self, **changes) -> None:
        """ Ask the owning graph to merge `changes` into this task. """
        self._require_controller().update_task(self.id, changes)

    def delete(self) -> None:
        """ Ask the owning graph to remove this task and its edges. """
        self._require_controller().delete_task(self.id)

    def merge(self, changes: Dict[str, Any]) -> None:
        """
        Merge a partial field set into the task in place.
        Values are normalised to the field's type; the id cannot change.
        """
        coerced: Dict[str, Any] = {}
        for key, value in changes.items():
            if key == "id":
                if value != self.id:
                    raise ValueError(f"Task id is immutable: {self.id}")
                continue
            if key not in _MUTABLE_FIELDS:
                raise ValueError(f"Unknown task field: {key}")
            coerced[key] = _coerce(self.task_type, key, value)
        # nothing is assigned unless every value coerced
        for key, value in coerced.items():
            setattr(self, key, value)

    def payload(self) -> Dict[str, Any]:
        """ Optional payload fields that are set (not None, not empty string). """
        out: Dict[str, Any] = {}
        for name in PAYLOAD_FIELDS:
            value = getattr(self, name)
            if value is None or value == "":
                continue
            out[name] = value
        return out

    def _require_controller(self):
        if self.controller is None:
            raise RuntimeError(f"Task {self.id} is not attached to a graph")
        return self.controller


_MUTABLE_FIELDS = {
    f.name for f in dataclass_fields(TaskNode) if f.name not in ("id", "task_type", "controller")
}


def parse_recipients(value: str) -> List[str]:
    """ Split a comma-separated recipient string, dropping blanks. """
    return [part.strip() for part in value.split(",") if part.strip()]


def make_output(task_type: TaskType, kind: Optional[str] = None,
                path: Optional[str] = None, json_path: Optional[str] = None) -> OutputSpec:
    """
    Build an output descriptor for a task type.
    RESTAPI outputs are always json, SHELL defaults to file, EMAIL has none.
    """
    task_type = TaskType(task_type)
    if task_type == TaskType.EMAIL:
        raise ValueError("EMAIL tasks do not expose outputs")
    if task_type == TaskType.RESTAPI:
        if kind not in (None, "json"):
            raise ValueError(f"RESTAPI outputs are always json, got {kind!r}")
        kind = "json"
    kind = kind or "file"
    if kind not in OUTPUT_TYPES:
        raise ValueError(f"Unsupported output type: {kind}")
    if kind == "file":
        return OutputSpec(type=kind, path=path)
    return OutputSpec(type=kind, json_path=json_path)


def _coerce(task_type: TaskType, key: str, value: Any) -> Any:
    if key == "status":
        return TaskStatus(value)
    if key in ("loading", "breakpoint"):
        return bool(value)
    if key == "position":
        if isinstance(value, Position):
            return value
        if isinstance(value, dict):
            return Position(x=value.get("x", 0.0), y=value.get("y", 0.0))
        raise ValueError(f"Invalid position: {value!r}")
    if value is None:
        return None
    if key == "method":
        method = str(value).upper()
        if method not in HTTP_METHODS:
            raise ValueError(f"Unsupported HTTP method: {value}")
        return method
    if key in ("headers", "inputs"):
        if not isinstance(value, dict):
            raise ValueError(f"{key} must be a mapping")
        return {str(k): str(v) for k, v in value.items()}
    if key == "recipients":
        if isinstance(value, str):
            return parse_recipients(value)
        return [str(r).strip() for r in value if str(r).strip()]
    if key == "outputs":
        if not isinstance(value, dict):
            raise ValueError("outputs must be a mapping")
        outputs: Dict[str, OutputSpec] = {}
        for out_key, spec in value.items():
            if isinstance(spec, OutputSpec):
                spec = spec.to_dict()
            if not isinstance(spec, dict):
                raise ValueError(f"Invalid output descriptor for {out_key!r}")
            outputs[out_key] = make_output(task_type, spec.get("type"),
                                           spec.get("path"), spec.get("json_path"))
        return outputs
    return value
