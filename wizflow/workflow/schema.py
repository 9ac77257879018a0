from typing import List, Optional, Dict, Any, Literal
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import MalformedDocument
from .models import TaskType, TaskStatus

DOCUMENT_VERSION = "1.0"


class PositionSpec(BaseModel):
    x: float
    y: float


class OutputDescriptor(BaseModel):
    type: Literal["file", "json"]
    path: Optional[str] = None
    json_path: Optional[str] = None


class CompiledTask(BaseModel):
    # emailBody keeps its camelCase name on the wire
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str = ""
    type: TaskType
    status: TaskStatus = TaskStatus.PENDING
    loading: bool = False
    breakpoint: bool = False
    depends_on: List[str] = Field(default_factory=list)
    position: Optional[PositionSpec] = None

    command: Optional[str] = None
    file: Optional[str] = None
    method: Optional[Literal["GET", "POST", "PUT", "DELETE"]] = None
    url: Optional[str] = None
    headers: Optional[Dict[str, str]] = None
    outputs: Optional[Dict[str, OutputDescriptor]] = None
    subject: Optional[str] = None
    email_body: Optional[str] = Field(default=None, alias="emailBody")
    recipients: Optional[List[str]] = None
    inputs: Optional[Dict[str, str]] = None


class WorkflowDocument(BaseModel):
    workflow_name: str = ""
    description: str = ""
    version: str = DOCUMENT_VERSION
    tasks: List[CompiledTask]

    def task_ids(self) -> List[str]:
        return [t.id for t in self.tasks]


def document_to_dict(doc: WorkflowDocument) -> Dict[str, Any]:
    """ Canonical JSON-ready form: unset optional fields are omitted, never null. """
    return doc.model_dump(mode="json", by_alias=True, exclude_none=True)


def validate_document(raw: Any) -> WorkflowDocument:
    """ Validate a decoded document against WorkflowDocument. """
    if not isinstance(raw, dict):
        raise MalformedDocument("Workflow document must be a mapping")
    if "tasks" not in raw:
        raise MalformedDocument("Missing required top-level field: tasks")
    if not isinstance(raw["tasks"], list):
        raise MalformedDocument("Top-level field 'tasks' must be a list")
    try:
        return WorkflowDocument.model_validate(raw)
    except ValidationError as e:
        raise MalformedDocument(f"Workflow document validation error: {e}") from e
