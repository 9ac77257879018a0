""" Control messages sent to the runner and status messages received from it. """

import json
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..workflow.models import TaskStatus


class StartMessage(BaseModel):
    type: Literal["START"] = "START"
    # the serialized WorkflowDocument, as a JSON string
    workflow: str


class PauseMessage(BaseModel):
    type: Literal["PAUSE"] = "PAUSE"


class ResumeMessage(BaseModel):
    type: Literal["RESUME"] = "RESUME"


ControlMessage = Union[StartMessage, PauseMessage, ResumeMessage]


class NodeUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["NODE_UPDATE"] = "NODE_UPDATE"
    node_id: str = Field(alias="nodeId")
    status: Optional[TaskStatus] = None
    loading: Optional[bool] = None


def encode_message(message: BaseModel) -> str:
    return json.dumps(message.model_dump(mode="json", by_alias=True, exclude_none=True))


def decode_message(text: Union[str, bytes]) -> Optional[NodeUpdate]:
    """
    Decode one inbound frame.
    Returns None for well-formed messages of a type we do not handle and
    raises ValueError for frames that are not valid JSON objects or are
    invalid NODE_UPDATE messages.
    """
    try:
        raw: Any = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Inbound frame is not JSON: {e}") from e
    if not isinstance(raw, dict):
        raise ValueError("Inbound frame is not a JSON object")
    if raw.get("type") != "NODE_UPDATE":
        return None
    try:
        return NodeUpdate.model_validate(raw)
    except ValidationError as e:
        raise ValueError(f"Invalid NODE_UPDATE message: {e}") from e

