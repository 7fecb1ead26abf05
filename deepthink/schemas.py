from __future__ import annotations

"""
Shared schemas for DeepThink.

`Message` is one turn of a context sent to (or received from) the model.
The four action classes form a closed union; `AgentResponse` is what the
gateway hands back once the model output has passed structural validation.

The JSON schemas below are sent to the model as strict structured-output
formats. Wire tags match the `type` field the model emits.
"""

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Literal, Optional, Tuple, Type, Union

Role = Literal["user", "developer", "assistant"]
ResponseSchema = Literal["AssistantResponse", "InquiryResponse"]

ASSISTANT_RESPONSE: ResponseSchema = "AssistantResponse"
INQUIRY_RESPONSE: ResponseSchema = "InquiryResponse"


@dataclass(frozen=True)
class Message:
    role: Role
    content: str
    continuation_id: Optional[str] = None

    def to_api(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


MessageHistory = Tuple[Message, ...]


def _str_field(obj: Dict[str, Any], key: str) -> Optional[str]:
    value = obj.get(key)
    return value if isinstance(value, str) else None


def _has_exact_keys(obj: Dict[str, Any], *keys: str) -> bool:
    # Every schema object is closed (additionalProperties: false, all required).
    return set(obj) == set(keys)


@dataclass(frozen=True)
class SubtaskRequest:
    """Ask another agent to carry out a narrower task."""

    title: str
    detail: str

    type_tag = "subtask_request"
    payload_keys = ("subtask",)

    @classmethod
    def from_json(cls, obj: Dict[str, Any]) -> Optional["SubtaskRequest"]:
        subtask = obj.get("subtask")
        if not isinstance(subtask, dict) or not _has_exact_keys(subtask, "title", "detail"):
            return None
        title = _str_field(subtask, "title")
        detail = _str_field(subtask, "detail")
        if title is None or detail is None:
            return None
        return cls(title=title, detail=detail)

    def to_json(self) -> Dict[str, Any]:
        return {"type": self.type_tag, "subtask": {"detail": self.detail, "title": self.title}}


@dataclass(frozen=True)
class TaskDetailInquiry:
    """Ask the task requester for details."""

    inquiry: str

    type_tag = "task_detail_inquiry"
    payload_keys = ("inquiry",)

    @classmethod
    def from_json(cls, obj: Dict[str, Any]) -> Optional["TaskDetailInquiry"]:
        inquiry = _str_field(obj, "inquiry")
        return cls(inquiry=inquiry) if inquiry is not None else None

    def to_json(self) -> Dict[str, Any]:
        return {"type": self.type_tag, "inquiry": self.inquiry}


@dataclass(frozen=True)
class TaskCompletionNotification:
    """Tell the task requester the task is done."""

    result: str

    type_tag = "task_completion_notification"
    payload_keys = ("result",)

    @classmethod
    def from_json(cls, obj: Dict[str, Any]) -> Optional["TaskCompletionNotification"]:
        result = _str_field(obj, "result")
        return cls(result=result) if result is not None else None

    def to_json(self) -> Dict[str, Any]:
        return {"type": self.type_tag, "result": self.result}


@dataclass(frozen=True)
class RespondToInquiry:
    """An ancestor's answer to a child's inquiry."""

    message: str

    type_tag = "respond_to_inquiry"
    payload_keys = ("message",)

    @classmethod
    def from_json(cls, obj: Dict[str, Any]) -> Optional["RespondToInquiry"]:
        message = _str_field(obj, "message")
        return cls(message=message) if message is not None else None

    def to_json(self) -> Dict[str, Any]:
        return {"type": self.type_tag, "message": self.message}


Action = Union[SubtaskRequest, TaskDetailInquiry, TaskCompletionNotification, RespondToInquiry]
ACTION_TYPES: Tuple[Type[Any], ...] = (SubtaskRequest, TaskDetailInquiry, TaskCompletionNotification, RespondToInquiry)

# Actions each schema may produce.
SCHEMA_ACTIONS: Dict[ResponseSchema, FrozenSet[Type[Any]]] = {
    ASSISTANT_RESPONSE: frozenset({SubtaskRequest, TaskDetailInquiry, TaskCompletionNotification}),
    INQUIRY_RESPONSE: frozenset({RespondToInquiry}),
}

_ACTIONS_BY_TAG: Dict[str, Type[Any]] = {cls.type_tag: cls for cls in ACTION_TYPES}


def action_from_json(obj: Any, schema: ResponseSchema = ASSISTANT_RESPONSE) -> Optional[Action]:
    if not isinstance(obj, dict):
        return None
    cls = _ACTIONS_BY_TAG.get(obj.get("type"))
    if cls is None or cls not in SCHEMA_ACTIONS[schema]:
        return None
    if not _has_exact_keys(obj, "type", *cls.payload_keys):
        return None
    return cls.from_json(obj)


@dataclass(frozen=True)
class AgentResponse:
    thought: str
    action: Action

    @classmethod
    def from_json(cls, obj: Any, schema: ResponseSchema) -> Optional["AgentResponse"]:
        """
        Structural validation only: exactly the `thought` and `action` keys,
        `thought` a string, and `action` one of the actions the schema allows
        with no extra keys at any level. Returns None otherwise.
        """
        if not isinstance(obj, dict) or not _has_exact_keys(obj, "thought", "action"):
            return None
        thought = _str_field(obj, "thought")
        if thought is None:
            return None
        action = action_from_json(obj.get("action"), schema)
        if action is None:
            return None
        return cls(thought=thought, action=action)


def _closed_object(properties: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": "object",
        "properties": properties,
        "required": list(properties),
        "additionalProperties": False,
    }


def _tag(value: str) -> Dict[str, Any]:
    return {"type": "string", "enum": [value]}


SUBTASK_REQUEST_SCHEMA = _closed_object(
    {
        "type": _tag(SubtaskRequest.type_tag),
        "subtask": _closed_object({"detail": {"type": "string"}, "title": {"type": "string"}}),
    }
)
TASK_DETAIL_INQUIRY_SCHEMA = _closed_object({"type": _tag(TaskDetailInquiry.type_tag), "inquiry": {"type": "string"}})
TASK_COMPLETION_NOTIFICATION_SCHEMA = _closed_object(
    {"type": _tag(TaskCompletionNotification.type_tag), "result": {"type": "string"}}
)
RESPOND_TO_INQUIRY_SCHEMA = _closed_object({"type": _tag(RespondToInquiry.type_tag), "message": {"type": "string"}})

ASSISTANT_RESPONSE_SCHEMA = _closed_object(
    {
        "thought": {
            "type": "string",
            "description": "Let's think step by step to figure out your next action.",
        },
        "action": {
            "anyOf": [
                SUBTASK_REQUEST_SCHEMA,
                TASK_DETAIL_INQUIRY_SCHEMA,
                TASK_COMPLETION_NOTIFICATION_SCHEMA,
            ]
        },
    }
)
INQUIRY_RESPONSE_SCHEMA = _closed_object({"thought": {"type": "string"}, "action": RESPOND_TO_INQUIRY_SCHEMA})

# name/schema pairs in the shape both OpenAI APIs expect for strict JSON output.
RESPONSE_FORMATS: Dict[ResponseSchema, Dict[str, Any]] = {
    ASSISTANT_RESPONSE: {"name": "Response", "schema": ASSISTANT_RESPONSE_SCHEMA, "strict": True},
    INQUIRY_RESPONSE: {"name": "Response2", "schema": INQUIRY_RESPONSE_SCHEMA, "strict": True},
}
