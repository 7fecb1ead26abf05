"""
DeepThink: multi-agent task delegation over one append-only conversation log.

Modules:
- `schemas`: messages, the closed action union, structured-output schemas
- `state`: user/agent entries and the conversation log
- `identity`: agent depth ids and ancestor resolution
- `gateway`: model request/response boundary (OpenAI Chat Completions / Responses)
- `router`: the command surface (send, invoke, reply, notify, reset)
"""

from .config import DeepThinkConfig
from .errors import DeepThinkError, GatewayError, InvalidState, MissingAncestor, SchemaMismatch, SessionBusy
from .gateway import ChatCompletionsGateway, GatewayRequest, GatewayResponse, ModelGateway, ResponsesGateway, build_gateway
from .prompts import DEFAULT_PROFILE, PromptProfile
from .router import ActionRouter
from .schemas import (
    AgentResponse,
    Message,
    RespondToInquiry,
    SubtaskRequest,
    TaskCompletionNotification,
    TaskDetailInquiry,
)
from .state import AgentEntry, ConversationLog, UserEntry

__all__ = [
    "ActionRouter",
    "AgentEntry",
    "AgentResponse",
    "ChatCompletionsGateway",
    "ConversationLog",
    "DEFAULT_PROFILE",
    "DeepThinkConfig",
    "DeepThinkError",
    "GatewayError",
    "GatewayRequest",
    "GatewayResponse",
    "InvalidState",
    "Message",
    "MissingAncestor",
    "ModelGateway",
    "PromptProfile",
    "RespondToInquiry",
    "ResponsesGateway",
    "SchemaMismatch",
    "SessionBusy",
    "SubtaskRequest",
    "TaskCompletionNotification",
    "TaskDetailInquiry",
    "UserEntry",
    "build_gateway",
]
