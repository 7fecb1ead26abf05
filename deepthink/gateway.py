from __future__ import annotations

"""
Model gateway: the request/response boundary to the language model.

A request carries either the full message list of a branch, or the branch's
continuation id plus the single new message, never both. Which form is used is
the gateway's decision (`build_request`); the router only hands over the
branch history, the new message and the branch's continuation id.

Two OpenAI-backed implementations:
- `ChatCompletionsGateway`: full history every call, strict `json_schema`
  response format. Works with any OpenAI-compatible endpoint.
- `ResponsesGateway`: OpenAI Responses API, resumes a branch with
  `previous_response_id` when the branch has one.
"""

import json
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Sequence

from openai import OpenAI, OpenAIError

from .config import DEFAULT_API_KEY, DeepThinkConfig
from .errors import GatewayError
from .schemas import RESPONSE_FORMATS, AgentResponse, Message, MessageHistory, ResponseSchema

logger = logging.getLogger(__name__)


def _safe_json_extract(text: str) -> Optional[Dict[str, Any]]:
    if not text:
        return None
    start = text.find("{")
    end = text.rfind("}") + 1
    if start == -1 or end <= start:
        return None
    try:
        obj = json.loads(text[start:end])
    except ValueError:
        return None
    return obj if isinstance(obj, dict) else None


def parse_output(raw_text: str, schema: ResponseSchema) -> Optional[AgentResponse]:
    """Parse raw model text against `schema`. None means the output does not conform."""
    return AgentResponse.from_json(_safe_json_extract(raw_text), schema)


@dataclass(frozen=True)
class GatewayRequest:
    messages: Optional[MessageHistory] = None
    continuation_id: Optional[str] = None
    new_message: Optional[Message] = None

    def __post_init__(self) -> None:
        if (self.messages is None) == (self.continuation_id is None):
            raise ValueError("GatewayRequest takes either messages or continuation_id + new_message, not both")
        if self.continuation_id is not None and self.new_message is None:
            raise ValueError("A continuation request needs the new message")

    @property
    def uses_continuation(self) -> bool:
        return self.continuation_id is not None


@dataclass(frozen=True)
class GatewayResponse:
    id: Optional[str]
    output_text: str
    output_parsed: Optional[AgentResponse]


class ModelGateway:
    """
    Gateway interface. Subclasses implement `complete`; continuation-capable
    gateways set `supports_continuation`.
    """

    supports_continuation: bool = False

    def build_request(
        self,
        history: Sequence[Message],
        new_message: Message,
        continuation_id: Optional[str] = None,
    ) -> GatewayRequest:
        if self.supports_continuation and continuation_id:
            return GatewayRequest(continuation_id=continuation_id, new_message=new_message)
        return GatewayRequest(messages=tuple(history) + (new_message,))

    def complete(self, request: GatewayRequest, schema: ResponseSchema) -> GatewayResponse:
        raise NotImplementedError


@dataclass
class _OpenAIGateway(ModelGateway):
    model_name: str
    api_key: str = DEFAULT_API_KEY
    base_url: Optional[str] = None
    max_tokens: int = 1200
    timeout_s: Optional[float] = 60.0
    developer_role_as_system: bool = False
    dump_dir: Optional[str] = None
    # Injected in tests; built from api_key/base_url otherwise.
    client: Any = None
    _calls: int = field(default=0, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.client is None:
            kwargs: Dict[str, Any] = {"api_key": self.api_key, "base_url": self.base_url}
            if self.timeout_s is not None:
                kwargs["timeout"] = self.timeout_s
            self.client = OpenAI(**kwargs)

    def _wire(self, message: Message) -> Dict[str, str]:
        out = message.to_api()
        if self.developer_role_as_system and out["role"] == "developer":
            out["role"] = "system"
        return out

    def _finish(
        self,
        response_id: Optional[str],
        raw_text: str,
        schema: ResponseSchema,
        sent: List[Dict[str, str]],
        continuation_id: Optional[str],
    ) -> GatewayResponse:
        self._calls += 1
        parsed = parse_output(raw_text, schema)
        logger.debug("[Gateway] Raw response id=%s: %s", response_id, raw_text)
        if parsed is None:
            logger.warning("[Gateway] Output does not match %s (id=%s). raw=%s", schema, response_id, raw_text[:400])
        response = GatewayResponse(id=response_id, output_text=raw_text, output_parsed=parsed)
        self._dump(sent, schema, continuation_id, response)
        return response

    def _dump(
        self,
        messages: List[Dict[str, str]],
        schema: ResponseSchema,
        continuation_id: Optional[str],
        response: GatewayResponse,
    ) -> None:
        if not self.dump_dir:
            return
        try:
            os.makedirs(self.dump_dir, exist_ok=True)
            payload = {
                "timestamp": time.strftime("%Y-%m-%d %H:%M:%S"),
                "call": self._calls,
                "model": self.model_name,
                "schema": schema,
                "continuation_id": continuation_id,
                "messages": messages,
                "response_id": response.id,
                "response_text": response.output_text,
                "parsed": response.output_parsed is not None,
            }
            path = os.path.join(self.dump_dir, f"{self._calls:04d}.json")
            with open(path, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
        except (OSError, TypeError, ValueError) as e:
            logger.warning("Failed to dump gateway call: %s", e)


@dataclass
class ChatCompletionsGateway(_OpenAIGateway):
    """Full-history gateway on the Chat Completions API."""

    def complete(self, request: GatewayRequest, schema: ResponseSchema) -> GatewayResponse:
        if request.uses_continuation:
            raise GatewayError("Chat Completions cannot resume from a continuation id; send the full history")
        messages = [self._wire(m) for m in request.messages or ()]
        logger.info("[Gateway] Chat call: model=%s messages=%d schema=%s", self.model_name, len(messages), schema)
        try:
            completion = self.client.chat.completions.create(
                model=self.model_name,
                messages=messages,
                max_tokens=self.max_tokens,
                response_format={"type": "json_schema", "json_schema": RESPONSE_FORMATS[schema]},
            )
        except OpenAIError as e:
            raise GatewayError(f"Chat completion failed: {e}") from e

        msg = completion.choices[0].message
        refusal = getattr(msg, "refusal", None)
        if refusal:
            logger.warning("[Gateway] Model refused: %s", refusal)
            raw_text = ""
        else:
            raw_text = (getattr(msg, "content", None) or "").strip()
        return self._finish(getattr(completion, "id", None), raw_text, schema, messages, None)


@dataclass
class ResponsesGateway(_OpenAIGateway):
    """Responses API gateway; resumes a branch from its continuation id when present."""

    supports_continuation: ClassVar[bool] = True

    def complete(self, request: GatewayRequest, schema: ResponseSchema) -> GatewayResponse:
        kwargs: Dict[str, Any] = {}
        if request.uses_continuation:
            assert request.new_message is not None
            items = [self._wire(request.new_message)]
            kwargs["previous_response_id"] = request.continuation_id
        else:
            items = [self._wire(m) for m in request.messages or ()]
        logger.info(
            "[Gateway] Responses call: model=%s items=%d continuation=%s schema=%s",
            self.model_name,
            len(items),
            request.continuation_id or "none",
            schema,
        )
        try:
            response = self.client.responses.create(
                model=self.model_name,
                input=items,
                max_output_tokens=self.max_tokens,
                text={"format": {"type": "json_schema", **RESPONSE_FORMATS[schema]}},
                **kwargs,
            )
        except OpenAIError as e:
            raise GatewayError(f"Responses call failed: {e}") from e

        raw_text = (getattr(response, "output_text", None) or "").strip()
        return self._finish(getattr(response, "id", None), raw_text, schema, items, request.continuation_id)


def build_gateway(cfg: DeepThinkConfig, client: Any = None) -> ModelGateway:
    cls = ResponsesGateway if cfg.api == "responses" else ChatCompletionsGateway
    return cls(
        model_name=cfg.model_name,
        api_key=cfg.api_key,
        base_url=cfg.base_url,
        max_tokens=cfg.max_tokens,
        timeout_s=cfg.timeout_s,
        developer_role_as_system=cfg.developer_role_as_system,
        dump_dir=cfg.dump_dir,
        client=client,
    )
