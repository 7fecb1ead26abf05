from __future__ import annotations

"""
DeepThink action router (session orchestrator).

Owns the conversation log and exposes the command surface:
  send / invoke_subtask / reply_to_inquiry / notify_task_completion / reset

Every command checks its precondition against the latest entry, makes all of
its model calls, and only then appends its entries in one batch. A command that
raises has appended nothing. One command runs at a time per router; a command
triggered while another is waiting on the model is rejected with SessionBusy.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Literal, Optional, Sequence, Tuple, Type

from .errors import InvalidState, SchemaMismatch, SessionBusy
from .gateway import GatewayResponse, ModelGateway
from .identity import (
    agent_id_for_completion,
    agent_id_for_send,
    agent_id_for_subtask,
    agent_ids_for_reply,
    resolve_ancestor,
)
from .prompts import DEFAULT_PROFILE, PromptProfile
from .schemas import (
    ACTION_TYPES,
    ASSISTANT_RESPONSE,
    INQUIRY_RESPONSE,
    Message,
    MessageHistory,
    RespondToInquiry,
    ResponseSchema,
    SubtaskRequest,
    TaskCompletionNotification,
    TaskDetailInquiry,
)
from .state import AgentEntry, ConversationLog, Entry, UserEntry

logger = logging.getLogger(__name__)

Transition = Literal["invoke_subtask", "reply_to_inquiry", "notify_task_completion"]

# Latest action type -> the one follow-up transition it enables.
TRANSITIONS: Dict[Type[object], Optional[Transition]] = {
    SubtaskRequest: "invoke_subtask",
    TaskDetailInquiry: "reply_to_inquiry",
    TaskCompletionNotification: "notify_task_completion",
    RespondToInquiry: None,
}

_unmapped = set(ACTION_TYPES) ^ set(TRANSITIONS)
if _unmapped:
    raise TypeError(f"TRANSITIONS does not cover the action union: {sorted(c.__name__ for c in _unmapped)}")


def _preview(text: str, limit: int = 800) -> str:
    one_line = (text or "").strip().replace("\n", "\\n")
    if len(one_line) > limit:
        one_line = one_line[:limit] + "...(truncated)"
    return one_line


def _continuation_of(entry: Entry) -> Optional[str]:
    return entry.continuation_id if isinstance(entry, AgentEntry) else None


@dataclass
class ActionRouter:
    """
    Command API over one conversation log.

    Identity rules live in `deepthink.identity`; context isolation comes from
    building every request from exactly one entry's stored history.
    """

    gateway: ModelGateway
    profile: PromptProfile = DEFAULT_PROFILE
    log: ConversationLog = field(default_factory=ConversationLog)

    def __post_init__(self) -> None:
        self._busy = threading.Lock()

    @contextmanager
    def _exclusive(self, op: str) -> Iterator[None]:
        if not self._busy.acquire(blocking=False):
            raise SessionBusy(f"{op} rejected: another operation is still waiting on the model")
        try:
            yield
        finally:
            self._busy.release()

    # --- helpers -------------------------------------------------------------

    def _instructions(self) -> MessageHistory:
        return (Message(role="developer", content=self.profile.system_prompt),)

    def _call(
        self,
        history: Sequence[Message],
        new_message: Message,
        continuation_id: Optional[str],
        schema: ResponseSchema,
    ) -> Tuple[MessageHistory, GatewayResponse]:
        request = self.gateway.build_request(history, new_message, continuation_id)
        response = self.gateway.complete(request, schema)
        if response.output_parsed is None:
            raise SchemaMismatch(schema, response.output_text)
        return tuple(history) + (new_message,), response

    @staticmethod
    def _agent_entry(agent_id: int, messages: MessageHistory, response: GatewayResponse) -> AgentEntry:
        parsed = response.output_parsed
        assert parsed is not None
        reply = Message(role="assistant", content=response.output_text, continuation_id=response.id)
        return AgentEntry(
            agent_id=agent_id,
            thought=parsed.thought,
            action=parsed.action,
            message_history=messages + (reply,),
            continuation_id=response.id,
        )

    def _require(self, action_cls: Type[object], op: str) -> Tuple[int, AgentEntry]:
        latest = self.log.last()
        if not isinstance(latest, AgentEntry) or not isinstance(latest.action, action_cls):
            if latest is None:
                got = "an empty log"
            else:
                got = type(latest.action).__name__ if isinstance(latest, AgentEntry) else type(latest).__name__
            raise InvalidState(f"{op} needs the latest entry to carry a {action_cls.__name__}, got {got}")
        return len(self.log) - 1, latest

    def _commit(self, entries: List[Entry]) -> List[Entry]:
        indices = self.log.extend(entries)
        for i in indices:
            entry = self.log.get(i)
            if isinstance(entry, AgentEntry):
                logger.info(
                    "[DeepThink] #%d agent%d %s parent=%s thought=%s",
                    i,
                    entry.agent_id,
                    entry.action.type_tag,
                    entry.parent_index,
                    _preview(entry.thought),
                )
        return [self.log.get(i) for i in indices]

    # --- commands ------------------------------------------------------------

    def available_transition(self) -> Optional[Transition]:
        latest = self.log.last()
        if not isinstance(latest, AgentEntry):
            return None
        return TRANSITIONS[type(latest.action)]

    def send(self, text: str) -> List[Entry]:
        """Continue the latest branch (or start the root agent) with a user message."""
        with self._exclusive("send"):
            latest = self.log.last()
            if latest is None:
                history, continuation_id = self._instructions(), None
            else:
                history, continuation_id = latest.message_history, _continuation_of(latest)
            agent_id = agent_id_for_send(self.log)
            logger.info("[DeepThink] send: agent%d len=%d", agent_id, len(text))

            messages, response = self._call(
                history, Message(role="user", content=text), continuation_id, ASSISTANT_RESPONSE
            )
            return self._commit(
                [UserEntry(content=text, message_history=messages), self._agent_entry(agent_id, messages, response)]
            )

    def invoke_subtask(self, subtask: Optional[SubtaskRequest] = None) -> List[Entry]:
        """Start a child agent on the requested subtask with a fresh context."""
        with self._exclusive("invoke_subtask"):
            _, latest = self._require(SubtaskRequest, "invoke_subtask")
            if subtask is None:
                subtask = latest.action  # type: ignore[assignment]
            assert isinstance(subtask, SubtaskRequest)
            agent_id = agent_id_for_subtask(self.log)
            logger.info("[DeepThink] invoke_subtask: agent%d title=%s", agent_id, _preview(subtask.title, 140))

            # The child does not inherit the parent's history.
            messages, response = self._call(
                self._instructions(), Message(role="user", content=subtask.detail), None, ASSISTANT_RESPONSE
            )
            return self._commit(
                [UserEntry(content=subtask.detail, message_history=messages), self._agent_entry(agent_id, messages, response)]
            )

    def reply_to_inquiry(self, inquiry: Optional[str] = None) -> List[Entry]:
        """
        Inquiry round-trip: ask the ancestor branch, then resume the child
        branch with the ancestor's answer. Appends two agent entries.
        """
        with self._exclusive("reply_to_inquiry"):
            index, latest = self._require(TaskDetailInquiry, "reply_to_inquiry")
            if inquiry is None:
                inquiry = latest.action.inquiry  # type: ignore[union-attr]
            ancestor_id, child_id = agent_ids_for_reply(self.log)
            ancestor = resolve_ancestor(self.log, index)
            logger.info("[DeepThink] reply_to_inquiry: agent%d -> agent%d", child_id, ancestor_id)

            ask = Message(role="user", content=self.profile.format_inquiry(inquiry))
            ancestor_messages, answer = self._call(
                ancestor.message_history, ask, ancestor.continuation_id, INQUIRY_RESPONSE
            )
            assert answer.output_parsed is not None
            reply_text = answer.output_parsed.action.message  # type: ignore[union-attr]

            child_messages, resumed = self._call(
                latest.message_history, Message(role="user", content=reply_text), latest.continuation_id, ASSISTANT_RESPONSE
            )
            return self._commit(
                [
                    self._agent_entry(ancestor_id, ancestor_messages, answer),
                    self._agent_entry(child_id, child_messages, resumed),
                ]
            )

    def notify_task_completion(self, result: Optional[str] = None) -> List[Entry]:
        """
        Report the child's result to the ancestor branch. The new entry keeps
        the child's agent id although its context is the ancestor's.
        """
        with self._exclusive("notify_task_completion"):
            index, latest = self._require(TaskCompletionNotification, "notify_task_completion")
            if result is None:
                result = latest.action.result  # type: ignore[union-attr]
            agent_id = agent_id_for_completion(self.log)
            ancestor = resolve_ancestor(self.log, index)
            logger.info("[DeepThink] notify_task_completion: agent%d -> agent%d", agent_id, ancestor.agent_id)

            note = Message(role="user", content=self.profile.format_completion(result))
            messages, response = self._call(ancestor.message_history, note, ancestor.continuation_id, ASSISTANT_RESPONSE)
            return self._commit([self._agent_entry(agent_id, messages, response)])

    def advance(self) -> List[Entry]:
        """Run whichever transition the latest entry enables."""
        transition = self.available_transition()
        if transition is None:
            raise InvalidState("No transition is enabled for the latest entry; call send() to continue")
        return getattr(self, transition)()

    def reset(self) -> None:
        with self._exclusive("reset"):
            self.log.reset()
        logger.info("[DeepThink] Session reset.")
