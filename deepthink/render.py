from __future__ import annotations

"""
Plain-text rendering of the conversation log and of message transcripts.
"""

from typing import Dict, Iterable, List, Optional, Sequence, Type

from .schemas import (
    Action,
    Message,
    RespondToInquiry,
    SubtaskRequest,
    TaskCompletionNotification,
    TaskDetailInquiry,
)
from .state import AgentEntry, Entry

ACTION_TITLES: Dict[Type[object], str] = {
    SubtaskRequest: "Subtask Request",
    TaskDetailInquiry: "Task Detail Inquiry",
    TaskCompletionNotification: "Task Completion Notification",
    RespondToInquiry: "Respond to Inquiry",
}

TRANSITION_LABELS: Dict[str, str] = {
    "invoke_subtask": "Invoke subtask",
    "reply_to_inquiry": "Reply to inquiry",
    "notify_task_completion": "Notify task completion",
}


def entry_label(entry: Entry) -> str:
    return f"agent{entry.agent_id}" if isinstance(entry, AgentEntry) else "user"


def render_action(action: Action) -> List[str]:
    lines = [ACTION_TITLES[type(action)]]
    if isinstance(action, SubtaskRequest):
        lines += [action.title, action.detail]
    elif isinstance(action, TaskDetailInquiry):
        lines.append(action.inquiry)
    elif isinstance(action, TaskCompletionNotification):
        lines.append(action.result)
    else:
        lines.append(action.message)
    return lines


def render_entry(entry: Entry, index: Optional[int] = None) -> str:
    head = entry_label(entry) if index is None else f"[{index}] {entry_label(entry)}"
    if isinstance(entry, AgentEntry):
        body = [entry.thought] + ["  " + line for line in render_action(entry.action)]
    else:
        body = [entry.content]
    return "\n".join([head] + ["  " + line for line in body])


def render_log(entries: Iterable[Entry]) -> str:
    return "\n\n".join(render_entry(e, i) for i, e in enumerate(entries))


def render_transcript(messages: Sequence[Message]) -> str:
    """One block per message, prefixed with its role (developer, user, assistant)."""
    blocks = []
    for m in messages:
        tag = m.role if not m.continuation_id else f"{m.role} ({m.continuation_id})"
        blocks.append(f"--- {tag}\n{m.content}")
    return "\n".join(blocks)
