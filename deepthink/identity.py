from __future__ import annotations

"""
Identity allocation for agent entries.

An agent is identified by its depth in the delegation tree: the root is 0 and
every subtask delegation adds one. Ids are computed from the log at the moment
a command runs:

- send:          latest agent id (0 on a log without agents)
- invoke:        latest agent id + 1 (a missing parent counts as 0, so the child is 1)
- reply:         (current - 1, current); the root cannot be answered for
- notify:        current. The entry keeps the child's id although its context
                 comes from the ancestor branch.
"""

from typing import Tuple

from .errors import MissingAncestor, InvalidState
from .state import AgentEntry, ConversationLog


def current_agent_id(log: ConversationLog) -> int:
    latest = log.latest_agent()
    return latest.agent_id if latest is not None else 0


def agent_id_for_send(log: ConversationLog) -> int:
    return current_agent_id(log)


def agent_id_for_subtask(log: ConversationLog) -> int:
    return current_agent_id(log) + 1


def agent_ids_for_reply(log: ConversationLog) -> Tuple[int, int]:
    """Return (ancestor id, child id) for the two entries of an inquiry round-trip."""
    child = current_agent_id(log)
    if child == 0:
        raise InvalidState("agent0 has no ancestor to answer its inquiry (agent id would drop below 0)")
    return child - 1, child


def agent_id_for_completion(log: ConversationLog) -> int:
    return current_agent_id(log)


def resolve_ancestor(log: ConversationLog, index: int) -> AgentEntry:
    """The nearest preceding agent entry with a strictly smaller id than the entry at `index`."""
    ancestor = log.ancestor_of(index)
    if ancestor is None:
        entry = log.get(index)
        assert isinstance(entry, AgentEntry)
        raise MissingAncestor(index=index, agent_id=entry.agent_id)
    return ancestor
