from __future__ import annotations

"""
Conversation log (non-LLM, in-memory).

The log is the single source of truth for a DeepThink session: an ordered,
append-only sequence of user and agent entries. Entries are frozen and carry
their message history as a tuple, so branches never share mutable state.

Each agent entry gets a `parent_index` when it is appended: the position of the
nearest preceding agent entry with a strictly smaller agent id. It is computed
once with a monotonic stack and never re-derived.
"""

import logging
import threading
from dataclasses import dataclass, replace
from typing import Iterable, Iterator, List, Optional, Tuple, Union

from .errors import InvalidState
from .schemas import Action, MessageHistory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserEntry:
    content: str
    message_history: MessageHistory


@dataclass(frozen=True)
class AgentEntry:
    agent_id: int
    thought: str
    action: Action
    message_history: MessageHistory
    continuation_id: Optional[str] = None
    # Filled in by ConversationLog on append.
    parent_index: Optional[int] = None


Entry = Union[UserEntry, AgentEntry]


def _link_parent(stack: List[Tuple[int, int]], agent_id: int, index: int) -> Optional[int]:
    # Entries with an id >= agent_id can never be the nearest smaller one for a
    # later entry, since this one is nearer and at least as small.
    while stack and stack[-1][0] >= agent_id:
        stack.pop()
    parent = stack[-1][1] if stack else None
    stack.append((agent_id, index))
    return parent


class ConversationLog:
    """Append-only entry store. `append`/`extend` are the only mutators besides `reset`."""

    def __init__(self, entries: Iterable[Entry] = ()):
        self._entries: List[Entry] = []
        self._agent_stack: List[Tuple[int, int]] = []
        self._lock = threading.Lock()
        entries = list(entries)
        if entries:
            self.extend(entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Entry]:
        return iter(self.entries())

    def entries(self) -> Tuple[Entry, ...]:
        return tuple(self._entries)

    def get(self, index: int) -> Entry:
        if not 0 <= index < len(self._entries):
            raise IndexError(f"log index {index} out of range (size={len(self._entries)})")
        return self._entries[index]

    def last(self) -> Optional[Entry]:
        return self._entries[-1] if self._entries else None

    def latest_agent(self) -> Optional[AgentEntry]:
        for entry in reversed(self._entries):
            if isinstance(entry, AgentEntry):
                return entry
        return None

    def ancestor_of(self, index: int) -> Optional[AgentEntry]:
        entry = self.get(index)
        if not isinstance(entry, AgentEntry):
            raise InvalidState(f"log position {index} is a user entry and has no agent ancestry")
        if entry.parent_index is None:
            return None
        parent = self._entries[entry.parent_index]
        assert isinstance(parent, AgentEntry)
        return parent

    def append(self, entry: Entry) -> int:
        return self.extend([entry])[0]

    def extend(self, entries: Iterable[Entry]) -> List[int]:
        """
        Append a batch atomically: either every entry is appended or, if any
        entry is rejected, none are.
        """
        with self._lock:
            stack = list(self._agent_stack)
            staged: List[Entry] = []
            start = len(self._entries)
            for offset, entry in enumerate(entries):
                if isinstance(entry, AgentEntry):
                    if entry.agent_id < 0:
                        raise InvalidState(f"agent id must be >= 0, got {entry.agent_id}")
                    entry = replace(entry, parent_index=_link_parent(stack, entry.agent_id, start + offset))
                elif not isinstance(entry, UserEntry):
                    raise TypeError(f"not a log entry: {entry!r}")
                staged.append(entry)
            self._entries.extend(staged)
            self._agent_stack = stack
            return list(range(start, start + len(staged)))

    def reset(self) -> None:
        with self._lock:
            dropped = len(self._entries)
            self._entries = []
            self._agent_stack = []
        logger.debug("[DeepThink] Log reset: dropped %d entries", dropped)
