from __future__ import annotations

"""
Error taxonomy for DeepThink.

Every failure surfaces synchronously at the command call site. A command that
raises has appended nothing to the log.
"""

from typing import Optional


class DeepThinkError(Exception):
    """Base class for all DeepThink failures."""


class SchemaMismatch(DeepThinkError):
    """The model output did not parse against the requested response schema."""

    def __init__(self, schema: str, raw_text: Optional[str] = None):
        self.schema = schema
        self.raw_text = raw_text
        preview = (raw_text or "")[:400]
        super().__init__(f"Invalid response format for {schema}: {preview!r}")


class MissingAncestor(DeepThinkError):
    """No preceding agent entry with a smaller agent id exists."""

    def __init__(self, index: int, agent_id: int):
        self.index = index
        self.agent_id = agent_id
        super().__init__(f"No ancestor entry for agent{agent_id} at log position {index}")


class InvalidState(DeepThinkError):
    """The log is not in a state that allows the requested operation."""


class SessionBusy(InvalidState):
    """Another operation is still waiting on the model."""


class GatewayError(DeepThinkError):
    """The model client failed before returning a response."""
