from __future__ import annotations

"""
Prompt profiles for DeepThink.

A profile holds the developer instructions every agent starts from and the
templates used to relay text across an agent boundary. Swapping the profile
adapts the workflow without touching router code.
"""

from dataclasses import dataclass

ASSISTANT_PROMPT = """You are one of the agents carrying out a task.
You can repeat the following three types of actions.
# Subtask Request
Ask other agents for a subtask.
Please clarify the end condition.
# Task Detail Inquiry
Ask the task requester for details.
They may not always reply.
# Task Completion Notification
Notify the task requester that the task is completed."""


@dataclass(frozen=True)
class PromptProfile:
    name: str = "default"
    system_prompt: str = ASSISTANT_PROMPT
    # Sent to the ancestor when a child asks for details.
    inquiry_template: str = "Subtask executer asked: {inquiry}"
    # Sent to the ancestor when a child reports completion.
    completion_template: str = "Subtask completed: {result}"

    def format_inquiry(self, inquiry: str) -> str:
        return self.inquiry_template.format(inquiry=inquiry)

    def format_completion(self, result: str) -> str:
        return self.completion_template.format(result=result)


DEFAULT_PROFILE = PromptProfile()
