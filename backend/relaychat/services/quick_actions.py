"""Canned prompts offered above the chat input."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class QuickAction:
    id: str
    label: str
    message: str


QUICK_ACTIONS: tuple[QuickAction, ...] = (
    QuickAction(
        id="help",
        label="Help",
        message="Tell me what this chatbot can do.",
    ),
    QuickAction(
        id="documents",
        label="Documents",
        message="Tell me about the company's important documents and materials.",
    ),
    QuickAction(
        id="schedule",
        label="Schedule",
        message="What are the important schedules and events this month?",
    ),
    QuickAction(
        id="tips",
        label="Tips",
        message="Give me some tips for working more efficiently.",
    ),
)


def get_quick_action(action_id: str) -> QuickAction:
    """Return the quick action with ``action_id`` or raise KeyError."""

    for action in QUICK_ACTIONS:
        if action.id == action_id:
            return action
    raise KeyError(action_id)
