from __future__ import annotations

from enum import Enum


class StepKind(str, Enum):
    """Tags that make up a workflow's step plan."""

    CHAT = "Chat"
    WEBHOOK = "Webhook"
    DOCUMENT = "Document"
    NOTIFY_MANY = "Notify-Many"
    # Reserved: suspends the pass; never dispatched to a connector.
    WAIT = "Wait"

    @classmethod
    def parse(cls, value: str) -> StepKind | None:
        try:
            return cls(value)
        except ValueError:
            return None
