from __future__ import annotations

from dataclasses import dataclass

SYNC_STATE = "sync"


@dataclass(frozen=True, slots=True)
class TriggerNotification:
    """An upstream change signal for a watched resource.

    Notifications only describe that something changed; they never carry work.
    """

    resource_id: str
    message_sequence: str
    state: str | None = None

    @property
    def is_sync(self) -> bool:
        """Handshake messages sent when a watch channel is opened."""

        return (self.state or "").strip().lower() == SYNC_STATE

    @property
    def dedup_key(self) -> str:
        return f"{self.resource_id}:{self.message_sequence}"
