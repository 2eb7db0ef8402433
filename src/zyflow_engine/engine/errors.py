"""Exception hierarchy shared across the engine."""

from __future__ import annotations


class ZyflowError(Exception):
    """Base class for engine errors."""


class WorkflowNotFound(ZyflowError):
    def __init__(self, workflow_id: str) -> None:
        super().__init__(f"Workflow not found: {workflow_id}")
        self.workflow_id = workflow_id


class OwnerNotFound(ZyflowError):
    def __init__(self, owner_id: str) -> None:
        super().__init__(f"Owner not found: {owner_id}")
        self.owner_id = owner_id


class CreditExhausted(ZyflowError):
    def __init__(self, owner_id: str) -> None:
        super().__init__(f"Insufficient credits for owner: {owner_id}")
        self.owner_id = owner_id
