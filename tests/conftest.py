"""Test configuration and fixtures."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import timedelta
from functools import partial
from pathlib import Path
from typing import Any

import pytest

from zyflow_engine.engine.connectors import ConnectorOutcome, ConnectorRegistry
from zyflow_engine.engine.credits import AccountRecord, AccountStore, CreditGate
from zyflow_engine.engine.scheduler import SchedulerRegistrationFailure
from zyflow_engine.engine.service import WorkflowEngine
from zyflow_engine.engine.store import WorkflowRecord, WorkflowStore
from zyflow_engine.engine.workflow.state_machine import StepExecutor
from zyflow_engine.engine.workflow.steps import StepKind


class FakeConnector:
    """Records every send; the outcome is set by the test."""

    def __init__(
        self,
        kind: StepKind,
        *,
        configured: bool = True,
        ok: bool = True,
        raises: bool = False,
    ) -> None:
        self.kind = kind
        self.configured = configured
        self.ok = ok
        self.raises = raises
        self.calls: list[tuple[dict[str, Any], str | None]] = []

    def is_configured(self, config: Mapping[str, Any], template: str | None) -> bool:
        return self.configured

    def send(self, config: Mapping[str, Any], template: str | None) -> ConnectorOutcome:
        self.calls.append((dict(config), template))
        if self.raises:
            raise RuntimeError("connection reset by peer")
        return ConnectorOutcome(ok=self.ok, message="sent" if self.ok else "rejected")


class FakeScheduler:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[tuple[str, timedelta]] = []

    def schedule_resume(self, workflow_id: str, delay: timedelta) -> str:
        if self.fail:
            raise SchedulerRegistrationFailure("scheduler unavailable")
        self.calls.append((workflow_id, delay))
        return f"job-{len(self.calls)}"


def make_workflow(
    store: WorkflowStore,
    *,
    workflow_id: str = "wf-1",
    owner_id: str = "user-1",
    steps: list[str] | None = None,
    published: bool = True,
    resume_cursor: list[str] | None = None,
    step_configs: dict[str, dict[str, Any]] | None = None,
) -> WorkflowRecord:
    """Persist a workflow and return it as stored."""

    return store.upsert(
        WorkflowRecord(
            id=workflow_id,
            owner_id=owner_id,
            name=f"Workflow {workflow_id}",
            published=published,
            step_plan=steps if steps is not None else ["Chat", "Wait", "Document"],
            resume_cursor=resume_cursor,
            step_configs=step_configs or {},
            templates={"Chat": "New file uploaded", "Document": "New Drive File"},
        )
    )


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    """Provide a temporary state directory."""
    path = tmp_path / "state"
    path.mkdir()
    return path


@pytest.fixture
def connectors() -> dict[StepKind, FakeConnector]:
    return {
        kind: FakeConnector(kind)
        for kind in (StepKind.CHAT, StepKind.WEBHOOK, StepKind.DOCUMENT, StepKind.NOTIFY_MANY)
    }


@pytest.fixture
def registry(connectors: dict[StepKind, FakeConnector]) -> ConnectorRegistry:
    return ConnectorRegistry(connectors.values())


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def workflow_store(state_dir: Path) -> WorkflowStore:
    return WorkflowStore(state_dir / "workflows.json")


@pytest.fixture
def account_store(state_dir: Path) -> AccountStore:
    return AccountStore(state_dir / "accounts.json")


@pytest.fixture
def owner(account_store: AccountStore) -> AccountRecord:
    """An owner with five credits watching resource `res-1`."""
    return account_store.upsert(
        AccountRecord.model_validate({"owner_id": "user-1", "resource_id": "res-1", "credits": "5"})
    )


@pytest.fixture
def executor(
    workflow_store: WorkflowStore,
    account_store: AccountStore,
    registry: ConnectorRegistry,
    scheduler: FakeScheduler,
) -> StepExecutor:
    return StepExecutor(
        workflows=workflow_store,
        registry=registry,
        scheduler=scheduler,
        credits=CreditGate(account_store),
    )


@pytest.fixture
def engine(
    workflow_store: WorkflowStore,
    account_store: AccountStore,
    executor: StepExecutor,
) -> WorkflowEngine:
    return WorkflowEngine(
        workflows=workflow_store,
        accounts=account_store,
        executor=executor,
        credits=CreditGate(account_store),
    )


@pytest.fixture
def seed_workflow(workflow_store: WorkflowStore) -> Callable[..., WorkflowRecord]:
    """Factory persisting workflows into the temporary store."""
    return partial(make_workflow, workflow_store)
