"""Step executor.

A pass walks an immutable tuple of step kinds with an integer index:

- ordinary steps are handed to the connector registry and always consumed,
  whatever the outcome;
- a step whose configuration is incomplete is consumed without a call;
- `Wait` registers a resume callback, persists everything after it as the
  workflow's resume cursor and ends the pass.

Each pass ends in exactly one terminal state. Completed and suspended passes
write the cursor once and debit one credit; halted and conflicted passes write
nothing.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum

from zyflow_engine.engine.connectors import ConnectorFailure, ConnectorRegistry
from zyflow_engine.engine.credits import CreditGate
from zyflow_engine.engine.scheduler import ResumeScheduler, SchedulerRegistrationFailure
from zyflow_engine.engine.store import StaleWorkflowError, WorkflowRecord, WorkflowStore
from zyflow_engine.engine.workflow.steps import StepKind

logger = logging.getLogger(__name__)


class PassState(str, Enum):
    PENDING = "pending"
    SUSPENDED = "suspended"
    COMPLETE = "complete"
    # Scheduler refused the resume callback; nothing was persisted.
    HALTED = "halted"
    # Another writer moved the cursor first; nothing was persisted.
    CONFLICT = "conflict"


ALLOWED_TRANSITIONS: dict[PassState, set[PassState]] = {
    PassState.PENDING: {
        PassState.SUSPENDED,
        PassState.COMPLETE,
        PassState.HALTED,
        PassState.CONFLICT,
    },
    PassState.SUSPENDED: {PassState.PENDING},
    PassState.HALTED: {PassState.PENDING},
    PassState.COMPLETE: set(),
    PassState.CONFLICT: set(),
}


class IllegalTransitionError(ValueError):
    pass


def transition(*, current: PassState, to: PassState) -> PassState:
    if to not in ALLOWED_TRANSITIONS.get(current, set()):
        raise IllegalTransitionError(f"Illegal transition: {current.value} -> {to.value}")
    return to


def workflow_state(workflow: WorkflowRecord) -> PassState:
    """State of a workflow between passes, derived from its persisted cursor."""

    return PassState.SUSPENDED if workflow.resume_cursor is not None else PassState.PENDING


@dataclass(slots=True)
class PassResult:
    workflow_id: str
    state: PassState = PassState.PENDING
    executed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    remaining: list[str] = field(default_factory=list)
    resume_job_id: str | None = None

    def to_json(self) -> dict[str, object]:
        return {
            "workflow_id": self.workflow_id,
            "state": self.state.value,
            "executed": list(self.executed),
            "skipped": list(self.skipped),
            "failed": list(self.failed),
            "remaining": list(self.remaining),
            "resume_job_id": self.resume_job_id,
        }


class StepExecutor:
    def __init__(
        self,
        *,
        workflows: WorkflowStore,
        registry: ConnectorRegistry,
        scheduler: ResumeScheduler,
        credits: CreditGate,
        wait_default_minutes: int = 1,
    ) -> None:
        self._workflows = workflows
        self._registry = registry
        self._scheduler = scheduler
        self._credits = credits
        self._wait_default_minutes = wait_default_minutes

    def wait_delay(self, workflow: WorkflowRecord) -> timedelta:
        raw = workflow.config_for(StepKind.WAIT.value).get("minutes")
        try:
            minutes = int(raw) if raw is not None else self._wait_default_minutes
        except (TypeError, ValueError):
            minutes = self._wait_default_minutes
        return timedelta(minutes=max(minutes, 1))

    def run_pass(self, workflow: WorkflowRecord, steps: Sequence[str]) -> PassResult:
        """Execute `steps` for `workflow` until they run out or a Wait suspends the pass.

        `steps` is copied; callers may pass the workflow's plan or cursor directly.
        """

        plan = tuple(steps)
        result = PassResult(workflow_id=workflow.id)
        log_extra = {"workflow_id": workflow.id, "owner_id": workflow.owner_id}
        logger.info("Pass started", extra={**log_extra, "steps": list(plan)})

        index = 0
        while index < len(plan):
            tag = plan[index]
            kind = StepKind.parse(tag)

            if kind is StepKind.WAIT:
                return self._suspend(workflow, plan, index, result)

            index += 1
            self._run_step(workflow, tag, kind, result)

        return self._finish(workflow, result, cursor=None, to=PassState.COMPLETE)

    def _run_step(
        self,
        workflow: WorkflowRecord,
        tag: str,
        kind: StepKind | None,
        result: PassResult,
    ) -> None:
        log_extra = {"workflow_id": workflow.id, "step": tag}
        connector = self._registry.get(kind) if kind is not None else None
        if connector is None:
            logger.warning("No connector for step kind; step dropped", extra=log_extra)
            result.skipped.append(tag)
            return

        config = workflow.config_for(tag)
        template = workflow.template_for(tag)
        if not connector.is_configured(config, template):
            logger.warning("Step configuration incomplete; step dropped", extra=log_extra)
            result.skipped.append(tag)
            return

        try:
            outcome = self._registry.invoke(connector.kind, config, template)
        except ConnectorFailure:
            logger.error("Connector raised; step consumed", extra=log_extra, exc_info=True)
            result.failed.append(tag)
            return

        if outcome.ok:
            logger.info("Step executed", extra={**log_extra, "outcome": outcome.message})
            result.executed.append(tag)
        else:
            logger.error(
                "Connector reported failure; step consumed",
                extra={**log_extra, "outcome": outcome.message, "details": outcome.details},
            )
            result.failed.append(tag)

    def _suspend(
        self,
        workflow: WorkflowRecord,
        plan: tuple[str, ...],
        wait_index: int,
        result: PassResult,
    ) -> PassResult:
        try:
            result.resume_job_id = self._scheduler.schedule_resume(
                workflow.id, self.wait_delay(workflow)
            )
        except SchedulerRegistrationFailure:
            logger.error(
                "Resume registration failed; pass halted before Wait",
                extra={"workflow_id": workflow.id},
                exc_info=True,
            )
            result.remaining = list(plan[wait_index:])
            result.state = transition(current=result.state, to=PassState.HALTED)
            return result

        return self._finish(
            workflow, result, cursor=list(plan[wait_index + 1 :]), to=PassState.SUSPENDED
        )

    def _finish(
        self,
        workflow: WorkflowRecord,
        result: PassResult,
        *,
        cursor: list[str] | None,
        to: PassState,
    ) -> PassResult:
        try:
            self._workflows.set_resume_cursor(
                workflow.id, cursor, expected_version=workflow.version
            )
        except StaleWorkflowError:
            logger.error(
                "Workflow cursor changed during pass; result discarded",
                extra={"workflow_id": workflow.id},
                exc_info=True,
            )
            result.remaining = list(cursor or [])
            result.state = transition(current=result.state, to=PassState.CONFLICT)
            return result

        self._credits.debit(workflow.owner_id)
        result.remaining = list(cursor or [])
        result.state = transition(current=result.state, to=to)
        logger.info(
            "Pass finished",
            extra={
                "workflow_id": workflow.id,
                "state": result.state.value,
                "remaining": result.remaining,
            },
        )
        return result
