"""Entry points of the execution engine.

Two paths start passes:

- `dispatch_trigger(resource_id)`: the background half of trigger ingestion.
  Every published workflow of the resource's owner runs from the top of its
  plan, each pass in its own worker thread.
- `resume(workflow_id)`: invoked by the external scheduler callback. The
  workflow continues from its persisted cursor.

Both paths take the per-workflow lock before loading the record, so the version
the executor writes against is the one the pass started from.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum

from zyflow_engine.engine.config import EngineSettings
from zyflow_engine.engine.connectors import ConnectorRegistry, default_registry
from zyflow_engine.engine.credits import AccountStore, CreditGate
from zyflow_engine.engine.errors import CreditExhausted
from zyflow_engine.engine.scheduler import CronJobScheduler, ResumeJobStore, ResumeScheduler
from zyflow_engine.engine.store import WorkflowRecord, WorkflowStore, is_plan_suffix
from zyflow_engine.engine.workflow.locks import WorkflowLocks
from zyflow_engine.engine.workflow.state_machine import (
    PassResult,
    PassState,
    StepExecutor,
    transition,
    workflow_state,
)

logger = logging.getLogger(__name__)


class ResumeStatus(str, Enum):
    RESUMED = "resumed"
    NOT_PUBLISHED = "not_published"
    NO_CURSOR = "no_cursor"
    BUSY = "busy"


@dataclass(frozen=True, slots=True)
class ResumeResult:
    workflow_id: str
    status: ResumeStatus
    remaining_steps: int | None = None
    pass_result: PassResult | None = None


@dataclass(slots=True)
class DispatchSummary:
    resource_id: str
    owner_id: str | None = None
    passes: list[PassResult] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)
    stopped_reason: str | None = None

    def to_json(self) -> dict[str, object]:
        return {
            "resource_id": self.resource_id,
            "owner_id": self.owner_id,
            "passes": [p.to_json() for p in self.passes],
            "skipped": list(self.skipped),
            "errors": dict(self.errors),
            "stopped_reason": self.stopped_reason,
        }


class WorkflowEngine:
    def __init__(
        self,
        *,
        workflows: WorkflowStore,
        accounts: AccountStore,
        executor: StepExecutor,
        credits: CreditGate,
        locks: WorkflowLocks | None = None,
        max_parallel_passes: int = 8,
    ) -> None:
        self.workflows = workflows
        self.accounts = accounts
        self._executor = executor
        self._credits = credits
        self._locks = locks or WorkflowLocks()
        self._max_parallel_passes = max_parallel_passes

    def dispatch_trigger(self, resource_id: str) -> DispatchSummary:
        """Run a fresh pass for every published workflow of the resource's owner."""

        summary = DispatchSummary(resource_id=resource_id)
        account = self.accounts.find_by_resource_id(resource_id)
        if account is None:
            logger.info("No owner for resource; nothing to run", extra={"resource_id": resource_id})
            summary.stopped_reason = "owner_not_found"
            return summary

        summary.owner_id = account.owner_id
        if not self._credits.authorize(account):
            logger.warning(
                "Insufficient credits; skipping workflows",
                extra={"owner_id": account.owner_id, "credits": account.credits},
            )
            summary.stopped_reason = "credit_exhausted"
            return summary

        workflows = self.workflows.list_published_for_owner(account.owner_id)
        if not workflows:
            return summary
        logger.info(
            "Dispatching trigger",
            extra={"owner_id": account.owner_id, "workflows": [w.id for w in workflows]},
        )

        # One worker per pass: a slow connector in one workflow must not hold up another.
        with ThreadPoolExecutor(
            max_workers=min(len(workflows), self._max_parallel_passes),
            thread_name_prefix=f"pass-{account.owner_id}",
        ) as pool:
            futures = [(w.id, pool.submit(self._run_fresh, w.id)) for w in workflows]
            for workflow_id, future in futures:
                try:
                    result = future.result()
                except CreditExhausted:
                    summary.stopped_reason = "credit_exhausted"
                    summary.skipped.append(workflow_id)
                    continue
                except Exception as e:
                    logger.error(
                        "Pass failed unexpectedly",
                        extra={"workflow_id": workflow_id},
                        exc_info=e,
                    )
                    summary.errors[workflow_id] = str(e)
                    continue
                if result is None:
                    summary.skipped.append(workflow_id)
                else:
                    summary.passes.append(result)
        return summary

    def _run_fresh(self, workflow_id: str) -> PassResult | None:
        with self._locks.hold(workflow_id) as acquired:
            if not acquired:
                logger.info("Pass already in flight; skipped", extra={"workflow_id": workflow_id})
                return None
            workflow = self.workflows.get(workflow_id)
            if workflow is None or not workflow.published:
                return None
            self._credits.require(workflow.owner_id)
            # A fresh trigger always starts from the top, whatever the cursor says.
            return self._executor.run_pass(workflow, workflow.step_plan)

    def resume(self, workflow_id: str) -> ResumeResult:
        """Continue a suspended workflow from its resume cursor.

        Raises:
            WorkflowNotFound: If the workflow does not exist.
            OwnerNotFound: If the workflow's owner has no account.
            CreditExhausted: If the owner has no credit left; the cursor is kept.
        """

        with self._locks.hold(workflow_id) as acquired:
            if not acquired:
                logger.info("Pass already in flight; resume skipped", extra={"workflow_id": workflow_id})
                return ResumeResult(workflow_id=workflow_id, status=ResumeStatus.BUSY)

            workflow = self.workflows.require(workflow_id)
            if not workflow.published:
                logger.info("Workflow not published; resume skipped", extra={"workflow_id": workflow_id})
                return ResumeResult(workflow_id=workflow_id, status=ResumeStatus.NOT_PUBLISHED)
            if workflow.resume_cursor is None:
                logger.info("No resume cursor; nothing to resume", extra={"workflow_id": workflow_id})
                return ResumeResult(workflow_id=workflow_id, status=ResumeStatus.NO_CURSOR)

            self._credits.require(workflow.owner_id)
            transition(current=workflow_state(workflow), to=PassState.PENDING)
            _warn_if_plan_edited(workflow)

            result = self._executor.run_pass(workflow, workflow.resume_cursor)
            return ResumeResult(
                workflow_id=workflow_id,
                status=ResumeStatus.RESUMED,
                remaining_steps=len(result.remaining),
                pass_result=result,
            )


def _warn_if_plan_edited(workflow: WorkflowRecord) -> None:
    assert workflow.resume_cursor is not None
    if not is_plan_suffix(workflow.step_plan, workflow.resume_cursor):
        logger.warning(
            "Resume cursor is no longer a tail of the step plan; resuming the cursor as stored",
            extra={"workflow_id": workflow.id, "cursor": workflow.resume_cursor},
        )


def build_engine(
    settings: EngineSettings,
    *,
    registry: ConnectorRegistry | None = None,
    scheduler: ResumeScheduler | None = None,
) -> WorkflowEngine:
    """Wire an engine from settings; collaborators can be overridden (tests, CLI)."""

    workflows = WorkflowStore(settings.workflows_state_file)
    accounts = AccountStore(settings.accounts_state_file)
    credits = CreditGate(accounts)
    if registry is None:
        registry = default_registry(timeout=settings.connector_timeout_seconds)
    if scheduler is None:
        scheduler = CronJobScheduler(
            api_key=settings.cron_job_api_key,
            callback_base_url=settings.public_base_url,
            jobs=ResumeJobStore(settings.resume_jobs_state_file),
            base_url=settings.cron_job_base_url,
            timezone=settings.scheduler_timezone,
            timeout=settings.connector_timeout_seconds,
        )
    executor = StepExecutor(
        workflows=workflows,
        registry=registry,
        scheduler=scheduler,
        credits=credits,
        wait_default_minutes=settings.wait_default_minutes,
    )
    return WorkflowEngine(
        workflows=workflows,
        accounts=accounts,
        executor=executor,
        credits=credits,
        max_parallel_passes=settings.max_parallel_passes,
    )


__all__ = [
    "DispatchSummary",
    "ResumeResult",
    "ResumeStatus",
    "WorkflowEngine",
    "build_engine",
]
