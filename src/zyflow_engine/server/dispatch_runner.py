"""Background runner for accepted trigger notifications."""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable

from zyflow_engine.engine.service import WorkflowEngine
from zyflow_engine.engine.workflow.events import TriggerNotification
from zyflow_engine.server.job_store import DispatchJobStore

logger = logging.getLogger(__name__)

Spawn = Callable[[Callable[[], None], str], None]


def spawn_thread(target: Callable[[], None], name: str) -> None:
    thread = threading.Thread(target=target, name=name, daemon=True)
    thread.start()


def start_dispatch_job(
    notification: TriggerNotification,
    *,
    engine: WorkflowEngine,
    job_store: DispatchJobStore,
    spawn: Spawn = spawn_thread,
) -> str:
    """Record a dispatch job and start it; returns without waiting for it."""

    job_id = uuid.uuid4().hex
    job_store.create(
        job_id=job_id,
        resource_id=notification.resource_id,
        message_sequence=notification.message_sequence,
    )

    def target() -> None:
        _run_job(job_id=job_id, notification=notification, engine=engine, job_store=job_store)

    spawn(target, f"dispatch-{notification.resource_id}-{job_id}")
    return job_id


def _run_job(
    *,
    job_id: str,
    notification: TriggerNotification,
    engine: WorkflowEngine,
    job_store: DispatchJobStore,
) -> None:
    try:
        job_store.update(job_id, status="running")
        summary = engine.dispatch_trigger(notification.resource_id)
        job_store.update(
            job_id,
            status="failed" if summary.errors else "succeeded",
            owner_id=summary.owner_id,
            passes=[p.to_json() for p in summary.passes],
            stopped_reason=summary.stopped_reason,
            error="; ".join(f"{wid}: {msg}" for wid, msg in summary.errors.items()) or None,
        )
    except Exception as e:
        # The notification was already acknowledged; the job record is the only trace.
        logger.exception(
            "Dispatch job failed",
            extra={"job_id": job_id, "resource_id": notification.resource_id},
        )
        job_store.update(job_id, status="failed", error=str(e))
