"""FastAPI app factory.

Endpoints are thin wrappers over the engine services:

- the trigger notification endpoint acknowledges at once and hands accepted
  notifications to a background dispatch job;
- the resume endpoint is what the external scheduler calls back.
"""

from __future__ import annotations

import logging
from functools import partial

from fastapi import FastAPI, Header, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from zyflow_engine import __version__
from zyflow_engine.engine.errors import CreditExhausted, OwnerNotFound, WorkflowNotFound
from zyflow_engine.engine.ingestion import TriggerIngestion, build_dedup_store
from zyflow_engine.engine.service import ResumeStatus, WorkflowEngine, build_engine
from zyflow_engine.engine.workflow.events import TriggerNotification
from zyflow_engine.engine.workflow.state_machine import workflow_state
from zyflow_engine.server.config import ServerSettings
from zyflow_engine.server.dispatch_runner import Spawn, spawn_thread, start_dispatch_job
from zyflow_engine.server.job_store import DispatchJobStore
from zyflow_engine.server.models import (
    ApiWorkflow,
    DispatchJob,
    NotificationAck,
    ResumeResponse,
)

logger = logging.getLogger(__name__)

_RESUME_MESSAGES: dict[ResumeStatus, str] = {
    ResumeStatus.RESUMED: "Workflow execution continued",
    ResumeStatus.NOT_PUBLISHED: "Workflow is not published",
    ResumeStatus.NO_CURSOR: "No resume cursor",
}


def create_app(
    *,
    settings: ServerSettings | None = None,
    engine: WorkflowEngine | None = None,
    spawn: Spawn = spawn_thread,
) -> FastAPI:
    settings = settings or ServerSettings()
    engine = engine or build_engine(settings)

    app = FastAPI(
        title="Zyflow Engine",
        version=__version__,
        description="Workflow execution engine: trigger ingestion and scheduled resumption.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    app.state.settings = settings
    app.state.engine = engine

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    job_store = DispatchJobStore(settings.dispatch_jobs_state_file)
    ingestion = TriggerIngestion(
        dedup=build_dedup_store(settings),
        handoff=partial(start_dispatch_job, engine=engine, job_store=job_store, spawn=spawn),
    )
    app.state.ingestion = ingestion

    @app.get("/api/v1/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    @app.post("/api/drive-activity/notification", response_model=NotificationAck)
    def drive_notification(
        resource_id: str | None = Header(default=None, alias="X-Goog-Resource-Id"),
        message_number: str | None = Header(default=None, alias="X-Goog-Message-Number"),
        resource_state: str | None = Header(default=None, alias="X-Goog-Resource-State"),
    ) -> NotificationAck:
        notification = TriggerNotification(
            resource_id=(resource_id or "").strip(),
            message_sequence=(message_number or "").strip(),
            state=resource_state,
        )
        try:
            result = ingestion.accept(notification)
        except Exception:
            # The provider retries on anything but 2xx; never let it storm us.
            logger.exception(
                "Notification ingestion failed",
                extra={"resource_id": notification.resource_id},
            )
            return NotificationAck(accepted=False, reason="error")
        return NotificationAck(
            accepted=result.accepted, reason=result.decision.value, job_id=result.job_id
        )

    @app.api_route("/api/flow", methods=["GET", "POST"], response_model=ResumeResponse)
    def resume_flow(flow_id: str | None = Query(default=None)) -> ResumeResponse:
        if not flow_id or not flow_id.strip():
            raise HTTPException(status_code=400, detail="flow_id parameter is required")
        try:
            result = engine.resume(flow_id.strip())
        except WorkflowNotFound as e:
            raise HTTPException(status_code=404, detail="Workflow not found") from e
        except OwnerNotFound as e:
            raise HTTPException(status_code=404, detail="Owner not found") from e
        except CreditExhausted as e:
            raise HTTPException(status_code=402, detail="Insufficient credits") from e

        if result.status is ResumeStatus.BUSY:
            raise HTTPException(status_code=409, detail="A pass is already running for this workflow")

        return ResumeResponse(
            message=_RESUME_MESSAGES[result.status],
            status=result.status.value,
            remaining_steps=result.remaining_steps,
            pass_state=result.pass_result.state.value if result.pass_result else None,
        )

    @app.get("/api/v1/workflows/{workflow_id}", response_model=ApiWorkflow)
    def get_workflow(workflow_id: str) -> ApiWorkflow:
        record = engine.workflows.get(workflow_id)
        if record is None:
            raise HTTPException(status_code=404, detail="Workflow not found")
        return ApiWorkflow(
            id=record.id,
            owner_id=record.owner_id,
            name=record.name,
            published=record.published,
            step_plan=record.step_plan,
            resume_cursor=record.resume_cursor,
            state=workflow_state(record).value,
            version=record.version,
            updated_at=record.updated_at,
        )

    @app.get("/api/v1/dispatches/{job_id}", response_model=DispatchJob)
    def get_dispatch(job_id: str) -> DispatchJob:
        record = job_store.get(job_id)
        if record is None:
            raise HTTPException(status_code=404, detail="Dispatch job not found")
        return DispatchJob.model_validate(record.model_dump())

    return app
