"""Pydantic models for the REST server."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from zyflow_engine.server.job_store import JobStatus


class NotificationAck(BaseModel):
    ok: bool = True
    accepted: bool
    reason: str
    job_id: str | None = None


class ResumeResponse(BaseModel):
    message: str
    status: str
    remaining_steps: int | None = None
    pass_state: str | None = None


class ApiWorkflow(BaseModel):
    id: str
    owner_id: str
    name: str
    published: bool
    step_plan: list[str]
    resume_cursor: list[str] | None = None
    state: str
    version: int
    updated_at: str


class DispatchJob(BaseModel):
    job_id: str
    resource_id: str
    message_sequence: str
    status: JobStatus

    created_at: datetime
    updated_at: datetime

    owner_id: str | None = None
    passes: list[dict[str, object]] = Field(default_factory=list)
    stopped_reason: str | None = None
    error: str | None = None
