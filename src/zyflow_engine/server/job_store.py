"""Persisted records of background trigger dispatches.

Every accepted notification gets a record, so what a dispatch did can be
inspected after the provider was already acknowledged. Only the most recent
records are kept.
"""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from zyflow_engine.engine.jsonfile import JsonListFile

JobStatus = Literal["queued", "running", "succeeded", "failed"]


class DispatchJobRecord(BaseModel):
    job_id: str
    resource_id: str
    message_sequence: str
    status: JobStatus = "queued"
    created_at: datetime
    updated_at: datetime

    owner_id: str | None = None
    passes: list[dict[str, object]] = Field(default_factory=list)
    stopped_reason: str | None = None
    error: str | None = None


class DispatchJobStore:
    def __init__(self, path: Path, *, max_records: int = 500) -> None:
        self._file = JsonListFile(path, DispatchJobRecord)
        self._max_records = max_records

    def get(self, job_id: str) -> DispatchJobRecord | None:
        return next((job for job in self._file.load() if job.job_id == job_id), None)

    def create(self, *, job_id: str, resource_id: str, message_sequence: str) -> DispatchJobRecord:
        now = datetime.now(tz=UTC)
        record = DispatchJobRecord(
            job_id=job_id,
            resource_id=resource_id,
            message_sequence=message_sequence,
            created_at=now,
            updated_at=now,
        )
        with self._file.transaction() as jobs:
            jobs.append(record)
            del jobs[: max(len(jobs) - self._max_records, 0)]
        return record

    def update(self, job_id: str, **updates: object) -> DispatchJobRecord:
        """Merge `updates` into the job and stamp `updated_at`.

        Raises:
            KeyError: If the job is unknown (or was pruned).
        """

        with self._file.transaction() as jobs:
            for idx, job in enumerate(jobs):
                if job.job_id == job_id:
                    jobs[idx] = job.model_copy(
                        update={"updated_at": datetime.now(tz=UTC), **updates}
                    )
                    return jobs[idx]
            raise KeyError(job_id)
