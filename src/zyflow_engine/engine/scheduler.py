"""Resume scheduler bridge.

When a pass suspends on a `Wait` step, the engine registers a one-shot job with
an external time-based dispatcher (cron-job.org). When the job fires it calls
back into the resume endpoint with the workflow id.

Registration is keyed by workflow: registering again replaces the previous job
(last registration wins), so a retried suspension never leaves two callbacks
racing for the same cursor.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Protocol
from urllib.parse import urlencode
from zoneinfo import ZoneInfo

import requests
from pydantic import BaseModel

from zyflow_engine.engine.errors import ZyflowError
from zyflow_engine.engine.jsonfile import JsonListFile

logger = logging.getLogger(__name__)

RESUME_PATH = "/api/flow"


class SchedulerRegistrationFailure(ZyflowError):
    """The external dispatcher did not accept the resume callback."""


class ResumeScheduler(Protocol):
    def schedule_resume(self, workflow_id: str, delay: timedelta) -> str:
        """Register a callback; returns the external job id."""
        ...


class ResumeJobRecord(BaseModel):
    workflow_id: str
    job_id: str
    fires_at: str
    registered_at: str


def _utc_iso_now() -> str:
    return datetime.now(tz=UTC).isoformat()


class ResumeJobStore:
    """Remembers the external job registered for each workflow."""

    def __init__(self, path: Path) -> None:
        self._file = JsonListFile(path, ResumeJobRecord)

    def get(self, workflow_id: str) -> ResumeJobRecord | None:
        return next((r for r in self._file.load() if r.workflow_id == workflow_id), None)

    def put(self, *, workflow_id: str, job_id: str, fires_at: datetime) -> ResumeJobRecord:
        """Store the job for a workflow, replacing any previous one."""

        record = ResumeJobRecord(
            workflow_id=workflow_id,
            job_id=job_id,
            fires_at=fires_at.isoformat(),
            registered_at=_utc_iso_now(),
        )
        with self._file.transaction() as records:
            records[:] = [r for r in records if r.workflow_id != workflow_id]
            records.append(record)
        return record


def _schedule_fields(when: datetime) -> dict[str, list[int]]:
    return {
        "hours": [when.hour],
        "mdays": [when.day],
        "minutes": [when.minute],
        "months": [when.month],
        "wdays": [-1],
    }


def _fire_time(now: datetime, delay: timedelta) -> datetime:
    """Earliest whole minute at or after `now + delay`; cron schedules have no seconds."""

    when = now + delay
    if when.second or when.microsecond:
        when = when.replace(second=0, microsecond=0) + timedelta(minutes=1)
    return when


def _expires_at(when: datetime) -> int:
    # cron-job.org encodes expiry as YYYYMMDDhhmmss; one minute of slack after firing.
    return int((when + timedelta(minutes=1)).strftime("%Y%m%d%H%M%S"))


class CronJobScheduler:
    """cron-job.org backed implementation of :class:`ResumeScheduler`."""

    def __init__(
        self,
        *,
        api_key: str,
        callback_base_url: str,
        jobs: ResumeJobStore,
        base_url: str = "https://api.cron-job.org",
        timezone: str = "UTC",
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self._api_key = api_key
        self._callback_base_url = callback_base_url.rstrip("/")
        self._jobs = jobs
        self._base_url = base_url.rstrip("/")
        self._timezone = timezone
        self._timeout = timeout
        self._session = session or requests.Session()

    def callback_url(self, workflow_id: str) -> str:
        return f"{self._callback_base_url}{RESUME_PATH}?{urlencode({'flow_id': workflow_id})}"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    def schedule_resume(self, workflow_id: str, delay: timedelta) -> str:
        if not self._api_key.strip():
            raise SchedulerRegistrationFailure("CRON_JOB_KEY is required to schedule a resume")

        fires_at = _fire_time(datetime.now(tz=ZoneInfo(self._timezone)), delay)
        payload = {
            "job": {
                "url": self.callback_url(workflow_id),
                "enabled": True,
                "saveResponses": False,
                "schedule": {
                    "timezone": self._timezone,
                    "expiresAt": _expires_at(fires_at),
                    **_schedule_fields(fires_at),
                },
            }
        }

        try:
            response = self._session.put(
                f"{self._base_url}/jobs",
                json=payload,
                headers=self._headers(),
                timeout=self._timeout,
            )
            response.raise_for_status()
            job_id = str(response.json()["jobId"])
        except (requests.RequestException, KeyError, ValueError) as e:
            raise SchedulerRegistrationFailure(
                f"Resume registration failed for workflow {workflow_id}: {e}"
            ) from e

        previous = self._jobs.get(workflow_id)
        self._jobs.put(workflow_id=workflow_id, job_id=job_id, fires_at=fires_at)
        if previous is not None and previous.job_id != job_id:
            self._delete_job(previous.job_id, workflow_id=workflow_id)

        logger.info(
            "Resume callback registered",
            extra={"workflow_id": workflow_id, "job_id": job_id, "fires_at": fires_at.isoformat()},
        )
        return job_id

    def _delete_job(self, job_id: str, *, workflow_id: str) -> None:
        # Best-effort: an expired job may already be gone.
        try:
            response = self._session.delete(
                f"{self._base_url}/jobs/{job_id}", headers=self._headers(), timeout=self._timeout
            )
            if not response.ok and response.status_code != 404:
                logger.warning(
                    "Could not delete superseded resume job",
                    extra={"workflow_id": workflow_id, "job_id": job_id, "status": response.status_code},
                )
        except requests.RequestException:
            logger.warning(
                "Could not delete superseded resume job",
                extra={"workflow_id": workflow_id, "job_id": job_id},
                exc_info=True,
            )
