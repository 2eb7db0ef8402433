"""Unit tests for the cron-job.org resume scheduler."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import Mock

import pytest
import requests

from zyflow_engine.engine.scheduler import (
    CronJobScheduler,
    ResumeJobStore,
    SchedulerRegistrationFailure,
    _fire_time,
)


def _response(job_id: int) -> Mock:
    response = Mock()
    response.json.return_value = {"jobId": job_id}
    return response


def _scheduler(tmp_path: Path, session: Mock, *, api_key: str = "cron-key") -> CronJobScheduler:
    return CronJobScheduler(
        api_key=api_key,
        callback_base_url="https://zyflow.example/",
        jobs=ResumeJobStore(tmp_path / "resume_jobs.json"),
        session=session,
    )


def test_registers_a_one_shot_callback(tmp_path: Path) -> None:
    session = Mock()
    session.put.return_value = _response(123)
    scheduler = _scheduler(tmp_path, session)

    job_id = scheduler.schedule_resume("wf-1", timedelta(minutes=1))

    assert job_id == "123"
    args, kwargs = session.put.call_args
    assert args == ("https://api.cron-job.org/jobs",)
    assert kwargs["headers"]["Authorization"] == "Bearer cron-key"

    job = kwargs["json"]["job"]
    assert job["url"] == "https://zyflow.example/api/flow?flow_id=wf-1"
    assert job["enabled"] is True
    schedule = job["schedule"]
    assert schedule["timezone"] == "UTC"
    assert schedule["wdays"] == [-1]
    assert len(schedule["hours"]) == len(schedule["minutes"]) == 1
    assert len(str(schedule["expiresAt"])) == 14

    stored = ResumeJobStore(tmp_path / "resume_jobs.json").get("wf-1")
    assert stored is not None
    assert stored.job_id == "123"


def test_missing_api_key_fails_registration(tmp_path: Path) -> None:
    session = Mock()
    scheduler = _scheduler(tmp_path, session, api_key="")

    with pytest.raises(SchedulerRegistrationFailure):
        scheduler.schedule_resume("wf-1", timedelta(minutes=1))
    session.put.assert_not_called()


def test_http_error_fails_registration(tmp_path: Path) -> None:
    session = Mock()
    response = _response(1)
    response.raise_for_status.side_effect = requests.HTTPError("503 Service Unavailable")
    session.put.return_value = response

    with pytest.raises(SchedulerRegistrationFailure):
        _scheduler(tmp_path, session).schedule_resume("wf-1", timedelta(minutes=1))
    assert ResumeJobStore(tmp_path / "resume_jobs.json").get("wf-1") is None


def test_response_without_job_id_fails_registration(tmp_path: Path) -> None:
    session = Mock()
    response = Mock()
    response.json.return_value = {}
    session.put.return_value = response

    with pytest.raises(SchedulerRegistrationFailure):
        _scheduler(tmp_path, session).schedule_resume("wf-1", timedelta(minutes=1))


def test_new_registration_replaces_the_previous_job(tmp_path: Path) -> None:
    session = Mock()
    session.put.side_effect = [_response(1), _response(2)]
    scheduler = _scheduler(tmp_path, session)

    scheduler.schedule_resume("wf-1", timedelta(minutes=1))
    scheduler.schedule_resume("wf-1", timedelta(minutes=5))

    session.delete.assert_called_once()
    assert session.delete.call_args.args == ("https://api.cron-job.org/jobs/1",)
    stored = ResumeJobStore(tmp_path / "resume_jobs.json").get("wf-1")
    assert stored is not None
    assert stored.job_id == "2"


def test_failed_cleanup_of_previous_job_is_not_fatal(tmp_path: Path) -> None:
    session = Mock()
    session.put.side_effect = [_response(1), _response(2)]
    session.delete.side_effect = requests.ConnectionError("down")
    scheduler = _scheduler(tmp_path, session)

    scheduler.schedule_resume("wf-1", timedelta(minutes=1))

    assert scheduler.schedule_resume("wf-1", timedelta(minutes=1)) == "2"


def _at(day: int, hour: int, minute: int, second: int = 0, micro: int = 0) -> datetime:
    return datetime(2024, 5, day, hour, minute, second, micro, tzinfo=UTC)


@pytest.mark.parametrize(
    ("now", "delay", "expected"),
    [
        (_at(1, 12, 0, 59), timedelta(minutes=1), _at(1, 12, 2)),
        (_at(1, 12, 0, 0, 1), timedelta(minutes=1), _at(1, 12, 2)),
        (_at(1, 12, 0), timedelta(minutes=1), _at(1, 12, 1)),
        (_at(1, 23, 59, 30), timedelta(minutes=5), _at(2, 0, 5)),
    ],
)
def test_fire_time_never_precedes_the_requested_delay(
    now: datetime, delay: timedelta, expected: datetime
) -> None:
    fires_at = _fire_time(now, delay)

    assert fires_at == expected
    assert fires_at >= now + delay
