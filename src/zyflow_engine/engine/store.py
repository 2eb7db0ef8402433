"""JSON-file backed workflow record store.

The store is the single place where a workflow's resume cursor is written.
Every cursor write bumps `version`; writers pass the version they loaded so a
concurrent pass that already moved the cursor is detected instead of silently
overwritten.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from zyflow_engine.engine.errors import WorkflowNotFound, ZyflowError
from zyflow_engine.engine.jsonfile import JsonListFile


def _utc_iso_now() -> str:
    return datetime.now(tz=UTC).isoformat()


class WorkflowRecord(BaseModel):
    """One user-authored automation."""

    id: str
    owner_id: str
    name: str = ""
    published: bool = False

    step_plan: list[str] = Field(default_factory=list)
    # Remaining steps after a suspension. None means "start from step_plan".
    resume_cursor: list[str] | None = None

    step_configs: dict[str, dict[str, Any]] = Field(default_factory=dict)
    templates: dict[str, str] = Field(default_factory=dict)

    version: int = 0
    updated_at: str = Field(default_factory=_utc_iso_now)

    def config_for(self, kind: str) -> dict[str, Any]:
        return dict(self.step_configs.get(kind) or {})

    def template_for(self, kind: str) -> str | None:
        return self.templates.get(kind)


def is_plan_suffix(plan: Sequence[str], cursor: Sequence[str]) -> bool:
    """True if `cursor` is a (possibly empty) tail of `plan`."""

    if len(cursor) > len(plan):
        return False
    return list(plan[len(plan) - len(cursor) :]) == list(cursor)


class StaleWorkflowError(ZyflowError):
    """Raised when a cursor write is based on an outdated workflow version."""

    def __init__(self, *, workflow_id: str, expected_version: int, actual_version: int) -> None:
        super().__init__(
            f"Workflow {workflow_id} changed concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )
        self.workflow_id = workflow_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class WorkflowStore:
    """Persist workflow records as a JSON list."""

    def __init__(self, path: Path) -> None:
        self._file = JsonListFile(path, WorkflowRecord)

    def list(self) -> list[WorkflowRecord]:
        return self._file.load()

    def get(self, workflow_id: str) -> WorkflowRecord | None:
        return next((r for r in self._file.load() if r.id == workflow_id), None)

    def require(self, workflow_id: str) -> WorkflowRecord:
        record = self.get(workflow_id)
        if record is None:
            raise WorkflowNotFound(workflow_id)
        return record

    def list_published_for_owner(self, owner_id: str) -> list[WorkflowRecord]:
        return [r for r in self.list() if r.owner_id == owner_id and r.published]

    def upsert(self, record: WorkflowRecord) -> WorkflowRecord:
        with self._file.transaction() as records:
            for idx, existing in enumerate(records):
                if existing.id == record.id:
                    records[idx] = record
                    break
            else:
                records.append(record)
        return record

    def set_published(self, workflow_id: str, published: bool) -> WorkflowRecord:
        with self._file.transaction() as records:
            idx = _index_of(records, workflow_id)
            records[idx] = records[idx].model_copy(
                update={"published": published, "updated_at": _utc_iso_now()}
            )
            return records[idx]

    def set_resume_cursor(
        self,
        workflow_id: str,
        cursor: Sequence[str] | None,
        *,
        expected_version: int,
    ) -> WorkflowRecord:
        """Overwrite (or clear, with None) the resume cursor.

        Raises:
            WorkflowNotFound: If the workflow no longer exists.
            StaleWorkflowError: If another writer moved the cursor since
                `expected_version` was loaded.
        """

        with self._file.transaction() as records:
            idx = _index_of(records, workflow_id)
            existing = records[idx]
            if existing.version != expected_version:
                raise StaleWorkflowError(
                    workflow_id=workflow_id,
                    expected_version=expected_version,
                    actual_version=existing.version,
                )
            records[idx] = existing.model_copy(
                update={
                    "resume_cursor": list(cursor) if cursor is not None else None,
                    "version": existing.version + 1,
                    "updated_at": _utc_iso_now(),
                }
            )
            return records[idx]


def _index_of(records: list[WorkflowRecord], workflow_id: str) -> int:
    for idx, record in enumerate(records):
        if record.id == workflow_id:
            return idx
    raise WorkflowNotFound(workflow_id)
