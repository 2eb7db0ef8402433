"""CLI entrypoint for the workflow engine."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Callable
from functools import partial

import uvicorn
from pydantic import ValidationError

from zyflow_engine import __version__
from zyflow_engine.engine.errors import CreditExhausted, OwnerNotFound, WorkflowNotFound
from zyflow_engine.engine.ingestion import TriggerIngestion, build_dedup_store
from zyflow_engine.engine.logging import configure_logging
from zyflow_engine.engine.service import build_engine
from zyflow_engine.engine.workflow.events import TriggerNotification
from zyflow_engine.engine.workflow.state_machine import workflow_state
from zyflow_engine.server.app import create_app
from zyflow_engine.server.config import ServerSettings
from zyflow_engine.server.dispatch_runner import start_dispatch_job
from zyflow_engine.server.job_store import DispatchJobStore

logger = logging.getLogger(__name__)


def _run_inline(target: Callable[[], None], _name: str) -> None:
    target()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="zyflow",
        description="Zyflow workflow execution engine",
    )
    parser.add_argument("--version", action="version", version=f"zyflow-engine {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=None, help="Bind address (defaults to ZYFLOW_HOST)")
    serve.add_argument("--port", type=int, default=None, help="Bind port (defaults to ZYFLOW_PORT)")

    resume = subparsers.add_parser(
        "resume", help="Continue a suspended workflow from its resume cursor"
    )
    resume.add_argument("--workflow-id", required=True, help="Workflow to resume")

    show = subparsers.add_parser("show", help="Print a workflow's persisted execution state")
    show.add_argument("--workflow-id", required=True, help="Workflow to show")

    trigger = subparsers.add_parser(
        "trigger",
        help="Ingest a change notification and run its dispatch in the foreground",
    )
    trigger.add_argument("--resource-id", required=True, help="Watched resource id")
    trigger.add_argument("--sequence", required=True, help="Provider message sequence number")
    trigger.add_argument("--state", default=None, help="Provider resource state (e.g. 'sync')")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = ServerSettings()
    except ValidationError as e:
        print(str(e), file=sys.stderr)
        return 2

    configure_logging(settings.log_level)

    try:
        if args.command == "serve":
            uvicorn.run(
                create_app(settings=settings),
                host=args.host or settings.host,
                port=args.port or settings.port,
                log_config=None,
            )
            return 0

        engine = build_engine(settings)

        if args.command == "resume":
            result = engine.resume(args.workflow_id)
            print(
                json.dumps(
                    {
                        "workflow_id": result.workflow_id,
                        "status": result.status.value,
                        "remaining_steps": result.remaining_steps,
                        "pass": result.pass_result.to_json() if result.pass_result else None,
                    },
                    indent=2,
                )
            )
            return 0

        if args.command == "show":
            record = engine.workflows.require(args.workflow_id)
            payload = record.model_dump(mode="json", exclude={"step_configs"})
            payload["state"] = workflow_state(record).value
            print(json.dumps(payload, indent=2, ensure_ascii=False))
            return 0

        if args.command == "trigger":
            job_store = DispatchJobStore(settings.dispatch_jobs_state_file)
            ingestion = TriggerIngestion(
                dedup=build_dedup_store(settings),
                handoff=partial(
                    start_dispatch_job, engine=engine, job_store=job_store, spawn=_run_inline
                ),
            )
            outcome = ingestion.accept(
                TriggerNotification(
                    resource_id=args.resource_id,
                    message_sequence=args.sequence,
                    state=args.state,
                )
            )
            if outcome.job_id is None:
                print(f"Notification not dispatched: {outcome.decision.value}")
                return 0
            job = job_store.get(outcome.job_id)
            print(json.dumps(job.model_dump(mode="json") if job else {}, indent=2))
            return 0

        logger.error("Unknown command", extra={"command": args.command})
        return 2

    except (WorkflowNotFound, OwnerNotFound, CreditExhausted) as e:
        logger.warning(str(e))
        print(str(e), file=sys.stderr)
        return 3

    except Exception:
        logger.exception("Command failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
