#!/usr/bin/env python3
"""Run one workflow pass against local JSON state.

This demonstrates using the engine components directly:

* load settings from `.env`
* seed an owner and a `Webhook -> Wait -> Webhook` workflow
* dispatch a trigger for the owner's watched resource

The first webhook fires at once; the second one is left as the resume cursor
and runs when the scheduler calls back `/api/flow?flow_id=...`.
"""

from __future__ import annotations

import argparse
import json
from typing import Sequence

from zyflow_engine.engine.config import EngineSettings
from zyflow_engine.engine.credits import AccountRecord
from zyflow_engine.engine.logging import configure_logging
from zyflow_engine.engine.service import build_engine
from zyflow_engine.engine.store import WorkflowRecord


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Dispatch a trigger for a demo workflow.")
    parser.add_argument("--webhook-url", required=True, help="Incoming-webhook URL to post to")
    parser.add_argument("--resource-id", default="demo-resource", help="Watched resource id")
    parser.add_argument("--credits", default="5", help='Owner balance, e.g. "5" or "Unlimited"')
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = EngineSettings()
    configure_logging(settings.log_level)

    engine = build_engine(settings)
    engine.accounts.upsert(
        AccountRecord.model_validate(
            {"owner_id": "demo-owner", "resource_id": args.resource_id, "credits": args.credits}
        )
    )
    engine.workflows.upsert(
        WorkflowRecord(
            id="demo-workflow",
            owner_id="demo-owner",
            name="Demo",
            published=True,
            step_plan=["Webhook", "Wait", "Webhook"],
            step_configs={"Webhook": {"url": args.webhook_url}, "Wait": {"minutes": 1}},
            templates={"Webhook": "A new file has been uploaded."},
        )
    )

    summary = engine.dispatch_trigger(args.resource_id)
    print(json.dumps(summary.to_json(), indent=2))
    print(f"Persisted to: {settings.state_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
