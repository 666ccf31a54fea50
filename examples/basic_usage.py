#!/usr/bin/env python3
"""Programmatic workflow example.

This demonstrates using the orchestrator components directly:

* load settings from `.env`
* register a small approval workflow on the engine
* start an instance, approve it, and print the final status

The approval decision is passed as an argument.
"""

from __future__ import annotations

import argparse
import asyncio
from typing import Sequence

from workflow_orchestrator.core.config import WorkflowSettings
from workflow_orchestrator.workflow.engine import WorkflowEngine
from workflow_orchestrator.workflow.events import ApprovalRequested, EngineEvent


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a document approval workflow.")
    parser.add_argument("--document", required=True, help="Document identifier")
    parser.add_argument("--reject", action="store_true", help="Reject instead of approving")
    parser.add_argument("--approver", default="ops-lead", help="Name recorded on the decision")
    return parser.parse_args(argv)


async def _run(args: argparse.Namespace, settings: WorkflowSettings) -> int:
    engine = WorkflowEngine(settings.engine)
    workflow_id = engine.create_workflow(
        {
            "name": "Document review",
            "trigger": {"type": "manual"},
            "steps": [
                {
                    "id": "process",
                    "name": "Process document",
                    "type": "action",
                    "config": {"action": "processDocument"},
                    "nextSteps": ["review"],
                },
                {
                    "id": "review",
                    "name": "Manager review",
                    "type": "approval",
                    "config": {"prompt": "Publish $document?", "approvers": [args.approver]},
                    "nextSteps": ["publish-check"],
                },
                {
                    "id": "publish-check",
                    "name": "Publish check",
                    "type": "condition",
                    "config": {"condition": "approved == true and processed"},
                    "nextSteps": ["announce"],
                },
                {
                    "id": "announce",
                    "name": "Announce",
                    "type": "notification",
                    "config": {"message": "Document $document reviewed (approved=$approved)"},
                    "nextSteps": [],
                },
            ],
        }
    )

    def _decide(event: ApprovalRequested) -> None:
        engine.resolve_approval(
            event.instance_id, event.step_id, not args.reject, approver=args.approver
        )

    engine.events.on(EngineEvent.APPROVAL_REQUESTED, _decide)

    instance_id = await engine.start_workflow(workflow_id, {"document": args.document})
    status = await engine.wait_for_instance(instance_id, timeout=30)

    print(f"Instance {instance_id}: {status.status.value}")
    print(f"Data: {status.data}")
    return 0 if status.error is None else 1


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = WorkflowSettings()
    settings.setup_logging()

    return asyncio.run(_run(args, settings))


if __name__ == "__main__":
    raise SystemExit(main())
