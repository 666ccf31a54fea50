"""In-memory store of workflow definitions.

Definitions are handed out as deep copies so callers (and running instances)
can never mutate the stored version behind the store's back.
"""

from __future__ import annotations

import threading

from .models import Workflow, WorkflowStatus


class WorkflowStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._workflows: dict[str, Workflow] = {}

    def add(self, workflow: Workflow) -> None:
        with self._lock:
            if workflow.id in self._workflows:
                raise ValueError(f"Workflow already stored: {workflow.id}")
            self._workflows[workflow.id] = workflow.model_copy(deep=True)

    def get(self, workflow_id: str) -> Workflow | None:
        with self._lock:
            workflow = self._workflows.get(workflow_id)
            return workflow.model_copy(deep=True) if workflow is not None else None

    def list(self, status: WorkflowStatus | None = None) -> list[Workflow]:
        with self._lock:
            return [
                workflow.model_copy(deep=True)
                for workflow in self._workflows.values()
                if status is None or workflow.status == status
            ]

    def replace(self, workflow: Workflow) -> bool:
        with self._lock:
            if workflow.id not in self._workflows:
                return False
            self._workflows[workflow.id] = workflow.model_copy(deep=True)
            return True

    def delete(self, workflow_id: str) -> bool:
        with self._lock:
            return self._workflows.pop(workflow_id, None) is not None

    def __contains__(self, workflow_id: object) -> bool:
        with self._lock:
            return workflow_id in self._workflows
