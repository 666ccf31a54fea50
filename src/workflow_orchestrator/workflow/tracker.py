"""Per-instance execution state.

The tracker owns every instance's status, data bag and in-flight step set.
All mutation of an instance happens under that instance's own lock, so
concurrent branches of a fan-out are serialized rather than racing on the
shared data bag.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import threading
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from .errors import DataConflictError, IllegalTransitionError, NotFoundError
from .models import InstanceState, InstanceStatus, StepType, Workflow, WorkflowStep

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS: dict[InstanceState, set[InstanceState]] = {
    InstanceState.RUNNING: {
        InstanceState.COMPLETED,
        InstanceState.FAILED,
        InstanceState.CANCELLED,
    },
    InstanceState.COMPLETED: set(),
    InstanceState.FAILED: set(),
    InstanceState.CANCELLED: set(),
}


def transition(*, current: InstanceState, to: InstanceState) -> InstanceState:
    allowed = ALLOWED_TRANSITIONS.get(current, set())
    if to not in allowed:
        raise IllegalTransitionError(f"Illegal transition: {current.value} -> {to.value}")
    return to


_MISSING: Any = object()


def _same(left: Any, right: Any) -> bool:
    if left is _MISSING or right is _MISSING:
        return left is right
    return bool(left == right)


def merge_delta(
    current: dict[str, Any], base: Mapping[str, Any], result: Mapping[str, Any], step_id: str
) -> None:
    """Apply the changes a step made to `base` onto `current`, in place.

    Only keys the step actually added, changed or removed relative to the data
    it was given are written. If a concurrent branch has meanwhile changed one
    of those keys to something else, nothing is written and
    `DataConflictError` is raised.
    """
    updates: dict[str, Any] = {}
    removals: list[str] = []
    conflicts: list[str] = []

    for key, value in result.items():
        before = base.get(key, _MISSING)
        if _same(before, value):
            continue
        now = current.get(key, _MISSING)
        if not _same(now, before) and not _same(now, value):
            conflicts.append(key)
        else:
            updates[key] = copy.deepcopy(value)

    for key in base.keys() - result.keys():
        now = current.get(key, _MISSING)
        if now is _MISSING:
            continue
        if _same(now, base[key]):
            removals.append(key)
        else:
            conflicts.append(key)

    if conflicts:
        raise DataConflictError(step_id, conflicts)

    current.update(updates)
    for key in removals:
        del current[key]


@dataclass
class InstanceRecord:
    instance_id: str
    workflow: Workflow
    data: dict[str, Any]
    status: InstanceState = InstanceState.RUNNING
    current_steps: list[str] = field(default_factory=list)
    completed_steps: list[str] = field(default_factory=list)
    join_arrivals: dict[str, set[str]] = field(default_factory=dict)
    predecessors: dict[str, list[str]] = field(default_factory=dict)
    error: BaseException | None = None
    failed_step: str | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None
    tasks: set[asyncio.Task[None]] = field(default_factory=set)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    done: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def workflow_id(self) -> str:
        return self.workflow.id

    def to_status(self) -> InstanceStatus:
        return InstanceStatus(
            instance_id=self.instance_id,
            workflow_id=self.workflow_id,
            status=self.status,
            data=copy.deepcopy(self.data),
            current_steps=list(self.current_steps),
            error=str(self.error) if self.error is not None else None,
            failed_step=self.failed_step,
            started_at=self.started_at,
            finished_at=self.finished_at,
        )


@dataclass(frozen=True, slots=True)
class StepAdvance:
    """What the engine must do after a step's result has been merged."""

    ready: list[WorkflowStep]
    data: dict[str, Any]
    completed: bool


class InstanceTracker:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._instances: dict[str, InstanceRecord] = {}

    def create(self, workflow: Workflow, data: Mapping[str, Any]) -> InstanceRecord:
        """Register a running instance positioned on the workflow's entry step.

        `workflow` should already be a private copy; the instance keeps running
        against it even if the stored definition is later changed or deleted.
        """
        record = InstanceRecord(
            instance_id=str(uuid.uuid4()),
            workflow=workflow,
            data=copy.deepcopy(dict(data)),
            current_steps=[workflow.entry_step.id],
            predecessors=workflow.predecessors(),
        )
        with self._lock:
            self._instances[record.instance_id] = record
        return record

    def get(self, instance_id: str) -> InstanceRecord | None:
        with self._lock:
            return self._instances.get(instance_id)

    def require(self, instance_id: str) -> InstanceRecord:
        record = self.get(instance_id)
        if record is None:
            raise NotFoundError("Instance", instance_id)
        return record

    def status(self, instance_id: str) -> InstanceStatus | None:
        record = self.get(instance_id)
        return record.to_status() if record is not None else None

    def list(self, workflow_id: str | None = None) -> list[InstanceStatus]:
        with self._lock:
            records = list(self._instances.values())
        return [
            record.to_status()
            for record in records
            if workflow_id is None or record.workflow_id == workflow_id
        ]

    def count_running(self, workflow_id: str) -> int:
        with self._lock:
            return sum(
                1
                for record in self._instances.values()
                if record.workflow_id == workflow_id and record.status is InstanceState.RUNNING
            )

    async def apply_step_result(
        self,
        record: InstanceRecord,
        step: WorkflowStep,
        base: Mapping[str, Any],
        result: Mapping[str, Any],
    ) -> StepAdvance | None:
        """Merge a finished step's result and work out which steps run next.

        Returns None when the instance is already terminal, in which case the
        result is discarded.

        Raises:
            DataConflictError: If the result collides with a concurrent branch.
        """
        async with record.lock:
            if record.status.is_terminal:
                return None

            merge_delta(record.data, base, result, step.id)
            record.current_steps.remove(step.id)
            record.completed_steps.append(step.id)

            ready: list[WorkflowStep] = []
            for next_id in step.next_steps:
                successor = record.workflow.step(next_id)
                if successor is None:
                    # Definitions are validated, so this only guards against misuse.
                    continue
                if successor.type == StepType.JOIN:
                    arrivals = record.join_arrivals.setdefault(next_id, set())
                    arrivals.add(step.id)
                    if len(arrivals) < len(record.predecessors.get(next_id, [])):
                        continue
                ready.append(successor)
                record.current_steps.append(next_id)

            completed = False
            if not record.current_steps:
                completed = self._finish_unlocked(record, InstanceState.COMPLETED)
            return StepAdvance(ready=ready, data=copy.deepcopy(record.data), completed=completed)

    async def finish(
        self,
        record: InstanceRecord,
        to: InstanceState,
        *,
        error: BaseException | None = None,
        failed_step: str | None = None,
    ) -> bool:
        """Move an instance to a terminal state.

        Returns:
            False if the instance was already terminal (the call is a no-op).
        """
        async with record.lock:
            return self._finish_unlocked(record, to, error=error, failed_step=failed_step)

    def _finish_unlocked(
        self,
        record: InstanceRecord,
        to: InstanceState,
        *,
        error: BaseException | None = None,
        failed_step: str | None = None,
    ) -> bool:
        if not to.is_terminal:
            raise IllegalTransitionError(f"Not a terminal state: {to.value}")
        if record.status.is_terminal:
            return False
        record.status = transition(current=record.status, to=to)
        record.error = error
        record.failed_step = failed_step
        record.finished_at = datetime.now(UTC)
        record.done.set()
        logger.info(
            "Instance finished",
            extra={
                "instance_id": record.instance_id,
                "workflow_id": record.workflow_id,
                "status": to.value,
            },
        )
        return True

    def purge(self, older_than: timedelta | None = None) -> int:
        """Forget terminal instances, optionally only those finished before a cutoff."""
        cutoff = datetime.now(UTC) - older_than if older_than is not None else None
        with self._lock:
            doomed = [
                instance_id
                for instance_id, record in self._instances.items()
                if record.status.is_terminal
                and (cutoff is None or (record.finished_at and record.finished_at <= cutoff))
            ]
            for instance_id in doomed:
                del self._instances[instance_id]
        return len(doomed)
