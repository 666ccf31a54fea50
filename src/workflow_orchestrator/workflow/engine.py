"""The workflow engine: definitions in, running instances out.

Execution model:
- `start_workflow` registers an instance and schedules its entry step as an
  asyncio task, then returns the instance id without waiting for the step.
  Use `wait_for_instance` or the event bus to observe the outcome.
- Every step works on a deep copy of the instance data. Only the changes it
  made to that copy are merged back, under the instance lock.
- A finished step's result is merged into the instance data, `step_completed`
  is emitted, and every successor in `next_steps` is scheduled concurrently.
  Join steps are scheduled once all of their predecessors have finished.
- When no step is left in flight the instance completes. Any step failure
  fails the whole instance once: no retries, no compensation, and sibling
  branches still in flight are abandoned.
- Each instance runs against a private copy of the workflow taken at start,
  so updating or deleting the stored definition never affects it.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import uuid
from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from workflow_orchestrator.core.config import EngineConfig
from workflow_orchestrator.logging import log_context
from workflow_orchestrator.services.notifications import LoggingNotifier, Notifier

from .approvals import ApprovalBook
from .errors import (
    HandlerExecutionError,
    NotFoundError,
    StepTimeoutError,
    ValidationError,
    WorkflowError,
)
from .events import (
    ApprovalRequested,
    EngineEvent,
    EventBus,
    StepCompleted,
    WorkflowCancelled,
    WorkflowCompleted,
    WorkflowFailed,
    WorkflowStarted,
)
from .handlers import default_actions, default_registry
from .models import (
    ApprovalDecision,
    InstanceState,
    InstanceStatus,
    PendingApproval,
    StepType,
    Workflow,
    WorkflowDefinition,
    WorkflowStatus,
    WorkflowStep,
    check_graph,
)
from .registry import ActionRegistry, StepContext, StepHandlerRegistry
from .store import WorkflowStore
from .tracker import InstanceRecord, InstanceTracker

logger = logging.getLogger(__name__)

_IMMUTABLE_FIELDS = frozenset({"id", "created_at", "updated_at"})


def _field_names() -> dict[str, str]:
    """Map every accepted key (field name or camelCase alias) to its field name."""
    names: dict[str, str] = {}
    for name, info in Workflow.model_fields.items():
        names[name] = name
        if info.alias:
            names[info.alias] = name
    return names


class WorkflowEngine:
    """Validates and stores workflows and runs their instances.

    Args:
        config: Engine configuration. If None, loads from environment.
        registry: Step handler registry. Defaults to the built-in step kinds
            wired to this engine's actions, approvals and notifier.
        actions: Named actions available to `action` steps.
        notifier: Delivery backend for `notification` steps.
        events: Event bus to publish lifecycle events on.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        registry: StepHandlerRegistry | None = None,
        actions: ActionRegistry | None = None,
        notifier: Notifier | None = None,
        events: EventBus | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.events = events or EventBus()
        self.actions = actions or default_actions()
        self.approvals = ApprovalBook(on_request=self._on_approval_requested)
        self.registry = registry or default_registry(
            actions=self.actions,
            approvals=self.approvals,
            notifier=notifier or LoggingNotifier(),
        )
        self.tracker = InstanceTracker()
        self._store = WorkflowStore()

    # --- definitions ---------------------------------------------------------

    def create_workflow(self, definition: WorkflowDefinition | Mapping[str, Any]) -> str:
        """Validate and store a workflow definition.

        Returns:
            The new workflow id.

        Raises:
            ValidationError: If the definition is malformed.
            UnknownStepTypeError: If a step's type is not registered.
        """
        parsed = self._parse_definition(definition)
        self._validate_steps(parsed.steps)

        now = datetime.now(UTC)
        workflow = Workflow.model_validate(
            {**parsed.model_dump(), "id": str(uuid.uuid4()), "created_at": now, "updated_at": now}
        )
        self._store.add(workflow)
        logger.info(
            "Workflow created",
            extra={"workflow_id": workflow.id, "workflow_name": workflow.name},
        )
        return workflow.id

    def update_workflow(self, workflow_id: str, updates: Mapping[str, Any]) -> bool:
        """Merge `updates` into a stored workflow.

        Returns:
            False if the workflow is unknown.

        Raises:
            ValidationError: If the merged workflow is invalid or an immutable
                field is targeted.
        """
        current = self._store.get(workflow_id)
        if current is None:
            return False

        names = _field_names()
        normalized: dict[str, Any] = {}
        for key, value in updates.items():
            name = names.get(key)
            if name is None:
                raise ValidationError(f"Unknown workflow field: {key}")
            if name in _IMMUTABLE_FIELDS:
                raise ValidationError(f"Workflow field cannot be updated: {key}")
            normalized[name] = value

        merged = {**current.model_dump(), **normalized, "updated_at": datetime.now(UTC)}
        try:
            workflow = Workflow.model_validate(merged)
        except PydanticValidationError as exc:
            raise ValidationError(f"Invalid workflow update: {exc}") from exc
        if "steps" in normalized:
            self._validate_steps(workflow.steps)

        if not self._store.replace(workflow):
            return False
        logger.info(
            "Workflow updated",
            extra={"workflow_id": workflow_id, "fields": sorted(normalized)},
        )
        return True

    def delete_workflow(self, workflow_id: str) -> bool:
        """Remove a stored workflow.

        Instances already running keep executing against the copy of the
        definition they were started with.
        """
        deleted = self._store.delete(workflow_id)
        if deleted:
            logger.info(
                "Workflow deleted",
                extra={
                    "workflow_id": workflow_id,
                    "running_instances": self.tracker.count_running(workflow_id),
                },
            )
        return deleted

    def get_workflow(self, workflow_id: str) -> Workflow | None:
        return self._store.get(workflow_id)

    def list_workflows(self, status: WorkflowStatus | None = None) -> list[Workflow]:
        return self._store.list(status)

    def _parse_definition(
        self, definition: WorkflowDefinition | Mapping[str, Any]
    ) -> WorkflowDefinition:
        raw = definition.model_dump() if isinstance(definition, BaseModel) else dict(definition)
        try:
            return WorkflowDefinition.model_validate(raw)
        except PydanticValidationError as exc:
            raise ValidationError(f"Invalid workflow definition: {exc}") from exc

    def _validate_steps(self, steps: list[WorkflowStep]) -> None:
        check_graph(steps)
        for step in steps:
            self.registry.validate_step(step)

    # --- instances -------------------------------------------------------------

    async def start_workflow(
        self, workflow_id: str, initial_data: Mapping[str, Any] | None = None
    ) -> str:
        """Start a new instance and schedule its entry step.

        Returns:
            The instance id. The entry step has been scheduled, not awaited.

        Raises:
            NotFoundError: If the workflow is unknown.
            ValidationError: If the workflow is not active.
        """
        workflow = self._store.get(workflow_id)
        if workflow is None:
            raise NotFoundError("Workflow", workflow_id)
        if workflow.status != WorkflowStatus.ACTIVE:
            raise ValidationError(
                f"Workflow {workflow_id} is {workflow.status.value}; only active workflows start"
            )

        record = self.tracker.create(workflow, initial_data or {})
        logger.info(
            "Workflow started",
            extra={"instance_id": record.instance_id, "workflow_id": workflow_id},
        )
        self.events.emit(
            EngineEvent.WORKFLOW_STARTED,
            WorkflowStarted(
                instance_id=record.instance_id,
                workflow_id=workflow_id,
                data=copy.deepcopy(record.data),
            ),
        )
        self._dispatch(record, workflow.entry_step, record.data)
        return record.instance_id

    def get_workflow_status(self, instance_id: str) -> InstanceStatus | None:
        """Return the instance's status and data, or None if it is unknown."""
        return self.tracker.status(instance_id)

    def list_instances(self, workflow_id: str | None = None) -> list[InstanceStatus]:
        return self.tracker.list(workflow_id)

    async def wait_for_instance(
        self, instance_id: str, timeout: float | None = None
    ) -> InstanceStatus:
        """Wait until an instance reaches a terminal status.

        Raises:
            NotFoundError: If the instance is unknown.
            TimeoutError: If `timeout` elapses first.
        """
        record = self.tracker.require(instance_id)
        await asyncio.wait_for(record.done.wait(), timeout)
        return record.to_status()

    async def cancel_instance(self, instance_id: str) -> bool:
        """Cancel a running instance.

        Steps already in flight are cancelled on a best-effort basis; side
        effects they have already performed are not undone.

        Returns:
            False if the instance had already finished.

        Raises:
            NotFoundError: If the instance is unknown.
        """
        record = self.tracker.require(instance_id)
        in_flight = list(record.current_steps)
        if not await self.tracker.finish(record, InstanceState.CANCELLED):
            return False

        self._abandon(record)
        logger.info(
            "Workflow cancelled",
            extra={"instance_id": instance_id, "abandoned_steps": in_flight},
        )
        self.events.emit(
            EngineEvent.WORKFLOW_CANCELLED,
            WorkflowCancelled(instance_id=instance_id, abandoned_steps=in_flight),
        )
        return True

    def purge_finished_instances(self, older_than: timedelta | None = None) -> int:
        """Drop finished instances from memory. Running instances are kept."""
        purged = self.tracker.purge(older_than)
        if purged:
            logger.info("Purged finished instances", extra={"count": purged})
        return purged

    async def shutdown(self) -> None:
        """Cancel every running instance."""
        for status in self.tracker.list():
            if status.status is InstanceState.RUNNING:
                await self.cancel_instance(status.instance_id)

    # --- approvals -------------------------------------------------------------

    def resolve_approval(
        self,
        instance_id: str,
        step_id: str,
        decision: ApprovalDecision | bool,
        *,
        approver: str | None = None,
        comment: str = "",
    ) -> None:
        """Deliver a decision to an approval step waiting on it.

        Raises:
            NotFoundError: If no approval is pending for that instance and step.
        """
        if isinstance(decision, bool):
            decision = ApprovalDecision(approved=decision, approver=approver, comment=comment)
        self.approvals.resolve(instance_id, step_id, decision)

    def list_pending_approvals(self, instance_id: str | None = None) -> list[PendingApproval]:
        return self.approvals.pending(instance_id)

    def _on_approval_requested(self, approval: PendingApproval) -> None:
        self.events.emit(
            EngineEvent.APPROVAL_REQUESTED,
            ApprovalRequested(
                instance_id=approval.instance_id, step_id=approval.step_id, approval=approval
            ),
        )

    # --- execution -------------------------------------------------------------

    def _dispatch(self, record: InstanceRecord, step: WorkflowStep, data: dict[str, Any]) -> None:
        # Each step gets a private snapshot; it doubles as the merge base.
        # The task copies the bound log context when it is created.
        with log_context(
            instance_id=record.instance_id, workflow_id=record.workflow_id, step_id=step.id
        ):
            task = asyncio.create_task(
                self._run_step(record, step, copy.deepcopy(data)),
                name=f"{record.instance_id}:{step.id}",
            )
        record.tasks.add(task)
        task.add_done_callback(record.tasks.discard)

    def _deadline_for(self, step: WorkflowStep) -> float | None:
        if step.timeout_seconds is not None:
            return step.timeout_seconds
        if step.type == StepType.APPROVAL:
            return self.config.approval_timeout_seconds
        return self.config.default_step_timeout_seconds

    async def _invoke(
        self, step: WorkflowStep, data: dict[str, Any], context: StepContext
    ) -> dict[str, Any]:
        kind = self.registry.get(step.type)
        config = kind.parse_config(step)
        timeout = self._deadline_for(step)
        deadline = asyncio.timeout(timeout)
        try:
            async with deadline:
                result = await kind.handler(config, copy.deepcopy(data), context)
        except TimeoutError:
            # A TimeoutError raised by the handler itself is an ordinary failure.
            if timeout is None or not deadline.expired():
                raise
            raise StepTimeoutError(step.id, timeout) from None

        if not isinstance(result, Mapping):
            raise HandlerExecutionError(
                step.id, TypeError(f"handler returned {type(result).__name__}, expected a mapping")
            )
        return dict(result)

    async def _run_step(
        self, record: InstanceRecord, step: WorkflowStep, data: dict[str, Any]
    ) -> None:
        context = StepContext(
            instance_id=record.instance_id,
            workflow_id=record.workflow_id,
            step_id=step.id,
            step_name=step.name,
        )
        logger.debug(
            "Executing step",
            extra={"instance_id": record.instance_id, "step_id": step.id, "step_type": step.type},
        )
        try:
            result = await self._invoke(step, data, context)
        except asyncio.CancelledError:
            logger.debug(
                "Step abandoned", extra={"instance_id": record.instance_id, "step_id": step.id}
            )
            raise
        except WorkflowError as exc:
            await self._fail(record, step.id, exc)
            return
        except Exception as exc:
            error = HandlerExecutionError(step.id, exc)
            error.__cause__ = exc
            await self._fail(record, step.id, error)
            return

        try:
            advance = await self.tracker.apply_step_result(record, step, data, result)
        except WorkflowError as exc:
            await self._fail(record, step.id, exc)
            return
        if advance is None:
            # Instance failed or was cancelled while this step ran.
            return

        self.events.emit(
            EngineEvent.STEP_COMPLETED,
            StepCompleted(
                instance_id=record.instance_id, step_id=step.id, result=copy.deepcopy(result)
            ),
        )
        if advance.completed:
            self.events.emit(
                EngineEvent.WORKFLOW_COMPLETED,
                WorkflowCompleted(instance_id=record.instance_id, result=advance.data),
            )
            return

        for successor in advance.ready:
            self._dispatch(record, successor, advance.data)

    async def _fail(self, record: InstanceRecord, step_id: str, error: BaseException) -> None:
        if not await self.tracker.finish(
            record, InstanceState.FAILED, error=error, failed_step=step_id
        ):
            return
        logger.error(
            "Workflow failed",
            extra={
                "instance_id": record.instance_id,
                "workflow_id": record.workflow_id,
                "step_id": step_id,
                "error": str(error),
            },
        )
        self._abandon(record)
        self.events.emit(
            EngineEvent.WORKFLOW_FAILED,
            WorkflowFailed(instance_id=record.instance_id, step_id=step_id, error=error),
        )

    def _abandon(self, record: InstanceRecord) -> None:
        current = asyncio.current_task()
        for task in list(record.tasks):
            if task is not current and not task.done():
                task.cancel()
        self.approvals.withdraw(record.instance_id)
