"""Error types raised by the workflow engine.

Errors raised while creating, updating or starting a workflow propagate to the
caller. Errors raised while a step runs never do: the engine turns them into a
single `workflow_failed` event and a terminal `failed` instance status.
"""

from __future__ import annotations


class WorkflowError(Exception):
    """Base class for all engine errors."""


class ValidationError(WorkflowError, ValueError):
    """A workflow definition (or update) violates the graph invariants."""


class NotFoundError(WorkflowError, LookupError):
    """An unknown workflow, instance or pending approval was referenced."""

    def __init__(self, kind: str, identifier: str) -> None:
        super().__init__(f"{kind} not found: {identifier}")
        self.kind = kind
        self.identifier = identifier


class UnknownStepTypeError(WorkflowError, LookupError):
    def __init__(self, step_type: str) -> None:
        super().__init__(f"Unknown step type: {step_type}")
        self.step_type = step_type


class UnknownActionError(WorkflowError, LookupError):
    def __init__(self, action: str) -> None:
        super().__init__(f"Unknown action: {action}")
        self.action = action


class HandlerExecutionError(WorkflowError):
    """Wraps an arbitrary exception raised by a step handler."""

    def __init__(self, step_id: str, cause: BaseException) -> None:
        super().__init__(f"Step {step_id!r} failed: {cause}")
        self.step_id = step_id
        self.cause = cause


class StepTimeoutError(HandlerExecutionError):
    def __init__(self, step_id: str, timeout_seconds: float) -> None:
        WorkflowError.__init__(
            self, f"Step {step_id!r} exceeded its deadline of {timeout_seconds:g}s"
        )
        self.step_id = step_id
        self.cause = TimeoutError()
        self.timeout_seconds = timeout_seconds


class DataConflictError(WorkflowError):
    """Two concurrent branches changed the same data key to different values."""

    def __init__(self, step_id: str, keys: list[str]) -> None:
        joined = ", ".join(sorted(keys))
        super().__init__(f"Step {step_id!r} conflicts with a concurrent branch on: {joined}")
        self.step_id = step_id
        self.keys = keys


class ApprovalRejectedError(WorkflowError):
    def __init__(self, step_id: str, approver: str | None) -> None:
        who = approver or "unknown approver"
        super().__init__(f"Approval for step {step_id!r} rejected by {who}")
        self.step_id = step_id
        self.approver = approver


class IllegalTransitionError(WorkflowError, ValueError):
    pass


class NotificationDeliveryError(WorkflowError):
    """A retriable notification delivery failure.

    Notification steps log these and carry on; any other exception raised by a
    notifier fails the step.
    """
