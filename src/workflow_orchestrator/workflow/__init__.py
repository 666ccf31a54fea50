"""Workflow execution engine.

This package provides first-class types for:
- Workflow definitions (directed graphs of typed steps)
- Pluggable step kinds and named actions
- Per-instance execution state with serialized data merges
- Lifecycle events published on a synchronous event bus
"""

from workflow_orchestrator.workflow.engine import WorkflowEngine
from workflow_orchestrator.workflow.errors import (
    ApprovalRejectedError,
    DataConflictError,
    HandlerExecutionError,
    NotFoundError,
    StepTimeoutError,
    UnknownActionError,
    UnknownStepTypeError,
    ValidationError,
    WorkflowError,
)
from workflow_orchestrator.workflow.events import EngineEvent, EventBus
from workflow_orchestrator.workflow.models import (
    ApprovalDecision,
    InstanceState,
    InstanceStatus,
    StepType,
    Trigger,
    TriggerType,
    Workflow,
    WorkflowDefinition,
    WorkflowStatus,
    WorkflowStep,
)
from workflow_orchestrator.workflow.registry import (
    ActionRegistry,
    StepConfig,
    StepContext,
    StepHandlerRegistry,
)

__all__ = [
    "ActionRegistry",
    "ApprovalDecision",
    "ApprovalRejectedError",
    "DataConflictError",
    "EngineEvent",
    "EventBus",
    "HandlerExecutionError",
    "InstanceState",
    "InstanceStatus",
    "NotFoundError",
    "StepConfig",
    "StepContext",
    "StepHandlerRegistry",
    "StepTimeoutError",
    "StepType",
    "Trigger",
    "TriggerType",
    "UnknownActionError",
    "UnknownStepTypeError",
    "ValidationError",
    "Workflow",
    "WorkflowDefinition",
    "WorkflowEngine",
    "WorkflowError",
    "WorkflowStatus",
    "WorkflowStep",
]
