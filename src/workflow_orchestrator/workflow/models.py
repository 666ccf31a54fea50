"""Workflow definitions, instances and approval records.

Models accept both the camelCase names used by serialized definitions
(`nextSteps`, `createdAt`, ...) and the snake_case attribute names.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

import networkx as nx
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .errors import ValidationError


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TriggerType(str, Enum):
    EVENT = "event"
    SCHEDULE = "schedule"
    MANUAL = "manual"


class WorkflowStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ARCHIVED = "archived"


class StepType(str, Enum):
    """Built-in step kinds. Further kinds can be added to the handler registry."""

    APPROVAL = "approval"
    NOTIFICATION = "notification"
    ACTION = "action"
    CONDITION = "condition"
    JOIN = "join"


class InstanceState(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not InstanceState.RUNNING


class Trigger(_Model):
    type: TriggerType
    config: dict[str, Any] = Field(default_factory=dict)


class WorkflowStep(_Model):
    id: str = Field(min_length=1)
    name: str
    type: str
    config: dict[str, Any] = Field(default_factory=dict)
    next_steps: list[str] = Field(default_factory=list)
    timeout_seconds: float | None = Field(default=None, gt=0)

    @field_validator("type", mode="before")
    @classmethod
    def _plain_type(cls, value: Any) -> Any:
        # Registry keys are plain strings; enum members hash differently.
        return value.value if isinstance(value, Enum) else value

    @property
    def is_terminal(self) -> bool:
        return not self.next_steps


class WorkflowDefinition(_Model):
    """A workflow as submitted by a builder, before the engine assigns identity."""

    name: str
    description: str = ""
    trigger: Trigger
    steps: list[WorkflowStep]
    status: WorkflowStatus = WorkflowStatus.ACTIVE

    @property
    def entry_step(self) -> WorkflowStep:
        return self.steps[0]

    def step(self, step_id: str) -> WorkflowStep | None:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def predecessors(self) -> dict[str, list[str]]:
        preds: dict[str, list[str]] = {step.id: [] for step in self.steps}
        for step in self.steps:
            for next_id in step.next_steps:
                if next_id in preds:
                    preds[next_id].append(step.id)
        return preds


class Workflow(WorkflowDefinition):
    id: str
    created_at: datetime
    updated_at: datetime


class InstanceStatus(_Model):
    """Read-only view of an instance returned by `get_workflow_status`."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    instance_id: str
    workflow_id: str
    status: InstanceState
    data: dict[str, Any]
    current_steps: list[str]
    error: str | None = None
    failed_step: str | None = None
    started_at: datetime
    finished_at: datetime | None = None


class ApprovalDecision(_Model):
    approved: bool
    approver: str | None = None
    comment: str = ""


class PendingApproval(_Model):
    instance_id: str
    workflow_id: str
    step_id: str
    step_name: str
    prompt: str = ""
    approvers: list[str] = Field(default_factory=list)
    requested_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


def check_graph(steps: list[WorkflowStep]) -> None:
    """Validate the structural invariants of a step graph.

    The first step is the entry point. Every edge must name another step, the
    graph must be acyclic with every step reachable from the entry, and only
    join steps may have more than one predecessor.

    Raises:
        ValidationError: On the first violated invariant.
    """
    if not steps:
        raise ValidationError("Workflow must define at least one step")

    ids = [step.id for step in steps]
    duplicates = sorted({step_id for step_id in ids if ids.count(step_id) > 1})
    if duplicates:
        raise ValidationError(f"Duplicate step ids: {', '.join(duplicates)}")

    graph = nx.DiGraph()
    graph.add_nodes_from(ids)
    for step in steps:
        if len(set(step.next_steps)) != len(step.next_steps):
            raise ValidationError(f"Step {step.id!r} lists a successor more than once")
        for next_id in step.next_steps:
            if next_id == step.id:
                raise ValidationError(f"Step {step.id!r} cannot list itself as a successor")
            if next_id not in graph:
                raise ValidationError(f"Step {step.id!r} references unknown step {next_id!r}")
            graph.add_edge(step.id, next_id)

    if not nx.is_directed_acyclic_graph(graph):
        source, _ = nx.find_cycle(graph)[0]
        raise ValidationError(f"Cycle detected through step {source!r}")

    entry = steps[0].id
    reachable = nx.descendants(graph, entry) | {entry}
    unreachable = [step_id for step_id in ids if step_id not in reachable]
    if unreachable:
        raise ValidationError(
            f"Steps unreachable from entry step {entry!r}: {', '.join(unreachable)}"
        )

    for step in steps:
        count = graph.in_degree(step.id)
        if step.type == StepType.JOIN:
            if count == 0:
                raise ValidationError(f"Join step {step.id!r} has no predecessors")
        elif count > 1:
            raise ValidationError(
                f"Step {step.id!r} has {count} predecessors; use a join step to merge branches"
            )
