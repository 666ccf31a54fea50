"""Registries mapping step types and action names to their implementations."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from .errors import UnknownActionError, UnknownStepTypeError, ValidationError
from .models import WorkflowStep

logger = logging.getLogger(__name__)


class StepConfig(BaseModel):
    """Base class for typed step configurations.

    Unknown keys are rejected so that a misspelt option fails at definition
    time rather than being ignored at run time.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


@dataclass(frozen=True, slots=True)
class StepContext:
    """Identity of the step being executed, passed to every handler."""

    instance_id: str
    workflow_id: str
    step_id: str
    step_name: str


StepHandler = Callable[[Any, dict[str, Any], StepContext], Awaitable[Mapping[str, Any]]]
Action = Callable[[dict[str, Any]], Awaitable[Mapping[str, Any]]]


@dataclass(frozen=True, slots=True)
class StepKind:
    type: str
    handler: StepHandler
    config_model: type[StepConfig] = StepConfig

    def parse_config(self, step: WorkflowStep) -> StepConfig:
        try:
            return self.config_model.model_validate(step.config)
        except PydanticValidationError as exc:
            raise ValidationError(
                f"Invalid config for {self.type} step {step.id!r}: {exc}"
            ) from exc


class StepHandlerRegistry:
    """Maps a step's declared type to the handler that executes it.

    New kinds are added with `register`; the engine never switches on type
    names, so extending the set of step kinds needs no engine change.
    """

    def __init__(self) -> None:
        self._kinds: dict[str, StepKind] = {}

    def register(
        self,
        step_type: str,
        handler: StepHandler,
        config_model: type[StepConfig] = StepConfig,
        *,
        replace: bool = False,
    ) -> StepKind:
        key = str(getattr(step_type, "value", step_type))
        if key in self._kinds and not replace:
            raise ValueError(f"Step type already registered: {key}")
        kind = StepKind(type=key, handler=handler, config_model=config_model)
        self._kinds[key] = kind
        logger.debug("Registered step type", extra={"step_type": key})
        return kind

    def unregister(self, step_type: str) -> bool:
        return self._kinds.pop(step_type, None) is not None

    def get(self, step_type: str) -> StepKind:
        kind = self._kinds.get(step_type)
        if kind is None:
            raise UnknownStepTypeError(step_type)
        return kind

    def types(self) -> list[str]:
        return list(self._kinds)

    def __contains__(self, step_type: object) -> bool:
        return step_type in self._kinds

    def validate_step(self, step: WorkflowStep) -> StepConfig:
        """Check that the step's type is known and its config is well formed."""
        return self.get(step.type).parse_config(step)


class ActionRegistry:
    """Named implementations for `action` steps."""

    def __init__(self) -> None:
        self._actions: dict[str, Action] = {}

    def register(self, name: str, action: Action, *, replace: bool = False) -> Action:
        if name in self._actions and not replace:
            raise ValueError(f"Action already registered: {name}")
        self._actions[name] = action
        return action

    def get(self, name: str) -> Action:
        action = self._actions.get(name)
        if action is None:
            raise UnknownActionError(name)
        return action

    def names(self) -> list[str]:
        return sorted(self._actions)

    def __contains__(self, name: object) -> bool:
        return name in self._actions
