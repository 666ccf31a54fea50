"""Built-in step kinds: approval, notification, action, condition and join.

Every handler is an async callable `(config, data, context) -> data'` that
returns the data bag for the step's successors.
"""

from __future__ import annotations

import logging
from string import Template
from typing import Any

from pydantic import Field, field_validator

from workflow_orchestrator.services.notifications import Notification, Notifier

from .approvals import ApprovalBook
from .conditions import Expression, evaluate_condition, parse_condition
from .errors import ApprovalRejectedError, NotificationDeliveryError
from .models import PendingApproval, StepType
from .registry import ActionRegistry, StepConfig, StepContext, StepHandlerRegistry

logger = logging.getLogger(__name__)


class ApprovalConfig(StepConfig):
    prompt: str = ""
    approvers: list[str] = Field(default_factory=list)
    fail_on_reject: bool = False


class NotificationConfig(StepConfig):
    message: str
    channel: str = "log"
    recipients: list[str] = Field(default_factory=list)


class ActionConfig(StepConfig):
    action: str = Field(min_length=1)


class ConditionConfig(StepConfig):
    condition: Expression
    result_key: str = "conditionResult"

    @field_validator("condition", mode="before")
    @classmethod
    def _parse_text(cls, value: Any) -> Any:
        if isinstance(value, str):
            return parse_condition(value)
        return value


class JoinConfig(StepConfig):
    pass


class ApprovalHandler:
    """Suspends the step until `resolve_approval` supplies a decision.

    The prompt is rendered against the data bag like a notification message.
    A rejection is recorded as `approved: False` unless `fail_on_reject` is
    set, in which case the step (and the instance) fails.
    """

    def __init__(self, book: ApprovalBook) -> None:
        self._book = book

    async def __call__(
        self, config: ApprovalConfig, data: dict[str, Any], context: StepContext
    ) -> dict[str, Any]:
        future = self._book.open(
            PendingApproval(
                instance_id=context.instance_id,
                workflow_id=context.workflow_id,
                step_id=context.step_id,
                step_name=context.step_name,
                prompt=Template(config.prompt).safe_substitute(data),
                approvers=config.approvers,
            )
        )
        try:
            decision = await future
        finally:
            self._book.close(context.instance_id, context.step_id)

        if not decision.approved and config.fail_on_reject:
            raise ApprovalRejectedError(context.step_id, decision.approver)
        return {**data, "approved": decision.approved, "approval": decision.model_dump()}


class NotificationHandler:
    def __init__(self, notifier: Notifier) -> None:
        self._notifier = notifier

    async def __call__(
        self, config: NotificationConfig, data: dict[str, Any], context: StepContext
    ) -> dict[str, Any]:
        notification = Notification(
            channel=config.channel,
            message=Template(config.message).safe_substitute(data),
            recipients=config.recipients,
            instance_id=context.instance_id,
            step_id=context.step_id,
        )
        try:
            await self._notifier.deliver(notification)
        except NotificationDeliveryError as exc:
            logger.warning(
                "Notification delivery failed; continuing",
                extra={
                    "instance_id": context.instance_id,
                    "step_id": context.step_id,
                    "channel": config.channel,
                    "error": str(exc),
                },
            )
        return data


class ActionHandler:
    def __init__(self, actions: ActionRegistry) -> None:
        self._actions = actions

    async def __call__(
        self, config: ActionConfig, data: dict[str, Any], context: StepContext
    ) -> dict[str, Any]:
        action = self._actions.get(config.action)
        logger.debug(
            "Running action",
            extra={
                "instance_id": context.instance_id,
                "step_id": context.step_id,
                "action": config.action,
            },
        )
        return dict(await action(data))


async def run_condition(
    config: ConditionConfig, data: dict[str, Any], context: StepContext
) -> dict[str, Any]:
    return {**data, config.result_key: evaluate_condition(config.condition, data)}


async def run_join(
    config: JoinConfig, data: dict[str, Any], context: StepContext
) -> dict[str, Any]:
    # Branch results are already merged by the time a join is dispatched.
    return data


async def process_document(data: dict[str, Any]) -> dict[str, Any]:
    return {**data, "processed": True}


async def update_database(data: dict[str, Any]) -> dict[str, Any]:
    return {**data, "updated": True}


def default_actions() -> ActionRegistry:
    actions = ActionRegistry()
    actions.register("processDocument", process_document)
    actions.register("updateDatabase", update_database)
    return actions


def default_registry(
    *, actions: ActionRegistry, approvals: ApprovalBook, notifier: Notifier
) -> StepHandlerRegistry:
    registry = StepHandlerRegistry()
    registry.register(StepType.APPROVAL, ApprovalHandler(approvals), ApprovalConfig)
    registry.register(StepType.NOTIFICATION, NotificationHandler(notifier), NotificationConfig)
    registry.register(StepType.ACTION, ActionHandler(actions), ActionConfig)
    registry.register(StepType.CONDITION, run_condition, ConditionConfig)
    registry.register(StepType.JOIN, run_join, JoinConfig)
    return registry
