"""Unit tests for the built-in step handlers and registries."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, Mock

import pytest

from tests.factories import definition, step
from workflow_orchestrator.core.config import EngineConfig
from workflow_orchestrator.services.notifications import Notification, Notifier
from workflow_orchestrator.workflow.approvals import ApprovalBook
from workflow_orchestrator.workflow.engine import WorkflowEngine
from workflow_orchestrator.workflow.errors import (
    NotificationDeliveryError,
    UnknownActionError,
    UnknownStepTypeError,
)
from workflow_orchestrator.workflow.handlers import (
    ActionHandler,
    ConditionConfig,
    NotificationConfig,
    NotificationHandler,
    default_actions,
    run_condition,
)
from workflow_orchestrator.workflow.models import InstanceState, PendingApproval
from workflow_orchestrator.workflow.registry import StepContext, StepHandlerRegistry

CONTEXT = StepContext(instance_id="i-1", workflow_id="w-1", step_id="s-1", step_name="Step")


@pytest.mark.asyncio
async def test_notification_renders_message_and_returns_data_unchanged() -> None:
    notifier = Mock(spec=Notifier)
    notifier.deliver = AsyncMock()
    handler = NotificationHandler(notifier)
    data = {"name": "Ada"}

    result = await handler(
        NotificationConfig(message="Hello $name, ref $missing", channel="email"), data, CONTEXT
    )

    assert result == data
    (notification,) = notifier.deliver.call_args.args
    assert isinstance(notification, Notification)
    assert notification.message == "Hello Ada, ref $missing"
    assert notification.channel == "email"
    assert notification.step_id == "s-1"


@pytest.mark.asyncio
async def test_retriable_delivery_failure_does_not_fail_instance(
    engine_config: EngineConfig,
) -> None:
    notifier = Mock(spec=Notifier)
    notifier.deliver = AsyncMock(side_effect=NotificationDeliveryError("smtp down"))
    engine = WorkflowEngine(engine_config, notifier=notifier)
    workflow_id = engine.create_workflow(definition(step("notify", "notification", message="x")))

    instance_id = await engine.start_workflow(workflow_id, {"a": 1})
    status = await engine.wait_for_instance(instance_id, timeout=2)

    assert status.status is InstanceState.COMPLETED
    assert status.data == {"a": 1}
    notifier.deliver.assert_awaited_once()


@pytest.mark.asyncio
async def test_unexpected_delivery_error_fails_instance(engine_config: EngineConfig) -> None:
    notifier = Mock(spec=Notifier)
    notifier.deliver = AsyncMock(side_effect=RuntimeError("misconfigured"))
    engine = WorkflowEngine(engine_config, notifier=notifier)
    workflow_id = engine.create_workflow(definition(step("notify", "notification", message="x")))

    instance_id = await engine.start_workflow(workflow_id, {})
    status = await engine.wait_for_instance(instance_id, timeout=2)

    assert status.status is InstanceState.FAILED
    assert status.error is not None
    assert "misconfigured" in status.error


@pytest.mark.asyncio
async def test_builtin_actions() -> None:
    actions = default_actions()

    assert actions.names() == ["processDocument", "updateDatabase"]
    assert await actions.get("processDocument")({"a": 1}) == {"a": 1, "processed": True}
    assert await actions.get("updateDatabase")({}) == {"updated": True}


@pytest.mark.asyncio
async def test_action_handler_raises_for_unknown_action() -> None:
    handler = ActionHandler(default_actions())

    with pytest.raises(UnknownActionError, match="Unknown action: nope"):
        await handler(Mock(action="nope"), {}, CONTEXT)


@pytest.mark.asyncio
async def test_condition_result_key_can_be_renamed() -> None:
    config = ConditionConfig.model_validate({"condition": "score >= 7", "resultKey": "passed"})

    result = await run_condition(config, {"score": 9}, CONTEXT)

    assert result == {"score": 9, "passed": True}


def test_action_registry_rejects_duplicates_unless_replacing() -> None:
    actions = default_actions()

    async def other(data: dict[str, Any]) -> dict[str, Any]:
        return data

    with pytest.raises(ValueError):
        actions.register("processDocument", other)

    actions.register("processDocument", other, replace=True)
    assert actions.get("processDocument") is other


def test_step_registry_lookup_and_unregister() -> None:
    registry = StepHandlerRegistry()
    handler = AsyncMock()
    registry.register("custom", handler)

    assert "custom" in registry
    assert registry.get("custom").handler is handler
    with pytest.raises(ValueError):
        registry.register("custom", handler)

    assert registry.unregister("custom") is True
    with pytest.raises(UnknownStepTypeError):
        registry.get("custom")


@pytest.mark.asyncio
async def test_approval_book_rejects_second_request_for_same_step() -> None:
    requested: list[PendingApproval] = []
    book = ApprovalBook(on_request=requested.append)
    approval = PendingApproval(
        instance_id="i-1", workflow_id="w-1", step_id="s-1", step_name="Review"
    )

    future = book.open(approval)
    with pytest.raises(ValueError):
        book.open(approval)

    assert requested == [approval]
    assert book.withdraw("i-1") == 1
    assert future.cancelled()
    assert book.pending() == []
