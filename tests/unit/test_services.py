"""Unit tests for the logging-backed service implementations."""

from __future__ import annotations

import logging

import pytest

from workflow_orchestrator.services.analytics import LoggingAnalytics
from workflow_orchestrator.services.notifications import LoggingNotifier, Notification


def test_logging_analytics_records_event(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger="workflow_orchestrator.services.analytics"):
        LoggingAnalytics().track_event("agent_assigned", {"agentId": "a-1"})

    (record,) = caplog.records
    assert record.getMessage() == "Tracked event: agent_assigned"
    assert record.properties == {"agentId": "a-1"}


@pytest.mark.asyncio
async def test_logging_notifier_writes_message(caplog: pytest.LogCaptureFixture) -> None:
    notification = Notification(
        channel="email", message="Ticket T1 closed", recipients=["ops@example.com"]
    )

    with caplog.at_level(logging.INFO, logger="workflow_orchestrator.services.notifications"):
        await LoggingNotifier().deliver(notification)

    (record,) = caplog.records
    assert record.getMessage() == "Notification: Ticket T1 closed"
    assert record.channel == "email"
    assert record.recipients == ["ops@example.com"]
