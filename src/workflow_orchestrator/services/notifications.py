"""Notification delivery used by notification steps."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Notification:
    channel: str
    message: str
    recipients: list[str] = field(default_factory=list)
    instance_id: str | None = None
    step_id: str | None = None


class Notifier(ABC):
    """Delivers notifications (email, SMS, push, ...).

    Implementations raise `NotificationDeliveryError` for failures that are
    worth retrying later; the notification step logs those and continues.
    """

    @abstractmethod
    async def deliver(self, notification: Notification) -> None:
        pass


class LoggingNotifier(Notifier):
    """Writes notifications to the log. Used when no real channel is wired up."""

    async def deliver(self, notification: Notification) -> None:
        logger.info(
            "Notification: %s",
            notification.message,
            extra={
                "channel": notification.channel,
                "recipients": notification.recipients,
                "instance_id": notification.instance_id,
                "step_id": notification.step_id,
            },
        )
