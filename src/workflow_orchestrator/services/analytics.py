"""Event tracking capability used by workflow handlers."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

logger = logging.getLogger(__name__)


class AnalyticsService(ABC):
    @abstractmethod
    def track_event(self, name: str, properties: dict[str, Any] | None = None) -> None:
        """Record a named event with arbitrary properties."""
        pass


class LoggingAnalytics(AnalyticsService):
    """Records events as structured log lines."""

    def track_event(self, name: str, properties: dict[str, Any] | None = None) -> None:
        logger.info("Tracked event: %s", name, extra={"properties": properties or {}})
