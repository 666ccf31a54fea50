"""External capabilities consumed by workflow handlers."""

from workflow_orchestrator.services.analytics import AnalyticsService, LoggingAnalytics
from workflow_orchestrator.services.notifications import LoggingNotifier, Notification, Notifier
from workflow_orchestrator.services.security import EncryptedMessage, SecurityService, UserRole

__all__ = [
    "AnalyticsService",
    "EncryptedMessage",
    "LoggingAnalytics",
    "LoggingNotifier",
    "Notification",
    "Notifier",
    "SecurityService",
    "UserRole",
]
