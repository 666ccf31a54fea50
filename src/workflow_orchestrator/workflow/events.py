"""Lifecycle events and the synchronous event bus that carries them."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .models import PendingApproval

logger = logging.getLogger(__name__)


class EngineEvent(str, Enum):
    WORKFLOW_STARTED = "workflow_started"
    STEP_COMPLETED = "step_completed"
    WORKFLOW_COMPLETED = "workflow_completed"
    WORKFLOW_FAILED = "workflow_failed"
    WORKFLOW_CANCELLED = "workflow_cancelled"
    APPROVAL_REQUESTED = "approval_requested"


@dataclass(frozen=True, slots=True)
class WorkflowStarted:
    instance_id: str
    workflow_id: str
    data: dict[str, Any]


@dataclass(frozen=True, slots=True)
class StepCompleted:
    instance_id: str
    step_id: str
    result: dict[str, Any]


@dataclass(frozen=True, slots=True)
class WorkflowCompleted:
    instance_id: str
    result: dict[str, Any]


@dataclass(frozen=True, slots=True)
class WorkflowFailed:
    instance_id: str
    step_id: str
    error: BaseException


@dataclass(frozen=True, slots=True)
class WorkflowCancelled:
    instance_id: str
    abandoned_steps: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class ApprovalRequested:
    instance_id: str
    step_id: str
    approval: PendingApproval


Listener = Callable[[Any], object]


class EventBus:
    """Publish/subscribe keyed by event name.

    Listeners run synchronously inside `emit`, in registration order. A
    listener registered before `emit` is called always observes that emission;
    listeners added or removed during an emission take effect from the next
    one. A listener that raises is logged and does not stop the others.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: dict[str, list[Listener]] = {}

    @staticmethod
    def _key(event: str | EngineEvent) -> str:
        return event.value if isinstance(event, EngineEvent) else event

    def on(self, event: str | EngineEvent, listener: Listener) -> EventBus:
        with self._lock:
            self._listeners.setdefault(self._key(event), []).append(listener)
        return self

    def off(self, event: str | EngineEvent, listener: Listener) -> EventBus:
        with self._lock:
            listeners = self._listeners.get(self._key(event))
            if listeners and listener in listeners:
                listeners.remove(listener)
        return self

    def remove_all_listeners(self, event: str | EngineEvent | None = None) -> EventBus:
        with self._lock:
            if event is None:
                self._listeners.clear()
            else:
                self._listeners.pop(self._key(event), None)
        return self

    def listener_count(self, event: str | EngineEvent) -> int:
        with self._lock:
            return len(self._listeners.get(self._key(event), []))

    def emit(self, event: str | EngineEvent, payload: Any = None) -> bool:
        """Deliver `payload` to every listener of `event`.

        Returns:
            True if at least one listener was registered.
        """
        key = self._key(event)
        with self._lock:
            snapshot = list(self._listeners.get(key, []))

        for listener in snapshot:
            try:
                listener(payload)
            except Exception:
                logger.exception("Event listener failed", extra={"event": key})
        return bool(snapshot)
