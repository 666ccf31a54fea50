"""Pending approvals awaiting an external decision.

An approval step opens a record here and suspends until someone calls
`resolve` (via `WorkflowEngine.resolve_approval`), the instance is cancelled,
or the step deadline expires.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass

from .errors import NotFoundError
from .models import ApprovalDecision, PendingApproval

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Slot:
    approval: PendingApproval
    future: asyncio.Future[ApprovalDecision]


class ApprovalBook:
    def __init__(self, on_request: Callable[[PendingApproval], None] | None = None) -> None:
        self._slots: dict[tuple[str, str], _Slot] = {}
        self._on_request = on_request

    def open(self, approval: PendingApproval) -> asyncio.Future[ApprovalDecision]:
        key = (approval.instance_id, approval.step_id)
        if key in self._slots:
            raise ValueError(
                f"Approval already pending for step {approval.step_id!r} "
                f"of instance {approval.instance_id}"
            )
        future: asyncio.Future[ApprovalDecision] = asyncio.get_running_loop().create_future()
        self._slots[key] = _Slot(approval=approval, future=future)
        logger.info(
            "Approval requested",
            extra={"instance_id": approval.instance_id, "step_id": approval.step_id},
        )
        if self._on_request is not None:
            self._on_request(approval)
        return future

    def close(self, instance_id: str, step_id: str) -> None:
        self._slots.pop((instance_id, step_id), None)

    def resolve(self, instance_id: str, step_id: str, decision: ApprovalDecision) -> None:
        slot = self._slots.get((instance_id, step_id))
        if slot is None or slot.future.done():
            raise NotFoundError("Pending approval", f"{instance_id}/{step_id}")
        logger.info(
            "Approval resolved",
            extra={
                "instance_id": instance_id,
                "step_id": step_id,
                "approved": decision.approved,
                "approver": decision.approver,
            },
        )
        slot.future.set_result(decision)

    def pending(self, instance_id: str | None = None) -> list[PendingApproval]:
        return [
            slot.approval
            for (owner, _), slot in self._slots.items()
            if instance_id is None or owner == instance_id
        ]

    def withdraw(self, instance_id: str) -> int:
        """Cancel every approval pending for an instance; returns how many."""
        keys = [key for key in self._slots if key[0] == instance_id]
        for key in keys:
            slot = self._slots.pop(key)
            if not slot.future.done():
                slot.future.cancel()
        return len(keys)
