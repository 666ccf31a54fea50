"""Unit tests for instance state transitions and data merging."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from workflow_orchestrator.workflow.errors import DataConflictError, IllegalTransitionError
from workflow_orchestrator.workflow.models import InstanceState, Workflow
from workflow_orchestrator.workflow.tracker import InstanceTracker, merge_delta, transition


def test_running_instances_may_finish_any_way() -> None:
    for to in (InstanceState.COMPLETED, InstanceState.FAILED, InstanceState.CANCELLED):
        assert transition(current=InstanceState.RUNNING, to=to) is to


@pytest.mark.parametrize(
    "current", [InstanceState.COMPLETED, InstanceState.FAILED, InstanceState.CANCELLED]
)
def test_terminal_states_are_final(current: InstanceState) -> None:
    with pytest.raises(IllegalTransitionError):
        transition(current=current, to=InstanceState.RUNNING)
    with pytest.raises(IllegalTransitionError):
        transition(current=current, to=InstanceState.FAILED)


def test_merge_delta_applies_only_changed_keys() -> None:
    current = {"a": 1, "b": 2, "other": "from sibling"}
    base = {"a": 1, "b": 2}

    merge_delta(current, base, {"a": 1, "b": 3, "c": 4}, "step")

    assert current == {"a": 1, "b": 3, "c": 4, "other": "from sibling"}


def test_merge_delta_removes_keys_the_step_dropped() -> None:
    current = {"a": 1, "temp": True}

    merge_delta(current, {"a": 1, "temp": True}, {"a": 1}, "step")

    assert current == {"a": 1}


def test_merge_delta_accepts_identical_concurrent_writes() -> None:
    current = {"status": "done"}

    merge_delta(current, {}, {"status": "done"}, "step")

    assert current == {"status": "done"}


def test_merge_delta_rejects_conflicting_writes_without_partial_update() -> None:
    current = {"owner": "left"}

    with pytest.raises(DataConflictError) as excinfo:
        merge_delta(current, {}, {"owner": "right", "extra": 1}, "right-branch")

    assert excinfo.value.keys == ["owner"]
    assert excinfo.value.step_id == "right-branch"
    assert current == {"owner": "left"}


def test_merge_delta_rejects_removal_of_concurrently_changed_key() -> None:
    current = {"flag": "changed"}

    with pytest.raises(DataConflictError):
        merge_delta(current, {"flag": "original"}, {}, "step")


def test_instance_state_terminal_flag() -> None:
    assert InstanceState.RUNNING.is_terminal is False
    assert InstanceState.CANCELLED.is_terminal is True


def _workflow() -> Workflow:
    now = datetime.now(UTC)
    return Workflow.model_validate(
        {
            "id": "wf-1",
            "name": "tracked",
            "trigger": {"type": "manual"},
            "steps": [{"id": "a", "name": "A", "type": "action", "config": {"action": "x"}}],
            "createdAt": now,
            "updatedAt": now,
        }
    )


@pytest.mark.asyncio
async def test_finish_is_idempotent_and_purge_respects_cutoff() -> None:
    tracker = InstanceTracker()
    record = tracker.create(_workflow(), {"k": "v"})

    assert record.current_steps == ["a"]
    assert tracker.count_running("wf-1") == 1
    assert await tracker.finish(record, InstanceState.CANCELLED) is True
    assert await tracker.finish(record, InstanceState.FAILED) is False
    assert record.done.is_set()

    assert tracker.purge(timedelta(hours=1)) == 0
    assert tracker.purge() == 1
    assert tracker.status(record.instance_id) is None
