import asyncio

import pytest

from domain.context.state.task_state_tracker import InvalidTransitionError, TaskStateTracker
from domain.models.task_state import StepStatus, TaskStatus


class RecordingListener:
    def __init__(self):
        self.snapshots = []

    async def __call__(self, session_id, task):
        self.snapshots.append((session_id, task.get_state_summary() if task else None))


@pytest.mark.asyncio
async def test_begin_creates_pending_steps():
    tracker = TaskStateTracker("s1")

    task = await tracker.begin("Design a chair, optimize it, and print", ["Design", "Optimize", "Print"])

    assert tracker.current_task is task
    assert task.session_id == "s1"
    assert task.status == TaskStatus.IN_PROGRESS
    assert task.current_step == 0
    assert [step.id for step in task.steps] == [1, 2, 3]
    assert all(step.status == StepStatus.PENDING for step in task.steps)
    assert task.final_result is None


@pytest.mark.asyncio
async def test_begin_rejects_single_step_plans():
    tracker = TaskStateTracker("s1")

    with pytest.raises(InvalidTransitionError):
        await tracker.begin("just one", ["only step"])
    assert tracker.current_task is None


@pytest.mark.asyncio
async def test_steps_move_forward_only():
    tracker = TaskStateTracker("s1")
    task = await tracker.begin("a and b", ["a", "b"])
    seen = []

    for index in range(len(task.steps)):
        seen.append(task.steps[index].status)
        await tracker.mark_in_progress(task, index)
        seen.append(task.steps[index].status)
        await tracker.mark_result(task, index, index == 0, f"result {index}")
        seen.append(task.steps[index].status)

    assert seen == [
        StepStatus.PENDING, StepStatus.IN_PROGRESS, StepStatus.COMPLETED,
        StepStatus.PENDING, StepStatus.IN_PROGRESS, StepStatus.FAILED,
    ]
    assert task.current_step == 1
    assert task.steps[1].result == "result 1"

    with pytest.raises(InvalidTransitionError):
        await tracker.mark_in_progress(task, 0)
    with pytest.raises(InvalidTransitionError):
        await tracker.mark_result(task, 1, True, "again")


@pytest.mark.asyncio
async def test_result_requires_running_step():
    tracker = TaskStateTracker("s1")
    task = await tracker.begin("a and b", ["a", "b"])

    with pytest.raises(InvalidTransitionError):
        await tracker.mark_result(task, 0, True, "too early")
    with pytest.raises(InvalidTransitionError):
        await tracker.mark_in_progress(task, 5)


@pytest.mark.asyncio
async def test_complete_sets_final_result_and_freezes_task():
    tracker = TaskStateTracker("s1")
    task = await tracker.begin("a and b", ["a", "b"])
    for index in range(2):
        await tracker.mark_in_progress(task, index)
        await tracker.mark_result(task, index, True, "ok")

    await tracker.complete(task, "All done, sir.")

    assert task.status == TaskStatus.COMPLETED
    assert task.final_result == "All done, sir."
    assert task.progress == 1.0
    with pytest.raises(InvalidTransitionError):
        await tracker.complete(task, "twice")


@pytest.mark.asyncio
async def test_listeners_see_every_transition():
    tracker = TaskStateTracker("s1")
    listener = RecordingListener()
    tracker.add_listener(listener)

    task = await tracker.begin("a and b", ["a", "b"])
    await tracker.mark_in_progress(task, 0)
    await tracker.mark_result(task, 0, True, "done")
    await tracker.discard(task)

    statuses = [snapshot["steps"][0]["status"] for _, snapshot in listener.snapshots[:3]]
    assert statuses == ["pending", "in_progress", "completed"]
    assert listener.snapshots[-1] == ("s1", None)


@pytest.mark.asyncio
async def test_failing_listener_does_not_break_transitions():
    tracker = TaskStateTracker("s1")

    async def broken(session_id, task):
        raise RuntimeError("display offline")

    tracker.add_listener(broken)
    task = await tracker.begin("a and b", ["a", "b"])
    await tracker.mark_in_progress(task, 0)

    assert task.steps[0].status == StepStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_discard_ignores_stale_task():
    tracker = TaskStateTracker("s1")
    first = await tracker.begin("a and b", ["a", "b"])
    second = await tracker.begin("c and d", ["c", "d"])

    await tracker.discard(first)

    assert tracker.current_task is second


@pytest.mark.asyncio
async def test_completed_task_is_evicted_after_retention():
    tracker = TaskStateTracker("s1")
    listener = RecordingListener()
    tracker.add_listener(listener)
    task = await tracker.begin("a and b", ["a", "b"])

    tracker.schedule_eviction(task, 0.01)
    assert tracker.current_task is task

    await asyncio.sleep(0.05)
    assert tracker.current_task is None
    assert listener.snapshots[-1] == ("s1", None)


@pytest.mark.asyncio
async def test_new_task_cancels_pending_eviction():
    tracker = TaskStateTracker("s1")
    first = await tracker.begin("a and b", ["a", "b"])
    tracker.schedule_eviction(first, 0.01)

    second = await tracker.begin("c and d", ["c", "d"])
    await asyncio.sleep(0.05)

    assert tracker.current_task is second
