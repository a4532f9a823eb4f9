from typing import Awaitable, Callable, List, Optional
import asyncio
import structlog

from domain.models.task_state import Step, StepStatus, Task, TaskStatus

logger = structlog.get_logger(__name__)

TaskListener = Callable[[str, Optional[Task]], Awaitable[None]]


class InvalidTransitionError(RuntimeError):
    """Raised when a task or step is moved to a state it cannot reach."""


class TaskStateTracker:
    """Sole writer of the task aggregate for one session.

    Every mutation is published to the registered listeners so a progress
    display can read the task between transitions. A removed task is
    published as ``None``.
    """

    def __init__(self, session_id: str):
        self.session_id = session_id
        self.current_task: Optional[Task] = None
        self.listeners: List[TaskListener] = []
        self._eviction: Optional[asyncio.Task] = None

    def add_listener(self, listener: TaskListener):
        """Register a progress observer"""
        self.listeners.append(listener)

    async def begin(self, command: str, steps: List[str]) -> Task:
        """Create a task with every step pending"""

        if len(steps) < 2:
            raise InvalidTransitionError("A task needs at least two steps")

        self._cancel_eviction()
        task = Task(
            session_id=self.session_id,
            command=command,
            steps=[
                Step(id=index, description=description)
                for index, description in enumerate(steps, start=1)
            ],
        )
        self.current_task = task
        logger.info("Task started", step_count=len(task.steps))
        await self._publish()
        return task

    async def mark_in_progress(self, task: Task, index: int):
        """Flag a step as running before its executor call is made"""

        self._require_active(task)
        if index < task.current_step:
            raise InvalidTransitionError(
                f"current_step cannot move back from {task.current_step} to {index}"
            )
        step = self._step(task, index)
        if step.status != StepStatus.PENDING:
            raise InvalidTransitionError(f"Step {step.id} is {step.status.value}, expected pending")

        task.current_step = index
        step.status = StepStatus.IN_PROGRESS
        task.touch()
        await self._publish()

    async def mark_result(self, task: Task, index: int, success: bool, result: str):
        """Record a finished step as completed or failed"""

        self._require_active(task)
        step = self._step(task, index)
        if step.status != StepStatus.IN_PROGRESS:
            raise InvalidTransitionError(f"Step {step.id} is {step.status.value}, expected in_progress")

        step.status = StepStatus.COMPLETED if success else StepStatus.FAILED
        step.result = result
        task.touch()
        await self._publish()

    async def complete(self, task: Task, final_result: str):
        self._require_active(task)
        task.status = TaskStatus.COMPLETED
        task.final_result = final_result
        task.touch()
        logger.info("Task completed", completed_steps=task.completed_steps, total_steps=len(task.steps))
        await self._publish()

    async def discard(self, task: Optional[Task] = None):
        """Remove the task from visibility immediately"""

        if task is not None and task is not self.current_task:
            return
        self._cancel_eviction()
        if self.current_task is None:
            return
        self.current_task = None
        logger.info("Task discarded")
        await self._publish()

    def schedule_eviction(self, task: Task, delay_seconds: float):
        """Remove a completed task once the retention window has passed"""

        self._cancel_eviction()
        self._eviction = asyncio.create_task(self._evict_later(task, delay_seconds))

    async def _evict_later(self, task: Task, delay_seconds: float):
        await asyncio.sleep(delay_seconds)
        if self.current_task is task:
            self.current_task = None
            self._eviction = None
            logger.debug("Completed task evicted")
            await self._publish()

    def _cancel_eviction(self):
        if self._eviction is not None and not self._eviction.done():
            self._eviction.cancel()
        self._eviction = None

    def _require_active(self, task: Task):
        if task.status != TaskStatus.IN_PROGRESS:
            raise InvalidTransitionError(f"Task is {task.status.value}, expected in_progress")

    @staticmethod
    def _step(task: Task, index: int) -> Step:
        if not 0 <= index < len(task.steps):
            raise InvalidTransitionError(f"No step at index {index}")
        return task.steps[index]

    async def _publish(self):
        for listener in self.listeners:
            try:
                await listener(self.session_id, self.current_task)
            except Exception as e:
                logger.error("Error in task listener", error=str(e))
