from typing import Optional

from application.websocket.connection_manager import ConnectionManager
from application.websocket.schema.events import (
    ProgressData, ProgressEvent, ResponseEvent, TaskUpdateEvent
)
from domain.models.task_state import StepStatus, Task

WORKFLOW_FINISHED = "_workflow_finish"


class StreamingHandler:
    """Pushes task snapshots and assistant output to a session's sockets"""

    def __init__(self, connection_manager: Optional[ConnectionManager] = None):
        self.connection_manager = connection_manager or ConnectionManager()

    async def handle_task_update(self, session_id: str, task: Optional[Task]):
        """Task listener: push the current snapshot, or its removal"""

        snapshot = task.get_state_summary() if task is not None else None
        await self.connection_manager.send_event(session_id, TaskUpdateEvent(payload=snapshot))

        if task is not None:
            await self.send_progress(
                session_id,
                describe_task(task),
                step_index=task.current_step + 1,
                total_steps=len(task.steps)
            )

    async def send_progress(
        self,
        session_id: str,
        status: str,
        step_index: Optional[int] = None,
        total_steps: Optional[int] = None
    ):
        await self.connection_manager.send_event(
            session_id,
            ProgressEvent(payload=ProgressData(status=status, step_index=step_index, total_steps=total_steps))
        )

    async def send_response(self, session_id: str, content: str, source: str = "command"):
        """Send assistant text followed by the end-of-workflow marker"""

        await self.connection_manager.send_event(session_id, ResponseEvent(payload=content, source=source))
        await self.send_progress(session_id, WORKFLOW_FINISHED)


def describe_task(task: Task) -> str:
    """One-line status for a progress display"""

    if task.final_result is not None:
        return f"Task complete: {task.completed_steps}/{len(task.steps)} steps succeeded"
    step = task.steps[task.current_step]
    if step.status == StepStatus.IN_PROGRESS:
        return f"Executing: {step.description}"
    return f"Step {step.id} {step.status.value}"
