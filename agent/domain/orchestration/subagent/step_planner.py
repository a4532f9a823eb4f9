from typing import List
import structlog

from domain.models.task_state import StepPlan
from domain.reasoning.prompts import DECOMPOSITION_SCHEMA, decomposition_prompt
from domain.reasoning.service import ReasoningService
from .base_subagent import BaseSubAgent

logger = structlog.get_logger(__name__)


class StepPlanner(BaseSubAgent):
    """Decomposes a command into ordered step descriptions"""

    def __init__(self, reasoning_service: ReasoningService):
        super().__init__(
            name="step_planner",
            reasoning_service=reasoning_service
        )

    async def plan(self, command: str) -> List[str]:
        """Return step descriptions in the order the service gave them"""

        plan = await self.invoke_structured(
            decomposition_prompt(command),
            schema=DECOMPOSITION_SCHEMA,
            model=StepPlan
        )
        logger.info("Command decomposed", step_count=len(plan.steps))
        return list(plan.steps)
