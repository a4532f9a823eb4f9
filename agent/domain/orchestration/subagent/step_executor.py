from domain.models.task_state import StepExecutionResult
from domain.reasoning.prompts import STEP_RESULT_SCHEMA, step_prompt
from domain.reasoning.service import ReasoningService
from .base_subagent import BaseSubAgent


class StepExecutor(BaseSubAgent):
    """Executes exactly one planned step through the reasoning service"""

    def __init__(self, reasoning_service: ReasoningService, assistant_name: str = "JARVIS"):
        super().__init__(
            name="step_executor",
            reasoning_service=reasoning_service
        )
        self.assistant_name = assistant_name

    async def execute(
        self,
        step: str,
        ordinal: int,
        total_steps: int,
        running_context: str,
        original_command: str
    ) -> StepExecutionResult:
        """Run one step; service errors are not caught here"""

        prompt = step_prompt(
            assistant_name=self.assistant_name,
            original_command=original_command,
            step=step,
            ordinal=ordinal,
            total_steps=total_steps,
            running_context=running_context
        )
        return await self.invoke_structured(prompt, schema=STEP_RESULT_SCHEMA, model=StepExecutionResult)
