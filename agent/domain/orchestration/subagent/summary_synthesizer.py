from typing import Sequence

from domain.models.task_state import StepExecutionResult, SummaryResult
from domain.reasoning.prompts import SUMMARY_SCHEMA, summary_prompt
from domain.reasoning.service import ReasoningService
from .base_subagent import BaseSubAgent


class SummarySynthesizer(BaseSubAgent):
    """Combines every step result, failed ones included, into one report"""

    def __init__(self, reasoning_service: ReasoningService, assistant_name: str = "JARVIS"):
        super().__init__(
            name="summary_synthesizer",
            reasoning_service=reasoning_service
        )
        self.assistant_name = assistant_name

    async def synthesize(
        self,
        original_command: str,
        step_results: Sequence[StepExecutionResult]
    ) -> SummaryResult:
        prompt = summary_prompt(self.assistant_name, original_command, step_results)
        return await self.invoke_structured(prompt, schema=SUMMARY_SCHEMA, model=SummaryResult)
