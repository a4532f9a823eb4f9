import structlog

from domain.models.task_state import ClassificationResult, CommandComplexity
from .step_planner import StepPlanner

logger = structlog.get_logger(__name__)


def has_multi_step_indicators(command: str) -> bool:
    """Cheap syntactic test for commands that chain several actions"""

    lowered = command.lower()
    return (
        " and " in lowered
        or " then " in lowered
        or ", then" in lowered
        or lowered.count(",") >= 2
    )


class CommandClassifier:
    """Two-tier classification: syntactic gate first, decomposition only when it fires"""

    def __init__(self, planner: StepPlanner):
        self.planner = planner

    async def classify(self, command: str) -> ClassificationResult:
        """Decide whether ``command`` needs multi-step handling"""

        if not has_multi_step_indicators(command):
            return ClassificationResult.simple()

        steps = await self.planner.plan(command)
        result = ClassificationResult(
            is_multi_step=len(steps) > 1,
            complexity=CommandComplexity.COMPLEX,
            steps=steps
        )
        logger.info(
            "Command classified",
            is_multi_step=result.is_multi_step,
            step_count=len(steps)
        )
        return result
