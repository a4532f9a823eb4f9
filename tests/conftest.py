from typing import Any, Dict, List, Optional

import pytest

from domain.context.context_manager import ContextManager
from domain.context.memory.conversation_log import InMemoryConversationLog
from domain.orchestration.core.orchestrator import Orchestrator
from domain.reasoning.service import ReasoningRequest, ReasoningServiceError
from infrastructure.config.settings import OrchestratorSettings
from infrastructure.observability.logging import metrics


class ScriptedReasoningService:
    """Replays queued responses per request kind and records every request.

    Requests are routed by the title of their response schema (``StepPlan``,
    ``StepExecutionResult``, ``SummaryResult``) or ``text`` when no schema is
    given. A queued exception instance is raised instead of returned.
    """

    def __init__(self) -> None:
        self.queues: Dict[str, List[Any]] = {}
        self.requests: List[ReasoningRequest] = []

    def queue(self, kind: str, *responses: Any) -> "ScriptedReasoningService":
        self.queues.setdefault(kind, []).extend(responses)
        return self

    def plan(self, *steps: str) -> "ScriptedReasoningService":
        return self.queue("StepPlan", {"steps": list(steps)})

    def step(self, result: str, success: bool = True, next_step_context: Optional[str] = None) -> "ScriptedReasoningService":
        payload: Dict[str, Any] = {"step_result": result, "success": success}
        if next_step_context is not None:
            payload["next_step_context"] = next_step_context
        return self.queue("StepExecutionResult", payload)

    def summary(self, text: str, next_actions: Optional[List[str]] = None) -> "ScriptedReasoningService":
        payload: Dict[str, Any] = {"summary": text}
        if next_actions is not None:
            payload["next_actions"] = next_actions
        return self.queue("SummaryResult", payload)

    def text(self, *responses: Any) -> "ScriptedReasoningService":
        return self.queue("text", *responses)

    def calls(self, kind: str) -> List[ReasoningRequest]:
        return [request for request in self.requests if self._kind(request) == kind]

    @staticmethod
    def _kind(request: ReasoningRequest) -> str:
        if request.response_schema is None:
            return "text"
        return request.response_schema["title"]

    async def invoke(self, request: ReasoningRequest) -> Any:
        self.requests.append(request)
        queue = self.queues.get(self._kind(request))
        if not queue:
            raise ReasoningServiceError(f"No scripted response for {self._kind(request)}")
        response = queue.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def reasoning() -> ScriptedReasoningService:
    return ScriptedReasoningService()


@pytest.fixture
def settings() -> OrchestratorSettings:
    return OrchestratorSettings(
        task_retention_seconds=0.05,
        step_delay_seconds=0,
        conversation_window=6,
    )


@pytest.fixture
def conversation_log() -> InMemoryConversationLog:
    return InMemoryConversationLog()


@pytest.fixture
def orchestrator(reasoning, settings, conversation_log) -> Orchestrator:
    return Orchestrator(
        reasoning,
        session_id="session_test",
        settings=settings,
        context_manager=ContextManager(conversation_log=conversation_log),
    )
