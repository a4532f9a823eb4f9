from typing import TypedDict, List, Optional, Literal, Dict, Any
from langgraph.graph import StateGraph, END
import asyncio
import time
import uuid
import structlog

from domain.context.context_manager import ContextManager
from domain.context.state.task_state_tracker import TaskStateTracker
from domain.models.task_state import (
    ClassificationResult, ConversationRole, StepExecutionResult, Task
)
from domain.orchestration.subagent.command_classifier import CommandClassifier
from domain.orchestration.subagent.direct_responder import DirectResponder
from domain.orchestration.subagent.step_executor import StepExecutor
from domain.orchestration.subagent.step_planner import StepPlanner
from domain.orchestration.subagent.summary_synthesizer import SummarySynthesizer
from domain.reasoning.service import ReasoningService
from infrastructure.config.settings import OrchestratorSettings, get_settings
from infrastructure.observability.logging import metrics, orchestration_logger

logger = structlog.get_logger(__name__)


APOLOGY_MESSAGE = (
    "I apologize, sir. I encountered a temporary system malfunction. "
    "My neural networks are recalibrating. Please try again."
)
IMAGE_ANALYSIS_APOLOGY = "I was unable to analyze the image, sir. Please try again."
IMAGE_ANALYSIS_REQUEST = "[Workspace Image Analysis Requested]"


class WorkflowState(TypedDict):
    """State for the command workflow graph"""
    command: str
    classification: Optional[ClassificationResult]
    task: Optional[Task]
    running_context: str
    step_results: List[StepExecutionResult]
    response: Optional[str]


class Orchestrator:
    """Runs one command at a time through classify, plan, execute and synthesize.

    Steps always run to the end of the plan: a step reporting
    ``success: false`` is recorded as failed and its context is still handed
    to the next step. Only an exception stops a run, in which case the task is
    discarded and the fixed apology is returned.
    """

    def __init__(
        self,
        reasoning_service: ReasoningService,
        session_id: Optional[str] = None,
        settings: Optional[OrchestratorSettings] = None,
        context_manager: Optional[ContextManager] = None
    ):
        self.session_id = session_id or f"session_{uuid.uuid4().hex}"
        self.settings = settings or get_settings().orchestrator
        self.context_manager = context_manager or ContextManager()

        assistant_name = self.settings.assistant_name
        self.planner = StepPlanner(reasoning_service)
        self.classifier = CommandClassifier(self.planner)
        self.executor = StepExecutor(reasoning_service, assistant_name=assistant_name)
        self.synthesizer = SummarySynthesizer(reasoning_service, assistant_name=assistant_name)
        self.responder = DirectResponder(reasoning_service, assistant_name=assistant_name)
        self.tracker = TaskStateTracker(self.session_id)

        self.workflow = self._create_workflow()
        self._busy = False

    @property
    def is_busy(self) -> bool:
        return self._busy

    @property
    def current_task(self) -> Optional[Task]:
        """Task visible to progress observers, if any"""
        return self.tracker.current_task

    def _create_workflow(self):
        """Create the command workflow graph"""

        workflow = StateGraph(WorkflowState)

        workflow.add_node("command_classifier", self.classification_node)
        workflow.add_node("simple_responder", self.simple_response_node)
        workflow.add_node("task_planner", self.task_planning_node)
        workflow.add_node("step_executor", self.step_execution_node)
        workflow.add_node("result_synthesizer", self.synthesis_node)

        workflow.set_entry_point("command_classifier")

        workflow.add_conditional_edges(
            "command_classifier",
            self.route_after_classification,
            {
                "simple": "simple_responder",
                "multi_step": "task_planner"
            }
        )
        workflow.add_edge("simple_responder", END)
        # Acyclic: the step executor node walks the whole plan, so the number
        # of graph passes does not grow with the plan length
        workflow.add_edge("task_planner", "step_executor")
        workflow.add_edge("step_executor", "result_synthesizer")
        workflow.add_edge("result_synthesizer", END)

        return workflow.compile()

    async def classification_node(self, state: WorkflowState) -> Dict[str, Any]:
        """Classify the command, degrading to simple handling on failure"""

        try:
            classification = await self.classifier.classify(state["command"])
        except Exception as e:
            logger.warning("Classification failed, handling as simple command", error=str(e))
            metrics.increment_counter("classification.degraded")
            classification = ClassificationResult.simple()

        return {"classification": classification}

    async def simple_response_node(self, state: WorkflowState) -> Dict[str, Any]:
        """Answer directly with the recent conversation as context"""

        conversation = await self.context_manager.build_conversation_context(
            self.session_id,
            window=self.settings.conversation_window,
            assistant_name=self.settings.assistant_name
        )
        response = await self.responder.respond(conversation)
        return {"response": response}

    async def task_planning_node(self, state: WorkflowState) -> Dict[str, Any]:
        """Create the task from the planned steps"""

        task = await self.tracker.begin(state["command"], state["classification"].steps)
        orchestration_logger.log_task_event(
            "task_started",
            self.session_id,
            data={"steps": [step.description for step in task.steps]}
        )
        return {
            "task": task,
            "running_context": "",
            "step_results": []
        }

    async def step_execution_node(self, state: WorkflowState) -> Dict[str, Any]:
        """Execute every step in order, threading each step's context forward"""

        task = state["task"]
        running_context = state["running_context"]
        step_results: List[StepExecutionResult] = list(state["step_results"])

        for index, step in enumerate(task.steps):
            await self.tracker.mark_in_progress(task, index)

            started = time.perf_counter()
            result = await self.executor.execute(
                step.description,
                ordinal=step.id,
                total_steps=len(task.steps),
                running_context=running_context,
                original_command=task.command
            )
            await self.tracker.mark_result(task, index, result.success, result.step_result)

            orchestration_logger.log_step_execution(
                session_id=self.session_id,
                step_id=step.id,
                total_steps=len(task.steps),
                success=result.success,
                duration_ms=(time.perf_counter() - started) * 1000
            )

            step_results.append(result)
            running_context = result.continuation

            if self.settings.step_delay_seconds:
                await asyncio.sleep(self.settings.step_delay_seconds)

        return {"running_context": running_context, "step_results": step_results}

    async def synthesis_node(self, state: WorkflowState) -> Dict[str, Any]:
        """Summarize every step result and complete the task"""

        task = state["task"]
        summary = await self.synthesizer.synthesize(task.command, state["step_results"])

        await self.tracker.complete(task, summary.summary)
        self.tracker.schedule_eviction(task, self.settings.task_retention_seconds)

        orchestration_logger.log_task_event(
            "task_completed",
            self.session_id,
            data={
                "failed_steps": len([r for r in state["step_results"] if not r.success]),
                "next_actions": summary.next_actions or []
            }
        )
        return {"response": summary.summary}

    def route_after_classification(self, state: WorkflowState) -> Literal["simple", "multi_step"]:
        classification = state["classification"]
        if classification and classification.is_multi_step and len(classification.steps) > 1:
            return "multi_step"
        return "simple"

    async def handle(self, command: str) -> Optional[str]:
        """Handle one command and return the assistant text.

        Returns ``None`` when the command is blank or another command is
        still being handled; such commands are dropped, not queued.
        """

        if not command or not command.strip():
            return None
        if self._busy:
            logger.info("Command dropped while busy", session_id=self.session_id)
            metrics.increment_counter("commands.dropped")
            return None

        self._busy = True
        structlog.contextvars.bind_contextvars(session_id=self.session_id, trace_id=uuid.uuid4().hex)
        started = time.perf_counter()
        try:
            return await self._process_command(command)
        finally:
            self._busy = False
            metrics.record_latency("command", (time.perf_counter() - started) * 1000)
            structlog.contextvars.unbind_contextvars("session_id", "trace_id")

    async def _process_command(self, command: str) -> str:
        try:
            await self.context_manager.record_turn(self.session_id, ConversationRole.USER, command)

            final_state = await self.workflow.ainvoke(self._initial_state(command))
            response = final_state["response"]

            await self.context_manager.record_turn(self.session_id, ConversationRole.ASSISTANT, response)
            metrics.increment_counter("commands.handled")
            return response

        except Exception:
            logger.exception("Command handling failed", session_id=self.session_id)
            metrics.increment_counter("commands.failed")
            await self.tracker.discard()
            await self.context_manager.record_turn(
                self.session_id, ConversationRole.ASSISTANT, APOLOGY_MESSAGE, persist=False
            )
            return APOLOGY_MESSAGE

    def _initial_state(self, command: str) -> WorkflowState:
        return {
            "command": command,
            "classification": None,
            "task": None,
            "running_context": "",
            "step_results": [],
            "response": None
        }

    async def analyze_workspace_image(self, image_url: str) -> Optional[str]:
        """Run an already-uploaded image through the reasoning service"""

        if self._busy:
            metrics.increment_counter("commands.dropped")
            return None

        self._busy = True
        try:
            analysis = await self.responder.analyze_image(image_url)
            await self.context_manager.record_turn(
                self.session_id, ConversationRole.USER, IMAGE_ANALYSIS_REQUEST, persist=False
            )
            await self.context_manager.record_turn(
                self.session_id, ConversationRole.ASSISTANT, analysis, persist=False
            )
            return analysis
        except Exception:
            logger.exception("Workspace image analysis failed", session_id=self.session_id)
            await self.context_manager.record_turn(
                self.session_id, ConversationRole.ASSISTANT, IMAGE_ANALYSIS_APOLOGY, persist=False
            )
            return IMAGE_ANALYSIS_APOLOGY
        finally:
            self._busy = False

    async def handle_voice_transcript(self, transcript: str) -> Optional[str]:
        """Forward a spoken command unless one is already running"""

        if not transcript or not transcript.strip() or self._busy:
            return None
        return await self.handle(transcript.strip())

    async def clear_history(self):
        """Forget the transcript and hide any visible task"""

        await self.context_manager.clear_session_context(self.session_id)
        await self.tracker.discard()
