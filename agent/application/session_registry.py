from typing import Callable, Dict, List, Optional
import time
import uuid
import structlog

from domain.context.context_manager import ContextManager
from domain.orchestration.core.orchestrator import Orchestrator
from domain.reasoning.service import ReasoningService
from domain.streaming.streaming_handler import StreamingHandler
from infrastructure.config.settings import OrchestratorSettings, get_settings

logger = structlog.get_logger(__name__)


class SessionRegistry:
    """One orchestrator per conversation session.

    Sessions are released once they have been idle for
    ``session_idle_seconds`` with no socket attached and no command running.
    Idle sessions are pruned whenever a session is looked up.
    """

    def __init__(
        self,
        reasoning_service_factory: Callable[[], ReasoningService],
        streaming_handler: Optional[StreamingHandler] = None,
        context_manager: Optional[ContextManager] = None,
        settings: Optional[OrchestratorSettings] = None
    ):
        self.reasoning_service_factory = reasoning_service_factory
        self.streaming_handler = streaming_handler or StreamingHandler()
        self.context_manager = context_manager or ContextManager()
        self.settings = settings or get_settings().orchestrator
        self.sessions: Dict[str, Orchestrator] = {}
        self.last_used: Dict[str, float] = {}
        self._reasoning_service: Optional[ReasoningService] = None

    @property
    def reasoning_service(self) -> ReasoningService:
        # Created on first use so the app can start without provider credentials
        if self._reasoning_service is None:
            self._reasoning_service = self.reasoning_service_factory()
        return self._reasoning_service

    async def create(self) -> Orchestrator:
        return await self.get_or_create(str(uuid.uuid4()))

    async def get(self, session_id: str) -> Optional[Orchestrator]:
        await self.prune(keep=session_id)
        orchestrator = self.sessions.get(session_id)
        if orchestrator is not None:
            self.last_used[session_id] = time.monotonic()
        return orchestrator

    async def get_or_create(self, session_id: str) -> Orchestrator:
        orchestrator = await self.get(session_id)
        if orchestrator is None:
            orchestrator = Orchestrator(
                self.reasoning_service,
                session_id=session_id,
                settings=self.settings,
                context_manager=self.context_manager
            )
            orchestrator.tracker.add_listener(self.streaming_handler.handle_task_update)
            self.sessions[session_id] = orchestrator
            self.last_used[session_id] = time.monotonic()
            logger.info("Session created", session_id=session_id)
        return orchestrator

    def touch(self, session_id: str):
        """Mark a session as used, e.g. when a command finishes"""
        if session_id in self.sessions:
            self.last_used[session_id] = time.monotonic()

    async def prune(self, keep: Optional[str] = None) -> List[str]:
        """Release idle sessions and return their ids"""

        deadline = time.monotonic() - self.settings.session_idle_seconds
        connections = self.streaming_handler.connection_manager
        idle = [
            session_id for session_id, orchestrator in self.sessions.items()
            if session_id != keep
            and self.last_used.get(session_id, 0) <= deadline
            and not orchestrator.is_busy
            and connections.connection_count(session_id) == 0
        ]
        for session_id in idle:
            await self.release(session_id)
        return idle

    async def release(self, session_id: str):
        """Forget a session with its transcript and visible task"""

        orchestrator = self.sessions.pop(session_id, None)
        self.last_used.pop(session_id, None)
        if orchestrator is None:
            return
        await orchestrator.clear_history()
        logger.info("Session released", session_id=session_id)
