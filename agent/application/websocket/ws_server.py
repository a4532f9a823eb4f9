from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError
from typing import Callable, Optional, Set
from datetime import datetime, timezone
import asyncio
import json
import structlog

from .connection_manager import ConnectionManager
from .schema.events import CLIENT_EVENTS, AnalyzeWorkspace, BaseEvent, ClearHistory, UserMessage
from application.api.route.agent import router as agent_router
from application.session_registry import SessionRegistry
from domain.orchestration.core.orchestrator import Orchestrator
from domain.reasoning.service import ReasoningService
from domain.streaming.streaming_handler import StreamingHandler
from infrastructure.config.settings import get_settings
from infrastructure.observability.logging import metrics, setup_logging

logger = structlog.get_logger(__name__)


def default_reasoning_service() -> ReasoningService:
    from infrastructure.llm.langchain_reasoning import LangChainReasoningService

    return LangChainReasoningService(settings=get_settings().reasoning)


def create_app(
    reasoning_service_factory: Optional[Callable[[], ReasoningService]] = None,
    configure_logging: bool = True
) -> FastAPI:
    """Build the HTTP/WebSocket surface around per-session orchestrators"""

    settings = get_settings()
    if configure_logging:
        setup_logging(
            log_level=settings.logging.log_level,
            log_format=settings.logging.log_format,
            service_name=settings.logging.service_name
        )

    app = FastAPI(title="JARVIS Command Orchestrator")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    connection_manager = ConnectionManager()
    streaming_handler = StreamingHandler(connection_manager)
    app.state.connection_manager = connection_manager
    app.state.streaming_handler = streaming_handler
    app.state.registry = SessionRegistry(
        reasoning_service_factory or default_reasoning_service,
        streaming_handler=streaming_handler,
        settings=settings.orchestrator
    )
    app.include_router(agent_router)

    def parse(data) -> BaseEvent:
        event_class = CLIENT_EVENTS.get(data.get("type")) if isinstance(data, dict) else None
        if event_class is None:
            raise LookupError("Unsupported event type")
        return event_class(**{key: value for key, value in data.items() if key != "type"})

    async def run_command(session_id: str, orchestrator: Orchestrator, event: BaseEvent):
        if isinstance(event, AnalyzeWorkspace):
            response = await orchestrator.analyze_workspace_image(event.image_url)
            source = "image_analysis"
        elif isinstance(event, UserMessage) and event.source == "voice":
            response = await orchestrator.handle_voice_transcript(event.content)
            source = "command"
        else:
            response = await orchestrator.handle(event.content)
            source = "command"

        app.state.registry.touch(session_id)
        if response is None:
            await connection_manager.send_error(session_id, "Command dropped", "command_dropped")
            return
        await streaming_handler.send_response(session_id, response, source=source)

    def collect(session_id: str, running: Set[asyncio.Task]):
        def done(task: asyncio.Task):
            running.discard(task)
            if not task.cancelled() and task.exception() is not None:
                logger.error("WebSocket command failed", session_id=session_id, error=str(task.exception()))
        return done

    @app.websocket("/ws/agent/{session_id}")
    async def agent_websocket(websocket: WebSocket, session_id: str):
        """Command and progress channel for one session.

        Commands run in the background so the socket keeps reading; a command
        sent while another is running is dropped by the orchestrator.
        """

        await connection_manager.connect(websocket, session_id)
        orchestrator = await app.state.registry.get_or_create(session_id)
        running: Set[asyncio.Task] = set()

        try:
            task = orchestrator.current_task
            if task is not None:
                await streaming_handler.handle_task_update(session_id, task)
            await streaming_handler.send_progress(session_id, "Agent ready")

            while True:
                text = await websocket.receive_text()
                try:
                    event = parse(json.loads(text))
                except json.JSONDecodeError as e:
                    await connection_manager.send_error(session_id, f"Invalid JSON: {e}", "invalid_message")
                    continue
                except LookupError as e:
                    await connection_manager.send_error(session_id, str(e), "unsupported_event")
                    continue
                except ValidationError as e:
                    await connection_manager.send_error(session_id, f"Invalid message: {e}", "invalid_message")
                    continue

                if isinstance(event, ClearHistory):
                    await orchestrator.clear_history()
                    await streaming_handler.send_progress(session_id, "History cleared")
                    continue

                command = asyncio.create_task(run_command(session_id, orchestrator, event))
                running.add(command)
                command.add_done_callback(collect(session_id, running))
                # Let the command claim the busy flag before the next frame is read
                await asyncio.sleep(0)

        except WebSocketDisconnect:
            logger.info("Client disconnected", session_id=session_id, pending_commands=len(running))
        finally:
            await connection_manager.disconnect(websocket, session_id)

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "active_connections": connection_manager.connection_count(),
            "connected_sessions": len(connection_manager.get_active_sessions()),
            "sessions": len(app.state.registry.sessions),
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    @app.get("/metrics")
    async def get_metrics():
        return metrics.get_metrics_summary()

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
