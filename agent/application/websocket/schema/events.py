from typing import Dict, Any, Optional, Literal
from pydantic import BaseModel, Field
from datetime import datetime, timezone
from enum import Enum


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EventType(str, Enum):
    """WebSocket event types"""
    # Server -> client
    CONNECTION = "connection"
    RESPONSE = "response"
    TASK_UPDATE = "task_update"
    PROGRESS = "progress"
    ERROR = "error"
    # Client -> server
    USER_MESSAGE = "user_message"
    ANALYZE_WORKSPACE = "analyze_workspace"
    CLEAR_HISTORY = "clear_history"


class BaseEvent(BaseModel):
    """Base event model for all WebSocket messages"""
    type: EventType
    timestamp: datetime = Field(default_factory=utcnow)
    session_id: Optional[str] = None


class ConnectionEvent(BaseEvent):
    """Connection status event"""
    type: Literal[EventType.CONNECTION] = EventType.CONNECTION
    status: Literal["connected", "disconnected"]


class ResponseEvent(BaseEvent):
    """Assistant text for a handled command"""
    type: Literal[EventType.RESPONSE] = EventType.RESPONSE
    payload: str
    source: Literal["command", "image_analysis"] = "command"


class TaskUpdateEvent(BaseEvent):
    """Task snapshot after a transition; ``payload`` is ``None`` once the task is gone"""
    type: Literal[EventType.TASK_UPDATE] = EventType.TASK_UPDATE
    payload: Optional[Dict[str, Any]] = None


class ProgressData(BaseModel):
    status: str
    step_index: Optional[int] = None
    total_steps: Optional[int] = None


class ProgressEvent(BaseEvent):
    """Short human-readable status line"""
    type: Literal[EventType.PROGRESS] = EventType.PROGRESS
    payload: ProgressData


class ErrorEvent(BaseEvent):
    type: Literal[EventType.ERROR] = EventType.ERROR
    payload: Dict[str, Any]
    error_code: Optional[str] = None


class UserMessage(BaseEvent):
    """Typed or spoken command from the client"""
    type: Literal[EventType.USER_MESSAGE] = EventType.USER_MESSAGE
    content: str
    source: Literal["text", "voice"] = "text"
    metadata: Optional[Dict[str, Any]] = None


class AnalyzeWorkspace(BaseEvent):
    """Request to inspect an image that was already uploaded"""
    type: Literal[EventType.ANALYZE_WORKSPACE] = EventType.ANALYZE_WORKSPACE
    image_url: str = Field(min_length=1)


class ClearHistory(BaseEvent):
    type: Literal[EventType.CLEAR_HISTORY] = EventType.CLEAR_HISTORY


CLIENT_EVENTS = {
    EventType.USER_MESSAGE.value: UserMessage,
    EventType.ANALYZE_WORKSPACE.value: AnalyzeWorkspace,
    EventType.CLEAR_HISTORY.value: ClearHistory,
}
