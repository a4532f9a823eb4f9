from typing import List, Protocol
import asyncio
import structlog

from domain.models.task_state import ConversationEntry

logger = structlog.get_logger(__name__)


class ConversationLog(Protocol):
    """Append-only store for conversation turns."""

    async def append(self, entry: ConversationEntry) -> None:  # pragma: no cover - interface
        """Persist one turn"""


class InMemoryConversationLog:
    """Conversation log kept in process memory, oldest entries rotated out"""

    def __init__(self, max_entries: int = 10000):
        self.max_entries = max_entries
        self.entries: List[ConversationEntry] = []
        self._lock = asyncio.Lock()

    async def append(self, entry: ConversationEntry) -> None:
        async with self._lock:
            self.entries.append(entry)
            if len(self.entries) > self.max_entries:
                self.entries = self.entries[-self.max_entries:]
        logger.debug("Conversation entry appended", role=entry.role.value, session_id=entry.session_id)
