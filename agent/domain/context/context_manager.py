from typing import Optional
import structlog

from domain.models.task_state import ConversationEntry, ConversationRole
from domain.reasoning.prompts import format_transcript
from .memory.conversation_log import ConversationLog, InMemoryConversationLog
from .memory.runtime_memory import RuntimeMemory

logger = structlog.get_logger(__name__)


class ContextManager:
    """Records conversation turns and assembles the conversation window"""

    def __init__(
        self,
        runtime_memory: Optional[RuntimeMemory] = None,
        conversation_log: Optional[ConversationLog] = None
    ):
        self.runtime_memory = runtime_memory or RuntimeMemory()
        self.conversation_log = conversation_log or InMemoryConversationLog()

    async def record_turn(
        self,
        session_id: str,
        role: ConversationRole,
        content: str,
        persist: bool = True
    ) -> ConversationEntry:
        """Add a turn to the transcript, and to the conversation log when ``persist``"""

        entry = ConversationEntry(role=role, content=content, session_id=session_id)
        await self.runtime_memory.add_to_conversation(entry)
        if persist:
            await self.conversation_log.append(entry)
        return entry

    async def build_conversation_context(self, session_id: str, window: int, assistant_name: str) -> str:
        """Render the prior ``window`` turns plus the latest one"""

        # The latest user turn is already in the transcript
        entries = await self.runtime_memory.get_recent(session_id, window + 1)
        return format_transcript(
            [{"role": entry.role.value, "content": entry.content} for entry in entries],
            assistant_name
        )

    async def clear_session_context(self, session_id: str):
        """Clear all context for a session"""

        logger.info("Clearing session context", session_id=session_id)
        await self.runtime_memory.clear_session(session_id)
