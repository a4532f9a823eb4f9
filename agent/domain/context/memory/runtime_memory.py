from typing import Dict, List
import asyncio
from collections import defaultdict

from domain.models.task_state import ConversationEntry


class RuntimeMemory:
    """Bounded in-process transcript for active sessions"""

    def __init__(self, max_messages: int = 100):
        self.max_messages = max_messages
        self.conversations: Dict[str, List[ConversationEntry]] = defaultdict(list)
        self._lock = asyncio.Lock()

    async def add_to_conversation(self, entry: ConversationEntry):
        """Add a message to conversation history"""

        async with self._lock:
            conversation = self.conversations[entry.session_id]
            conversation.append(entry)

            if len(conversation) > self.max_messages:
                self.conversations[entry.session_id] = conversation[-self.max_messages:]

    async def get_conversation_history(self, session_id: str) -> List[ConversationEntry]:
        """Get conversation history for a session"""

        async with self._lock:
            return list(self.conversations.get(session_id, []))

    async def get_recent(self, session_id: str, limit: int) -> List[ConversationEntry]:
        """Get the last ``limit`` entries of a session"""

        history = await self.get_conversation_history(session_id)
        if limit <= 0:
            return []
        return history[-limit:]

    async def clear_session(self, session_id: str):
        """Clear all data for a session"""

        async with self._lock:
            self.conversations.pop(session_id, None)
