from typing import Any
import json

from domain.reasoning.prompts import conversation_prompt, workspace_analysis_prompt
from domain.reasoning.service import ReasoningService
from .base_subagent import BaseSubAgent


DEFAULT_SIMPLE_RESPONSE = "I'm online and ready to assist, sir."
DEFAULT_ANALYSIS_RESPONSE = "Analysis complete."


def normalize_response(response: Any, default: str) -> str:
    """Turn whatever the service returned into assistant text"""

    if isinstance(response, str):
        return response if response else default
    if isinstance(response, dict) and response.get("response"):
        return str(response["response"])
    if response:
        return json.dumps(response, ensure_ascii=False, default=str)
    return default


class DirectResponder(BaseSubAgent):
    """Single-turn answers that need no step tracking"""

    def __init__(self, reasoning_service: ReasoningService, assistant_name: str = "JARVIS"):
        super().__init__(
            name="direct_responder",
            reasoning_service=reasoning_service
        )
        self.assistant_name = assistant_name

    async def respond(self, conversation: str) -> str:
        """Answer the latest message of ``conversation``"""

        response = await self.invoke_text(conversation_prompt(self.assistant_name, conversation))
        return normalize_response(response, DEFAULT_SIMPLE_RESPONSE)

    async def analyze_image(self, image_url: str) -> str:
        """Inspect an already-uploaded workspace image"""

        response = await self.invoke_text(
            workspace_analysis_prompt(self.assistant_name),
            attachments=[image_url]
        )
        return normalize_response(response, DEFAULT_ANALYSIS_RESPONSE)
