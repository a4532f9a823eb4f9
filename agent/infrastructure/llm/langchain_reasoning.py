from typing import Any, Dict, List, Optional, Union
import structlog
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage

from domain.reasoning.service import ReasoningRequest, ReasoningResponse, ReasoningServiceError
from infrastructure.config.settings import ReasoningSettings

logger = structlog.get_logger(__name__)


class LangChainReasoningService:
    """Reasoning service backed by a LangChain chat model"""

    def __init__(self, model: Optional[BaseChatModel] = None, settings: Optional[ReasoningSettings] = None):
        self.settings = settings or ReasoningSettings()
        self.model = model or self._create_model()

    def _create_model(self) -> BaseChatModel:
        """Instantiate the configured provider model"""

        from langchain.chat_models import init_chat_model

        kwargs: Dict[str, Any] = {"temperature": self.settings.temperature}
        if self.settings.timeout is not None:
            kwargs["timeout"] = self.settings.timeout
        logger.info("Initializing chat model", model=self.settings.model)
        return init_chat_model(self.settings.model, **kwargs)

    async def invoke(self, request: ReasoningRequest) -> ReasoningResponse:
        """Send one request and return text or a structured mapping"""

        message = HumanMessage(content=self._build_content(request))

        try:
            if request.response_schema:
                runnable = self.model.with_structured_output(request.response_schema)
                result = await runnable.ainvoke([message])
                return result if isinstance(result, dict) else self._to_mapping(result)

            result = await self.model.ainvoke([message])
        except ReasoningServiceError:
            raise
        except Exception as e:
            logger.error("Reasoning request failed", error=str(e))
            raise ReasoningServiceError(f"Reasoning request failed: {e}") from e

        return self._extract_text(result.content)

    def _build_content(self, request: ReasoningRequest) -> Union[str, List[Dict[str, Any]]]:
        if not request.attachments:
            return request.prompt

        content: List[Dict[str, Any]] = [{"type": "text", "text": request.prompt}]
        for uri in request.attachments:
            content.append({"type": "image_url", "image_url": {"url": uri}})
        return content

    @staticmethod
    def _to_mapping(result: Any) -> Any:
        if hasattr(result, "model_dump"):
            return result.model_dump()
        return result

    @staticmethod
    def _extract_text(content: Any) -> str:
        """Flatten chat model content blocks into plain text"""

        if isinstance(content, str):
            return content
        if isinstance(content, list):
            parts = []
            for block in content:
                if isinstance(block, str):
                    parts.append(block)
                elif isinstance(block, dict) and block.get("type") == "text":
                    parts.append(block.get("text", ""))
            return "".join(parts)
        return str(content)
