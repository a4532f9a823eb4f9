from abc import ABC
from typing import Dict, Any, List, Optional, Type, TypeVar
import time
from pydantic import BaseModel

from domain.reasoning.service import (
    ReasoningRequest, ReasoningResponse, ReasoningService, validate_response
)
from infrastructure.observability.logging import metrics, orchestration_logger

ModelT = TypeVar("ModelT", bound=BaseModel)


class BaseSubAgent(ABC):
    """Base class for components that talk to the reasoning service.

    ``name`` labels this component's reasoning-call logs and its
    ``reasoning.<name>`` latency metric.
    """

    def __init__(self, name: str, reasoning_service: ReasoningService):
        self.name = name
        self.reasoning_service = reasoning_service

    async def invoke_structured(
        self,
        prompt: str,
        schema: Dict[str, Any],
        model: Type[ModelT],
        attachments: Optional[List[str]] = None
    ) -> ModelT:
        """Request a schema-conforming response and validate it into ``model``"""

        request = ReasoningRequest(prompt=prompt, response_schema=schema, attachments=attachments or [])
        payload = await self._invoke(request)
        return validate_response(payload, model)

    async def invoke_text(self, prompt: str, attachments: Optional[List[str]] = None) -> ReasoningResponse:
        """Request a free-text response"""

        return await self._invoke(ReasoningRequest(prompt=prompt, attachments=attachments or []))

    async def _invoke(self, request: ReasoningRequest) -> ReasoningResponse:
        started = time.perf_counter()
        try:
            response = await self.reasoning_service.invoke(request)
        except Exception as e:
            orchestration_logger.log_reasoning_call(
                component=self.name,
                structured=request.response_schema is not None,
                attachments=len(request.attachments),
                duration_ms=(time.perf_counter() - started) * 1000,
                success=False,
                error=str(e)
            )
            raise

        duration_ms = (time.perf_counter() - started) * 1000
        metrics.record_latency(f"reasoning.{self.name}", duration_ms)
        orchestration_logger.log_reasoning_call(
            component=self.name,
            structured=request.response_schema is not None,
            attachments=len(request.attachments),
            duration_ms=duration_ms
        )
        return response
