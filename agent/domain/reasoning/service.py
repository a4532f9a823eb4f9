from typing import Any, Dict, List, Optional, Protocol, Type, TypeVar, Union
from pydantic import BaseModel, Field, ValidationError


ReasoningResponse = Union[str, Dict[str, Any]]

ModelT = TypeVar("ModelT", bound=BaseModel)


class ReasoningServiceError(RuntimeError):
    """Raised when the reasoning service cannot produce a response."""


class MalformedResponseError(ReasoningServiceError):
    """Raised when a response does not match the shape that was requested."""


class ReasoningRequest(BaseModel):
    """Single request sent to the reasoning service"""
    prompt: str
    response_schema: Optional[Dict[str, Any]] = Field(
        None, description="JSON schema the structured response must follow"
    )
    attachments: List[str] = Field(default_factory=list, description="URIs of attached files")


class ReasoningService(Protocol):
    """Opaque request/response boundary to the generative model."""

    async def invoke(self, request: ReasoningRequest) -> ReasoningResponse:  # pragma: no cover - interface
        """Return free text, or a mapping when a response schema was given."""


def validate_response(payload: Any, model: Type[ModelT]) -> ModelT:
    """Convert an untyped structured payload into ``model`` or fail loudly."""

    if isinstance(payload, BaseModel):
        payload = payload.model_dump()
    if not isinstance(payload, dict):
        raise MalformedResponseError(
            f"Expected a structured {model.__name__} payload, got {type(payload).__name__}"
        )
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise MalformedResponseError(f"Invalid {model.__name__} payload: {exc}") from exc
