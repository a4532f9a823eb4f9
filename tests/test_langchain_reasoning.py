from types import SimpleNamespace

import pytest
from pydantic import BaseModel

from domain.reasoning.prompts import SUMMARY_SCHEMA
from domain.reasoning.service import ReasoningRequest, ReasoningServiceError
from infrastructure.llm.langchain_reasoning import LangChainReasoningService


class StubStructuredRunnable:
    def __init__(self, model, schema):
        self.model = model
        self.schema = schema

    async def ainvoke(self, messages):
        self.model.structured_calls.append((self.schema, messages))
        return self.model.next_result()


class StubChatModel:
    """Just enough of a chat model for the service adapter"""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = []
        self.structured_calls = []

    def next_result(self):
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    def with_structured_output(self, schema):
        return StubStructuredRunnable(self, schema)

    async def ainvoke(self, messages):
        self.calls.append(messages)
        return SimpleNamespace(content=self.next_result())


class Summary(BaseModel):
    summary: str


@pytest.mark.asyncio
async def test_text_request_returns_message_content():
    model = StubChatModel("At your service, sir.")
    service = LangChainReasoningService(model=model)

    response = await service.invoke(ReasoningRequest(prompt="Hello"))

    assert response == "At your service, sir."
    assert model.calls[0][0].content == "Hello"
    assert model.structured_calls == []


@pytest.mark.asyncio
async def test_content_blocks_are_flattened():
    model = StubChatModel([{"type": "text", "text": "Part one. "}, {"type": "tool_use"}, "Part two."])

    response = await LangChainReasoningService(model=model).invoke(ReasoningRequest(prompt="Hi"))

    assert response == "Part one. Part two."


@pytest.mark.asyncio
async def test_structured_request_uses_schema():
    model = StubChatModel({"summary": "Done, sir."}, Summary(summary="Again, sir."))
    service = LangChainReasoningService(model=model)
    request = ReasoningRequest(prompt="Summarize", response_schema=SUMMARY_SCHEMA)

    assert await service.invoke(request) == {"summary": "Done, sir."}
    assert await service.invoke(request) == {"summary": "Again, sir."}
    assert model.structured_calls[0][0] is SUMMARY_SCHEMA
    assert model.calls == []


@pytest.mark.asyncio
async def test_attachments_become_image_blocks():
    model = StubChatModel("A soldering station.")

    await LangChainReasoningService(model=model).invoke(
        ReasoningRequest(prompt="Describe", attachments=["https://example.com/bench.jpg"])
    )

    assert model.calls[0][0].content == [
        {"type": "text", "text": "Describe"},
        {"type": "image_url", "image_url": {"url": "https://example.com/bench.jpg"}},
    ]


@pytest.mark.asyncio
async def test_provider_errors_are_wrapped():
    model = StubChatModel(ValueError("rate limited"))

    with pytest.raises(ReasoningServiceError) as excinfo:
        await LangChainReasoningService(model=model).invoke(ReasoningRequest(prompt="Hi"))

    assert isinstance(excinfo.value.__cause__, ValueError)
