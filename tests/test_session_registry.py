import asyncio

import pytest

from application.session_registry import SessionRegistry
from domain.context.memory.conversation_log import InMemoryConversationLog
from domain.models.task_state import ConversationEntry, ConversationRole
from infrastructure.config.settings import OrchestratorSettings


class IdleSocket:
    async def accept(self):
        pass

    async def send_json(self, data):
        pass

    async def close(self):
        pass


def make_registry(reasoning, idle_seconds):
    return SessionRegistry(
        lambda: reasoning,
        settings=OrchestratorSettings(step_delay_seconds=0, session_idle_seconds=idle_seconds),
    )


async def transcript(registry, session_id):
    return await registry.context_manager.runtime_memory.get_conversation_history(session_id)


@pytest.mark.asyncio
async def test_idle_sessions_are_released(reasoning):
    registry = make_registry(reasoning, idle_seconds=0)
    reasoning.text("Hello, sir.")
    first = await registry.get_or_create("s1")
    await first.handle("Hello")

    await registry.get_or_create("s2")

    assert set(registry.sessions) == {"s2"}
    assert await transcript(registry, "s1") == []
    assert await registry.get("s1") is None


@pytest.mark.asyncio
async def test_recent_sessions_are_kept(reasoning):
    registry = make_registry(reasoning, idle_seconds=1800)
    first = await registry.get_or_create("s1")

    await registry.get_or_create("s2")

    assert await registry.get("s1") is first
    assert set(registry.sessions) == {"s1", "s2"}


@pytest.mark.asyncio
async def test_connected_sessions_are_kept(reasoning):
    registry = make_registry(reasoning, idle_seconds=0)
    await registry.get_or_create("s1")
    await registry.streaming_handler.connection_manager.connect(IdleSocket(), "s1")

    assert await registry.prune() == []
    assert "s1" in registry.sessions


@pytest.mark.asyncio
async def test_busy_sessions_are_kept(reasoning):
    registry = make_registry(reasoning, idle_seconds=0)
    gate = asyncio.Event()
    original_invoke = reasoning.invoke

    async def gated_invoke(request):
        await gate.wait()
        return await original_invoke(request)

    reasoning.invoke = gated_invoke
    reasoning.text("Done.")
    orchestrator = await registry.get_or_create("s1")
    running = asyncio.create_task(orchestrator.handle("Run diagnostics"))
    await asyncio.sleep(0)

    assert await registry.prune() == []

    gate.set()
    assert await running == "Done."
    assert await registry.prune() == ["s1"]


@pytest.mark.asyncio
async def test_conversation_log_rotates_oldest_entries():
    log = InMemoryConversationLog(max_entries=3)
    for index in range(5):
        await log.append(ConversationEntry(role=ConversationRole.USER, content=f"m{index}", session_id="s1"))

    assert [entry.content for entry in log.entries] == ["m2", "m3", "m4"]
