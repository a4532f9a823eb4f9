from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from application.session_registry import SessionRegistry

router = APIRouter(prefix="/api/v1/agent")


class ChatRequest(BaseModel):
    message: str = Field(min_length=1)
    session_id: Optional[str] = None


class ImageAnalysisRequest(BaseModel):
    image_url: str = Field(min_length=1)
    session_id: Optional[str] = None


class AgentResponse(BaseModel):
    session_id: str
    response: Optional[str] = None
    dropped: bool = False


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


async def _resolve(registry: SessionRegistry, session_id: Optional[str]):
    if session_id is None:
        return await registry.create()
    return await registry.get_or_create(session_id)


@router.post("/session/create")
async def create_session(registry: SessionRegistry = Depends(get_registry)) -> Dict[str, str]:
    orchestrator = await registry.create()
    return {
        "session_id": orchestrator.session_id,
        "websocket_url": f"/ws/agent/{orchestrator.session_id}"
    }


# REST endpoint for the plain-text command entry point
@router.post("/chat", response_model=AgentResponse)
async def chat_endpoint(request: ChatRequest, registry: SessionRegistry = Depends(get_registry)):
    orchestrator = await _resolve(registry, request.session_id)
    response = await orchestrator.handle(request.message)
    registry.touch(orchestrator.session_id)
    return AgentResponse(session_id=orchestrator.session_id, response=response, dropped=response is None)


@router.post("/workspace/analyze", response_model=AgentResponse)
async def analyze_workspace(request: ImageAnalysisRequest, registry: SessionRegistry = Depends(get_registry)):
    orchestrator = await _resolve(registry, request.session_id)
    response = await orchestrator.analyze_workspace_image(request.image_url)
    registry.touch(orchestrator.session_id)
    return AgentResponse(session_id=orchestrator.session_id, response=response, dropped=response is None)


@router.get("/session/{session_id}/task")
async def get_task(session_id: str, registry: SessionRegistry = Depends(get_registry)) -> Dict[str, Any]:
    orchestrator = await registry.get(session_id)
    if orchestrator is None:
        raise HTTPException(status_code=404, detail="Unknown session")
    task = orchestrator.current_task
    return {"task": task.get_state_summary() if task is not None else None}


@router.delete("/session/{session_id}/history")
async def clear_history(session_id: str, registry: SessionRegistry = Depends(get_registry)) -> Dict[str, str]:
    orchestrator = await registry.get(session_id)
    if orchestrator is None:
        raise HTTPException(status_code=404, detail="Unknown session")
    await orchestrator.clear_history()
    return {"session_id": session_id, "status": "cleared"}
