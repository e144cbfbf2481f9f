import json
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from jubilee.application.factory import JubileeFactory
from jubilee.application.service import AgentService
from jubilee.application.settings import JubileeSettings
from jubilee.core.domain.errors import ConfigurationError
from jubilee.core.domain.events import event_to_dict
from jubilee.core.domain.models import Mission

router = APIRouter()


def get_service(request: Request) -> AgentService:
    """Return the app's agent service, building it on first use."""
    service = request.app.state.service
    if service is None:
        try:
            service = AgentService(JubileeFactory(JubileeSettings.load_from_file()).build())
        except ConfigurationError as e:
            raise HTTPException(status_code=500, detail=str(e))
        request.app.state.service = service
    return service


class ChatRequest(BaseModel):
    """Request to answer a query through the Triune."""
    query: str = Field(..., min_length=1)


class DispatchRequest(BaseModel):
    """Request to dispatch one angel."""
    mission: str = Field(..., min_length=1)
    role: Optional[str] = None
    name: Optional[str] = None
    capabilities: Optional[List[str]] = None
    skill_focus: Optional[str] = None
    iterations: Optional[int] = Field(default=None, ge=1)
    task_id: Optional[int] = None


class DispatchResponse(BaseModel):
    report: str


class RoleResponse(BaseModel):
    key: str
    name: str
    domain: str
    capabilities: List[str]
    iterations: int
    required_mode: str
    enabled: bool


@router.post("/chat/stream")
async def chat_stream(request: ChatRequest, service: AgentService = Depends(get_service)):
    """Answer a query, streaming agent events via SSE."""

    async def event_generator():
        async for event in service.chat_stream(request.query):
            data = json.dumps(event_to_dict(event), ensure_ascii=False, default=str)
            yield f"data: {data}\n\n"

    return StreamingResponse(event_generator(), media_type="text/event-stream")


@router.post("/dispatch", response_model=DispatchResponse)
async def dispatch_angel(request: DispatchRequest, service: AgentService = Depends(get_service)):
    """Dispatch an angel and return its report (or refusal)."""
    report = await service.dispatch(Mission(**request.model_dump()))
    return DispatchResponse(report=report)


@router.get("/roles", response_model=List[RoleResponse])
async def list_roles(service: AgentService = Depends(get_service)):
    settings = service.runtime.settings
    return [
        RoleResponse(
            key=role.key,
            name=role.name,
            domain=role.domain,
            capabilities=list(role.default_capabilities),
            iterations=role.default_iterations,
            required_mode=role.required_mode.value,
            enabled=settings.mode_enabled(role.required_mode),
        )
        for role in service.runtime.roles
    ]
