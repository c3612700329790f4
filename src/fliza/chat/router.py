"""FastAPI router for chat, vision and design endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from fliza.persistence import PersistenceAdapter
from fliza.vision import DesignClient, VisionClient

from .models import (
    ChatRequest,
    ChatResponse,
    DesignRequest,
    Message,
    VisionRequest,
)
from .service import ChatService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])


def _missing(field: str = "Missing fields") -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": field})


# ============================================================================
# Dependencies (services are attached to app.state by the lifespan)
# ============================================================================


def get_chat_service(request: Request) -> ChatService:
    service = getattr(request.app.state, "chat_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Chat service not initialized")
    return service


def get_persistence(request: Request) -> PersistenceAdapter:
    persistence = getattr(request.app.state, "persistence", None)
    if persistence is None:
        raise HTTPException(status_code=503, detail="Persistence not initialized")
    return persistence


def get_vision_client(request: Request) -> VisionClient:
    client = getattr(request.app.state, "vision_client", None)
    if client is None:
        raise HTTPException(status_code=503, detail="Vision is not configured")
    return client


def get_design_client(request: Request) -> DesignClient:
    client = getattr(request.app.state, "design_client", None)
    if client is None:
        raise HTTPException(status_code=503, detail="Design is not configured")
    return client


# ============================================================================
# Endpoints
# ============================================================================


@router.post("/chat", response_model=None)
async def chat(
    body: ChatRequest,
    service: ChatService = Depends(get_chat_service),
):
    """Send one user message to the agent (or trigger a design)."""
    if not body.message or not body.user_id:
        return _missing()

    result = await service.handle(
        body.user_id,
        body.message,
        vision_context=body.vision_context,
        attached_image=body.attached_image,
    )
    response = ChatResponse.from_result(result)
    return response.model_dump(by_alias=True, exclude_none=True, mode="json")


@router.post("/vision", response_model=None)
async def vision(
    body: VisionRequest,
    client: VisionClient = Depends(get_vision_client),
):
    """Describe a camera frame."""
    if not body.image:
        return _missing("No image provided")

    analysis = await client.analyze(body.image)
    return {
        "success": True,
        "analysis": analysis.analysis,
        "timestamp": analysis.timestamp.isoformat(),
    }


@router.post("/design", response_model=None)
async def design(
    body: DesignRequest,
    client: DesignClient = Depends(get_design_client),
):
    """Generate a design from a camera frame."""
    if not body.image:
        return _missing("No image provided")

    result = await client.generate(body.image, body.prompt)
    return {"success": True, "image": result.image, "text": result.text}


@router.get("/messages/{user_id}", response_model=list[Message])
async def history(
    user_id: str,
    persistence: PersistenceAdapter = Depends(get_persistence),
) -> list[Message]:
    """Stored history for a user, oldest first. Always empty for guests."""
    return await persistence.query_history(user_id)
