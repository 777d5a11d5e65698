"""
PencilX AI API Router
Thin endpoints proxying chat, code, image and instant requests to the AI layer
"""

import time
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from pencilx.ai.exceptions import AIProviderError
from pencilx.ai.fallback import FallbackOrchestrator
from pencilx.ai.models import ChatMessage
from pencilx.ai.selector import ResponseSelector
from pencilx.ai.super_mode import SuperModePipeline
from pencilx.utils.errors import ServiceUnavailableError
from pencilx.utils.logger import get_logger

logger = get_logger(__name__)

CHAT_SYSTEM_PROMPT = (
    "You are a helpful AI assistant. Provide clear, accurate, and helpful responses."
)


class ChatRequest(BaseModel):
    message: str = Field(min_length=1)
    mode: Literal["chat", "code", "image", "super"] = "chat"
    language: Optional[str] = None
    history: List[ChatMessage] = Field(default_factory=list)


class ChatResponse(BaseModel):
    content: str
    type: str
    provider: Optional[str] = None
    model: Optional[str] = None
    image_url: Optional[str] = None
    reasoning: Optional[str] = None
    confidence: Optional[float] = None
    alternatives: List[str] = Field(default_factory=list)
    processing_steps: List[Dict[str, Any]] = Field(default_factory=list)
    model_usage: List[Dict[str, Any]] = Field(default_factory=list)


class InstantRequest(BaseModel):
    content: str = Field(min_length=1)
    source: Optional[str] = None


class InstantResponse(BaseModel):
    content: str
    model: str
    provider: str
    processing_time_ms: float
    confidence: Optional[float] = None
    alternatives: List[str] = Field(default_factory=list)
    source: str
    timestamp: float


def create_ai_router(get_orchestrator, get_selector, get_super_mode) -> APIRouter:
    """
    Factory function to create the AI router with its service dependencies

    Args:
        get_orchestrator: FastAPI dependency returning the FallbackOrchestrator
        get_selector: FastAPI dependency returning the ResponseSelector
        get_super_mode: FastAPI dependency returning the SuperModePipeline

    Returns:
        Configured APIRouter with AI endpoints
    """

    ai_router = APIRouter(prefix="/ai", tags=["ai"])

    @ai_router.post(
        "/chat",
        response_model=ChatResponse,
        status_code=status.HTTP_200_OK,
        summary="Chat, code, image or super mode request",
    )
    async def chat(
        payload: ChatRequest,
        orchestrator: FallbackOrchestrator = Depends(get_orchestrator),
        super_mode: SuperModePipeline = Depends(get_super_mode),
    ) -> ChatResponse:
        try:
            if payload.mode == "code":
                prompt = (
                    f"Generate {payload.language} code for: {payload.message}"
                    if payload.language
                    else payload.message
                )
                response = await orchestrator.generate_code(
                    prompt, payload.language or "javascript"
                )
                return ChatResponse(
                    content=response.content,
                    type="code",
                    provider=response.provider,
                    model=response.model,
                )

            if payload.mode == "image":
                image = await orchestrator.generate_image(payload.message)
                return ChatResponse(
                    content=f'I\'ve created an image for you: "{payload.message}"',
                    type="image",
                    provider=image.provider,
                    model=image.model,
                    image_url=image.url,
                )

            if payload.mode == "super":
                result = await super_mode.run(payload.message)
                return ChatResponse(
                    content=result.content,
                    type=result.type,
                    image_url=result.image_url,
                    reasoning=result.reasoning,
                    confidence=result.confidence,
                    alternatives=result.alternatives,
                    processing_steps=[s.model_dump() for s in result.processing_steps],
                    model_usage=[u.model_dump() for u in result.model_usage],
                )

            messages = [
                ChatMessage(role="system", content=CHAT_SYSTEM_PROMPT),
                *payload.history,
                ChatMessage(role="user", content=payload.message),
            ]
            response = await orchestrator.complete(messages)
            return ChatResponse(
                content=response.content,
                type="chat",
                provider=response.provider,
                model=response.model,
                confidence=response.confidence,
            )

        except AIProviderError as e:
            logger.error(f"Chat request failed ({payload.mode}): {e}")
            raise ServiceUnavailableError()

    @ai_router.post(
        "/instant",
        response_model=InstantResponse,
        status_code=status.HTTP_200_OK,
        summary="Instant multi-key answer",
    )
    async def instant(
        payload: InstantRequest,
        selector: ResponseSelector = Depends(get_selector),
    ) -> InstantResponse:
        try:
            response = await selector.select(payload.content)
        except AIProviderError as e:
            logger.error(f"Instant request failed: {e}")
            raise ServiceUnavailableError()

        return InstantResponse(
            content=response.content,
            model=response.model,
            provider=response.provider,
            processing_time_ms=response.processing_time_ms,
            confidence=response.confidence,
            alternatives=response.alternatives,
            source=payload.source or "unknown",
            timestamp=time.time(),
        )

    @ai_router.get("/status", summary="Provider and key status")
    async def provider_status(
        orchestrator: FallbackOrchestrator = Depends(get_orchestrator),
    ) -> Dict[str, Any]:
        return {
            "api_status": orchestrator.provider_status(),
            "timestamp": time.time(),
        }

    @ai_router.get("/gemini/status", summary="Gemini key status and health")
    async def gemini_status(
        selector: ResponseSelector = Depends(get_selector),
    ) -> Dict[str, Any]:
        return {
            "status": selector.gemini_status(),
            "health": await selector.gemini_health(),
            "timestamp": time.time(),
        }

    @ai_router.get("/health", summary="Per-provider health check")
    async def providers_health(
        orchestrator: FallbackOrchestrator = Depends(get_orchestrator),
    ) -> Dict[str, bool]:
        return await orchestrator.health_check()

    return ai_router
