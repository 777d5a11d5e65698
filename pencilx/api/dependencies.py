"""
PencilX API Dependencies
FastAPI dependency injection for the shared AI services
"""

from fastapi import Request

from pencilx.ai.fallback import FallbackOrchestrator
from pencilx.ai.selector import ResponseSelector
from pencilx.ai.super_mode import SuperModePipeline


def get_orchestrator(request: Request) -> FallbackOrchestrator:
    return request.app.state.orchestrator


def get_selector(request: Request) -> ResponseSelector:
    return request.app.state.selector


def get_super_mode(request: Request) -> SuperModePipeline:
    return request.app.state.super_mode
