"""
PencilX AI Gateway - Main Application
FastAPI service proxying chat, code, image and instant requests to LLM vendors
"""

import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from pencilx import __version__
from pencilx.ai.config import AIConfig, get_ai_config
from pencilx.ai.fallback import FallbackOrchestrator, build_orchestrator
from pencilx.ai.selector import ResponseSelector, build_selector
from pencilx.ai.super_mode import SuperModePipeline
from pencilx.api.dependencies import get_orchestrator, get_selector, get_super_mode
from pencilx.api.router import create_ai_router
from pencilx.utils.config import get_settings
from pencilx.utils.errors import ErrorResponse, PencilXException
from pencilx.utils.logging_config import setup_logging
from pencilx.utils.metrics import render_metrics

settings = get_settings()
logger = setup_logging(
    settings.service_name, log_level=settings.log_level, json_logs=settings.json_logs
)


def create_app(
    orchestrator: Optional[FallbackOrchestrator] = None,
    selector: Optional[ResponseSelector] = None,
    config: Optional[AIConfig] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        orchestrator: Pre-built orchestrator (tests); built from config otherwise
        selector: Pre-built instant selector; derived from the orchestrator otherwise
        config: AI configuration; defaults to the environment
    """
    config = config or get_ai_config()
    orchestrator = orchestrator or build_orchestrator(config)
    selector = selector or build_selector(orchestrator, config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("PencilX AI Gateway starting up...")
        yield
        logger.info("PencilX AI Gateway shutting down...")
        await orchestrator.aclose()

    app = FastAPI(
        title="PencilX AI Gateway",
        description="Provider fallback, key rotation and instant answers",
        version=__version__,
        lifespan=lifespan,
        responses={
            503: {"model": ErrorResponse, "description": "AI Service Unavailable"},
        },
    )

    app.state.orchestrator = orchestrator
    app.state.selector = selector
    app.state.super_mode = SuperModePipeline(orchestrator)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(PencilXException)
    async def pencilx_exception_handler(request: Request, exc: PencilXException):
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error_code=exc.error_code, message=exc.message, details=exc.details
            ).model_dump(),
        )

    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        process_time = (time.time() - start_time) * 1000
        response.headers["X-Process-Time-Ms"] = str(round(process_time, 2))
        return response

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Liveness probe; does not call any provider"""
        return {"status": "healthy", "service": settings.service_name, "version": __version__}

    @app.get("/metrics", tags=["Health"])
    async def metrics_endpoint():
        """Prometheus metrics endpoint"""
        body, content_type = render_metrics()
        return Response(content=body, media_type=content_type)

    app.include_router(create_ai_router(get_orchestrator, get_selector, get_super_mode))

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.service_port)
