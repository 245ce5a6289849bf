"""
FastAPI application.

Mounts the routers under /api and maps pipeline errors to HTTP responses.
"""

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from shared.config import settings
from shared.errors import (
    AnalysisTimeoutError,
    ConfigError,
    PipelineError,
    RetryableError,
    UpstreamServiceError,
    ValidationError,
    WorkflowTransitionError,
)
from shared.logging import get_logger
from shared.repository import PipelineRepository
from api_gateway.dependencies import get_repository
from api_gateway.routes import analyses, catalog, variants, workflow
from api_gateway.services import queue_service

logger = get_logger(__name__)

# Checked in order, subclasses before their bases
ERROR_STATUS = {
    WorkflowTransitionError: 409,
    ValidationError: 422,
    AnalysisTimeoutError: 504,
    UpstreamServiceError: 502,
    RetryableError: 503,
    ConfigError: 500,
    PipelineError: 500,
}


async def pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
    status_code = next(
        (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)),
        500
    )
    log = logger.warning if status_code < 500 else logger.error
    log(
        f"Request failed: {exc.message}",
        extra={"path": request.url.path, "code": exc.code, "status_code": status_code}
    )
    body = {"error": exc.code, "message": exc.message}
    if isinstance(exc, WorkflowTransitionError):
        body["current_state"] = exc.current_state
        body["target_state"] = exc.target_state
    return JSONResponse(status_code=status_code, content=body)


async def model_error_handler(request: Request, exc: PydanticValidationError) -> JSONResponse:
    logger.warning("Invalid payload", extra={"path": request.url.path, "error": str(exc)})
    return JSONResponse(
        status_code=422,
        content={"error": ValidationError.code, "message": "Invalid payload", "details": exc.errors(include_url=False, include_context=False)}
    )


def create_app() -> FastAPI:
    app = FastAPI(title="Ad Variant Studio", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.environment == "development" else [],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(PipelineError, pipeline_error_handler)
    app.add_exception_handler(PydanticValidationError, model_error_handler)

    app.include_router(workflow.router, prefix="/api", tags=["workflow"])
    app.include_router(analyses.router, prefix="/api", tags=["analyses"])
    app.include_router(catalog.router, prefix="/api", tags=["catalog"])
    app.include_router(variants.router, prefix="/api", tags=["variants"])

    @app.get("/health")
    async def health():
        return {"status": "ok", "environment": settings.environment}

    @app.get("/health/ready")
    async def readiness(repository: PipelineRepository = Depends(get_repository)):
        """Check the database and the job queue."""
        checks = {
            "database": await repository.db.health_check(),
            "redis": await queue_service.redis_client.health_check(),
        }
        ready = all(checks.values())
        if not ready:
            logger.warning("Readiness check failed", extra=checks)
        return JSONResponse(
            status_code=200 if ready else 503,
            content={"status": "ready" if ready else "unavailable", "checks": checks}
        )

    return app


app = create_app()
