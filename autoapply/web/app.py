"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from autoapply.errors import (
    CycleInProgress,
    DispatchFailure,
    JobNotFound,
    StateViolation,
    TransientProviderError,
)
from autoapply.orchestrator import Orchestrator

from .jobs import router as jobs_router
from .operations import router as operations_router

logger = logging.getLogger("autoapply.web")

# Most specific first; JobNotFound is a StateViolation
ERROR_STATUS = (
    (JobNotFound, 404),
    (StateViolation, 409),
    (CycleInProgress, 409),
    (DispatchFailure, 502),
    (TransientProviderError, 503),
)


def _error_handler(status_code: int):
    async def handler(request: Request, exc: Exception) -> JSONResponse:
        logger.info("%s %s -> %d: %s", request.method, request.url.path, status_code, exc)
        return JSONResponse(
            status_code=status_code,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )
    return handler


def create_app(orchestrator: Orchestrator, manage_scheduler: bool = True) -> FastAPI:
    """Build the API around an already-constructed orchestrator.

    With ``manage_scheduler`` the app's lifespan starts the background
    scheduler on startup and stops it on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if manage_scheduler:
            orchestrator.start()
        yield
        if manage_scheduler:
            orchestrator.stop()

    app = FastAPI(title="AutoApply", lifespan=lifespan)
    app.state.orchestrator = orchestrator

    for exc_class, status_code in ERROR_STATUS:
        app.add_exception_handler(exc_class, _error_handler(status_code))

    app.include_router(jobs_router)
    app.include_router(operations_router)

    @app.get("/")
    def index():
        return {
            "service": "autoapply",
            "jobs": len(orchestrator.jobs()),
            "busy": orchestrator.busy,
        }

    return app
