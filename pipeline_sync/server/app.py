"""FastAPI application factory."""

import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse

from .. import __version__
from ..context import AppContext
from ..exceptions import PipelineSyncError
from . import routes

logger = logging.getLogger(__name__)


def create_app(context: AppContext, manage_lifecycle: bool = False) -> FastAPI:
    """Create the HTTP app bound to ``context``.

    Args:
        context: Application context serving every request
        manage_lifecycle: Start the context on startup and close it on
            shutdown. Leave off when the caller owns the context.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if manage_lifecycle:
            await context.start()
        try:
            yield
        finally:
            if manage_lifecycle:
                await context.close()

    app = FastAPI(
        title="pipeline-sync",
        description="PR tracking and tracking-board reconciliation",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.context = context
    app.include_router(routes.router)

    @app.middleware("http")
    async def log_requests(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        start_time = time.time()
        response = await call_next(request)
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} "
            f"in {(time.time() - start_time) * 1000:.1f}ms"
        )
        return response

    @app.exception_handler(PipelineSyncError)
    async def pipeline_sync_error_handler(
        request: Request, exc: PipelineSyncError
    ) -> JSONResponse:
        logger.error(
            f"{type(exc).__name__} on {request.method} {request.url.path}: {exc}"
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": str(exc)},
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.exception(f"Unexpected error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": "Internal server error"},
        )

    return app
