import asyncio
import os
import signal
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.background import BackgroundTask

from app.api.dispatch import build_api_router, envelope_response
from app.api.routes import build_registry
from app.core.config import settings
from app.core.logging_config import get_logger, setup_logging
from app.core.rate_limit import FixedWindowRateLimiter, build_rate_limiter
from app.db.schema_check import ensure_tables

logger = get_logger(__name__)

FatalHandler = Callable[[BaseException], None]


def stop_process(exc: BaseException) -> None:
    """Unexpected faults are fatal: ask the server to shut down once the 500 has been sent."""
    logger.critical(f"Stopping after unhandled {type(exc).__name__}")
    os.kill(os.getpid(), signal.SIGTERM)


def create_app(
    rate_limiter: Optional[FixedWindowRateLimiter] = None,
    on_fatal: FatalHandler = stop_process,
) -> FastAPI:
    setup_logging()
    limiter = rate_limiter or build_rate_limiter(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if settings.create_tables_on_startup:
            await ensure_tables()
        cleanup = asyncio.create_task(limiter.run_cleanup(settings.rate_limit_cleanup_seconds))
        logger.info("School administration API started")
        try:
            yield
        finally:
            cleanup.cancel()
            try:
                await cleanup
            except asyncio.CancelledError:
                pass
            logger.info("School administration API stopped")

    app = FastAPI(title="School Administration API", lifespan=lifespan)
    app.state.rate_limiter = limiter

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def unhandled_exception(request: Request, exc: Exception) -> JSONResponse:
        logger.opt(exception=exc).critical(f"Unhandled error on {request.method} {request.url.path}")
        response = envelope_response(status.HTTP_500_INTERNAL_SERVER_ERROR, errors="Internal server error")
        response.background = BackgroundTask(on_fatal, exc)
        return response

    @app.get("/health", include_in_schema=False)
    async def health() -> dict:
        return {"ok": True, "data": {"status": "healthy"}}

    # Routers
    app.include_router(build_api_router(build_registry(), limiter))

    return app


app = create_app()
