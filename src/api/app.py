"""
FastAPI application factory.

* Registers routes for rides and admin.
* Builds the container and starts / stops the dispatch worker via
  lifespan events (unless a ready container is injected, as in tests).
* Maps domain errors to HTTP status codes.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from src.api.middleware import limiter
from src.api.routes import admin, rides
from src.config import settings
from src.container import Container, build_container
from src.domain.exceptions import (
    AssignmentConflict,
    DispatchError,
    InvalidTenant,
    InvalidTransition,
    RideNotFound,
)

logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: dict[type[DispatchError], int] = {
    InvalidTenant: 400,
    RideNotFound: 404,
    InvalidTransition: 409,
    AssignmentConflict: 409,
}


async def dispatch_error_handler(request: Request, exc: DispatchError) -> JSONResponse:
    status_code = next(
        (code for cls, code in _STATUS_BY_ERROR.items() if isinstance(exc, cls)),
        500,
    )
    if status_code == 500:
        logger.error("Unmapped domain error on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.code, "message": exc.message},
    )


def create_app(container: Optional[Container] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Build the container and start the dispatch worker; stop on shutdown."""
        owned = app.state.container is None
        if owned:
            app.state.container = build_container(settings)
        await app.state.container.scheduler.start()
        yield
        if owned:
            await app.state.container.aclose()
        else:
            await app.state.container.scheduler.stop()

    app = FastAPI(
        title="Taxi Dispatch & Pricing API",
        description=(
            "Multi-tenant ride-hailing core: fare estimation with routing "
            "fallback, surge pricing, nearby-driver search and race-free "
            "driver assignment."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.container = container

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(DispatchError, dispatch_error_handler)

    # Routers
    app.include_router(rides.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
