"""
FastAPI application factory.

Every route lives under ``/api``; remote libraries reach the protocol
endpoints at the same paths. Coordinator exceptions are translated here,
once, into HTTP status codes:

- NotFoundError -> 404
- InvalidStateError, ValueError -> 400
- DuplicateError -> 409
- ExternalServiceError -> 502
- DatabaseError -> 500
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..errors import (
    DatabaseError,
    DuplicateError,
    ExternalServiceError,
    InvalidStateError,
    LibraryError,
    NotFoundError,
)
from ..services.container import ServiceContainer, get_services
from .routers import catalog, loans, peers, sales, search

logger = logging.getLogger(__name__)

API_PREFIX = "/api"

STATUS_CODES: dict[type[LibraryError], int] = {
    NotFoundError: 404,
    InvalidStateError: 400,
    DuplicateError: 409,
    ExternalServiceError: 502,
    DatabaseError: 500,
}


async def library_error_handler(request: Request, exc: LibraryError) -> JSONResponse:
    status_code = next(
        (code for cls, code in STATUS_CODES.items() if isinstance(exc, cls)), 500
    )
    if isinstance(exc, ExternalServiceError):
        logger.warning("%s %s: %s", request.method, request.url.path, exc)
    elif status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=400, content={"detail": str(exc)})


def create_app(services: ServiceContainer | None = None) -> FastAPI:
    """
    Build the REST application.

    Args:
        services: Container to serve; the process-wide one when None. The
            app only closes a container it did not receive.
    """
    owns_services = services is None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        container = app.state.services or get_services()
        app.state.services = container
        container.db.init_database()
        logger.info("Serving %s at %s", container.config.library_name, container.config.public_url)
        try:
            yield
        finally:
            if owns_services:
                await container.aclose()

    app = FastAPI(title="Peer Library", version="0.1.0", lifespan=lifespan)
    app.state.services = services

    app.add_exception_handler(LibraryError, library_error_handler)
    app.add_exception_handler(ValueError, value_error_handler)

    for module in (loans, catalog, sales, peers, search):
        app.include_router(module.router, prefix=API_PREFIX)

    return app
