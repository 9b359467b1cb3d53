"""Exception handlers producing the ``{"detail": {message, code, details}}`` envelope."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .core.exceptions import DependencyFailureException, DomainException, RepositoryException

logger = logging.getLogger(__name__)


def domain_error_response(exc: DomainException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": {"message": exc.message, "code": exc.code, "details": exc.details}},
        headers=exc.headers(),
    )


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
        return domain_error_response(exc)

    @app.exception_handler(RepositoryException)
    async def repository_exception_handler(
        request: Request, exc: RepositoryException
    ) -> JSONResponse:
        logger.error(f"Unhandled store failure on {request.method} {request.url.path}: {exc}")
        return domain_error_response(
            DependencyFailureException("Booking store operation failed", code="STORE_UNAVAILABLE")
        )
