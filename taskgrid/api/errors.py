"""Mapping of access-control failures to HTTP responses."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from taskgrid.services.errors import (
    AccessError,
    AlreadyOwnerError,
    ConflictError,
    DuplicateShareError,
    ForbiddenError,
    InvalidTargetError,
    NoChangeError,
    NotFoundError,
)

logger = logging.getLogger(__name__)

STATUS_CODES: dict[type[AccessError], int] = {
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    AlreadyOwnerError: status.HTTP_409_CONFLICT,
    DuplicateShareError: status.HTTP_409_CONFLICT,
    NoChangeError: status.HTTP_409_CONFLICT,
    InvalidTargetError: status.HTTP_400_BAD_REQUEST,
    ConflictError: status.HTTP_409_CONFLICT,
}


async def access_error_handler(request: Request, exc: AccessError) -> JSONResponse:
    status_code = STATUS_CODES.get(type(exc), status.HTTP_400_BAD_REQUEST)
    logger.info(f"{request.method} {request.url.path} -> {status_code} {exc.code}")
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "code": exc.code, "retryable": exc.retryable},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AccessError, access_error_handler)
