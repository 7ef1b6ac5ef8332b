"""Map commerce error categories onto HTTP responses."""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from dealdesk.commerce.errors import (
    CommerceError,
    CommerceNotFoundError,
    CommercePermissionError,
    CommerceValidationError,
    StaleStateError,
)

from .logging_config import get_logger

logger = get_logger("dealdesk.errors")

# Checked in order; StaleStateError is also a validation error
_STATUS_BY_CATEGORY = (
    (StaleStateError, status.HTTP_409_CONFLICT),
    (CommerceNotFoundError, status.HTTP_404_NOT_FOUND),
    (CommercePermissionError, status.HTTP_403_FORBIDDEN),
    (CommerceValidationError, status.HTTP_400_BAD_REQUEST),
)


def status_for(exc: CommerceError) -> int:
    for category, code in _STATUS_BY_CATEGORY:
        if isinstance(exc, category):
            return code
    return status.HTTP_400_BAD_REQUEST


async def commerce_error_handler(request: Request, exc: CommerceError) -> JSONResponse:
    code = status_for(exc)
    logger.info(f"{request.method} {request.url.path} | {code} | {type(exc).__name__}: {exc.message}")
    return JSONResponse(status_code=code, content={"detail": exc.message, "field": exc.field})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CommerceError, commerce_error_handler)
