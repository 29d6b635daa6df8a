"""Translation of service errors into HTTP responses."""

import logging
from typing import TypeVar

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.services.result import Err, ErrorKind, FieldError, Ok, Result
from src.services.validation import field_errors

logger = logging.getLogger(__name__)

T = TypeVar("T")

STATUS_BY_KIND = {
    ErrorKind.VALIDATION_FAILED: status.HTTP_400_BAD_REQUEST,
    ErrorKind.DUPLICATE_USERNAME: status.HTTP_409_CONFLICT,
    ErrorKind.DUPLICATE_EMAIL: status.HTTP_409_CONFLICT,
    ErrorKind.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.MISSING_TOKEN: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.INVALID_TOKEN: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
}

BEARER_KINDS = {ErrorKind.INVALID_CREDENTIALS, ErrorKind.MISSING_TOKEN, ErrorKind.INVALID_TOKEN}


class ServiceError(HTTPException):
    """HTTP exception raised from a service ``Err``."""

    def __init__(self, error: Err):
        headers = {"WWW-Authenticate": "Bearer"} if error.kind in BEARER_KINDS else None
        super().__init__(
            status_code=STATUS_BY_KIND[error.kind], detail=error.detail, headers=headers
        )
        self.error = error


def unwrap(result: Result[T]) -> T:
    """Return the value of an ``Ok`` or raise ``ServiceError`` for an ``Err``."""
    match result:
        case Ok(value=value):
            return value
        case Err() as error:
            raise ServiceError(error)
    raise TypeError(f"Expected Ok or Err, got {type(result).__name__}")


def _validation_response(errors: list[FieldError]) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": "Validation failed",
            "errors": [{"field": e.field, "message": e.message} for e in errors],
        },
    )


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    error = exc.error
    if error.kind == ErrorKind.VALIDATION_FAILED:
        return _validation_response(error.errors)
    content = {"detail": error.detail}
    if error.field_name:
        content["field"] = error.field_name
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = field_errors(exc.errors())
    logger.warning(f"Validation failed for {request.method} {request.url.path}")
    return _validation_response(errors)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


def register_error_handlers(app: FastAPI) -> None:
    """Attach the error handlers to the application."""
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
