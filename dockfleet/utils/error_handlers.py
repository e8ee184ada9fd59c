"""Exception handlers for dockfleet's HTTP routes.

WebSocket sessions report failures in-band as ``error`` events; these
handlers only shape the JSON body of failed HTTP requests.
"""

import traceback
from typing import Any, Dict, Union

import structlog
from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from ..models.errors import DockfleetException, ErrorDetail, ErrorResponse, ErrorType
from .id_generator import generate_request_id

logger = structlog.get_logger(__name__)

STATUS_ERROR_TYPES = {
    400: ErrorType.VALIDATION,
    404: ErrorType.RESOURCE_NOT_FOUND,
    409: ErrorType.RESOURCE_CONFLICT,
    422: ErrorType.VALIDATION,
    502: ErrorType.EXTERNAL_SERVICE,
    503: ErrorType.SERVICE_UNAVAILABLE,
}


def _request_context(request: Request, request_id: str) -> Dict[str, Any]:
    client = request.client
    return {
        "request_id": request_id,
        "path": request.url.path,
        "method": request.method,
        "client_ip": getattr(client, "host", None) or "unknown",
    }


def _respond(status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def dockfleet_exception_handler(request: Request, exc: DockfleetException) -> JSONResponse:
    """Render a DockfleetException; 5xx are logged as errors, the rest as warnings."""
    exc.request_id = exc.request_id or generate_request_id()
    context = _request_context(request, exc.request_id)
    if exc.details:
        context["details"] = [detail.model_dump(exclude_none=True) for detail in exc.details]

    log = logger.error if exc.status_code >= 500 else logger.warning
    log(exc.message, error_type=exc.error_type.value, status_code=exc.status_code, **context)

    return _respond(exc.status_code, exc.to_response())


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    request_id = generate_request_id()
    error_type = STATUS_ERROR_TYPES.get(exc.status_code, ErrorType.INTERNAL_SERVER)
    logger.warning("HTTP error", status_code=exc.status_code, detail=exc.detail, **_request_context(request, request_id))

    return _respond(exc.status_code, ErrorResponse(error=str(exc.detail), error_type=error_type, request_id=request_id))


async def validation_exception_handler(
    request: Request, exc: Union[RequestValidationError, PydanticValidationError]
) -> JSONResponse:
    """Report every invalid field, with its location joined by ' -> '."""
    request_id = generate_request_id()
    details = [
        ErrorDetail(
            field=" -> ".join(str(part) for part in error["loc"]),
            message=error["msg"],
            code=error["type"],
        )
        for error in exc.errors()
    ]
    logger.warning(
        "Request validation failed",
        fields=[detail.field for detail in details],
        **_request_context(request, request_id),
    )

    body = ErrorResponse(
        error="Request validation failed",
        error_type=ErrorType.VALIDATION,
        details=details,
        request_id=request_id,
    )
    return _respond(422, body)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort. The exception text stays in the log, never in the body."""
    request_id = generate_request_id()
    logger.error(
        "Unhandled exception",
        exception_type=type(exc).__name__,
        exception_message=str(exc),
        traceback=traceback.format_exc(),
        **_request_context(request, request_id),
    )

    body = ErrorResponse(
        error="An unexpected error occurred",
        error_type=ErrorType.INTERNAL_SERVER,
        request_id=request_id,
    )
    return _respond(500, body)


def register_error_handlers(app) -> None:
    """Install every handler on a FastAPI app."""
    app.add_exception_handler(DockfleetException, dockfleet_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(PydanticValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
