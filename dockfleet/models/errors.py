"""Error models and exception classes for dockfleet."""

import time
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ErrorType(str, Enum):
    """Error type enumeration."""

    VALIDATION = "validation"
    RESOURCE_NOT_FOUND = "resource_not_found"
    RESOURCE_CONFLICT = "resource_conflict"
    HOST_UNREACHABLE = "host_unreachable"
    ENGINE = "engine"
    STREAM = "stream"
    DEPLOYMENT = "deployment"
    PROTOCOL = "protocol"
    INTERNAL_SERVER = "internal_server"
    SERVICE_UNAVAILABLE = "service_unavailable"
    EXTERNAL_SERVICE = "external_service"


class ErrorDetail(BaseModel):
    """Detailed error information."""

    field: Optional[str] = Field(None, description="Field name for validation errors")
    message: str = Field(..., description="Human-readable error message")
    code: Optional[str] = Field(None, description="Machine-readable error code")


class ErrorResponse(BaseModel):
    """Standardized error response model for HTTP routes."""

    error: str = Field(..., description="Main error message")
    error_type: ErrorType = Field(..., description="Error category")
    details: Optional[List[ErrorDetail]] = Field(None, description="Additional error details")
    request_id: Optional[str] = Field(None, description="Request identifier for tracking")
    timestamp: float = Field(default_factory=time.time, description="Error timestamp")

    class Config:
        use_enum_values = True


# Custom Exception Classes


class DockfleetException(Exception):
    """Base exception for dockfleet."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.INTERNAL_SERVER,
        status_code: int = 500,
        details: Optional[List[ErrorDetail]] = None,
        request_id: Optional[str] = None,
    ):
        self.message = message
        self.error_type = error_type
        self.status_code = status_code
        self.details = details or []
        self.request_id = request_id
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert exception to error response model."""
        return ErrorResponse(
            error=self.message,
            error_type=self.error_type,
            details=self.details if self.details else None,
            request_id=self.request_id,
        )


class HostUnreachableError(DockfleetException):
    """The engine on a host could not be reached. Fatal for a session."""

    def __init__(self, host: str, reason: str = "", **kwargs):
        message = f"Failed to connect to Docker on {host}"
        if reason:
            message += f": {reason}"
        self.host = host
        super().__init__(
            message=message,
            error_type=ErrorType.HOST_UNREACHABLE,
            status_code=503,
            **kwargs,
        )


class EngineError(DockfleetException):
    """An engine API call failed."""

    def __init__(self, message: str, engine_status: Optional[int] = None, **kwargs):
        self.engine_status = engine_status
        super().__init__(
            message=message,
            error_type=ErrorType.ENGINE,
            status_code=502,
            **kwargs,
        )


class EngineConflictError(EngineError):
    """The engine reported that the object already exists (HTTP 409)."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message=message, engine_status=409, **kwargs)
        self.error_type = ErrorType.RESOURCE_CONFLICT


class EngineNotFoundError(EngineError):
    """The engine reported that the object does not exist (HTTP 404)."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message=message, engine_status=404, **kwargs)
        self.error_type = ErrorType.RESOURCE_NOT_FOUND


class AdapterError(DockfleetException):
    """A topic adapter could not be started or its stream broke."""

    def __init__(self, topic: str, message: str, **kwargs):
        self.topic = topic
        super().__init__(
            message=message,
            error_type=ErrorType.STREAM,
            status_code=502,
            **kwargs,
        )


class ShellUnavailableError(AdapterError):
    """None of the candidate shells could be started in the container."""

    def __init__(self, tried: List[str], last_error: str = "", **kwargs):
        self.tried = tried
        message = f"No usable shell in container (tried {', '.join(tried)})"
        if last_error:
            message += f": {last_error}"
        super().__init__(topic="terminal", message=message, **kwargs)


class DeploymentError(DockfleetException):
    """A deployment step failed."""

    def __init__(self, message: str, step: Optional[str] = None, **kwargs):
        self.step = step
        super().__init__(
            message=message,
            error_type=ErrorType.DEPLOYMENT,
            status_code=500,
            **kwargs,
        )


class ProtocolError(DockfleetException):
    """An inbound WebSocket frame could not be decoded."""

    def __init__(self, message: str = "Invalid message", topic: Optional[str] = None, **kwargs):
        self.topic = topic
        super().__init__(
            message=message,
            error_type=ErrorType.PROTOCOL,
            status_code=400,
            **kwargs,
        )


class ServiceUnavailableError(DockfleetException):
    """A collaborator service is unavailable."""

    def __init__(self, service: str, message: str = None, **kwargs):
        if not message:
            message = f"{service} service is currently unavailable"
        super().__init__(
            message=message,
            error_type=ErrorType.SERVICE_UNAVAILABLE,
            status_code=503,
            **kwargs,
        )
