"""Unit tests for Error Handlers."""

import json
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError

from dockfleet.models.errors import (
    DockfleetException,
    EngineNotFoundError,
    ErrorType,
    ServiceUnavailableError,
)
from dockfleet.utils.error_handlers import (
    dockfleet_exception_handler,
    general_exception_handler,
    http_exception_handler,
    register_error_handlers,
    validation_exception_handler,
)


@pytest.fixture
def mock_request():
    """Create a mock request."""
    request = MagicMock()
    request.url.path = "/api/v1/hosts"
    request.method = "GET"
    request.client = MagicMock()
    request.client.host = "127.0.0.1"
    return request


def body(response):
    return json.loads(response.body)


class TestDockfleetExceptionHandler:
    """Tests for dockfleet_exception_handler."""

    @pytest.mark.asyncio
    async def test_keeps_existing_request_id(self, mock_request):
        exc = DockfleetException(
            message="Test error",
            error_type=ErrorType.VALIDATION,
            status_code=400,
            request_id="existing-id",
        )

        response = await dockfleet_exception_handler(mock_request, exc)

        assert response.status_code == 400
        assert body(response)["request_id"] == "existing-id"

    @pytest.mark.asyncio
    async def test_generates_request_id_if_missing(self, mock_request):
        exc = ServiceUnavailableError("inventory")

        response = await dockfleet_exception_handler(mock_request, exc)

        assert response.status_code == 503
        content = body(response)
        assert content["error_type"] == "service_unavailable"
        assert content["error"] == "inventory service is currently unavailable"
        assert content["request_id"]

    @pytest.mark.asyncio
    async def test_engine_errors_map_to_their_type(self, mock_request):
        response = await dockfleet_exception_handler(mock_request, EngineNotFoundError("No such container"))

        assert response.status_code == 502
        assert body(response)["error_type"] == "resource_not_found"

    @pytest.mark.asyncio
    async def test_handles_missing_client(self, mock_request):
        mock_request.client = None

        response = await dockfleet_exception_handler(mock_request, DockfleetException("boom"))

        assert response.status_code == 500


class TestHttpExceptionHandler:
    """Tests for http_exception_handler."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status_code,error_type",
        [
            (400, "validation"),
            (404, "resource_not_found"),
            (409, "resource_conflict"),
            (503, "service_unavailable"),
            (418, "internal_server"),
        ],
    )
    async def test_status_mapping(self, mock_request, status_code, error_type):
        response = await http_exception_handler(mock_request, HTTPException(status_code=status_code, detail="nope"))

        assert response.status_code == status_code
        assert body(response)["error_type"] == error_type
        assert body(response)["error"] == "nope"


class TestValidationExceptionHandler:
    """Tests for validation_exception_handler."""

    @pytest.mark.asyncio
    async def test_collects_field_details(self, mock_request):
        exc = RequestValidationError(
            [{"loc": ("query", "host"), "msg": "Field required", "type": "missing"}]
        )

        response = await validation_exception_handler(mock_request, exc)

        assert response.status_code == 422
        details = body(response)["details"]
        assert details == [{"field": "query -> host", "message": "Field required", "code": "missing"}]


class TestGeneralExceptionHandler:
    """Tests for general_exception_handler."""

    @pytest.mark.asyncio
    async def test_hides_internal_message(self, mock_request):
        response = await general_exception_handler(mock_request, RuntimeError("secret detail"))

        assert response.status_code == 500
        content = body(response)
        assert content["error"] == "An unexpected error occurred"
        assert "secret detail" not in json.dumps(content)


class TestRegisterErrorHandlers:
    def test_registers_all_handlers(self):
        app = FastAPI()

        register_error_handlers(app)

        assert DockfleetException in app.exception_handlers
        assert HTTPException in app.exception_handlers
        assert RequestValidationError in app.exception_handlers
        assert Exception in app.exception_handlers
