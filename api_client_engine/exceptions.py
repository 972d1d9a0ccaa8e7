"""
Custom exception classes and error handling for the API client engine.

``PipelineError`` and its subclasses describe failures inside a single
request execution. They never escape ``RequestExecutor.execute``; the
orchestrator folds them into a failed ``ExecutionResult``. Malformed API
input is reported with the ``{"detail", "error_code"}`` body of
``ErrorResponse``.
"""

from typing import TYPE_CHECKING

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel

if TYPE_CHECKING:
    from .services.http_executor import TransportResponse


class ErrorResponse(BaseModel):
    """Standard error response format."""
    detail: str
    error_code: str | None = None


class PipelineError(Exception):
    """Base class for errors raised while executing a request definition."""

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        self.code = code
        super().__init__(message)


class RequestBuildError(PipelineError):
    """The request definition cannot be turned into a transport call."""

    def __init__(self, message: str, code: str = "INVALID_REQUEST"):
        super().__init__(message, code)


class InvalidJSONBodyError(RequestBuildError):
    """A ``json`` body does not contain valid JSON."""

    def __init__(self, detail: str):
        super().__init__(f"Invalid JSON in request body: {detail}", "INVALID_JSON_BODY")


class FormFileError(RequestBuildError):
    """A form-data file field points at a file that cannot be read."""

    def __init__(self, path: str, detail: str):
        super().__init__(f"Cannot read form-data file '{path}': {detail}", "FORM_FILE_ERROR")


class TransportError(PipelineError):
    """
    Network-level failure while sending a request.

    ``response`` is set when the server had already answered before the
    failure (for example a body that exceeded the size cap).
    """

    def __init__(
        self,
        message: str,
        code: str = "ERR_NETWORK",
        response: "TransportResponse | None" = None,
    ):
        super().__init__(message, code)
        self.response = response


class ScriptExecutionError(PipelineError):
    """A pre-request or test script could not be evaluated."""

    def __init__(self, message: str):
        super().__init__(message, "SCRIPT_ERROR")


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    errors = exc.errors()
    # Format validation errors into a readable message
    error_messages = []
    for error in errors:
        loc = " -> ".join(str(l) for l in error["loc"])
        msg = error["msg"]
        error_messages.append(f"{loc}: {msg}")

    detail = "; ".join(error_messages) if error_messages else "Validation error"

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": detail, "error_code": "VALIDATION_ERROR"}
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application."""
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
