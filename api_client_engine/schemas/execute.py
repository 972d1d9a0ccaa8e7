"""
Pydantic schemas for request execution.

Defines the execution command accepted by the API, the uniform execution
result returned for every outcome, and the outcome reported by script hooks.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel

from .request import RequestDefinition
from .variables import VariableUpdates


class ExecuteCommand(BaseModel):
    """Schema for executing a request definition against optional variable scopes."""
    request: RequestDefinition
    environment_id: int | None = None
    collection_id: int | None = None


class RequestEcho(BaseModel):
    """The request as it was (or would have been) sent, after resolution."""
    method: str
    url: str
    headers: dict[str, str] = {}
    body: Any | None = None


class Cookie(BaseModel):
    """A cookie parsed from a ``Set-Cookie`` response header."""
    name: str
    value: str = ""
    domain: str | None = None
    path: str | None = None
    expires: str | None = None


class ResponseTiming(BaseModel):
    total_ms: int


class ResponseSize(BaseModel):
    body: int
    headers: int
    total: int


class ResponseData(BaseModel):
    """
    Response details captured from the transport.

    ``body_json`` is only populated when the response declares a JSON
    content type and parses cleanly.
    """
    status: int
    status_text: str
    headers: dict[str, str]
    body: str
    body_json: Any | None = None
    cookies: list[Cookie] = []
    timing: ResponseTiming
    size: ResponseSize


class ExecutionError(BaseModel):
    message: str
    code: str | None = None


class ScriptTestResult(BaseModel):
    """One named assertion reported by a test script."""
    name: str
    passed: bool
    error: str | None = None


class ScriptTestSummary(BaseModel):
    """Assertions and console output of a test-script run."""
    tests: list[ScriptTestResult] = []
    passed: int = 0
    failed: int = 0
    total_time_ms: int = 0
    console_output: list[str] = []


class ExecutionResult(BaseModel):
    """
    Uniform result of one execution.

    ``success`` is True whenever the server answered, whatever the status code.
    ``response`` may be present on failures too, when a partial response was
    received before the transport failed.
    """
    success: bool
    request: RequestEcho
    response: ResponseData | None = None
    error: ExecutionError | None = None
    test_results: ScriptTestSummary | None = None
    executed_at: datetime


class ScriptOutcome(BaseModel):
    """What a pre-request or test script produced."""
    environment_updates: VariableUpdates = {}
    collection_updates: VariableUpdates = {}
    console_output: list[str] = []
    tests: list[ScriptTestResult] = []

    @property
    def has_mutations(self) -> bool:
        return bool(self.environment_updates or self.collection_updates)
