"""
Result assembly service.

Builds the uniform ``ExecutionResult`` from a transport response, a
transport failure or a request that could not be built, including derived
metrics (body size, header size, parsed cookies) and test summaries.
"""

import json
from datetime import datetime
from typing import Any, Iterable

from ..exceptions import RequestBuildError, TransportError
from ..schemas.execute import (
    Cookie,
    ExecutionError,
    ExecutionResult,
    RequestEcho,
    ResponseData,
    ResponseSize,
    ResponseTiming,
    ScriptOutcome,
    ScriptTestResult,
    ScriptTestSummary,
)
from ..schemas.request import RequestDefinition
from .http_executor import TransportResponse
from .request_builder import (
    TransportRequest,
    auth_query_params,
    build_headers,
    build_url,
    normalize_url,
)


def parse_cookies(set_cookie_values: Iterable[str]) -> list[Cookie]:
    """
    Parse ``Set-Cookie`` header values into cookies.

    The first ``;``-separated segment is ``name=value``; ``domain``, ``path``
    and ``expires`` attributes are picked up from the rest.
    """
    cookies: list[Cookie] = []
    for raw in set_cookie_values:
        parts = [part.strip() for part in raw.split(";")]
        if not parts or not parts[0]:
            continue
        name, _, value = parts[0].partition("=")
        cookie = Cookie(name=name.strip(), value=value.strip())

        for attribute in parts[1:]:
            key, _, attr_value = attribute.partition("=")
            key = key.strip().lower()
            if key in ("domain", "path", "expires"):
                setattr(cookie, key, attr_value.strip())

        cookies.append(cookie)
    return cookies


def calculate_body_size(data: Any) -> int:
    """Byte length of a body: raw bytes as-is, text as UTF-8, anything else as JSON."""
    if data is None:
        return 0
    if isinstance(data, (bytes, bytearray)):
        return len(data)
    if isinstance(data, str):
        return len(data.encode("utf-8"))
    return len(json.dumps(data).encode("utf-8"))


def calculate_headers_size(headers: Iterable[tuple[str, str]]) -> int:
    """Sum of the ``"key: value\\r\\n"`` encodings of every header line."""
    return sum(len(f"{key}: {value}\r\n".encode("utf-8")) for key, value in headers)


def parse_json_body(body: str | None, content_type: str | None) -> Any | None:
    """
    Try to parse response body as JSON if content type indicates JSON.

    Args:
        body: Response body string
        content_type: Content-Type header value

    Returns:
        Parsed JSON object or None if not JSON or parsing fails
    """
    if not body or not content_type:
        return None

    if "json" in content_type.lower():
        try:
            return json.loads(body)
        except json.JSONDecodeError:
            return None

    return None


def build_response_data(response: TransportResponse) -> ResponseData:
    header_lines = response.headers.multi_items()
    body = response.text
    body_size = calculate_body_size(response.content)
    headers_size = calculate_headers_size(header_lines)

    return ResponseData(
        status=response.status,
        status_text=response.reason,
        headers={key: value for key, value in response.headers.items()},
        body=body,
        body_json=parse_json_body(body, response.headers.get("content-type")),
        cookies=parse_cookies(response.headers.get_list("set-cookie")),
        timing=ResponseTiming(total_ms=response.elapsed_ms),
        size=ResponseSize(body=body_size, headers=headers_size, total=body_size + headers_size),
    )


def request_echo(request: TransportRequest) -> RequestEcho:
    return RequestEcho(
        method=request.method,
        url=request.url,
        headers=dict(request.headers),
        body=request.body_echo,
    )


def echo_from_definition(definition: RequestDefinition) -> RequestEcho:
    """Best-effort echo for a definition that could not be fully built."""
    try:
        headers = build_headers(definition.headers, definition.auth)
    except RequestBuildError:
        headers = {h.key: h.value for h in definition.headers if h.enabled and h.key}
    try:
        url = build_url(definition.url, definition.params, auth_query_params(definition.auth))
    except RequestBuildError:
        url = normalize_url(definition.url)
    return RequestEcho(method=definition.method, url=url, headers=headers)


def build_success_result(
    echo: RequestEcho, response: TransportResponse, executed_at: datetime
) -> ExecutionResult:
    """A response of any status code is a success."""
    return ExecutionResult(
        success=True,
        request=echo,
        response=build_response_data(response),
        executed_at=executed_at,
    )


def build_error_result(
    echo: RequestEcho, error: TransportError, executed_at: datetime
) -> ExecutionResult:
    """Failed result for a transport error, keeping any partial response."""
    return ExecutionResult(
        success=False,
        request=echo,
        response=build_response_data(error.response) if error.response is not None else None,
        error=ExecutionError(message=error.message or "Request failed", code=error.code),
        executed_at=executed_at,
    )


def build_validation_error_result(
    echo: RequestEcho, error: RequestBuildError, executed_at: datetime
) -> ExecutionResult:
    """Failed result for a request rejected before any network activity."""
    return ExecutionResult(
        success=False,
        request=echo,
        error=ExecutionError(message=error.message, code=error.code),
        executed_at=executed_at,
    )


def summarize_tests(outcome: ScriptOutcome, total_time_ms: int) -> ScriptTestSummary:
    passed = sum(1 for test in outcome.tests if test.passed)
    return ScriptTestSummary(
        tests=list(outcome.tests),
        passed=passed,
        failed=len(outcome.tests) - passed,
        total_time_ms=total_time_ms,
        console_output=list(outcome.console_output),
    )


def hook_failure_summary(message: str) -> ScriptTestSummary:
    """Summary reported when the test hook itself could not run."""
    return ScriptTestSummary(
        tests=[ScriptTestResult(name="Test Execution Error", passed=False, error=message)],
        passed=0,
        failed=1,
        total_time_ms=0,
        console_output=[message],
    )
