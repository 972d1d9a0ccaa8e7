"""
Request builder service.

Turns a resolved request definition into a transport-ready call:
normalizes the URL, merges query parameters, computes headers (including
authentication) and serializes the body according to its declared type.
"""

import base64
import json
import os
import re
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode, urlsplit, urlunsplit

from ..config import get_settings
from ..exceptions import FormFileError, InvalidJSONBodyError, RequestBuildError
from ..schemas.request import (
    BODYLESS_METHODS,
    ApiKeyAuth,
    BasicAuth,
    BearerAuth,
    BinaryBody,
    FormDataBody,
    FormDataField,
    GraphQLBody,
    JsonBody,
    KeyValuePair,
    NoAuth,
    NoBody,
    OAuth2Auth,
    RawBody,
    RequestDefinition,
    UrlEncodedBody,
    XmlBody,
)


SCHEME_PATTERN = re.compile(r'^[a-zA-Z][a-zA-Z0-9+.\-]*://')

# Content-Type used when the caller did not supply one
DEFAULT_CONTENT_TYPES = {
    "json": "application/json",
    "graphql": "application/json",
    "x-www-form-urlencoded": "application/x-www-form-urlencoded",
    "raw": "text/plain",
    "xml": "application/xml",
    "binary": "application/octet-stream",
}


@dataclass
class TransportRequest:
    """A fully built HTTP call plus the options the transport should honour."""
    method: str
    url: str
    headers: dict[str, str]
    content: bytes | None = None
    files: list[tuple[str, tuple]] | None = None
    body_echo: Any = None
    timeout: float = 30.0
    follow_redirects: bool = True
    max_redirects: int = 5
    verify: bool = True


def _enabled(pairs: list[KeyValuePair]) -> list[KeyValuePair]:
    return [pair for pair in pairs if pair.enabled and pair.key.strip()]


def _set_header(headers: dict[str, str], name: str, value: str) -> None:
    """Set a header, replacing any existing header of the same name in any case."""
    for existing in [key for key in headers if key.lower() == name.lower()]:
        del headers[existing]
    headers[name] = value


def has_header(headers: dict[str, str], name: str) -> bool:
    return any(key.lower() == name.lower() for key in headers)


def normalize_url(url: str) -> str:
    """Trim the URL and prefix ``http://`` when it carries no scheme."""
    normalized = url.strip()
    if not SCHEME_PATTERN.match(normalized):
        normalized = f"http://{normalized}"
    return normalized


def build_url(url: str, params: list[KeyValuePair], extra: list[tuple[str, str]] | None = None) -> str:
    """
    Build the final URL.

    Enabled parameters with a non-empty key are percent-encoded and appended
    after any query string already present in the URL.
    """
    normalized = normalize_url(url)
    pairs = [(p.key, p.value) for p in _enabled(params)] + list(extra or [])
    if not pairs:
        return normalized

    try:
        parts = urlsplit(normalized)
    except ValueError as e:
        raise RequestBuildError(f"Invalid URL: {e}", "ERR_INVALID_URL") from e
    added = urlencode(pairs)
    query = f"{parts.query}&{added}" if parts.query else added
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def auth_query_params(auth) -> list[tuple[str, str]]:
    """Query parameters contributed by authentication (API key placed in the query)."""
    if isinstance(auth, ApiKeyAuth) and auth.add_to == "query" and auth.key and auth.value:
        return [(auth.key, auth.value)]
    return []


def build_headers(headers: list[KeyValuePair], auth) -> dict[str, str]:
    """
    Assemble request headers.

    Enabled custom headers go first (later duplicates win), then
    authentication headers are layered on top.
    """
    result: dict[str, str] = {}
    for header in _enabled(headers):
        _set_header(result, header.key, header.value)

    if isinstance(auth, BearerAuth):
        if auth.token:
            _set_header(result, "Authorization", f"Bearer {auth.token}")
    elif isinstance(auth, BasicAuth):
        if auth.username and auth.password:
            credentials = base64.b64encode(f"{auth.username}:{auth.password}".encode()).decode()
            _set_header(result, "Authorization", f"Basic {credentials}")
    elif isinstance(auth, ApiKeyAuth):
        if auth.add_to == "header" and auth.key and auth.value:
            _set_header(result, auth.key, auth.value)
    elif isinstance(auth, (NoAuth, OAuth2Auth)):
        pass
    else:
        raise RequestBuildError(f"Unsupported auth type: {getattr(auth, 'type', auth)!r}", "UNSUPPORTED_AUTH")

    # Header names and values go on the wire as ASCII
    for name, value in result.items():
        if not (name.isascii() and value.isascii()):
            raise RequestBuildError(
                f"Header {name!r} contains characters that cannot be sent", "INVALID_HEADER"
            )

    return result


def _decode_fields(content: str, model) -> list | None:
    try:
        decoded = json.loads(content)
        if not isinstance(decoded, list):
            return None
        return [model.model_validate(item) for item in decoded]
    except ValueError:
        return None


def _urlencoded_body(body: UrlEncodedBody) -> str | None:
    content = body.content
    if isinstance(content, str):
        if not content.strip():
            return None
        fields = _decode_fields(content, KeyValuePair)
        if fields is None:
            # Already form-encoded text
            return content
        content = fields
    pairs = [(item.key, item.value) for item in content if item.enabled and item.key]
    return urlencode(pairs) if pairs else None


def _form_data_parts(body: FormDataBody) -> list[tuple[str, tuple]]:
    content = body.content
    if isinstance(content, str):
        if not content.strip():
            return []
        content = _decode_fields(content, FormDataField)
        if content is None:
            raise RequestBuildError("form-data content must be a list of fields", "INVALID_FORM_DATA")

    parts: list[tuple[str, tuple]] = []
    for item in content:
        if not item.enabled or not item.key:
            continue
        if item.type == "file":
            try:
                with open(item.value, "rb") as fh:
                    data = fh.read()
            except OSError as e:
                raise FormFileError(item.value, str(e)) from e
            parts.append((item.key, (os.path.basename(item.value), data)))
        else:
            parts.append((item.key, (None, item.value)))
    return parts


def build_body(definition: RequestDefinition) -> tuple[bytes | None, list | None, Any]:
    """
    Serialize the body of a definition.

    Returns:
        Tuple of (raw content, multipart parts, echo of what was sent).
        GET and HEAD requests never carry a body.

    Raises:
        InvalidJSONBodyError: ``json`` body content is not valid JSON
        FormFileError: a form-data file cannot be read
    """
    body = definition.body
    if definition.method in BODYLESS_METHODS:
        return None, None, None

    if isinstance(body, NoBody):
        return None, None, None

    if isinstance(body, JsonBody):
        if not body.content.strip():
            return None, None, None
        try:
            parsed = json.loads(body.content)
        except ValueError as e:
            raise InvalidJSONBodyError(str(e)) from e
        return body.content.encode("utf-8"), None, parsed

    if isinstance(body, UrlEncodedBody):
        encoded = _urlencoded_body(body)
        if encoded is None:
            return None, None, None
        return encoded.encode("utf-8"), None, encoded

    if isinstance(body, (RawBody, XmlBody, BinaryBody)):
        if not body.content:
            return None, None, None
        return body.content.encode("utf-8"), None, body.content

    if isinstance(body, FormDataBody):
        parts = _form_data_parts(body)
        if not parts:
            return None, None, None
        echo = [
            {"key": key, "value": value[1] if value[0] is None else value[0],
             "type": "text" if value[0] is None else "file"}
            for key, value in parts
        ]
        return None, parts, echo

    if isinstance(body, GraphQLBody):
        payload: dict[str, Any] = {"query": body.query, "variables": body.variables or {}}
        if body.operation_name:
            payload["operationName"] = body.operation_name
        return json.dumps(payload).encode("utf-8"), None, payload

    raise RequestBuildError(f"Unsupported body type: {getattr(body, 'type', body)!r}", "UNSUPPORTED_BODY")


def build_request(definition: RequestDefinition) -> TransportRequest:
    """
    Build the transport call for a resolved request definition.

    Raises:
        RequestBuildError: the definition cannot be sent as-is
    """
    settings = get_settings()

    url = build_url(definition.url, definition.params, auth_query_params(definition.auth))
    headers = build_headers(definition.headers, definition.auth)
    content, files, echo = build_body(definition)

    if content is not None:
        default_type = DEFAULT_CONTENT_TYPES.get(definition.body.type)
        if default_type and not has_header(headers, "Content-Type"):
            headers["Content-Type"] = default_type

    if definition.follow_redirects:
        max_redirects = (
            definition.max_redirects
            if definition.max_redirects is not None
            else settings.DEFAULT_MAX_REDIRECTS
        )
        # Bounds the number of distinct transport clients
        max_redirects = min(max_redirects, settings.MAX_REDIRECTS_LIMIT)
    else:
        max_redirects = 0

    timeout = (
        definition.timeout_ms / 1000.0
        if definition.timeout_ms
        else settings.DEFAULT_TIMEOUT_SECONDS
    )

    return TransportRequest(
        method=definition.method,
        url=url,
        headers=headers,
        content=content,
        files=files,
        body_echo=echo,
        timeout=timeout,
        follow_redirects=definition.follow_redirects and max_redirects > 0,
        max_redirects=max_redirects,
        verify=definition.validate_ssl,
    )
