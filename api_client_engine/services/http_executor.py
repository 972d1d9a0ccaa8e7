"""
HTTP execution service for sending built requests.

This service owns the httpx clients, sends requests, streams and caps the
response body, measures wall-clock latency and maps network failures to
``TransportError``. HTTP error statuses are ordinary responses here.
"""

import time
from dataclasses import dataclass
from http.cookiejar import CookieJar, DefaultCookiePolicy

import httpx
from loguru import logger

from ..config import Settings, get_settings
from ..exceptions import TransportError
from .request_builder import TransportRequest


@dataclass
class TransportResponse:
    """Raw response captured by the transport."""
    status: int
    reason: str
    headers: httpx.Headers
    content: bytes
    elapsed_ms: int
    encoding: str = "utf-8"

    @property
    def text(self) -> str:
        return self.content.decode(self.encoding, errors="replace")


def _capture(response: httpx.Response, content: bytes, start: float) -> TransportResponse:
    return TransportResponse(
        status=response.status_code,
        reason=response.reason_phrase or "",
        headers=response.headers,
        content=content,
        elapsed_ms=int((time.perf_counter() - start) * 1000),
        encoding=response.charset_encoding or "utf-8",
    )


class _RejectAllCookies(DefaultCookiePolicy):
    """Cookie policy that never stores a cookie in the shared client jar."""

    def set_ok(self, cookie, request):
        return False


def _connect_error_code(error: Exception) -> str:
    message = str(error).lower()
    if "ssl" in message or "certificate" in message or "tls" in message:
        return "EPROTO"
    if "name or service not known" in message or "nodename" in message or "getaddrinfo" in message:
        return "ENOTFOUND"
    return "ECONNREFUSED"


class HttpTransport:
    """
    Sends ``TransportRequest``s over shared httpx clients.

    Clients are cached per (TLS verification, redirect limit) pair: TLS
    verification is a client-level option in httpx, so disabling it for one
    request must not affect any other. Connections are reused across calls.
    Cookies are never stored, so one execution cannot leak a session into the next.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or get_settings()
        self.max_response_bytes = self.settings.MAX_RESPONSE_BYTES
        self._transport = transport
        self._clients: dict[tuple[bool, int], httpx.AsyncClient] = {}

    def _client_for(self, request: TransportRequest) -> httpx.AsyncClient:
        key = (request.verify, request.max_redirects)
        client = self._clients.get(key)
        if client is None:
            client = httpx.AsyncClient(
                verify=request.verify,
                max_redirects=request.max_redirects,
                limits=httpx.Limits(max_keepalive_connections=self.settings.KEEPALIVE_CONNECTIONS),
                transport=self._transport,
                cookies=CookieJar(policy=_RejectAllCookies()),
            )
            self._clients[key] = client
        return client

    async def send(self, request: TransportRequest) -> TransportResponse:
        """
        Send a request and read the full body.

        Raises:
            TransportError: DNS, connect, TLS, timeout, redirect-limit or
                size-cap failure. A size-cap failure carries the partial response.
        """
        client = self._client_for(request)
        start = time.perf_counter()

        try:
            async with client.stream(
                request.method,
                request.url,
                headers=request.headers,
                content=request.content,
                files=request.files,
                timeout=request.timeout,
                follow_redirects=request.follow_redirects,
            ) as response:
                declared = response.headers.get("content-length")
                if declared and declared.isdigit() and int(declared) > self.max_response_bytes:
                    raise self._too_large(_capture(response, b"", start))

                chunks: list[bytes] = []
                size = 0
                async for chunk in response.aiter_bytes():
                    size += len(chunk)
                    if size > self.max_response_bytes:
                        raise self._too_large(_capture(response, b"".join(chunks), start))
                    chunks.append(chunk)

                return _capture(response, b"".join(chunks), start)

        except httpx.TimeoutException as e:
            raise TransportError(
                f"Request timed out after {request.timeout} seconds", "ETIMEDOUT"
            ) from e
        except httpx.ConnectError as e:
            raise TransportError(f"Failed to connect to server: {e}", _connect_error_code(e)) from e
        except httpx.TooManyRedirects as e:
            raise TransportError(
                f"Exceeded {request.max_redirects} redirects", "ERR_TOO_MANY_REDIRECTS"
            ) from e
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            raise TransportError(f"Invalid URL: {e}", "ERR_INVALID_URL") from e
        except httpx.HTTPError as e:
            raise TransportError(f"HTTP error occurred: {e}", "ERR_NETWORK") from e
        except ValueError as e:
            # Raised by httpx while encoding a request it cannot put on the wire
            raise TransportError(f"Invalid request: {e}", "ERR_INVALID_REQUEST") from e

    def _too_large(self, partial: TransportResponse) -> TransportError:
        logger.warning(f"Response body exceeded {self.max_response_bytes} bytes, aborting read")
        return TransportError(
            f"Response body exceeds the {self.max_response_bytes} byte limit",
            "ERR_RESPONSE_TOO_LARGE",
            response=partial,
        )

    async def aclose(self) -> None:
        """Close every cached client."""
        clients, self._clients = list(self._clients.values()), {}
        for client in clients:
            await client.aclose()
