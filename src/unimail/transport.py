"""HTTP transport with explicit outcome reporting.

A single exchange with the unimail API is reduced to a ``TransportResult``
whose ``outcome`` is one of a closed set of cases, so callers never have to
inspect ``urllib`` exception shapes themselves.
"""

from __future__ import annotations

import json
import socket
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from unimail._version import __version__

USER_AGENT = f"unimail-cli/{__version__}"

# Fragments of resolver error text, for platforms where the reason is a plain string
DNS_FAILURE_REASONS = (
    "name or service not known",
    "nodename nor servname",
    "temporary failure in name resolution",
    "no address associated with hostname",
    "getaddrinfo failed",
)


class Outcome(Enum):
    """Every way a single HTTP exchange can end."""

    OK = "ok"
    HTTP_ERROR = "http_error"
    DNS_FAILURE = "dns_failure"
    CONNECTION_REFUSED = "connection_refused"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"


@dataclass
class TransportResult:
    """Result of one HTTP exchange.

    Attributes:
        outcome: How the exchange ended.
        status: HTTP status code, when a response was received.
        body: Raw response body.
        headers: Response headers (lower-cased names).
        reason: Reason phrase or network error text.
        error: Underlying exception, if any.
    """

    outcome: Outcome
    status: int | None = None
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)
    reason: str = ""
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.OK

    @property
    def is_json(self) -> bool:
        return "json" in self.headers.get("content-type", "")

    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        return json.loads(self.text())

    def payload(self) -> Any:
        """Decoded body: parsed JSON when it parses as JSON, text otherwise.

        A JSON content type is decoded strictly; other bodies fall back to
        text when they are not valid JSON.
        """
        if not self.body:
            return None
        if self.is_json:
            return self.json()
        try:
            return self.json()
        except ValueError:
            return self.text()

    def error_message(self) -> str | None:
        """Server-supplied ``{"error": "..."}`` message, if the body carries one."""
        try:
            data = self.json()
        except ValueError:
            return None
        if isinstance(data, dict) and isinstance(data.get("error"), str):
            return data["error"]
        return None


class TransportFailure(Exception):
    """Raised for any non-OK ``TransportResult``."""

    def __init__(self, result: TransportResult):
        self.result = result
        super().__init__(f"{result.outcome.value}: {result.status or result.reason}")

    @property
    def status(self) -> int | None:
        return self.result.status


def classify_network_error(error: BaseException) -> Outcome:
    """Map a network-level exception onto an ``Outcome``.

    Args:
        error: Exception raised while connecting or reading.

    Returns:
        The matching outcome (never ``OK`` or ``HTTP_ERROR``).
    """
    reason = error.reason if isinstance(error, URLError) else error

    if isinstance(reason, socket.gaierror):
        return Outcome.DNS_FAILURE
    if isinstance(reason, ConnectionRefusedError):
        return Outcome.CONNECTION_REFUSED
    if isinstance(reason, (socket.timeout, TimeoutError)):
        return Outcome.TIMEOUT

    text = str(reason).lower()
    if any(r in text for r in DNS_FAILURE_REASONS):
        return Outcome.DNS_FAILURE
    if "connection refused" in text:
        return Outcome.CONNECTION_REFUSED
    if "timed out" in text:
        return Outcome.TIMEOUT
    return Outcome.NETWORK_ERROR


def _query_value(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return [_query_value(v) for v in value]
    return value


def build_url(base_url: str, endpoint: str, query: dict[str, Any] | None = None) -> str:
    """Join base URL, endpoint and query string.

    ``None`` query values are dropped; booleans are sent as ``true``/``false``.
    """
    url = f"{base_url}{endpoint}"
    params = {k: _query_value(v) for k, v in (query or {}).items() if v is not None}
    if params:
        url += f"?{urlencode(params, doseq=True)}"
    return url


class Transport:
    """Sends requests with ``urllib`` and reports a ``TransportResult``.

    Args:
        timeout: Optional socket timeout in seconds. When unset the platform
            default applies.
    """

    def __init__(self, timeout: float | None = None):
        self.timeout = timeout

    def send(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        body: Any = None,
    ) -> TransportResult:
        """Perform one HTTP exchange.

        Args:
            method: HTTP method.
            url: Absolute URL including any query string.
            headers: Extra request headers.
            body: JSON-serializable body, or None for no body.

        Returns:
            TransportResult describing the exchange. Network and HTTP failures
            are reported through ``outcome`` rather than raised.
        """
        request_headers = {"User-Agent": USER_AGENT, "Accept": "application/json, text/html"}
        data = None
        if body is not None:
            data = json.dumps(body).encode()
            request_headers["Content-Type"] = "application/json"
        request_headers.update(headers or {})

        req = Request(url, data=data, headers=request_headers, method=method.upper())
        kwargs = {"timeout": self.timeout} if self.timeout is not None else {}

        try:
            with urlopen(req, **kwargs) as response:
                return TransportResult(
                    outcome=Outcome.OK,
                    status=response.status,
                    body=response.read(),
                    headers={k.lower(): v for k, v in response.headers.items()},
                )
        except HTTPError as e:
            return TransportResult(
                outcome=Outcome.HTTP_ERROR,
                status=e.code,
                body=e.read() if e.fp is not None else b"",
                headers={k.lower(): v for k, v in (e.headers or {}).items()},
                reason=str(e.reason),
                error=e,
            )
        except (URLError, OSError) as e:
            return TransportResult(
                outcome=classify_network_error(e),
                reason=str(e.reason if isinstance(e, URLError) else e),
                error=e,
            )


__all__ = [
    "USER_AGENT",
    "Outcome",
    "TransportResult",
    "TransportFailure",
    "Transport",
    "build_url",
    "classify_network_error",
]
