"""Categorized error handling with actionable messages.

Provides the unimail error taxonomy, the normalizer that maps transport
failures onto it, and helpers the CLI uses to report errors and pick an
exit code.
"""

from __future__ import annotations

import logging
from enum import IntEnum
from typing import Callable, ClassVar, TypeVar

from unimail.transport import Outcome, TransportFailure

ERROR_PRELUDE = "unimail API Error:"
SUPPORT_EMAIL = "support@unimail.co"
UPTIME_MONITOR = "uptime.unimail.co"

T = TypeVar("T")

logger = logging.getLogger(__name__)


class ExitCode(IntEnum):
    """Exit codes for scripting integration.

    Standard categories:
    - 0: Success
    - 1-9: Usage/config errors (user can fix)
    - 10-19: Authentication errors
    - 20-29: Network errors
    - 30-39: API errors
    - 40-49: System errors
    """

    SUCCESS = 0

    USAGE_ERROR = 1
    CONFIG_ERROR = 2
    INVALID_ARGUMENT = 4

    AUTH_INVALID = 11
    AUTH_UNAVAILABLE = 12

    NETWORK_DNS = 22
    NETWORK_REFUSED = 24

    API_ERROR = 30

    FILE_NOT_FOUND = 40
    FILE_PERMISSION = 41
    UNKNOWN_ERROR = 49


class UnimailError(Exception):
    """Base exception for unimail with structured error info.

    Attributes:
        message: Human-readable error message, prefixed with ``ERROR_PRELUDE``.
        code: Exit code for scripting.
        suggestion: Actionable recovery suggestion.
        details: Optional additional context.
        cause: Original exception, when this error wraps one.
    """

    code: ClassVar[ExitCode] = ExitCode.USAGE_ERROR
    suggestion: ClassVar[str] = ""

    def __init__(
        self,
        message: str,
        suggestion: str | None = None,
        details: str | None = None,
        cause: BaseException | None = None,
    ):
        if not message.startswith(ERROR_PRELUDE):
            message = f"{ERROR_PRELUDE} {message}"
        self.message = message
        self._suggestion = suggestion
        self.details = details
        self.cause = cause
        super().__init__(message)

    def get_suggestion(self) -> str:
        """Get the recovery suggestion."""
        return self._suggestion or self.suggestion

    def format_full(self) -> str:
        """Format the complete error message with suggestion."""
        parts = [self.message]
        if self.details:
            parts.append(f"Details: {self.details}")
        suggestion = self.get_suggestion()
        if suggestion:
            parts.append(f"Suggestion: {suggestion}")
        return "\n".join(parts)


class ConfigurationError(UnimailError):
    """A required setting is missing, or the config file is unusable."""

    code = ExitCode.CONFIG_ERROR


class AuthenticationUnavailableError(UnimailError):
    """No session token could be obtained."""

    code = ExitCode.AUTH_UNAVAILABLE
    suggestion = f"This could be a unimail issue. Please report this incident to {SUPPORT_EMAIL}."


class InvalidCredentialsError(UnimailError):
    """The server rejected the credentials, even after a fresh session."""

    code = ExitCode.AUTH_INVALID
    suggestion = (
        "Check the token_key and token_secret settings "
        "(UNIMAIL_TOKEN_KEY / UNIMAIL_TOKEN_SECRET)."
    )


class DnsResolutionError(UnimailError):
    """The API host name did not resolve."""

    code = ExitCode.NETWORK_DNS
    suggestion = (
        f"Check your internet connection and DNS settings. If everything seems in order, "
        f"check {UPTIME_MONITOR}."
    )


class ConnectionRefusedError_(UnimailError):
    """The API host refused the connection."""

    code = ExitCode.NETWORK_REFUSED
    suggestion = f"The unimail API could be down. Check {UPTIME_MONITOR} for status reports."


class APIError(UnimailError):
    """The server rejected the request with an error payload.

    Attributes:
        status: HTTP status code.
        server_message: Message supplied by the server.
    """

    code = ExitCode.API_ERROR

    def __init__(self, message: str, status: int | None = None, server_message: str = "", **kwargs):
        self.status = status
        self.server_message = server_message
        super().__init__(message, **kwargs)


class UnknownError(UnimailError):
    """Failure that could not be classified."""

    code = ExitCode.UNKNOWN_ERROR
    suggestion = f"Please report this incident to {SUPPORT_EMAIL} so we can resolve this issue."


class ErrorNormalizer:
    """Classifies failures into the unimail error taxonomy.

    Args:
        base_url: Callable returning the resolved base URL.
        host: Callable returning the configured host.
        log: Logger for diagnostics; defaults to this module's logger.
    """

    def __init__(
        self,
        base_url: Callable[[], str],
        host: Callable[[], str],
        log: logging.Logger | None = None,
    ):
        self._base_url = base_url
        self._host = host
        self.log = log or logger

    def normalize(self, error: Exception, action: str | None = None) -> UnimailError:
        """Convert any exception into an ``UnimailError``.

        Args:
            error: The failure to classify.
            action: Gerund phrase describing what was being done, e.g.
                "getting a session key".

        Returns:
            The normalized error. Already-normalized errors are returned as-is.
        """
        if isinstance(error, UnimailError):
            return error

        context = f" while {action}" if action else ""

        if isinstance(error, TransportFailure):
            result = error.result

            if result.outcome is Outcome.DNS_FAILURE:
                return DnsResolutionError(
                    f"{self._host()} did not resolve ({self._base_url()}).",
                    details=result.reason,
                    cause=error,
                )

            if result.outcome is Outcome.CONNECTION_REFUSED:
                return ConnectionRefusedError_(
                    "Connection refused by server. Check your internet connection. "
                    f"This could also be a configuration issue on the client end. "
                    f"The API URL you're using is {self._base_url()}",
                    details=result.reason,
                    cause=error,
                )

            if result.outcome is Outcome.HTTP_ERROR:
                if result.status == 401:
                    return InvalidCredentialsError(
                        "Provided API Key and Secret are invalid.", cause=error
                    )

                server_message = result.error_message()
                if server_message is not None:
                    message = f'server responded with {result.status}. Server says "{server_message}".'
                    if context:
                        message = f"{context.strip()}, {message}"
                    return APIError(
                        message,
                        status=result.status,
                        server_message=server_message,
                        cause=error,
                    )

        self.log.error(
            "%s Unknown exception emerged%s. The unimail API client endeavors to handle all "
            "exceptions gracefully and with a sane explanation, but we were unable to do so "
            "in this case. Please report this incident to %s so we can resolve this issue.",
            ERROR_PRELUDE,
            context,
            SUPPORT_EMAIL,
            exc_info=error,
        )
        return UnknownError(f"Unknown exception emerged{context}: {error}", cause=error)

    def call(self, fn: Callable[[], T], action: str | None = None) -> T:
        """Run ``fn``, raising a normalized error on failure."""
        try:
            return fn()
        except Exception as e:
            normalized = self.normalize(e, action)
            if normalized is e:
                raise
            raise normalized from e


def format_error_for_user(error: Exception, verbose: bool = False) -> str:
    """Format any exception for user display.

    Args:
        error: Exception to format.
        verbose: If True, include details and suggestions.

    Returns:
        Formatted error message string.
    """
    if isinstance(error, UnimailError):
        if verbose:
            return error.format_full()
        return error.message
    return f"Error: {error}"


def get_exit_code(error: Exception) -> int:
    """Get the exit code for an exception.

    Args:
        error: Exception to get code for.

    Returns:
        Integer exit code.
    """
    if isinstance(error, UnimailError):
        return error.code
    elif isinstance(error, FileNotFoundError):
        return ExitCode.FILE_NOT_FOUND
    elif isinstance(error, PermissionError):
        return ExitCode.FILE_PERMISSION
    elif isinstance(error, ValueError):
        return ExitCode.INVALID_ARGUMENT
    else:
        return ExitCode.UNKNOWN_ERROR


__all__ = [
    "ERROR_PRELUDE",
    "SUPPORT_EMAIL",
    "UPTIME_MONITOR",
    "ExitCode",
    "UnimailError",
    "ConfigurationError",
    "AuthenticationUnavailableError",
    "InvalidCredentialsError",
    "DnsResolutionError",
    "ConnectionRefusedError_",
    "APIError",
    "UnknownError",
    "ErrorNormalizer",
    "format_error_for_user",
    "get_exit_code",
]
