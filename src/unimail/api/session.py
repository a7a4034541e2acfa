"""Session token management.

A session token is obtained by exchanging the long-lived credential pair at
``POST /v1/sessions``. Tokens are kept in memory, mirrored to the
``CredentialCache`` when one is configured, and refreshed once when the
server answers 401.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, TypeVar

from unimail.api.cache import SESSION_TOKEN_KEY, CredentialCache
from unimail.config.audit import AuditEvent, log_session_event
from unimail.config.settings import ConfigResolver
from unimail.errors import (
    ERROR_PRELUDE,
    SUPPORT_EMAIL,
    AuthenticationUnavailableError,
    ErrorNormalizer,
    InvalidCredentialsError,
)
from unimail.transport import Transport, TransportFailure, build_url

SESSIONS_ENDPOINT = "/v1/sessions"

# Server message type -> logging level
MESSAGE_LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "log": logging.INFO,
    "debug": logging.DEBUG,
}

T = TypeVar("T")

logger = logging.getLogger(__name__)


class SessionState(Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"


class SessionManager:
    """Obtains, caches and refreshes the session token.

    Args:
        config: Settings source for credentials, override and base URL.
        transport: HTTP transport for the session exchange.
        normalizer: Error normalizer applied to session acquisition.
        cache: Optional on-disk token cache.
        log: Logger for verbose output and server messages.
        verbose: Log session refreshes.
    """

    def __init__(
        self,
        config: ConfigResolver,
        transport: Transport,
        normalizer: ErrorNormalizer,
        cache: CredentialCache | None = None,
        log: logging.Logger | None = None,
        verbose: bool = False,
    ):
        self.config = config
        self.transport = transport
        self.normalizer = normalizer
        self.cache = cache
        self.log = log or logger
        self.verbose = verbose
        self.state = SessionState.UNAUTHENTICATED
        self._session_key: str | None = None

    @property
    def fingerprint(self) -> str | None:
        return self.cache.fingerprint if self.cache is not None else None

    def get_session_key(self, force: bool = False) -> str:
        """Return a session token, authenticating if needed.

        Args:
            force: Skip the in-memory and cached tokens and authenticate anew.

        Raises:
            UnimailError: Normalized failure of the session exchange.
        """
        return self.normalizer.call(
            lambda: self._get_session_key(force), "getting a session key"
        )

    def _get_session_key(self, force: bool) -> str:
        override = self.config.get("session_key", required=False)
        if override:
            log_session_event(AuditEvent.SESSION_OVERRIDE)
            return override

        if not force and not self._session_key and self.cache is not None:
            cached = self.cache.get(SESSION_TOKEN_KEY)
            if cached:
                self._session_key = cached
                self.state = SessionState.AUTHENTICATED
                log_session_event(AuditEvent.SESSION_CACHE_HIT, self.fingerprint)
                return cached

        if not self._session_key or force:
            self._authenticate()

        if self._session_key:
            return self._session_key

        raise AuthenticationUnavailableError(
            "Could not get session token for some reason; could be a unimail issue. "
            f"Please report this incident to {SUPPORT_EMAIL}. Thank you for your patience."
        )

    def _authenticate(self) -> None:
        """Exchange the credential pair for a new session token."""
        self.state = SessionState.REFRESHING if self._session_key else SessionState.UNAUTHENTICATED

        result = self.transport.send(
            "POST",
            build_url(self.config.base_url(), SESSIONS_ENDPOINT),
            body={
                "key": self.config.get("token_key"),
                "secret": self.config.get("token_secret"),
            },
        )
        if not result.ok:
            self.state = SessionState.UNAUTHENTICATED
            self._session_key = None
            log_session_event(
                AuditEvent.SESSION_CREATE_FAILED,
                self.fingerprint,
                error=str(result.status or result.reason),
            )
            raise TransportFailure(result)

        data = result.payload()
        token = data.get("sessionToken") if isinstance(data, dict) else None
        if not token:
            self.state = SessionState.AUTHENTICATED if self._session_key else SessionState.UNAUTHENTICATED
            return

        self._session_key = token
        self.state = SessionState.AUTHENTICATED
        log_session_event(AuditEvent.SESSION_CREATE, self.fingerprint)

        if data.get("messages"):
            self._relay_messages(data["messages"])

        if self.cache is not None:
            try:
                self.cache.set(SESSION_TOKEN_KEY, token)
            except OSError as e:
                self.log.warning("%s Could not write session cache %s: %s", ERROR_PRELUDE, self.cache.filename, e)

    def _relay_messages(self, messages: Any) -> None:
        """Forward server messages to the logger; never fails authentication."""
        try:
            for message in messages:
                level = MESSAGE_LEVELS.get(str(message.get("type", "info")).lower(), logging.INFO)
                self.log.log(level, message["text"])
        except (AttributeError, KeyError, TypeError):
            self.log.warning(
                "%s Swallowed an error trying to send you a message. Not sure exactly what "
                "happened, but the raw message is this: %r",
                ERROR_PRELUDE,
                messages,
            )

    def with_session(self, fn: Callable[[str], T]) -> T:
        """Call ``fn(token)``, reauthenticating once if the token was rejected.

        Raises:
            InvalidCredentialsError: If ``fn`` is rejected with 401 again after
                a fresh session was obtained.
        """
        token = self.get_session_key()
        try:
            return fn(token)
        except TransportFailure as e:
            if e.status != 401:
                raise

        if self.verbose:
            self.log.info("unimail API: Session key expired; fetching new one")
        log_session_event(AuditEvent.SESSION_EXPIRED, self.fingerprint)

        token = self.get_session_key(force=True)
        try:
            return fn(token)
        except TransportFailure as e:
            if e.status != 401:
                raise
            raise InvalidCredentialsError(
                "Provided API Key and Secret are invalid.", cause=e
            ) from e


__all__ = [
    "SESSIONS_ENDPOINT",
    "MESSAGE_LEVELS",
    "SessionState",
    "SessionManager",
]
