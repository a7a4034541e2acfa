"""API client for the unimail templating service.

Wires configuration, session management, caching and error normalization
together and exposes the template endpoints.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import quote

from unimail.api.cache import CredentialCache
from unimail.api.session import SessionManager
from unimail.config.audit import log_api_request
from unimail.config.security import mask_token
from unimail.config.settings import ConfigPaths, ConfigResolver
from unimail.display.colors import Colors, strip_ansi
from unimail.errors import ErrorNormalizer
from unimail.transport import Transport, TransportFailure, build_url

TEMPLATES_ENDPOINT = "/v1/templates"

# Header and body fields masked in verbose request logs
SENSITIVE_FIELDS = {"session", "secret", "key"}

LOGGER_NAME = "unimail"


class TemplateResource:
    """Template endpoints, exposed as ``client.templates``."""

    def __init__(self, client: "UnimailClient"):
        self.client = client

    def index(self) -> list[dict[str, Any]]:
        """List templates as ``{"id", "title"}`` mappings, in server order."""
        return self.client.request("GET", TEMPLATES_ENDPOINT)

    def render(self, template_id: str, query: Mapping[str, Any] | None = None) -> str:
        """Render a template to HTML.

        Args:
            template_id: Template to render.
            query: Extra query parameters forwarded verbatim (e.g. ``debug``).

        Returns:
            The rendered HTML document.
        """
        endpoint = f"{TEMPLATES_ENDPOINT}/{quote(str(template_id), safe='')}/renders"
        return self.client.request("POST", endpoint, query=query)


class UnimailClient:
    """Client for the unimail API.

    Any setting (``host``, ``protocol``, ``port``, ``token_key``,
    ``token_secret``, ``cache``, ``session_key``, ``verbose``, ``colors``,
    ``timeout``, ``config_file``) may be passed as a keyword option; options
    take precedence over environment variables and the config file.

    Args:
        logger: Logger receiving verbose output and diagnostics.
        environ: Environment mapping; defaults to ``os.environ``.
        paths: Default config/cache locations.
        transport: HTTP transport; a ``Transport`` is created when omitted.
        defaults: Fallback settings used when no other source sets them.
        **options: Settings, see above.
    """

    def __init__(
        self,
        logger: logging.Logger | None = None,
        environ: Mapping[str, str] | None = None,
        paths: ConfigPaths | None = None,
        transport: Transport | None = None,
        defaults: Mapping[str, Any] | None = None,
        **options: Any,
    ):
        self.log = logger or logging.getLogger(LOGGER_NAME)
        self.config = ConfigResolver(options, environ=environ, paths=paths, defaults=defaults)
        self.verbose = self.config.get_flag("verbose")
        self.colors = self.config.get_flag("colors")

        timeout = self.config.get("timeout", required=False)
        self.transport = transport or Transport(timeout=float(timeout) if timeout else None)
        self.errors = ErrorNormalizer(self.get_base_url, lambda: self.config.get("host"), self.log)
        self.cache = self._create_cache()
        self.session = SessionManager(
            self.config,
            self.transport,
            self.errors,
            cache=self.cache,
            log=self.log,
            verbose=self.verbose,
        )
        self.templates = TemplateResource(self)

    def _create_cache(self) -> CredentialCache | None:
        cache_file = self.config.get("cache", required=False)
        if not cache_file or self.config.get("session_key", required=False):
            return None
        if cache_file is True:
            cache_file = self.config.paths.cache_file
        return CredentialCache(
            Path(cache_file),
            self.config.get("token_key"),
            self.config.get("token_secret"),
        )

    def get_config_value(self, key: str, required: bool = True) -> Any:
        return self.config.get(key, required=required)

    def get_base_url(self) -> str:
        return self.config.base_url()

    def list_templates(self) -> list[dict[str, Any]]:
        return self.templates.index()

    def render_template(self, template_id: str, query: Mapping[str, Any] | None = None) -> str:
        return self.templates.render(template_id, query=query)

    def request(
        self,
        method: str,
        endpoint: str,
        query: Mapping[str, Any] | None = None,
        data: Mapping[str, Any] | None = None,
    ) -> Any:
        """Issue an authenticated request.

        Args:
            method: HTTP method.
            endpoint: Path below the base URL.
            query: Query parameters.
            data: Request body; merged into the query for GET requests.

        Returns:
            Response payload, with any ``data`` envelope unwrapped.

        Raises:
            UnimailError: Normalized failure.
        """

        def send(session: str) -> Any:
            return self._request(method, endpoint, query=query, data=data, headers={"session": session})

        return self.errors.call(lambda: self.session.with_session(send))

    def _request(
        self,
        method: str,
        endpoint: str,
        query: Mapping[str, Any] | None = None,
        data: Mapping[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        method = method.upper()
        if method == "GET":
            query = {**(data or {}), **(query or {})}
            body = None
        else:
            body = data

        url = build_url(self.get_base_url(), endpoint, dict(query or {}))
        if self.verbose:
            self._log_request(method, url, headers, body)

        result = self.transport.send(method, url, headers=headers, body=body)
        log_api_request(
            endpoint,
            method,
            success=result.ok,
            status_code=result.status,
            error=None if result.ok else result.reason or None,
        )
        if not result.ok:
            raise TransportFailure(result)

        payload = result.payload()
        if isinstance(payload, dict) and "data" in payload:
            return payload["data"]
        return payload

    def _log_request(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str] | None,
        body: Mapping[str, Any] | None,
    ) -> None:
        def pad(text: str) -> str:
            return "\n".join(f"\t{line}" for line in text.splitlines())

        def masked(values: Mapping[str, Any]) -> dict[str, Any]:
            return {
                k: mask_token(v) if k.lower() in SENSITIVE_FIELDS else v
                for k, v in values.items()
            }

        lines = [f"{Colors.YELLOW}{method}{Colors.RESET} {url}"]
        if headers:
            header_text = "Headers:\n" + json.dumps(masked(headers), indent=2)
            lines.append(f"{Colors.GREEN}{pad(header_text)}{Colors.RESET}")
        if body:
            lines.append(f"{Colors.MAGENTA}{pad(json.dumps(masked(body), indent=2))}{Colors.RESET}")

        message = "\n".join(lines)
        if not self.colors:
            message = strip_ansi(message)
        self.log.info(message)


def create_client(**options: Any) -> UnimailClient:
    """Create an ``UnimailClient``; see its docstring for the options."""
    return UnimailClient(**options)


__all__ = [
    "TEMPLATES_ENDPOINT",
    "TemplateResource",
    "UnimailClient",
    "create_client",
]
