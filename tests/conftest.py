"""
Pytest fixtures for unimail tests.

Test imports use the src/unimail/ package via --import-mode=importlib (see pyproject.toml).
Network access is replaced by ``FakeTransport``, which replays queued
``TransportResult`` objects and records every request it receives.
"""

import json
from pathlib import Path
from types import SimpleNamespace

import pytest

from unimail.api.client import UnimailClient
from unimail.config.settings import ConfigPaths
from unimail.transport import Outcome, TransportResult


# ═══════════════════════════════════════════════════════════════════════════════
# Path Constants
# ═══════════════════════════════════════════════════════════════════════════════

FIXTURES_DIR = Path(__file__).parent / "fixtures"
with open(FIXTURES_DIR / "api_responses.json") as f:
    FIXTURES = json.load(f)

TOKEN_KEY = "test-key-12345"
TOKEN_SECRET = "test-secret-67890"


# ═══════════════════════════════════════════════════════════════════════════════
# Transport Doubles
# ═══════════════════════════════════════════════════════════════════════════════


def json_result(payload, status=200):
    """Successful (or HTTP error, for status >= 400) JSON response."""
    return TransportResult(
        outcome=Outcome.OK if status < 400 else Outcome.HTTP_ERROR,
        status=status,
        body=json.dumps(payload).encode(),
        headers={"content-type": "application/json; charset=utf-8"},
    )


def html_result(html, status=200):
    return TransportResult(
        outcome=Outcome.OK if status < 400 else Outcome.HTTP_ERROR,
        status=status,
        body=html.encode(),
        headers={"content-type": "text/html; charset=utf-8"},
    )


def unauthorized_result():
    return json_result({"error": "Session expired"}, status=401)


def network_result(outcome, reason="network failure"):
    return TransportResult(outcome=outcome, reason=reason)


class FakeTransport:
    """Replays queued results and records requests."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = []

    def queue(self, *results):
        self.results.extend(results)

    def send(self, method, url, headers=None, body=None):
        self.calls.append(
            {"method": method, "url": url, "headers": dict(headers or {}), "body": body}
        )
        if not self.results:
            raise AssertionError(f"Unexpected request: {method} {url}")
        return self.results.pop(0)

    def calls_to(self, suffix):
        return [c for c in self.calls if c["url"].split("?")[0].endswith(suffix)]


# ═══════════════════════════════════════════════════════════════════════════════
# Response Fixtures
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def templates_list():
    """Three templates in server order."""
    return [dict(t) for t in FIXTURES["templates"]]


@pytest.fixture
def session_response():
    return json_result(FIXTURES["session"])


@pytest.fixture
def refreshed_session_response():
    return json_result(FIXTURES["session_refreshed"])


@pytest.fixture
def session_with_messages():
    """Session response carrying server messages."""
    return json_result(FIXTURES["session_with_messages"])


@pytest.fixture
def rendered_html():
    return FIXTURES["rendered_html"]


# ═══════════════════════════════════════════════════════════════════════════════
# Config Fixtures
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def tmp_paths(tmp_path):
    """Config and cache locations inside tmp_path."""
    return ConfigPaths(
        config_file_base=tmp_path / "unimail" / "config",
        cache_file=tmp_path / "unimail" / "cache.json",
    )


@pytest.fixture
def tmp_config_file(tmp_paths):
    """JSON config file at the default location."""
    config_file = tmp_paths.config_file_base.with_name("config.json")
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(FIXTURES["config_file"]))
    return config_file


# ═══════════════════════════════════════════════════════════════════════════════
# Client Fixtures
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def responses():
    """Builders for ``TransportResult`` objects."""
    return SimpleNamespace(
        json=json_result,
        html=html_result,
        unauthorized=unauthorized_result,
        network=network_result,
    )


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def make_transport():
    return FakeTransport


@pytest.fixture
def make_client(tmp_paths, transport):
    """Factory for clients isolated from the real environment and network."""

    def factory(**options):
        settings = {
            "host": "api.example.com",
            "protocol": "https",
            "token_key": TOKEN_KEY,
            "token_secret": TOKEN_SECRET,
            "cache": False,
        }
        settings.update(options)
        environ = settings.pop("environ", {})
        return UnimailClient(
            environ=environ,
            paths=tmp_paths,
            transport=settings.pop("transport", transport),
            **settings,
        )

    return factory
