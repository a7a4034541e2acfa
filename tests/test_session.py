"""
Tests for session token management.

Tests cover:
- SessionManager.get_session_key() - override, cache adoption, authentication
- SessionManager.with_session() - one refresh on 401, then InvalidCredentialsError
- Server message relay
- Session state transitions
"""

import logging
from unittest.mock import patch

import pytest

from unimail.api.cache import SESSION_TOKEN_KEY, CredentialCache
from unimail.api.session import SessionState
from unimail.errors import (
    APIError,
    AuthenticationUnavailableError,
    ConfigurationError,
    DnsResolutionError,
    InvalidCredentialsError,
)
from unimail.transport import Outcome


@pytest.fixture
def cached_client(make_client, tmp_paths):
    """Client that keeps session tokens in the tmp cache file."""

    def factory(**options):
        return make_client(cache=str(tmp_paths.cache_file), **options)

    return factory


# ═══════════════════════════════════════════════════════════════════════════════
# Test get_session_key()
# ═══════════════════════════════════════════════════════════════════════════════


class TestGetSessionKey:
    """Tests for obtaining a session token."""

    def test_authenticates_with_credentials(self, make_client, transport, session_response):
        """Test the credential pair is posted to /v1/sessions."""
        transport.queue(session_response)
        client = make_client()

        token = client.session.get_session_key()

        assert token == "sess-token-0001"
        assert len(transport.calls) == 1
        call = transport.calls[0]
        assert call["method"] == "POST"
        assert call["url"] == "https://api.example.com/v1/sessions"
        assert call["body"] == {
            "key": client.config.get("token_key"),
            "secret": client.config.get("token_secret"),
        }

    def test_token_reused_in_memory(self, make_client, transport, session_response):
        """Test a second call does not authenticate again."""
        transport.queue(session_response)
        client = make_client()

        first = client.session.get_session_key()
        second = client.session.get_session_key()

        assert first == second == "sess-token-0001"
        assert len(transport.calls) == 1

    def test_force_reauthenticates(
        self, make_client, transport, session_response, refreshed_session_response
    ):
        """Test force=True always fetches a new token."""
        transport.queue(session_response, refreshed_session_response)
        client = make_client()

        client.session.get_session_key()
        token = client.session.get_session_key(force=True)

        assert token == "sess-token-0002"
        assert len(transport.calls_to("/v1/sessions")) == 2

    def test_override_returned_verbatim(self, make_client, transport):
        """Test a session_key setting bypasses authentication."""
        client = make_client(session_key="override-token")

        assert client.session.get_session_key() == "override-token"
        assert transport.calls == []

    def test_override_from_environment(self, make_client, transport):
        """Test UNIMAIL_SESSION_KEY is honored."""
        client = make_client(environ={"UNIMAIL_SESSION_KEY": "env-token"})

        assert client.session.get_session_key() == "env-token"
        assert transport.calls == []

    def test_override_skips_cache(self, cached_client, transport, tmp_paths):
        """Test no cache is used or written when a session_key is set."""
        client = cached_client(session_key="override-token")

        assert client.cache is None
        assert client.session.get_session_key() == "override-token"
        assert not tmp_paths.cache_file.exists()

    def test_override_not_needing_credentials(self, make_client, transport):
        """Test an override works without a token key or secret."""
        client = make_client(token_key=None, token_secret=None, session_key="override-token")

        assert client.session.get_session_key() == "override-token"

    def test_cached_token_adopted(self, cached_client, transport):
        """Test a cached token is used without any network request."""
        client = cached_client()
        client.cache.set(SESSION_TOKEN_KEY, "cached-token")

        token = client.session.get_session_key()

        assert token == "cached-token"
        assert transport.calls == []
        assert client.session.state is SessionState.AUTHENTICATED

    def test_new_token_written_to_cache(self, cached_client, transport, session_response, tmp_paths):
        """Test a freshly obtained token is persisted for the next client."""
        transport.queue(session_response)
        client = cached_client()

        client.session.get_session_key()

        reader = CredentialCache(
            tmp_paths.cache_file,
            client.config.get("token_key"),
            client.config.get("token_secret"),
        )
        assert reader.get(SESSION_TOKEN_KEY) == "sess-token-0001"

    def test_cache_write_failure_is_a_warning(
        self, cached_client, transport, session_response, caplog
    ):
        """Test an unwritable cache does not block authentication."""
        transport.queue(session_response)
        client = cached_client()

        with patch.object(CredentialCache, "set", side_effect=OSError("read-only file system")):
            with caplog.at_level(logging.WARNING, logger="unimail"):
                token = client.session.get_session_key()

        assert token == "sess-token-0001"
        assert "Could not write session cache" in caplog.text

    def test_missing_token_raises_unavailable(self, make_client, transport, responses):
        """Test a session response without a token is reported."""
        transport.queue(responses.json({}))
        client = make_client()

        with pytest.raises(AuthenticationUnavailableError) as exc_info:
            client.session.get_session_key()

        assert "support@unimail.co" in str(exc_info.value)
        assert client.session.state is SessionState.UNAUTHENTICATED

    def test_rejected_credentials(self, make_client, transport, responses):
        """Test 401 from /v1/sessions becomes InvalidCredentialsError."""
        transport.queue(responses.unauthorized())
        client = make_client()

        with pytest.raises(InvalidCredentialsError) as exc_info:
            client.session.get_session_key()

        assert "Provided API Key and Secret are invalid." in str(exc_info.value)
        assert client.session.state is SessionState.UNAUTHENTICATED

    def test_server_error_mentions_action(self, make_client, transport, responses):
        """Test session API errors say what was being done."""
        transport.queue(responses.json({"error": "Maintenance"}, status=503))
        client = make_client()

        with pytest.raises(APIError) as exc_info:
            client.session.get_session_key()

        assert str(exc_info.value) == (
            'unimail API Error: while getting a session key, server responded with 503. '
            'Server says "Maintenance".'
        )

    def test_dns_failure(self, make_client, transport, responses):
        """Test an unresolvable host is reported with the base URL."""
        transport.queue(responses.network(Outcome.DNS_FAILURE, "Name or service not known"))
        client = make_client()

        with pytest.raises(DnsResolutionError) as exc_info:
            client.session.get_session_key()

        assert "api.example.com did not resolve (https://api.example.com)" in str(exc_info.value)

    def test_missing_credentials(self, make_client, transport):
        """Test authentication without credentials is a configuration error."""
        client = make_client(token_key=None)

        with pytest.raises(ConfigurationError) as exc_info:
            client.session.get_session_key()

        assert "token_key" in str(exc_info.value)
        assert transport.calls == []


# ═══════════════════════════════════════════════════════════════════════════════
# Test server messages
# ═══════════════════════════════════════════════════════════════════════════════


class TestServerMessages:
    """Tests for relaying messages sent with a session token."""

    def test_messages_logged_by_type(self, make_client, transport, session_with_messages, caplog):
        """Test each message is logged at the level its type names."""
        transport.queue(session_with_messages)
        client = make_client()

        with caplog.at_level(logging.DEBUG, logger="unimail"):
            token = client.session.get_session_key()

        assert token == "sess-token-0003"
        levels = {r.getMessage(): r.levelno for r in caplog.records}
        assert levels["Your trial ends in 3 days"] == logging.WARNING
        assert levels["New template editor available"] == logging.INFO

    def test_malformed_messages_do_not_fail(self, make_client, transport, responses, caplog):
        """Test unexpected message shapes are reported and ignored."""
        transport.queue(responses.json({"sessionToken": "tok", "messages": [{"type": "info"}]}))
        client = make_client()

        with caplog.at_level(logging.WARNING, logger="unimail"):
            token = client.session.get_session_key()

        assert token == "tok"
        assert "Swallowed an error trying to send you a message" in caplog.text

    def test_error_message_type(self, make_client, transport, responses, caplog):
        """Test error-typed messages are logged as errors."""
        transport.queue(
            responses.json({"sessionToken": "tok", "messages": [{"type": "error", "text": "Quota hit"}]})
        )
        client = make_client()

        with caplog.at_level(logging.INFO, logger="unimail"):
            client.session.get_session_key()

        assert [r.levelno for r in caplog.records if r.getMessage() == "Quota hit"] == [logging.ERROR]


# ═══════════════════════════════════════════════════════════════════════════════
# Test with_session()
# ═══════════════════════════════════════════════════════════════════════════════


class TestWithSession:
    """Tests for the refresh-once-on-401 policy."""

    def test_refreshes_once_on_401(
        self,
        make_client,
        transport,
        responses,
        session_response,
        refreshed_session_response,
        templates_list,
    ):
        """Test an expired session is refreshed and the request retried."""
        transport.queue(
            session_response,
            responses.unauthorized(),
            refreshed_session_response,
            responses.json(templates_list),
        )
        client = make_client()

        result = client.list_templates()

        assert result == templates_list
        assert len(transport.calls_to("/v1/sessions")) == 2
        template_calls = transport.calls_to("/v1/templates")
        assert [c["headers"]["session"] for c in template_calls] == [
            "sess-token-0001",
            "sess-token-0002",
        ]

    def test_refresh_updates_cache(
        self,
        cached_client,
        transport,
        responses,
        session_response,
        refreshed_session_response,
        templates_list,
    ):
        """Test the refreshed token replaces the expired one on disk."""
        transport.queue(
            session_response,
            responses.unauthorized(),
            refreshed_session_response,
            responses.json(templates_list),
        )
        client = cached_client()

        client.list_templates()

        assert client.cache.get(SESSION_TOKEN_KEY) == "sess-token-0002"

    def test_stale_cached_token_refreshed(
        self, cached_client, transport, responses, session_response, templates_list
    ):
        """Test a cached token rejected by the server is replaced."""
        transport.queue(responses.unauthorized(), session_response, responses.json(templates_list))
        client = cached_client()
        client.cache.set(SESSION_TOKEN_KEY, "stale-token")

        assert client.list_templates() == templates_list
        assert transport.calls[0]["headers"]["session"] == "stale-token"
        assert transport.calls[2]["headers"]["session"] == "sess-token-0001"

    def test_second_401_raises(
        self, make_client, transport, responses, session_response, refreshed_session_response
    ):
        """Test a 401 after refreshing is reported as invalid credentials."""
        transport.queue(
            session_response,
            responses.unauthorized(),
            refreshed_session_response,
            responses.unauthorized(),
        )
        client = make_client()

        with pytest.raises(InvalidCredentialsError) as exc_info:
            client.list_templates()

        assert len(transport.calls) == 4
        assert exc_info.value.__cause__ is not None
        assert exc_info.value.code == 11

    def test_other_errors_not_retried(self, make_client, transport, responses, session_response):
        """Test non-401 failures propagate without a refresh."""
        transport.queue(session_response, responses.json({"error": "Template not found"}, status=404))
        client = make_client()

        with pytest.raises(APIError) as exc_info:
            client.render_template("missing")

        assert exc_info.value.status == 404
        assert exc_info.value.server_message == "Template not found"
        assert len(transport.calls) == 2

    def test_verbose_logs_refresh(
        self,
        make_client,
        transport,
        responses,
        session_response,
        refreshed_session_response,
        templates_list,
        caplog,
    ):
        """Test verbose mode announces the refresh."""
        transport.queue(
            session_response,
            responses.unauthorized(),
            refreshed_session_response,
            responses.json(templates_list),
        )
        client = make_client(verbose=True)

        with caplog.at_level(logging.INFO, logger="unimail"):
            client.list_templates()

        assert "Session key expired; fetching new one" in caplog.text


# ═══════════════════════════════════════════════════════════════════════════════
# Test session states
# ═══════════════════════════════════════════════════════════════════════════════


class TestSessionState:
    """Tests for SessionState transitions."""

    def test_starts_unauthenticated(self, make_client):
        """Test a new client has no session."""
        assert make_client().session.state is SessionState.UNAUTHENTICATED

    def test_authenticated_after_exchange(self, make_client, transport, session_response):
        """Test a successful exchange authenticates."""
        transport.queue(session_response)
        client = make_client()

        client.session.get_session_key()

        assert client.session.state is SessionState.AUTHENTICATED

    def test_refreshing_during_reauthentication(
        self, make_client, make_transport, session_response, refreshed_session_response
    ):
        """Test the state is REFRESHING while a replacement token is requested."""
        states = []

        class RecordingTransport(make_transport):
            def send(self, method, url, headers=None, body=None):
                states.append(client.session.state)
                return super().send(method, url, headers=headers, body=body)

        client = make_client(transport=RecordingTransport(session_response, refreshed_session_response))

        client.session.get_session_key()
        client.session.get_session_key(force=True)

        assert states == [SessionState.UNAUTHENTICATED, SessionState.REFRESHING]
        assert client.session.state is SessionState.AUTHENTICATED
