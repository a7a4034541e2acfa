"""API client, session management and caching.

Modules:
    client: unimail API client and template resource
    session: Session token acquisition and refresh
    cache: On-disk session token cache
"""

from unimail.api.cache import SESSION_TOKEN_KEY, CredentialCache, credential_fingerprint
from unimail.api.client import TEMPLATES_ENDPOINT, TemplateResource, UnimailClient, create_client
from unimail.api.session import SESSIONS_ENDPOINT, SessionManager, SessionState

__all__ = [
    # Cache
    "SESSION_TOKEN_KEY",
    "CredentialCache",
    "credential_fingerprint",
    # Session
    "SESSIONS_ENDPOINT",
    "SessionManager",
    "SessionState",
    # Client
    "TEMPLATES_ENDPOINT",
    "TemplateResource",
    "UnimailClient",
    "create_client",
]
