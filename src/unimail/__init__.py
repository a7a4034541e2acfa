"""unimail - client and CLI for the unimail email-templating API.

This package provides an authenticated API client with session caching and
refresh, layered configuration, and normalized error reporting.
"""

from unimail._version import __version__
from unimail.api.client import UnimailClient, create_client
from unimail.errors import UnimailError

__all__ = [
    "__version__",
    "UnimailClient",
    "UnimailError",
    "create_client",
]
