"""Configuration management.

Modules:
    settings: Config resolution from options, environment, file and defaults
    security: Token masking and file permission checks
    audit: Audit log of credential and API activity
"""

from unimail.config.security import insecure_permissions_warning, mask_token
from unimail.config.settings import (
    CACHE_FILE_ENV,
    CONFIG_FILE_ENV,
    CONFIG_SCHEMA,
    ENV_PREFIX,
    ConfigPaths,
    ConfigResolver,
    env_key_for,
    load_config_file,
    validate_config,
)

__all__ = [
    # Settings
    "ENV_PREFIX",
    "CONFIG_FILE_ENV",
    "CACHE_FILE_ENV",
    "CONFIG_SCHEMA",
    "ConfigPaths",
    "ConfigResolver",
    "env_key_for",
    "load_config_file",
    "validate_config",
    # Security
    "mask_token",
    "insecure_permissions_warning",
]
