"""Configuration management for unimail.

Settings are resolved, per key, from (highest precedence first):

1. options passed when the client is created
2. ``UNIMAIL_<KEY>`` environment variables
3. the unimail config file (JSON, or a Python module)
4. built-in defaults
"""

from __future__ import annotations

import json
import logging
import os
import re
import runpy
from dataclasses import dataclass
from functools import cached_property
from pathlib import Path
from typing import Any, Callable, List, Mapping, Optional, Tuple

from unimail.config.security import insecure_permissions_warning
from unimail.errors import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "UNIMAIL_"
CONFIG_FILE_ENV = "UNIMAIL_CONFIG_FILE"
CACHE_FILE_ENV = "UNIMAIL_CACHE_FILE"

# Extensions tried, in order, after the bare config file name
CONFIG_FILE_EXTENSIONS = (".json", ".py")

ValidatorFunc = Callable[[Any], Tuple[bool, str]]

# key -> (expected_types, validator_func or None)
CONFIG_SCHEMA: dict[str, tuple[tuple, Optional[ValidatorFunc]]] = {
    "host": (
        (str,),
        lambda v: (True, "") if v and "/" not in v else (False, "must be a bare host name"),
    ),
    "protocol": (
        (str,),
        lambda v: (True, "") if v in ("http", "https") else (False, "must be 'http' or 'https'"),
    ),
    "port": (
        (int, str, type(None)),
        lambda v: (True, "") if str(v).isdigit() else (False, "must be a port number"),
    ),
    "token_key": ((str,), None),
    "token_secret": ((str,), None),
    "cache": ((str, bool, type(None)), None),
    "session_key": ((str, type(None)), None),
    "verbose": ((bool,), None),
    "colors": ((bool,), None),
    "timeout": (
        (int, float, type(None)),
        lambda v: (True, "") if v > 0 else (False, "must be a positive number of seconds"),
    ),
}


def snake_key(key: str) -> str:
    """Normalize a setting name to snake_case (``tokenKey`` -> ``token_key``)."""
    key = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", key)
    return re.sub(r"[^A-Za-z0-9]+", "_", key).strip("_").lower()


def env_key_for(key: str) -> str:
    """Environment variable consulted for a setting (``token_key`` -> ``UNIMAIL_TOKEN_KEY``)."""
    return f"{ENV_PREFIX}{snake_key(key).upper()}"


@dataclass(frozen=True)
class ConfigPaths:
    """Default file locations, computed once from the environment.

    Attributes:
        config_file_base: Config file path without extension.
        cache_file: Session cache file path.
    """

    config_file_base: Path
    cache_file: Path

    @classmethod
    def from_environ(cls, environ: Mapping[str, str] | None = None) -> "ConfigPaths":
        environ = os.environ if environ is None else environ

        xdg_config_home = environ.get("XDG_CONFIG_HOME")
        config_dir = Path(xdg_config_home) if xdg_config_home else Path.home() / ".config"
        unimail_dir = config_dir / "unimail"

        config_base = environ.get(CONFIG_FILE_ENV) or unimail_dir / "config"
        cache_file = environ.get(CACHE_FILE_ENV) or unimail_dir / "cache.json"
        return cls(config_file_base=Path(config_base), cache_file=Path(cache_file))

    @property
    def config_dir(self) -> Path:
        return self.config_file_base.parent


def default_config(paths: ConfigPaths) -> dict[str, Any]:
    """Built-in defaults, the lowest-precedence source."""
    return {
        "host": "api.unimail.co",
        "protocol": "https",
        "cache": str(paths.cache_file),
    }


def find_config_file(base: Path) -> Path | None:
    """Locate the config file for ``base``.

    Tries ``base`` itself, then ``base.json`` and ``base.py``.

    Returns:
        Path of the first existing candidate, or None.
    """
    candidates = [base] + [base.with_name(base.name + ext) for ext in CONFIG_FILE_EXTENSIONS]
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    return None


def validate_config(config: dict) -> List[str]:
    """Validate configuration against schema.

    Args:
        config: Configuration dictionary to validate (snake_case keys).

    Returns:
        List of validation error messages. Empty list if valid.
    """
    errors = []

    for key in config:
        if key not in CONFIG_SCHEMA:
            errors.append(f"Unknown config key: '{key}'")

    for key, (expected_types, validator) in CONFIG_SCHEMA.items():
        if key not in config:
            continue

        value = config[key]
        if not isinstance(value, expected_types):
            type_names = " or ".join(t.__name__ for t in expected_types)
            errors.append(
                f"'{key}' has invalid type: expected {type_names}, got {type(value).__name__}"
            )
            continue

        if validator and value is not None:
            is_valid, error_msg = validator(value)
            if not is_valid:
                errors.append(f"'{key}' {error_msg}")

    return errors


def load_config_file(path: Path) -> dict[str, Any]:
    """Load a config file into a plain mapping.

    ``.py`` files are executed and their public module-level names collected;
    anything else is parsed as JSON. Keys are normalized to snake_case.

    Args:
        path: Config file to load.

    Returns:
        Mapping of setting name to value.

    Raises:
        ConfigurationError: If the file cannot be read or parsed.
    """
    try:
        if path.suffix == ".py":
            # A Python config may fail with any exception while it runs.
            namespace = runpy.run_path(str(path))
            raw = {
                k: v
                for k, v in namespace.items()
                if not k.startswith("_") and isinstance(v, (str, int, float, bool, type(None)))
            }
        else:
            with open(path, encoding="utf-8") as f:
                raw = json.load(f)
    except Exception as e:
        raise ConfigurationError(
            f"Could not load the unimail config file at {path}: {e}",
            suggestion="Fix or remove the config file.",
        ) from e

    if not isinstance(raw, dict):
        raise ConfigurationError(
            f"The unimail config file at {path} must contain an object of settings.",
            suggestion="Fix or remove the config file.",
        )

    return {snake_key(k): v for k, v in raw.items()}


class ConfigResolver:
    """Resolves settings from options, environment, config file and defaults.

    Args:
        options: Explicit settings passed at client construction. ``None`` and
            empty strings count as unset; ``False`` is a real value.
        environ: Environment mapping, copied at construction; defaults to
            ``os.environ``.
        paths: Default file locations; computed from ``environ`` when omitted.
        defaults: Caller defaults layered over the built-in ones.
    """

    def __init__(
        self,
        options: Mapping[str, Any] | None = None,
        environ: Mapping[str, str] | None = None,
        paths: ConfigPaths | None = None,
        defaults: Mapping[str, Any] | None = None,
    ):
        self.options = {snake_key(k): v for k, v in (options or {}).items()}
        self.environ = dict(os.environ if environ is None else environ)
        self.paths = paths or ConfigPaths.from_environ(self.environ)
        self.defaults = {snake_key(k): v for k, v in (defaults or {}).items()}

        config_file = self.options.get("config_file")
        self.config_file_base = Path(config_file) if config_file else self.paths.config_file_base
        self.config_file_name = find_config_file(self.config_file_base)

    @cached_property
    def config(self) -> dict[str, Any]:
        """Defaults merged with the config file, loaded on first use."""
        config = default_config(self.paths)
        config.update(self.defaults)
        if self.config_file_name is None:
            return config

        file_config = load_config_file(self.config_file_name)
        for error in validate_config(file_config):
            logger.warning("Config %s: %s", self.config_file_name, error)

        if "token_secret" in file_config:
            warning = insecure_permissions_warning(self.config_file_name)
            if warning:
                logger.warning(warning)

        config.update(file_config)
        return config

    def get(self, key: str, required: bool = True) -> Any:
        """Resolve a single setting.

        Args:
            key: Setting name (snake_case or camelCase).
            required: Raise if no source provides a value.

        Returns:
            The first non-empty value found, or None.

        Raises:
            ConfigurationError: If the value is required and missing.
        """
        key = snake_key(key)
        env_key = env_key_for(key)

        for value in (self.options.get(key), self.environ.get(env_key), self.config.get(key)):
            if value is not None and value != "":
                return value

        if required:
            raise ConfigurationError(self._missing_message(key, env_key))
        return None

    def get_flag(self, key: str) -> bool:
        """Resolve a boolean setting; env values like "0"/"false" are false."""
        value = self.get(key, required=False)
        if isinstance(value, str):
            return value.strip().lower() not in ("", "0", "false", "no", "off")
        return bool(value)

    def base_url(self) -> str:
        """``protocol://host[:port]``; the port is only included when set."""
        without_port = f"{self.get('protocol')}://{self.get('host')}"
        port = self.get("port", required=False)
        if port:
            return f"{without_port}:{port}"
        return without_port

    def _missing_message(self, key: str, env_key: str) -> str:
        if self.config_file_name:
            file_message = f"(currently located at {self.config_file_name})"
        else:
            base = self.config_file_base
            file_message = f"(not created; defaults to {base}.py or {base}.json)"

        return (
            f"Missing required configuration value for key `{key}`\n"
            "Specify by:\n"
            f'  - Passing "{key}" as a key in a config object when creating the client\n'
            f'  - Setting the "{env_key}" environment variable\n'
            f"  - Setting `{key}` in the unimail config file {file_message}"
        )


__all__ = [
    "ENV_PREFIX",
    "CONFIG_FILE_ENV",
    "CACHE_FILE_ENV",
    "CONFIG_SCHEMA",
    "ConfigPaths",
    "ConfigResolver",
    "default_config",
    "env_key_for",
    "find_config_file",
    "load_config_file",
    "snake_key",
    "validate_config",
]
