"""Session token caching in the local file system.

The cache file is a JSON object keyed by credential fingerprint, each entry
holding the cached values for that credential pair::

    {
      "3f0c9a1e7b2d4c55": {"sessionToken": "..."}
    }

Every operation reads or writes the whole file, so use sparingly.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

SESSION_TOKEN_KEY = "sessionToken"


def credential_fingerprint(key: str, secret: str) -> str:
    """64-bit hash of a credential pair, used as the cache namespace.

    Only partitions a local cache file between credential pairs; it carries
    no security guarantees.
    """
    digest = hashlib.blake2b(f"{key}\0{secret}".encode(), digest_size=8)
    return digest.hexdigest()


class CredentialCache:
    """Values cached on disk under one credential fingerprint.

    Args:
        filename: Path of the cache file.
        key: Long-lived credential key.
        secret: Long-lived credential secret.
    """

    def __init__(self, filename: str | Path, key: str, secret: str):
        self.filename = Path(filename).expanduser()
        self.fingerprint = credential_fingerprint(key, secret)

    def _read(self) -> dict[str, Any]:
        if not self.filename.exists():
            return {}
        try:
            with open(self.filename, encoding="utf-8") as f:
                contents = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Ignoring unreadable session cache %s: %s", self.filename, e)
            return {}
        if not isinstance(contents, dict):
            logger.warning("Ignoring malformed session cache %s", self.filename)
            return {}
        return contents

    def get(self, key: str) -> Any:
        """Cached value for ``key``, or None if absent or the file does not exist."""
        entry = self._read().get(self.fingerprint)
        if not isinstance(entry, dict):
            return None
        return entry.get(key)

    def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``, keeping other fingerprints' entries."""
        contents = self._read()
        entry = contents.get(self.fingerprint)
        if not isinstance(entry, dict):
            entry = {}
        entry[key] = value
        contents[self.fingerprint] = entry

        self.filename.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.filename.parent, prefix=f".{self.filename.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(contents, f, indent=2)
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.filename)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


__all__ = [
    "SESSION_TOKEN_KEY",
    "CredentialCache",
    "credential_fingerprint",
]
