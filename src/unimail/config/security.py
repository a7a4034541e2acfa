"""Keeping credentials out of logs and away from other users."""

from __future__ import annotations

import stat
from pathlib import Path

GROUP_OR_OTHER = stat.S_IRWXG | stat.S_IRWXO


def mask_token(token: str | None, visible: int = 4) -> str:
    """Shorten a secret to its first and last ``visible`` characters.

    Values too short to show both ends are replaced entirely by asterisks.
    """
    if not token:
        return "<empty>"
    token = str(token)
    if len(token) <= 2 * visible:
        return "*" * len(token)
    return f"{token[:visible]}...{token[-visible:]}"


def insecure_permissions_warning(path: Path) -> str | None:
    """Describe why ``path`` is not private to its owner, or return ``None``."""
    try:
        mode = stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        return None
    except OSError as e:
        return f"Cannot check permissions for {path}: {e}"

    if mode & GROUP_OR_OTHER:
        return (
            f"{path} holds a token secret but is accessible by other users "
            f"(mode {mode:03o}); run: chmod 600 {path}"
        )
    return None


__all__ = [
    "mask_token",
    "insecure_permissions_warning",
]
