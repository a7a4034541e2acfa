"""Terminal color handling and detection.

Provides ANSI color codes for terminal output with automatic
detection of color support.
"""

import os
import platform
import re
import sys

ANSI_PATTERN = re.compile(r"\033\[[0-9;]*m")


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    BLUE = "\033[94m"
    CYAN = "\033[96m"
    WHITE = "\033[97m"
    GRAY = "\033[90m"
    MAGENTA = "\033[95m"


def supports_color() -> bool:
    """Check if the terminal supports color output.

    Returns:
        True if colors should be displayed, False otherwise.
    """
    # Any non-empty UNIMAIL_NO_COLOR disables color
    if os.environ.get("UNIMAIL_NO_COLOR"):
        return False
    if not hasattr(sys.stdout, "isatty") or not sys.stdout.isatty():
        return False
    if platform.system() == "Windows":
        return bool(os.environ.get("TERM") or os.environ.get("WT_SESSION"))
    return True


def disable_colors() -> None:
    """Blank out every color code."""
    for attr in dir(Colors):
        if not attr.startswith("_"):
            setattr(Colors, attr, "")


def init_colors() -> None:
    """Disable all color codes if the terminal doesn't support colors."""
    if not supports_color():
        disable_colors()


def strip_ansi(text: str) -> str:
    """Remove ANSI escape sequences from ``text``."""
    return ANSI_PATTERN.sub("", text)


init_colors()

__all__ = ["Colors", "supports_color", "init_colors", "disable_colors", "strip_ansi"]
