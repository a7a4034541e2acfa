"""Display and formatting utilities.

Modules:
    colors: Terminal color handling
    templates: Template table and rendered-HTML preview helpers
"""

from unimail.display.colors import Colors, init_colors, strip_ansi, supports_color
from unimail.display.templates import format_template_table, prepare_preview

__all__ = [
    # Colors
    "Colors",
    "supports_color",
    "init_colors",
    "strip_ansi",
    # Templates
    "format_template_table",
    "prepare_preview",
]
