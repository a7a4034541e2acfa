"""Template listing and rendered-HTML preview formatting.

Provides the boxed template table printed by ``unimail templates`` and the
HTML tweaks applied before a rendered template is opened in a browser.
"""

from __future__ import annotations

import re
from typing import Any

from unimail.display.colors import Colors, strip_ansi

PREVIEW_TITLE_PREFIX = "&lt;render test&gt;: "
DEFAULT_AUTOCLOSE_SECONDS = 5

AUTOCLOSE_SCRIPT = """
<script>
  let left = {seconds};
  const interval = setInterval(() => {{
    if (--left === 0) {{
      window.close();
    }} else {{
      document.getElementById('msg').innerHTML = 'autoclosing in ' + left + ' seconds (press space to cancel)';
    }}
  }}, 1000);

  document.addEventListener('keydown', e => {{
    if (e.keyCode === 32) {{
      clearInterval(interval);
      document.getElementById('msg').innerHTML = '';
    }}
  }});
</script>
"""

AUTOCLOSE_NOTICE = '<div id="msg">autoclosing in {seconds} seconds (press space to cancel)</div>'


def _visible_len(text: str) -> int:
    return len(strip_ansi(text))


def _pad(text: str, width: int, center: bool = False) -> str:
    gap = width - _visible_len(text)
    if center:
        left = gap // 2
        return " " * left + text + " " * (gap - left)
    return text + " " * gap


def format_template_table(templates: list[dict[str, Any]]) -> str:
    """Format templates as a boxed table with a numbered row per template.

    Args:
        templates: Template mappings with ``id`` and ``title`` keys.

    Returns:
        Multi-line table, each line indented by a tab.
    """
    header = [
        "#",
        f"{Colors.BLUE}{Colors.BOLD}ID{Colors.RESET}",
        f"{Colors.BLUE}{Colors.BOLD}Title{Colors.RESET}",
    ]

    # Alternate row shading
    shades = [Colors.WHITE, Colors.GRAY]
    rows = []
    for i, template in enumerate(templates):
        shade = shades[i % 2]
        rows.append(
            [
                str(i + 1),
                f"{shade}{template.get('id', '')}{Colors.RESET}",
                f"{shade}{template.get('title', '')}{Colors.RESET}",
            ]
        )

    widths = [
        max(_visible_len(row[col]) for row in [header] + rows) + 4 for col in range(len(header))
    ]
    inner_width = sum(widths) + len(widths) - 1

    title = (
        f"{Colors.BOLD}unimail templates{Colors.RESET}"
        f"{Colors.GREEN} ({len(templates)}) {Colors.RESET}"
    )
    inner_width = max(inner_width, _visible_len(title) + 4)
    widths[-1] += inner_width - (sum(widths) + len(widths) - 1)

    border = "+" + "+".join("-" * w for w in widths) + "+"

    def line(cells: list[str], center: bool = False) -> str:
        padded = [_pad(c if center else f"  {c}", w, center) for c, w in zip(cells, widths)]
        return "|" + "|".join(padded) + "|"

    lines = [
        "+" + "-" * inner_width + "+",
        "|" + _pad(title, inner_width, center=True) + "|",
        border,
        line(header, center=True),
        border,
    ]
    lines.extend(line(row) for row in rows)
    lines.append(border)

    return "\n".join(f"\t{text}" for text in lines)


def prepare_preview(html: str, autoclose: int | None = None) -> str:
    """Mark a rendered template as a test render and optionally auto-close it.

    Args:
        html: Rendered HTML document.
        autoclose: Seconds before the browser tab closes itself; None to keep it open.

    Returns:
        The modified HTML document.
    """
    html = re.sub(
        r"(<title[^>]*>)",
        lambda m: m.group(1) + PREVIEW_TITLE_PREFIX,
        html,
        count=1,
        flags=re.IGNORECASE,
    )

    if autoclose is None:
        return html

    script = AUTOCLOSE_SCRIPT.format(seconds=autoclose)
    notice = AUTOCLOSE_NOTICE.format(seconds=autoclose)
    html = _insert_before(html, "</body>", notice)
    return _insert_before(html, "</html>", script)


def _insert_before(html: str, closing_tag: str, snippet: str) -> str:
    index = html.lower().rfind(closing_tag)
    if index == -1:
        return html + snippet
    return html[:index] + snippet + html[index:]


__all__ = [
    "DEFAULT_AUTOCLOSE_SECONDS",
    "PREVIEW_TITLE_PREFIX",
    "format_template_table",
    "prepare_preview",
]
