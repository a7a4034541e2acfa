"""Command-line interface for unimail.

This module provides the main entry point and argument parsing for the
unimail CLI tool.
"""

import argparse
import logging
import platform
import sys
import tempfile
import webbrowser
from pathlib import Path

from unimail._version import __version__
from unimail.api.client import UnimailClient, create_client
from unimail.config.audit import default_audit_log_path, enable_audit_logging
from unimail.config.settings import ConfigPaths
from unimail.display.colors import Colors, disable_colors
from unimail.display.templates import (
    DEFAULT_AUTOCLOSE_SECONDS,
    format_template_table,
    prepare_preview,
)
from unimail.errors import ExitCode, UnimailError, format_error_for_user, get_exit_code

# Fallbacks for settings the terminal user has not configured
CLI_DEFAULTS = {"colors": True}


def add_common_arguments(parser: argparse.ArgumentParser, paths: ConfigPaths) -> None:
    """Options shared by every API command."""
    parser.add_argument(
        "-c",
        "--config",
        metavar="FILE",
        help=f"Config file to use (defaults to {paths.config_file_base}.(py|json))",
    )
    parser.add_argument(
        "-f",
        "--cache",
        metavar="FILE",
        help=f"Cache file for session tokens (defaults to {paths.cache_file})",
    )
    parser.add_argument(
        "-F",
        "--no-cache",
        action="store_true",
        help="Don't use a cache file (request a new session token every time)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument(
        "--audit",
        nargs="?",
        const="",
        metavar="FILE",
        help="Append security-relevant events to an audit log (defaults next to the config file)",
    )


def create_parser(paths: ConfigPaths | None = None) -> argparse.ArgumentParser:
    """Create and configure the argument parser.

    Returns:
        Configured ArgumentParser instance.
    """
    paths = paths or ConfigPaths.from_environ()

    parser = argparse.ArgumentParser(
        prog="unimail",
        description="List and render unimail email templates",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  unimail templates             List all templates
  unimail render                Pick a template interactively and print its HTML
  unimail render -i welcome     Render the "welcome" template
  unimail render -i welcome -o  Render and open the result in a browser
  unimail render -i welcome -ox 10  Open, closing the tab after 10 seconds

Credentials:
  Set UNIMAIL_TOKEN_KEY and UNIMAIL_TOKEN_SECRET, or put token_key and
  token_secret in the config file.
""",
    )
    parser.add_argument(
        "--version",
        "-V",
        action="store_true",
        help="Show version and system information",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    templates = subparsers.add_parser("templates", help="List all unimail templates")
    add_common_arguments(templates, paths)
    templates.set_defaults(handler=cmd_templates)

    render = subparsers.add_parser("render", help="Render an email template to HTML")
    add_common_arguments(render, paths)
    render.add_argument("-i", "--id", metavar="ID", help="Template ID")
    render.add_argument("-o", "--open", action="store_true", help="Open the HTML in a browser")
    render.add_argument(
        "-x",
        "--autoclose",
        nargs="?",
        const=DEFAULT_AUTOCLOSE_SECONDS,
        type=int,
        metavar="SECONDS",
        help=f"Auto close the opened HTML after some seconds (default: {DEFAULT_AUTOCLOSE_SECONDS})",
    )
    render.add_argument("-d", "--debug", metavar="DEBUG", help="Ask the server to print debug information")
    render.add_argument(
        "-s",
        "--silent",
        action="store_true",
        help='Do not print normal output (does not cancel "--verbose")',
    )
    render.add_argument("-n", "--network", action="store_true", help="Show network requests")
    render.set_defaults(handler=cmd_render)

    return parser


def print_version() -> None:
    """Print version and system information."""
    print(f"unimail {__version__}")
    print(f"Python {platform.python_version()} on {platform.system()} {platform.machine()}")


def build_client(args: argparse.Namespace) -> UnimailClient:
    """Create a client from parsed command-line options.

    Flags that were not given are passed as ``None`` so the environment and
    config file still apply; colors default to on for the terminal.
    """
    cache = False if args.no_cache else args.cache
    return create_client(
        verbose=True if args.verbose or getattr(args, "network", False) else None,
        colors=False if args.no_color else None,
        cache=cache,
        config_file=args.config,
        defaults=CLI_DEFAULTS,
    )


def cmd_templates(client: UnimailClient, args: argparse.Namespace) -> int:
    """List templates as a table."""
    templates = client.templates.index()
    print()
    print(format_template_table(templates))
    print()
    return ExitCode.SUCCESS


def choose_template(templates: list) -> str:
    """Ask the user which template to render.

    Returns:
        The chosen template ID.
    """
    print("Which template are you trying to render?")
    for i, template in enumerate(templates, 1):
        print(f"  {Colors.CYAN}{i}{Colors.RESET}) {template['id']}: {template['title']}")

    while True:
        response = input("Template number [1] ").strip() or "1"
        if response.isdigit() and 1 <= int(response) <= len(templates):
            return templates[int(response) - 1]["id"]
        print(f"Please enter a number between 1 and {len(templates)}")


def open_in_browser(html: str, verbose: bool = False) -> Path:
    """Write HTML to a temporary file and open it in the default browser.

    Returns:
        Path of the temporary file.
    """
    with tempfile.NamedTemporaryFile(
        "w", suffix=".html", prefix="unimail-render-", delete=False, encoding="utf-8"
    ) as f:
        f.write(html)
        path = Path(f.name)

    webbrowser.open(path.as_uri())
    if verbose:
        print(f"{Colors.GREEN}Temp file:{Colors.RESET} {path}", file=sys.stderr)
    return path


def cmd_render(client: UnimailClient, args: argparse.Namespace) -> int:
    """Render a template, prompting for one if no ID was given."""
    template_id = args.id
    if not template_id:
        templates = client.templates.index()
        if not templates:
            if not args.silent:
                print("Your account has no templates", file=sys.stderr)
            return ExitCode.USAGE_ERROR
        template_id = choose_template(templates)

    html = client.templates.render(template_id, query={"debug": args.debug})

    if not args.silent:
        print(html)

    if args.open:
        open_in_browser(prepare_preview(html, autoclose=args.autoclose), verbose=args.verbose)

    return ExitCode.SUCCESS


def configure_logging(verbose: bool) -> None:
    """Send log records to stderr; DEBUG when verbose, INFO otherwise."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        stream=sys.stderr,
    )


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the unimail CLI.

    Parses arguments, dispatches to the command handler and exits with the
    handler's exit code, or the error's exit code on failure.
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.version:
        print_version()
        return

    if not args.command:
        parser.print_help()
        sys.exit(ExitCode.USAGE_ERROR)

    if args.no_color:
        disable_colors()

    configure_logging(args.verbose)

    if args.audit is not None:
        log_path = Path(args.audit) if args.audit else default_audit_log_path(
            ConfigPaths.from_environ().config_dir
        )
        enable_audit_logging(log_path)

    try:
        client = build_client(args)
        exit_code = args.handler(client, args)
    except UnimailError as e:
        print(format_error_for_user(e, verbose=args.verbose), file=sys.stderr)
        sys.exit(get_exit_code(e))
    except KeyboardInterrupt:
        print(file=sys.stderr)
        sys.exit(130)

    sys.exit(exit_code)


__all__ = [
    "create_parser",
    "build_client",
    "cmd_templates",
    "cmd_render",
    "choose_template",
    "open_in_browser",
    "print_version",
    "main",
]
