"""Argparse-based entry points.

``beachpatrol`` launches the browser and serves commands; ``beachmsg`` sends
one command to it and prints the response.
"""

from __future__ import annotations

import argparse
import sys

from beachpatrol.client import ServerUnavailableError, send_command
from beachpatrol.config import (
    SUPPORTED_BROWSERS,
    BeachpatrolConfig,
    get_version,
    load_config,
)
from beachpatrol.dispatch import CommandResolutionError, CommandResolver
from beachpatrol.paths import get_commands_dir

_CLIENT_DESCRIPTION = """\
 - Sends a command to the beachpatrol server controlling the browser.
 - The provided command must exist in the "commands" directory of beachpatrol.
"""

_SERVER_DESCRIPTION = """\
- Launches a browser with the specified profile.
- Opens a socket to listen for commands. Commands can be sent with the
  'beachmsg' command.
"""


# ---------------------------------------------------------------------------
# beachmsg
# ---------------------------------------------------------------------------


def _build_client_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="beachmsg",
        usage="beachmsg <command> [args...]",
        description=_CLIENT_DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--version", action="store_true", help="Show version.")
    parser.add_argument("command", nargs="?", default=None, help="Command to run")
    parser.add_argument(
        "args", nargs=argparse.REMAINDER, help="Arguments passed to the command"
    )
    return parser


def client_main(argv: list[str] | None = None) -> None:
    """Send one command to the running server and print its response."""
    parser = _build_client_parser()
    args = parser.parse_args(argv if argv is not None else sys.argv[1:])

    if args.version:
        print(f"v{get_version()}")
        return

    if args.command is None:
        print("Error: No command specified.", file=sys.stderr)
        sys.exit(1)

    # Fail fast on names the server would reject anyway
    config = BeachpatrolConfig()
    resolver = CommandResolver(get_commands_dir(config.commands_dir))
    try:
        resolver.resolve(args.command)
    except CommandResolutionError as exc:
        print(exc.response_line(), file=sys.stderr)
        sys.exit(1)

    try:
        response = send_command(args.command, args.args)
    except ServerUnavailableError as exc:
        print(
            f"Error: Could not connect to the beachpatrol socket. {exc}",
            file=sys.stderr,
        )
        print("Have you started beachpatrol?", file=sys.stderr)
        sys.exit(1)

    sys.stdout.write(response)
    if response.startswith("Error:"):
        sys.exit(1)


# ---------------------------------------------------------------------------
# beachpatrol
# ---------------------------------------------------------------------------


def _build_server_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="beachpatrol",
        usage="beachpatrol [--profile <profile_name>] [--incognito] [--headless]",
        description=_SERVER_DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--profile",
        default=None,
        metavar="<profile_name>",
        help="Use the specified profile. Default: default",
    )
    parser.add_argument(
        "--browser",
        default=None,
        metavar="<browser_name>",
        help=(
            "Use the specified browser. Default: chromium. "
            f"Supported browsers: {', '.join(SUPPORTED_BROWSERS)}"
        ),
    )
    parser.add_argument(
        "--incognito",
        action="store_true",
        default=False,
        help="Launch browser in incognito mode.",
    )
    parser.add_argument(
        "--headless",
        action="store_true",
        default=False,
        help="Launch browser in headless mode.",
    )
    return parser


def server_main(argv: list[str] | None = None) -> None:
    """Launch the browser and serve commands until terminated."""
    parser = _build_server_parser()
    args = parser.parse_args(argv if argv is not None else sys.argv[1:])

    if args.browser is not None and args.browser not in SUPPORTED_BROWSERS:
        print(f"Error: Unsupported browser {args.browser}", file=sys.stderr)
        print(f"Supported browsers: {', '.join(SUPPORTED_BROWSERS)}", file=sys.stderr)
        sys.exit(1)

    config = load_config(
        profile=args.profile,
        browser=args.browser,
        incognito=args.incognito,
        headless=args.headless,
    )

    # Imported here so `beachmsg` does not pay for loading patchright
    from beachpatrol.server import start_server

    try:
        start_server(config)
    except Exception as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
